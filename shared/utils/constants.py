"""Application constants - all magic numbers centralized."""

# Validation thresholds (defaults, overridable via settings)
DEFAULT_MIN_SAFETY_SCORE = 0.7
DEFAULT_MIN_SPECIFICITY_SCORE = 0.7
DEFAULT_MIN_CONFIDENCE = 0.6
DEFAULT_AGE_BOUNDS = (5, 16)  # Inclusive learner age range the product supports

# Titles
MAX_TITLE_LENGTH = 100  # Derived outline titles are cut to this many characters

# Subject kinds stored on status records
SUBJECT_OUTLINE = "outline"
SUBJECT_LESSON = "lesson"

# Public status names written to the status ledger
STATUS_SUBMITTED = "submitted"
STATUS_OUTLINE_VALIDATING = "outline.validating"
STATUS_OUTLINE_VALIDATED = "outline.validated"
STATUS_OUTLINE_BLOCKS_GENERATING = "outline.blocks.generating"
STATUS_OUTLINE_BLOCKS_GENERATED = "outline.blocks.generated"
STATUS_LESSON_GENERATING = "lesson.generating"
STATUS_LESSON_GENERATED = "lesson.generated"
STATUS_LESSON_VALIDATING = "lesson.validating"
STATUS_LESSON_COMPILED = "lesson.compiled"
STATUS_FAILED = "failed"
STATUS_ERROR = "error"

TERMINAL_STATUSES = {
    SUBJECT_OUTLINE: frozenset({STATUS_OUTLINE_BLOCKS_GENERATED, STATUS_FAILED, STATUS_ERROR}),
    SUBJECT_LESSON: frozenset({STATUS_LESSON_COMPILED, STATUS_FAILED, STATUS_ERROR}),
}

# Stage names used in system error metadata
STAGE_OUTLINE_VALIDATION = "outline_validation"
STAGE_BLOCKS_GENERATION = "blocks_generation"
STAGE_CODE_GENERATION = "code_generation"
STAGE_CODE_VALIDATION = "code_validation"
STAGE_CODE_REGENERATION = "code_regeneration"
STAGE_COMPILATION = "compilation"
STAGE_WORKFLOW = "workflow"

# Compiled lesson artifacts
LESSON_SOURCE_FILENAME = "lesson.py"
LESSON_COMPILED_FILENAME = "lesson.pyc"
LESSON_ENTRY_POINT = "render"

# Modules generated lesson code may import
ALLOWED_IMPORTS = frozenset({
    "math",
    "random",
    "string",
    "textwrap",
    "json",
    "dataclasses",
    "typing",
    "enum",
    "itertools",
    "functools",
    "collections",
    "fractions",
    "decimal",
    "statistics",
    "datetime",
    "re",
})

# Modules that are explicitly refused, with the reason shown to the regenerator
BLOCKED_IMPORTS = {
    "os": "Operating system access is not allowed in lessons",
    "sys": "Interpreter internals are not allowed in lessons",
    "subprocess": "Spawning processes is not allowed in lessons",
    "socket": "Network access is not allowed in lessons",
    "urllib": "Network access is not allowed in lessons",
    "http": "Network access is not allowed in lessons",
    "requests": "Network access is not allowed in lessons",
    "shutil": "File system access is not allowed in lessons",
    "pathlib": "File system access is not allowed in lessons",
    "importlib": "Dynamic imports are not allowed in lessons",
    "pickle": "Object deserialization is not allowed in lessons",
    "ctypes": "Native code access is not allowed in lessons",
    "threading": "Concurrency primitives are not allowed in lessons",
    "multiprocessing": "Concurrency primitives are not allowed in lessons",
}

# Builtins generated lesson code may not call
FORBIDDEN_BUILTINS = frozenset({
    "eval",
    "exec",
    "compile",
    "open",
    "__import__",
    "globals",
    "locals",
    "input",
    "breakpoint",
})

# Known topics and their domains, shown to the outline scorer
TOPIC_TAXONOMY = {
    # Mathematics
    "Addition": ["math", "arithmetic", "basic-operations"],
    "Subtraction": ["math", "arithmetic", "basic-operations"],
    "Multiplication": ["math", "arithmetic", "basic-operations"],
    "Division": ["math", "arithmetic", "basic-operations"],
    "Place Value": ["math", "arithmetic", "number-sense"],
    "Fractions": ["math", "arithmetic", "rational-numbers"],
    "Decimals": ["math", "arithmetic", "rational-numbers"],
    "Percentages": ["math", "arithmetic", "rational-numbers"],
    "Ratios": ["math", "arithmetic", "proportions"],
    "Simple Equations": ["math", "algebra", "equations"],
    "Linear Equations": ["math", "algebra", "equations"],
    "Exponents": ["math", "algebra", "powers"],
    "Shapes": ["math", "geometry", "basic-shapes"],
    "Angles": ["math", "geometry", "angles"],
    "Area": ["math", "geometry", "measurement"],
    "Perimeter": ["math", "geometry", "measurement"],
    "Pythagorean Theorem": ["math", "geometry", "triangles"],
    "Telling Time": ["math", "measurement", "time"],
    "Money Math": ["math", "measurement", "money"],
    # English
    "Nouns": ["english", "grammar", "parts-of-speech"],
    "Verbs": ["english", "grammar", "parts-of-speech"],
    "Adjectives": ["english", "grammar", "parts-of-speech"],
    "Sentence Types": ["english", "grammar", "sentences"],
    "Punctuation": ["english", "grammar", "mechanics"],
    "Reading Comprehension": ["english", "reading", "comprehension"],
    # Science
    "Plants": ["science", "biology", "living-things"],
    "Animals": ["science", "biology", "living-things"],
    "Human Body": ["science", "biology", "anatomy"],
    "Water Cycle": ["science", "earth-science", "weather"],
    "Solar System": ["science", "astronomy", "space"],
    "States of Matter": ["science", "chemistry", "matter"],
    "Forces and Motion": ["science", "physics", "mechanics"],
    "Electricity": ["science", "physics", "energy"],
    # Social studies
    "Maps and Directions": ["social-studies", "geography", "maps"],
    "Continents": ["social-studies", "geography", "world"],
    "Community Helpers": ["social-studies", "civics", "community"],
}
