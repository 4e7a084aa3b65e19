"""
Structural validation of generated lesson code.

Lessons are Python modules exposing a `render()` function. Validation runs
in two steps: a syntax check, then (only for code that parses) AST checks
for imports, forbidden builtins, unsafe attribute access and the entry point.
"""
import ast
import logging
from typing import List

from shared.models.domain import CodeValidationError, CodeValidationResult
from shared.utils.constants import (
    ALLOWED_IMPORTS,
    BLOCKED_IMPORTS,
    FORBIDDEN_BUILTINS,
    LESSON_ENTRY_POINT,
)

logger = logging.getLogger(__name__)

# Attributes that give access to interpreter internals
FORBIDDEN_ATTRIBUTES = frozenset({
    "__subclasses__",
    "__globals__",
    "__builtins__",
    "__code__",
    "__closure__",
    "__bases__",
    "__mro__",
})


def blocked_import_message(module: str) -> str:
    """Reason shown for an import outside the whitelist."""
    root = module.split(".")[0]
    if root in BLOCKED_IMPORTS:
        return f'Import "{module}": {BLOCKED_IMPORTS[root]}'
    return (
        f'Import "{module}" is not in the whitelist. '
        "Only approved standard library modules can be imported."
    )


class _LessonChecker(ast.NodeVisitor):
    """Collects structural errors while walking a lesson module."""

    def __init__(self):
        self.errors: List[CodeValidationError] = []

    def _add(self, node: ast.AST, error_type: str, message: str, severity: str = "error"):
        self.errors.append(CodeValidationError(
            type=error_type,
            message=message,
            line=getattr(node, "lineno", None),
            column=getattr(node, "col_offset", None),
            severity=severity,
        ))

    def visit_Import(self, node: ast.Import):
        for alias in node.names:
            if alias.name.split(".")[0] not in ALLOWED_IMPORTS:
                self._add(node, "import", blocked_import_message(alias.name))
        self.generic_visit(node)

    def visit_ImportFrom(self, node: ast.ImportFrom):
        if node.level:
            self._add(node, "import", "Relative imports are not allowed in lessons")
        elif node.module is None or node.module.split(".")[0] not in ALLOWED_IMPORTS:
            self._add(node, "import", blocked_import_message(node.module or ""))
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name):
        if node.id in FORBIDDEN_BUILTINS:
            self._add(node, "builtin", f'Use of "{node.id}" is not allowed in lessons')
        elif node.id == "print":
            self._add(node, "builtin", "Lessons should return content from render() instead of printing", "warning")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute):
        if node.attr in FORBIDDEN_ATTRIBUTES:
            self._add(node, "attribute", f'Access to "{node.attr}" is not allowed in lessons')
        self.generic_visit(node)


class LessonCodeValidator:
    """Checks that generated lesson code is safe and well formed."""

    def check(self, code: str) -> CodeValidationResult:
        """
        Validate lesson code.

        A crash inside the checker is reported as a validation error rather
        than raised, so the lesson can still be regenerated.

        Args:
            code: Lesson source code

        Returns:
            CodeValidationResult; valid when there are no error-severity problems
        """
        try:
            errors = self._check(code)
        except Exception as e:
            logger.error(f"Lesson code validator crashed: {e}", exc_info=True)
            errors = [CodeValidationError(
                type="internal",
                message=f"Validator error: {e}",
                line=1,
                column=0,
            )]

        blocking = [e for e in errors if e.severity == "error"]
        if blocking:
            logger.warning(f"Lesson code validation found {len(blocking)} error(s)")
        else:
            logger.info("Lesson code validation passed")
        return CodeValidationResult(valid=not blocking, errors=errors)

    def _check(self, code: str) -> List[CodeValidationError]:
        try:
            tree = ast.parse(code, filename="lesson.py")
        except SyntaxError as e:
            # No point running further checks on code that does not parse
            return [CodeValidationError(
                type="syntax",
                message=f"Syntax error: {e.msg}",
                line=e.lineno,
                column=e.offset,
            )]

        checker = _LessonChecker()
        checker.visit(tree)
        errors = checker.errors

        entry_point = self._entry_point_error(tree)
        if entry_point is not None:
            errors.append(entry_point)
        return errors

    @staticmethod
    def _entry_point_error(tree: ast.Module):
        for node in tree.body:
            if isinstance(node, ast.FunctionDef) and node.name == LESSON_ENTRY_POINT:
                args = node.args
                required = len(args.posonlyargs) + len(args.args) - len(args.defaults)
                required_kw = sum(1 for d in args.kw_defaults if d is None)
                if required or required_kw:
                    return CodeValidationError(
                        type="structure",
                        message=f"{LESSON_ENTRY_POINT}() must be callable without arguments",
                        line=node.lineno,
                        column=node.col_offset,
                    )
                return None
        return CodeValidationError(
            type="structure",
            message=f"Missing top-level function {LESSON_ENTRY_POINT}()",
            line=1,
            column=0,
        )
