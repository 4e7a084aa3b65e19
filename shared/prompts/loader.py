"""Prompt template loading and filling."""
from pathlib import Path
from string import Formatter
from typing import Any, Dict, Set

TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptLoader:
    """
    Loads the bundled `.txt` prompt templates and fills their `{placeholders}`.

    Filling fails loudly when a placeholder has no value, so a renamed
    variable never reaches the model as literal braces.
    """

    _cache: Dict[str, str] = {}

    @classmethod
    def load(cls, template_name: str) -> str:
        """Template text, cached per process."""
        if template_name not in cls._cache:
            path = TEMPLATES_DIR / f"{template_name}.txt"
            cls._cache[template_name] = path.read_text(encoding="utf-8")
        return cls._cache[template_name]

    @classmethod
    def format(cls, template_name: str, **variables: Any) -> str:
        """
        Fill a template.

        Raises:
            FileNotFoundError: If no template has this name
            KeyError: If a placeholder of the template has no value
        """
        template = cls.load(template_name)
        missing = cls.placeholders(template) - set(variables)
        if missing:
            raise KeyError(
                f"Prompt '{template_name}' is missing variables: {', '.join(sorted(missing))}"
            )
        return template.format(**variables)

    @staticmethod
    def placeholders(template: str) -> Set[str]:
        """Names of the `{placeholders}` in a template (escaped braces excluded)."""
        return {field for _, field, _, _ in Formatter().parse(template) if field}
