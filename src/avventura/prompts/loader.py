"""Prompt template loading and rendering.

Templates are YAML files in the ``templates/`` directory next to this module,
each with ``system`` and ``user`` text containing ``{{ variable }}``
placeholders.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

DEFAULT_TEMPLATES_PATH = Path(__file__).parent / "templates"

_VAR_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class TemplateNotFoundError(Exception):
    """Raised when a template file cannot be found."""

    def __init__(self, template_name: str, path: Path) -> None:
        self.template_name = template_name
        self.path = path
        super().__init__(f"Template not found: {template_name} at {path}")


class TemplateParseError(Exception):
    """Raised when a template file cannot be parsed."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to parse template '{template_name}': {reason}")


@dataclass
class RenderedPrompt:
    """A prompt ready for LLM submission."""

    system: str
    user: str
    template_name: str


@dataclass
class PromptTemplate:
    """A loaded prompt template."""

    name: str
    description: str
    system: str
    user: str

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str) -> PromptTemplate:
        return cls(
            name=data.get("name", name),
            description=data.get("description", ""),
            system=data.get("system", ""),
            user=data.get("user", ""),
        )

    def render(self, **context: Any) -> RenderedPrompt:
        """Substitute ``{{ variable }}`` placeholders.

        Unknown placeholders are left as-is.
        """

        def replace_match(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in context:
                return match.group(0)
            return str(context[key])

        return RenderedPrompt(
            system=_VAR_PATTERN.sub(replace_match, self.system).strip(),
            user=_VAR_PATTERN.sub(replace_match, self.user).strip(),
            template_name=self.name,
        )


class PromptLoader:
    """Load prompt templates from disk, caching each one.

    Attributes:
        templates_path: Directory holding ``<name>.yaml`` files.
    """

    def __init__(self, templates_path: Path | None = None) -> None:
        self.templates_path = templates_path or DEFAULT_TEMPLATES_PATH
        self._yaml = YAML(typ="safe")
        self._cache: dict[str, PromptTemplate] = {}

    def _get_template_path(self, template_name: str) -> Path:
        return self.templates_path / f"{template_name}.yaml"

    def load(self, template_name: str) -> PromptTemplate:
        """Load a template by name.

        Raises:
            TemplateNotFoundError: If the template file doesn't exist.
            TemplateParseError: If the template cannot be parsed.
        """
        if template_name in self._cache:
            return self._cache[template_name]

        path = self._get_template_path(template_name)
        if not path.exists():
            raise TemplateNotFoundError(template_name, path)

        try:
            with path.open("r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except Exception as e:
            raise TemplateParseError(template_name, str(e)) from e

        if not isinstance(data, dict):
            raise TemplateParseError(template_name, "Expected a mapping")

        template = PromptTemplate.from_dict(data, template_name)
        self._cache[template_name] = template
        return template

    def list_templates(self) -> list[str]:
        if not self.templates_path.exists():
            return []
        return sorted(p.stem for p in self.templates_path.glob("*.yaml") if p.is_file())
