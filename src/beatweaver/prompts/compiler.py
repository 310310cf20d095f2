"""Prompt compiler for assembling stage prompts."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from pydantic import BaseModel

from beatweaver.prompts.loader import PromptLoader, TemplateNotFoundError, TemplateParseError


@dataclass
class CompiledPrompt:
    """A compiled prompt ready for the generation service."""

    system: str
    user: str
    template_name: str


class PromptCompileError(Exception):
    """Raised when prompt compilation fails."""

    def __init__(self, template_name: str, message: str) -> None:
        self.template_name = template_name
        super().__init__(f"Failed to compile template '{template_name}': {message}")


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    raise TypeError(f"Cannot render {type(value).__name__} as JSON")


def _render_value(value: Any) -> str:
    if isinstance(value, (list, dict, BaseModel)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=_to_jsonable)
    return str(value)


class PromptCompiler:
    """Compile prompts from templates with ``{{ variable }}`` substitution.

    Dotted paths (``{{ chapter.title }}``) resolve through dicts and
    attributes. Lists, dicts and pydantic models render as indented JSON.
    Unresolved placeholders are left as-is.
    """

    _VAR_PATTERN = re.compile(r"\{\{\s*(\w+(?:\.\w+)*)\s*\}\}")

    def __init__(self, templates_path: Path | None = None) -> None:
        self._loader = PromptLoader(templates_path)

    def _resolve_variable(self, path: str, context: dict[str, Any]) -> str:
        """Resolve a dotted variable path from context.

        Raises:
            KeyError: If the path cannot be resolved.
        """
        value: Any = context
        for part in path.split("."):
            if isinstance(value, dict):
                if part not in value:
                    raise KeyError(f"Key '{part}' not found in context path '{path}'")
                value = value[part]
            elif hasattr(value, part):
                value = getattr(value, part)
            else:
                raise KeyError(f"Cannot resolve '{part}' in context path '{path}'")
        return _render_value(value)

    def substitute(self, text: str, context: dict[str, Any]) -> str:
        """Substitute ``{{ variable }}`` placeholders with context values."""

        def replace_match(match: re.Match[str]) -> str:
            try:
                return self._resolve_variable(match.group(1), context)
            except KeyError:
                return match.group(0)

        return self._VAR_PATTERN.sub(replace_match, text)

    def compile(self, template_name: str, context: dict[str, Any] | None = None) -> CompiledPrompt:
        """Compile a prompt from a template with context substitution.

        Args:
            template_name: Name of the template (e.g., ``draft_beats``).
            context: Context dictionary for variable substitution.

        Returns:
            CompiledPrompt ready for the generation service.

        Raises:
            PromptCompileError: If the template cannot be loaded.
        """
        context = context or {}
        try:
            template = self._loader.load(template_name)
        except (TemplateNotFoundError, TemplateParseError) as e:
            raise PromptCompileError(template_name, str(e)) from e

        return CompiledPrompt(
            system=self.substitute(template.system, context),
            user=self.substitute(template.user, context),
            template_name=template_name,
        )

    def list_templates(self) -> list[str]:
        return self._loader.list_templates()
