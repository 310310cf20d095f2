"""Shared plumbing for generation stages: prompting and boundary validation."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from beatweaver.pipeline.errors import StageOutputError
from beatweaver.providers.base import GenerationOptions

if TYPE_CHECKING:
    from beatweaver.pipeline.config import StageSettings
    from beatweaver.prompts import PromptCompiler
    from beatweaver.providers.base import GenerationService

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def strip_null_values(data: Any) -> Any:
    """Recursively drop null values from dicts.

    Generators often send explicit null for optional fields; treating null
    as absent lets schema defaults apply. Nulls inside lists are kept.
    """
    if isinstance(data, dict):
        return {k: strip_null_values(v) for k, v in data.items() if v is not None}
    if isinstance(data, list):
        return [strip_null_values(item) for item in data]
    return data


def parse_json_object(content: str, stage: str) -> dict[str, Any]:
    """Parse a generated JSON object, tolerating code fences and preamble.

    Raises:
        StageOutputError: If no JSON object can be parsed.
    """
    text = content.strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise StageOutputError(stage, "Response contains no JSON object")
        text = text[start : end + 1]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StageOutputError(stage, f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise StageOutputError(stage, f"Expected a JSON object, got {type(data).__name__}")
    return data


def format_validation_errors(error: ValidationError) -> list[str]:
    """Format pydantic validation errors as ``loc: msg`` strings."""
    errors = []
    for e in error.errors():
        loc = ".".join(str(part) for part in e["loc"])
        errors.append(f"{loc}: {e['msg']}" if loc else e["msg"])
    return errors


def validate_output(schema: type[ModelT], content: str, stage: str) -> ModelT:
    """Parse and validate generated content against a stage schema.

    Raises:
        StageOutputError: If the content is not JSON or fails validation.
    """
    data = strip_null_values(parse_json_object(content, stage))
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise StageOutputError(stage, "; ".join(format_validation_errors(e))) from e


async def generate_for_stage(
    generation: GenerationService,
    compiler: PromptCompiler,
    template: str,
    variables: dict[str, Any],
    settings: StageSettings,
) -> str:
    """Compile a stage template and run one generation call.

    Returns:
        The response content. Errors from the generation service propagate.
    """
    prompt = compiler.compile(template, variables)
    response = await generation.generate(
        prompt.system,
        prompt.user,
        GenerationOptions(
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            json_mode=True,
            stage=template,
        ),
    )
    return response.content


def bullet_list(lines: list[str], empty: str = "None") -> str:
    return "\n".join(f"- {line}" for line in lines) or empty


def join_or(values: list[str], empty: str = "Not specified") -> str:
    return ", ".join(v for v in values if v) or empty
