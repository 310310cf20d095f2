"""Prompt compiler and template loading."""

from beatweaver.prompts.compiler import CompiledPrompt, PromptCompileError, PromptCompiler
from beatweaver.prompts.loader import (
    PromptLoader,
    PromptTemplate,
    TemplateNotFoundError,
    TemplateParseError,
)

__all__ = [
    "CompiledPrompt",
    "PromptCompileError",
    "PromptCompiler",
    "PromptLoader",
    "PromptTemplate",
    "TemplateNotFoundError",
    "TemplateParseError",
]
