"""Prompt templates for story generation."""

from avventura.prompts.loader import (
    PromptLoader,
    PromptTemplate,
    RenderedPrompt,
    TemplateNotFoundError,
    TemplateParseError,
)

__all__ = [
    "PromptLoader",
    "PromptTemplate",
    "RenderedPrompt",
    "TemplateNotFoundError",
    "TemplateParseError",
]
