"""LLM-assisted story generation and model output parsing."""

from avventura.generation.extract import extract_json_text, extract_steps
from avventura.generation.generator import GenerationResult, StoryGenerator

__all__ = [
    "GenerationResult",
    "StoryGenerator",
    "extract_json_text",
    "extract_steps",
]
