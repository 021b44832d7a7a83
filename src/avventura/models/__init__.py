"""Pydantic models for the story interchange format.

These models define the JSON shape exchanged with the backend and produced by
the LLM. Parsing helpers live in ``avventura.graph.interchange`` and
structural rules in ``avventura.graph.validation``.
"""

from avventura.models.step import Step

__all__ = ["Step"]
