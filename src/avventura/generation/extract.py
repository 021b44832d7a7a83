"""Pull a step array out of free-form LLM text.

Models are told to answer with a bare JSON array, but they often wrap it in a
Markdown code fence or add a sentence before it. This module isolates that
text handling from the graph model.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from avventura.graph.errors import SchemaError
from avventura.graph.interchange import parse_steps_json

if TYPE_CHECKING:
    from avventura.models.step import Step

_FENCE_PATTERN = re.compile(r"```[A-Za-z]*[ \t]*\n?(.*?)```", re.DOTALL)


def extract_json_text(text: str) -> str:
    """Return the JSON payload contained in *text*.

    Handles, in order of preference:
    - A fenced block (```` ```json ```` or bare ```` ``` ````), narrowed to the
      array inside it when the block also holds prose
    - The span from the first ``[`` to the last ``]``

    Raises:
        SchemaError: If no array-like payload is present.
    """
    fence_match = _FENCE_PATTERN.search(text)
    if fence_match:
        payload = fence_match.group(1).strip()
        if payload:
            return _array_span(payload) or payload

    span = _array_span(text)
    if span is None:
        raise SchemaError(["no JSON array found in model output"], raw=text[:200])
    return span


def _array_span(text: str) -> str | None:
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end < start:
        return None
    return text[start : end + 1]


def extract_steps(text: str) -> list[Step]:
    """Parse the steps contained in raw LLM output.

    Returns:
        Steps in the order the model produced them. Duplicate numbers are
        left for ``StoryGraph.load`` to reject.

    Raises:
        SchemaError: If no payload is found, it is not JSON, or it does not
            match the step interchange format.
    """
    return parse_steps_json(extract_json_text(text))
