"""Normalise chat model message content to plain text.

Gemini and some Anthropic responses carry ``AIMessage.content`` as a list of
content blocks instead of a string.
"""

from __future__ import annotations

from typing import Any


def extract_text(content: str | list[Any]) -> str:
    """Return the text of a message ``content`` field.

    Strings pass through. For a list, the ``text`` of every ``type == "text"``
    block is joined with newlines; bare strings in the list are kept too.
    """
    if isinstance(content, str):
        return content

    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)
    return "\n".join(parts)
