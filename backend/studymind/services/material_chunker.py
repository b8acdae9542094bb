"""
Material Chunker.
Splits extracted document text into paragraph-aligned retrieval windows.
"""

import re
from typing import List

DEFAULT_CHUNK_CHARS = 1000

_PARAGRAPH_BREAK = re.compile(r"\n\n+")


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> List[str]:
    """
    Greedily pack blank-line separated paragraphs into chunks.

    A chunk is flushed when appending the next paragraph would take it past
    `max_chars`. Paragraphs are never split, so a single paragraph longer
    than `max_chars` becomes its own oversized chunk. No overlap between
    chunks.
    """
    chunks: List[str] = []
    current = ""

    for paragraph in _PARAGRAPH_BREAK.split(text):
        if current and len(current) + len(paragraph) > max_chars:
            chunks.append(current.strip())
            current = paragraph
        else:
            current += ("\n\n" if current else "") + paragraph

    if current.strip():
        chunks.append(current.strip())

    return chunks
