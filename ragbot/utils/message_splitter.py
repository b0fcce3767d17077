"""
Message splitting for Discord's message size limit

Python strings are indexed by code point, so slicing never lands inside a
multi-byte character: every chunk is valid text on its own and re-encodes
to UTF-8 cleanly.
"""

from typing import List

DISCORD_CHUNK_LENGTH = 1800


def split_message(message: str, max_length: int = DISCORD_CHUNK_LENGTH) -> List[str]:
    """
    Split a reply into ordered chunks that fit in one chat message.

    Args:
        message: The text to split
        max_length: Maximum number of code points per chunk

    Returns:
        Non-empty chunks whose concatenation is exactly ``message``.
        An empty message yields an empty list.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    return [
        message[start : start + max_length]
        for start in range(0, len(message), max_length)
    ]


def first_chars(text: str, count: int) -> str:
    """Leading ``count`` code points of ``text``, for log previews."""
    return text[:count]
