"""Structure-preserving transcript correction helpers.

WHY: The provider's transcript is a list of timed chunks. Some carry text,
others are placeholders (pauses, punctuation slots) with no text at all.
The correction model only ever sees the text, but its output has to be
written back into exactly the same structure, or the provider's caption
timings drift. These helpers do the extraction and the write-back.

HOW: extract_correction_input() projects every chunk with non-empty text
down to {"text": ...}. merge_corrections() walks the original chunks in
order and hands each text chunk the next corrected value, copying
placeholders through unchanged.

RULES:
- A chunk "has text" only if chunk["text"] is a non-empty str
- Output length and order always equal the input's
- Non-text fields of every chunk are preserved verbatim
- A count mismatch raises CorrectionShapeError; there is no partial merge
- Input chunk dicts are never mutated
"""

from __future__ import annotations

from typing import Any, Dict, List


class CorrectionShapeError(ValueError):
    """Raised when the correction output does not match the input shape.

    RULES:
    - expected is the number of text chunks sent for correction
    - received is the number of corrected entries returned
    """

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            "Corrected transcript length ({}) does not match original "
            "transcript length ({})".format(received, expected)
        )


def has_text(chunk: Dict[str, Any]) -> bool:
    text = chunk.get("text")
    return isinstance(text, str) and len(text) > 0


def extract_correction_input(chunks: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Return {"text": ...} for each chunk with text, in original order."""
    return [{"text": chunk["text"]} for chunk in chunks if has_text(chunk)]


def merge_corrections(
    chunks: List[Dict[str, Any]],
    corrected: List[Dict[str, str]],
) -> List[Dict[str, Any]]:
    """Substitute corrected texts back into a copy of the original chunks.

    Example:
        chunks    = [{"text": "helo"}, {}, {"text": "wrold"}]
        corrected = [{"text": "hello"}, {"text": "world"}]
        result    = [{"text": "hello"}, {}, {"text": "world"}]
    """
    expected = sum(1 for chunk in chunks if has_text(chunk))
    if len(corrected) != expected:
        raise CorrectionShapeError(expected, len(corrected))

    replacements = iter(corrected)
    merged: List[Dict[str, Any]] = []
    for chunk in chunks:
        copy = dict(chunk)
        if has_text(chunk):
            copy["text"] = next(replacements)["text"]
        merged.append(copy)
    return merged
