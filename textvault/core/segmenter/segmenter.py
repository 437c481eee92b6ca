"""
Paragraph-aware text segmentation.

Splits a document body into overlapping segments sized for embedding.
Token counts are approximated from character length.
"""

import math

from textvault.config import SegmenterConfig
from textvault.models.document import TextSegment
from textvault.models.ingestion import normalize_text
from textvault.utils.exceptions import InvalidArgumentError
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

# Rough approximation: 1 token ~ 4 characters of English text
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count of ``text`` (rounded up)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class Segmenter:
    """
    Splits text into overlapping segments, preferring paragraph boundaries.

    Paragraphs are accumulated greedily until the next one would push the
    segment past ``max_tokens``; the segment is then closed and the next
    one is seeded with the trailing ``overlap_tokens`` worth of characters
    of the closed segment.

    A single paragraph longer than the budget is emitted whole rather
    than hard-split.

    Usage:
        segmenter = Segmenter(max_tokens=512, overlap_tokens=50)
        segments = segmenter.segment(text)
    """

    def __init__(
        self,
        max_tokens: int = 512,
        overlap_tokens: int = 50,
        separator: str = "\n\n",
    ):
        _validate(max_tokens, overlap_tokens, separator)
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.separator = separator

    @classmethod
    def from_config(cls, config: SegmenterConfig) -> "Segmenter":
        return cls(
            max_tokens=config.max_tokens,
            overlap_tokens=config.overlap_tokens,
            separator=config.separator,
        )

    def segment(self, text: str) -> list[TextSegment]:
        """
        Segment ``text`` with this segmenter's parameters.

        Args:
            text: Raw body text

        Returns:
            Ordered segments; empty list for empty or whitespace-only text
        """
        return segment_text(
            text,
            max_tokens=self.max_tokens,
            overlap_tokens=self.overlap_tokens,
            separator=self.separator,
        )


def segment_text(
    text: str,
    max_tokens: int = 512,
    overlap_tokens: int = 50,
    separator: str = "\n\n",
) -> list[TextSegment]:
    """
    Split text into overlapping segments suitable for embedding.

    Offsets are relative to the normalized text. The window
    ``[start_offset, end_offset)`` of a segment includes any separator
    whitespace trimmed from its ``content``.

    Args:
        text: Raw body text
        max_tokens: Approximate token budget per segment
        overlap_tokens: Approximate tokens carried over from the previous segment
        separator: Paragraph separator

    Returns:
        Ordered list of TextSegment

    Raises:
        InvalidArgumentError: If parameters are invalid
    """
    _validate(max_tokens, overlap_tokens, separator)

    max_chars = max_tokens * CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN

    normalized = normalize_text(text)
    if not normalized:
        return []

    if len(normalized) <= max_chars:
        return [
            TextSegment(
                content=normalized,
                index=0,
                start_offset=0,
                end_offset=len(normalized),
                token_count=estimate_tokens(normalized),
            )
        ]

    segments: list[TextSegment] = []
    paragraphs = normalized.split(separator)

    # Invariant: current == normalized[window_start:offset]
    current = ""
    window_start = 0
    offset = 0

    for i, paragraph in enumerate(paragraphs):
        is_last = i == len(paragraphs) - 1
        piece = paragraph if is_last else paragraph + separator

        if current and len(current) + len(piece) > max_chars:
            _close(segments, current, window_start, offset)

            overlap_start = max(0, len(current) - overlap_chars)
            current = current[overlap_start:]
            window_start = offset - len(current)

        current += piece
        offset += len(piece)

    _close(segments, current, window_start, offset)

    logger.bind(
        original_length=len(normalized),
        segment_count=len(segments),
        avg_tokens=round(sum(s.token_count for s in segments) / max(len(segments), 1)),
    ).debug(f"Segmented text into {len(segments)} segments")

    return segments


def _close(segments: list[TextSegment], window: str, start: int, end: int) -> None:
    content = window.strip()
    if not content:
        return
    segments.append(
        TextSegment(
            content=content,
            index=len(segments),
            start_offset=start,
            end_offset=end,
            token_count=estimate_tokens(content),
        )
    )


def _validate(max_tokens: int, overlap_tokens: int, separator: str) -> None:
    if max_tokens <= 0:
        raise InvalidArgumentError(
            f"max_tokens must be positive, got {max_tokens}", {"max_tokens": max_tokens}
        )
    if overlap_tokens < 0:
        raise InvalidArgumentError(
            f"overlap_tokens must not be negative, got {overlap_tokens}",
            {"overlap_tokens": overlap_tokens},
        )
    if not separator:
        raise InvalidArgumentError("separator must not be empty")
