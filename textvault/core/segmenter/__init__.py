"""
Text segmentation for embedding.
"""

from textvault.core.segmenter.segmenter import (
    CHARS_PER_TOKEN,
    Segmenter,
    estimate_tokens,
    segment_text,
)

__all__ = [
    "CHARS_PER_TOKEN",
    "Segmenter",
    "estimate_tokens",
    "segment_text",
]
