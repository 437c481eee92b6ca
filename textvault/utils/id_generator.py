"""
ID generation utilities for TextVault.

Provides consistent ID generation for all entity types:
- Documents: doc_xxx
- Segments: doc_xxx_seg_N
"""

from uuid import uuid4


def generate_document_id() -> str:
    """
    Generate unique Document ID.

    Returns:
        ID in format "doc_xxx" where xxx is 16 hex characters
    """
    return f"doc_{uuid4().hex[:16]}"


def generate_segment_id(document_id: str, segment_index: int) -> str:
    """
    Generate Segment ID based on parent document.

    Args:
        document_id: Parent document ID
        segment_index: Zero-based segment index

    Returns:
        ID in format "doc_xxx_seg_N"
    """
    return f"{document_id}_seg_{segment_index}"
