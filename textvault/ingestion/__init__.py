"""
Converter boundary: loading plain-text artifacts for ingestion.
"""

from textvault.ingestion.loader import (
    discover_files,
    load_artifact,
    load_directory,
    parse_front_matter,
)

__all__ = [
    "discover_files",
    "load_artifact",
    "load_directory",
    "parse_front_matter",
]
