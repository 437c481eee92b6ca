"""
Artifact loading at the converter boundary.

Converters write plain-text markdown files with YAML front matter. This
module turns those files into SourceArtifacts; it never parses binary
formats.

Expected front matter::

    ---
    title: Quarterly notes
    source_type: file          # note | file | url
    tags: [work, planning]
    source_file: inbox/q3.eml  # optional
    metadata: {sender: ...}    # optional
    ---
    Body text...
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from textvault.models.document import SourceKind
from textvault.models.ingestion import ArtifactOutcome, IngestionStatus, SourceArtifact
from textvault.utils.exceptions import InvalidArgumentError
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

FRONT_MATTER_DELIMITER = "---"

# Front matter keys copied into document metadata when present
_PASSTHROUGH_KEYS = ("content_type", "source_hash", "source_file", "created_at", "converted_at")


def parse_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """
    Split a markdown string into front matter and body.

    Args:
        text: Markdown text, optionally starting with a ``---`` block

    Returns:
        (front matter mapping, body with surrounding whitespace trimmed)

    Raises:
        InvalidArgumentError: If the front matter block is unterminated or not a mapping
    """
    normalized = text.replace("\r\n", "\n")
    if not normalized.startswith(FRONT_MATTER_DELIMITER + "\n"):
        return {}, normalized.strip()

    lines = normalized.split("\n")
    for end, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONT_MATTER_DELIMITER:
            break
    else:
        raise InvalidArgumentError("Unterminated front matter block")

    try:
        data = yaml.safe_load("\n".join(lines[1:end])) or {}
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"Invalid front matter: {e}") from e

    if not isinstance(data, dict):
        raise InvalidArgumentError("Front matter must be a mapping")

    return data, "\n".join(lines[end + 1 :]).strip()


def load_artifact(path: str | Path, root: str | Path | None = None) -> SourceArtifact:
    """
    Load one converted markdown file.

    Args:
        path: File to load
        root: Ingestion root used to compute the relative path

    Returns:
        SourceArtifact

    Raises:
        InvalidArgumentError: If required front matter fields are missing
    """
    path = Path(path)
    front_matter, body = parse_front_matter(path.read_text(encoding="utf-8"))

    title = front_matter.get("title")
    if not title:
        raise InvalidArgumentError("Missing required front matter field: title")
    source_type = front_matter.get("source_type")
    if not source_type:
        raise InvalidArgumentError("Missing required front matter field: source_type")

    tags = front_matter.get("tags") or []
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list):
        raise InvalidArgumentError("Front matter field 'tags' must be a list or a string")

    metadata = front_matter.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise InvalidArgumentError("Front matter field 'metadata' must be a mapping")
    metadata = dict(metadata)
    for key in _PASSTHROUGH_KEYS:
        if front_matter.get(key) is not None:
            metadata[key] = str(front_matter[key])

    relative_path = str(path.relative_to(root)) if root else None

    try:
        return SourceArtifact(
            source_file=str(path),
            title=str(title),
            body=body,
            source_kind=SourceKind(source_type),
            tags=[str(t) for t in tags],
            metadata=metadata,
            relative_path=relative_path,
        )
    except (ValueError, ValidationError) as e:
        raise InvalidArgumentError(f"Invalid artifact {path}: {e}") from e


def discover_files(
    root: str | Path, pattern: str = "**/*.md", recursive: bool = True
) -> list[Path]:
    """
    Find artifact files under an ingestion root, sorted by path.

    Hidden files (including the manifest) are skipped.
    """
    root = Path(root)
    if not root.is_dir():
        raise InvalidArgumentError(f"Not a directory: {root}", {"root": str(root)})

    if not recursive:
        pattern = pattern.replace("**/", "")

    return sorted(
        p
        for p in root.glob(pattern)
        if p.is_file() and not any(part.startswith(".") for part in p.relative_to(root).parts)
    )


def load_directory(
    root: str | Path, pattern: str = "**/*.md", recursive: bool = True
) -> tuple[list[SourceArtifact], list[ArtifactOutcome]]:
    """
    Load every artifact under ``root``.

    Files that cannot be loaded are returned as failed outcomes instead of
    aborting the load.

    Returns:
        (loaded artifacts, failed outcomes)
    """
    artifacts: list[SourceArtifact] = []
    failures: list[ArtifactOutcome] = []

    for path in discover_files(root, pattern, recursive):
        try:
            artifacts.append(load_artifact(path, root))
        except (InvalidArgumentError, OSError, UnicodeDecodeError) as e:
            message = e.message if isinstance(e, InvalidArgumentError) else str(e)
            logger.warning(f"Skipping unreadable artifact {path}: {message}")
            failures.append(
                ArtifactOutcome(
                    source_file=str(path),
                    status=IngestionStatus.FAILED,
                    reason="invalid_artifact",
                    error=message,
                )
            )

    logger.bind(failed=len(failures)).info(f"Loaded {len(artifacts)} artifacts from {root}")
    return artifacts, failures
