"""
Loading portfolio content from disk.

Turns a directory of markdown/text exports (blog posts, project write-ups,
pages) into Documents for ingestion. Used by the CLI; the API receives
documents directly from the CMS.
"""

import re
from pathlib import Path
from typing import Optional

from portfolio_rag.retrieval.types import SOURCE_TYPES, Document, SourceType

CONTENT_EXTENSIONS = (".md", ".markdown", ".txt")

_TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def discover_content_files(data_dir: Path) -> list[Path]:
    """
    Discover all content files in a directory (recursively).

    Args:
        data_dir: Directory to search

    Returns:
        Sorted list of markdown/text file paths
    """
    files = [
        path
        for path in data_dir.rglob("*")
        if path.is_file() and path.suffix.lower() in CONTENT_EXTENSIONS
    ]
    files.sort()
    return files


def extract_title(text: str, fallback: str) -> str:
    """Return the first level-1 markdown header, or a title made from fallback."""
    match = _TITLE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return fallback.replace("-", " ").replace("_", " ").strip().title()


def load_document(
    path: Path,
    data_dir: Path,
    source_type: Optional[SourceType] = None,
    base_url: Optional[str] = None,
) -> Document:
    """
    Read one file as a Document.

    The document id is the file path relative to data_dir without its
    suffix, so it stays stable across runs.

    Args:
        path: File to read
        data_dir: Root directory the id is relative to
        source_type: Source type for the document
        base_url: If given, source_url becomes base_url + "/" + id

    Returns:
        Document with title taken from the first "# " header
    """
    text = path.read_text(encoding="utf-8")
    document_id = path.relative_to(data_dir).with_suffix("").as_posix()

    source_url = None
    if base_url:
        source_url = f"{base_url.rstrip('/')}/{document_id}"

    return Document(
        id=document_id,
        title=extract_title(text, path.stem),
        content=text,
        source_type=source_type,
        source_url=source_url,
        metadata={"path": path.name},
    )


def load_documents(
    data_dir: Path,
    source_type: Optional[SourceType] = None,
    base_url: Optional[str] = None,
) -> list[Document]:
    """
    Load every content file under data_dir.

    Raises:
        ValueError: If source_type is not one of blog/project/page/custom
    """
    if source_type is not None and source_type not in SOURCE_TYPES:
        raise ValueError(
            f"Invalid source type {source_type!r}; expected one of {', '.join(SOURCE_TYPES)}"
        )

    return [
        load_document(path, data_dir, source_type, base_url)
        for path in discover_content_files(data_dir)
    ]


def validate_data_directory(data_dir: Path) -> tuple[bool, str]:
    """
    Validate that a data directory contains content files.

    Args:
        data_dir: Directory to validate

    Returns:
        Tuple of (is_valid, message)
    """
    if not data_dir.exists():
        return False, f"Directory does not exist: {data_dir}"

    if not data_dir.is_dir():
        return False, f"Not a directory: {data_dir}"

    files = discover_content_files(data_dir)
    if not files:
        return False, f"No markdown or text files found in: {data_dir}"

    return True, f"Found {len(files)} content files"
