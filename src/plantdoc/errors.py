"""Exceptions raised while processing a plantUml tag.

Every error aborts the current tag occurrence. There is no retry and no
partial result: the host is expected to stop the documentation run.

Errors that wrap a lower-level failure keep it both as ``cause`` and as the
chained ``__cause__`` (callers raise them with ``from``).
"""

from __future__ import annotations

from pathlib import Path


class TagletError(Exception):
    """Base class for all tag processing failures."""


class MalformedTagError(TagletError):
    """Tag body lacks the filename token followed by diagram source."""

    def __init__(self, tag_name: str, body: str) -> None:
        super().__init__(
            f"Invalid {tag_name} tag: expected a filename token followed by "
            f"diagram source (content: {body!r})"
        )
        self.tag_name = tag_name
        self.body = body


class ContentNotFoundError(TagletError):
    """Method-derived diagram source file does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class ContentReadError(TagletError):
    """Diagram source file exists but could not be read."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"Error reading {path}: {cause}")
        self.path = path
        self.cause = cause


class OutputAllocationError(TagletError):
    """Host could not allocate an output file for the rendered diagram."""

    def __init__(self, namespace: str, filename: str, cause: Exception) -> None:
        super().__init__(
            f"Error generating output file for {namespace}/{filename}: {cause}"
        )
        self.namespace = namespace
        self.filename = filename
        self.cause = cause


class RemoteFetchError(TagletError):
    """URL-shaped diagram content could not be fetched."""

    def __init__(self, url: str, reason: str, cause: Exception | None = None) -> None:
        super().__init__(f"Resource {url}: {reason}")
        self.url = url
        self.cause = cause


class UnsupportedFormatError(TagletError):
    """Output filename matches no format declared by the engine."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported file extension: {name}")
        self.name = name


class RenderEngineError(TagletError):
    """The engine failed, or produced a diagram carrying a known error marker."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigLoadError(TagletError):
    """A configured settings or engine configuration file is unreadable."""

    def __init__(self, path: Path | str, cause: Exception | str) -> None:
        super().__init__(f"Error loading configuration file {path}: {cause}")
        self.path = Path(path)
        self.cause = cause
