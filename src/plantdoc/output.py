"""Output files for generated diagrams.

The host decides where documentation output lives. Tag processing only asks
for a file by (namespace, filename), writes it once and reads it back.
``FileOutputManager`` is the filesystem implementation: namespace ``a.b``
maps to ``<root>/a/b/`` like package directories in generated API docs.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Protocol


class OutputFile:
    """A generated documentation file: written once, readable afterwards."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def name(self) -> str:
        return self.path.name

    @contextmanager
    def open_output_stream(self) -> Iterator[BinaryIO]:
        """Open the file for binary writing; closed on exit, errors or not."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("wb") as stream:
            yield stream

    def read_text(self) -> str:
        """Read back the written content, decoding leniently."""
        return self.path.read_text(encoding="utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"<OutputFile {self.path}>"


class OutputManager(Protocol):
    """Host service allocating output files."""

    def get_file_for_output(self, namespace: str, filename: str) -> OutputFile:
        """Return a writable file for ``filename`` under ``namespace``.

        Raises:
            OSError: If the location cannot be prepared.
            ValueError: If the name would escape the namespace.
        """
        ...


class FileOutputManager:
    """Output manager rooted at a documentation output directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def namespace_dir(self, namespace: str) -> Path:
        if not namespace:
            return self.root
        return self.root.joinpath(*namespace.split("."))

    def get_file_for_output(self, namespace: str, filename: str) -> OutputFile:
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise ValueError(f"Invalid output file name: {filename!r}")
        if namespace and not all(namespace.split(".")):
            raise ValueError(f"Invalid output namespace: {namespace!r}")

        directory = self.namespace_dir(namespace)
        directory.mkdir(parents=True, exist_ok=True)
        return OutputFile(directory / filename)
