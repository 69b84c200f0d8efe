"""PlantUML rendering engine adapter.

Two ways to reach PlantUML:

Local:  ``java -jar plantuml.jar -t<format> -charset UTF-8 -pipe`` reading the
        diagram on stdin and writing the image to stdout. No size limits.
Server: GET ``<server>/<format>/<encoded>`` against a PlantUML server, the
        source being deflated and base64-encoded with PlantUML's alphabet.

``prefer: auto`` uses the JAR when it exists and ``java`` is on PATH, and falls
back to the server when the JAR produces nothing.
"""

from __future__ import annotations

import re
import shutil
import subprocess
import threading
import zlib
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import BinaryIO

import httpx
from loguru import logger

from plantdoc.config.loader import EngineConfig
from plantdoc.errors import RenderEngineError, UnsupportedFormatError
from plantdoc.http import get_client
from plantdoc.logging import log

START_MARKER = "@startuml"
END_MARKER = "@enduml"

# PlantUML embeds this in the SVG it draws when an !include URL fails
CANNOT_OPEN_URL_MARKER = '">Cannot open URL</text><!--SRC=['

# Outputs at least this long are never checked for the marker
ERROR_CHECK_THRESHOLD = 15000


class FileFormat(Enum):
    """Output formats PlantUML can produce.

    Value: (file suffix, ``-t`` option, server path or None).
    """

    PNG = (".png", "png", "png")
    SVG = (".svg", "svg", "svg")
    EPS = (".eps", "eps", "eps")
    EPS_TEXT = (".eps", "eps:text", "epstext")
    ATXT = (".atxt", "txt", "txt")
    UTXT = (".utxt", "utxt", None)
    XMI_STANDARD = (".xmi", "xmi", None)
    SCXML = (".scxml", "scxml", None)
    GRAPHML = (".graphml", "graphml", None)
    PDF = (".pdf", "pdf", None)
    HTML = (".html", "html", None)
    VDX = (".vdx", "vdx", None)
    LATEX = (".tex", "latex", None)
    LATEX_NO_PREAMBLE = (".tex", "latex:nopreamble", None)
    BRAILLE_PNG = (".braille.png", "braille", None)

    def __init__(self, suffix: str, option: str, server_path: str | None) -> None:
        self.suffix = suffix
        self.option = option
        self.server_path = server_path


def file_format_for(name: str) -> FileFormat:
    """Find the format whose suffix ends ``name`` (first declared match wins).

    Raises:
        UnsupportedFormatError: If no format matches.
    """
    lowered = name.lower()
    for file_format in FileFormat:
        if lowered.endswith(file_format.suffix):
            return file_format
    raise UnsupportedFormatError(name)


# ---------------------------------------------------------------------------
# Source preparation
# ---------------------------------------------------------------------------

_START_LINE = re.compile(r"^([ \t]*@start\w*[^\n]*(?:\n|$))", re.MULTILINE)


def apply_config(source: str, config: Sequence[str]) -> str:
    """Insert configuration lines right after every ``@start...`` line."""
    if not config:
        return source
    block = "".join(entry if entry.endswith("\n") else entry + "\n" for entry in config)

    def _insert(match: re.Match[str]) -> str:
        line = match.group(1)
        return (line if line.endswith("\n") else line + "\n") + block

    return _START_LINE.sub(_insert, source)


_PLANTUML_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"


def encode_source(source: str) -> str:
    """Encode diagram source for PlantUML server URLs.

    Raw deflate, then 3 bytes -> 4 characters of PlantUML's alphabet, the last
    group zero-padded.
    """
    data = zlib.compress(source.encode("utf-8"), 9)[2:-4]
    chars: list[str] = []
    for i in range(0, len(data), 3):
        b1, b2, b3 = (data[i : i + 3] + b"\0\0")[:3]
        for value in (
            b1 >> 2,
            ((b1 & 0x3) << 4) | (b2 >> 4),
            ((b2 & 0xF) << 2) | (b3 >> 6),
            b3 & 0x3F,
        ):
            chars.append(_PLANTUML_ALPHABET[value])
    return "".join(chars)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class PlantUmlEngine:
    """Renders PlantUML source into an output stream."""

    def __init__(self, settings: EngineConfig | None = None, jar_path: Path | None = None) -> None:
        self.settings = settings or EngineConfig()
        if jar_path is None and self.settings.jar_path:
            jar_path = Path(self.settings.jar_path)
        self._configured_jar = jar_path
        self._jar_lock = threading.Lock()
        self._jar_checked = False
        self._jar: Path | None = None

    def available_jar(self) -> Path | None:
        """Return the JAR if local rendering is possible (checked once)."""
        if self._jar_checked:
            return self._jar

        with self._jar_lock:
            if self._jar_checked:
                return self._jar

            jar = self._configured_jar
            if jar is None or not jar.is_file():
                if jar is not None:
                    logger.info(f"PlantUML JAR not found at {jar}")
                jar = None
            elif shutil.which("java") is None:
                logger.info("Java not in PATH, PlantUML JAR present but unusable")
                jar = None
            else:
                logger.debug(f"PlantUML local JAR available at {jar}")

            self._jar = jar
            self._jar_checked = True
            return jar

    def render(
        self,
        source: str,
        stream: BinaryIO,
        file_format: FileFormat,
        config: Sequence[str] = (),
    ) -> None:
        """Render ``source`` in ``file_format`` and write the bytes to ``stream``.

        Raises:
            RenderEngineError: If no rendering path produced output.
        """
        text = apply_config(source, config)
        with log("engine.render", format=file_format.name, prefer=self.settings.prefer) as span:
            data, via = self._render_bytes(text, file_format)
            span.add(via=via, bytes=len(data))
        stream.write(data)

    def _render_bytes(self, text: str, file_format: FileFormat) -> tuple[bytes, str]:
        prefer = self.settings.prefer

        if prefer in ("auto", "jar"):
            jar = self.available_jar()
            if jar is not None:
                data = self._render_via_jar(jar, text, file_format)
                if data is not None:
                    return data, "jar"
                if prefer == "jar":
                    raise RenderEngineError("PlantUML JAR produced no output")
            elif prefer == "jar":
                raise RenderEngineError(
                    "PlantUML JAR rendering requested but no usable JAR "
                    f"(jar_path={self._configured_jar}, java on PATH required)"
                )

        return self._render_via_server(text, file_format), "server"

    def _render_via_jar(self, jar: Path, text: str, file_format: FileFormat) -> bytes | None:
        """Render through the local JAR; None means fall back."""
        cmd = [
            "java",
            "-Djava.awt.headless=true",
            "-jar",
            str(jar),
            f"-t{file_format.option}",
            "-charset",
            "UTF-8",
            "-pipe",
        ]
        try:
            result = subprocess.run(
                cmd,
                input=text.encode("utf-8"),
                capture_output=True,
                timeout=self.settings.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"PlantUML JAR timed out after {self.settings.timeout}s")
            return None
        except OSError as e:
            logger.warning(f"PlantUML JAR execution failed: {e}")
            return None

        # PlantUML exits non-zero on syntax errors but still draws the error image
        if result.stdout:
            if result.returncode != 0:
                logger.debug(
                    f"PlantUML JAR returned exit code {result.returncode} with output, using it"
                )
            return result.stdout

        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        logger.warning(
            f"PlantUML JAR produced no output (exit={result.returncode}, "
            f"stderr={stderr[:300] or '(empty)'})"
        )
        return None

    def _render_via_server(self, text: str, file_format: FileFormat) -> bytes:
        if file_format.server_path is None:
            raise RenderEngineError(
                f"Format {file_format.name} cannot be rendered by the PlantUML server"
            )

        server = self.settings.server_url.rstrip("/")
        url = f"{server}/{file_format.server_path}/{encode_source(text)}"
        logger.debug(f"Rendering via PlantUML server {server} ({len(url)} chars URL)")

        try:
            response = get_client().get(url, timeout=self.settings.timeout)
        except httpx.HTTPError as e:
            raise RenderEngineError(f"PlantUML server request failed: {e}") from e

        # Servers answer 400 with an image of the syntax error
        if response.content and response.status_code < 500:
            if response.status_code != 200:
                logger.warning(
                    f"PlantUML server returned {response.status_code} with content, using it"
                )
            return response.content

        raise RenderEngineError(
            f"PlantUML server returned {response.status_code} "
            f"({len(response.content)} bytes)"
        )


def has_error_marker(text: str) -> bool:
    """True if a rendered output looks like PlantUML's 'Cannot open URL' image.

    Best-effort: only short outputs are checked, and the marker text may
    change between PlantUML versions.
    """
    return len(text) < ERROR_CHECK_THRESHOLD and CANNOT_OPEN_URL_MARKER in text
