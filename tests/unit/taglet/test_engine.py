"""Tests for the PlantUML engine adapter.

subprocess and the shared httpx client are mocked; no Java or network needed.
"""

from __future__ import annotations

import io
import subprocess
import zlib
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from plantdoc.config.loader import EngineConfig
from plantdoc.engine import (
    CANNOT_OPEN_URL_MARKER,
    ERROR_CHECK_THRESHOLD,
    FileFormat,
    PlantUmlEngine,
    apply_config,
    encode_source,
    file_format_for,
    has_error_marker,
)
from plantdoc.errors import RenderEngineError, UnsupportedFormatError

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"


def _decode(encoded: str) -> str:
    """Reverse of encode_source() for assertions."""
    data = bytearray()
    for i in range(0, len(encoded), 4):
        c1, c2, c3, c4 = (_ALPHABET.index(c) for c in encoded[i : i + 4])
        data.append((c1 << 2) | (c2 >> 4))
        data.append(((c2 & 0xF) << 4) | (c3 >> 2))
        data.append(((c3 & 0x3) << 6) | c4)
    return zlib.decompressobj(-15).decompress(bytes(data)).decode("utf-8")


# -----------------------------------------------------------------------------
# Formats
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.taglet
class TestFileFormat:
    """Format lookup by file name suffix."""

    def test_svg(self) -> None:
        assert file_format_for("0b6f.svg") is FileFormat.SVG

    def test_case_insensitive(self) -> None:
        assert file_format_for("DIAGRAM.PNG") is FileFormat.PNG

    def test_first_declared_match_wins(self) -> None:
        assert file_format_for("d.eps") is FileFormat.EPS
        assert file_format_for("d.tex") is FileFormat.LATEX

    def test_unsupported_extension(self) -> None:
        with pytest.raises(UnsupportedFormatError, match=r"diagram\.xyz"):
            file_format_for("diagram.xyz")

    def test_every_format_has_option(self) -> None:
        for file_format in FileFormat:
            assert file_format.suffix.startswith(".")
            assert file_format.option


# -----------------------------------------------------------------------------
# Source preparation
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.taglet
class TestApplyConfig:
    """Configuration injection after @start lines."""

    def test_no_config_is_identity(self) -> None:
        source = "@startuml\nA -> B\n@enduml"
        assert apply_config(source, ()) == source

    def test_inserted_after_start_line(self) -> None:
        result = apply_config("@startuml\nA -> B\n@enduml", ["skinparam monochrome true"])

        assert result == "@startuml\nskinparam monochrome true\nA -> B\n@enduml"

    def test_inserted_into_every_diagram(self) -> None:
        source = "@startuml\nA -> B\n@enduml\n@startmindmap\n* root\n@endmindmap"

        result = apply_config(source, ["!theme plain\n"])

        assert result.count("!theme plain") == 2
        assert "@startmindmap\n!theme plain\n* root" in result


@pytest.mark.unit
@pytest.mark.taglet
class TestEncodeSource:
    """PlantUML URL encoding."""

    def test_uses_plantuml_alphabet(self) -> None:
        encoded = encode_source("@startuml\nA -> B\n@enduml")

        assert encoded
        assert set(encoded) <= set(_ALPHABET)
        assert len(encoded) % 4 == 0

    @pytest.mark.parametrize("source", ["A", "@startuml\nBob -> Alice : hello\n@enduml", "ü" * 50])
    def test_decodes_back(self, source: str) -> None:
        assert _decode(encode_source(source)) == source


@pytest.mark.unit
@pytest.mark.taglet
class TestErrorMarker:
    """Best-effort detection of PlantUML's 'Cannot open URL' image."""

    def test_small_output_with_marker(self) -> None:
        assert has_error_marker(f"<svg><text{CANNOT_OPEN_URL_MARKER}xyz]--></svg>")

    def test_large_output_never_flagged(self) -> None:
        text = CANNOT_OPEN_URL_MARKER + "x" * ERROR_CHECK_THRESHOLD
        assert not has_error_marker(text)

    def test_small_output_without_marker(self) -> None:
        assert not has_error_marker("<svg>Cannot open</svg>")


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------


def _completed(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def jar(tmp_path: Path) -> Path:
    path = tmp_path / "plantuml.jar"
    path.write_bytes(b"PK")
    return path


@pytest.mark.unit
@pytest.mark.taglet
class TestJarRendering:
    """Rendering through the local JAR."""

    @patch("plantdoc.engine.shutil.which", return_value="/usr/bin/java")
    @patch("plantdoc.engine.subprocess.run")
    def test_writes_stdout_to_stream(self, mock_run, _which, jar: Path) -> None:
        mock_run.return_value = _completed(stdout=b"<svg>ok</svg>")
        engine = PlantUmlEngine(EngineConfig(prefer="jar"), jar)
        stream = io.BytesIO()

        engine.render("@startuml\nA -> B\n@enduml", stream, FileFormat.SVG, ["skinparam x y"])

        assert stream.getvalue() == b"<svg>ok</svg>"
        cmd = mock_run.call_args.args[0]
        assert cmd[:3] == ["java", "-Djava.awt.headless=true", "-jar"]
        assert "-tsvg" in cmd
        assert "-pipe" in cmd
        sent = mock_run.call_args.kwargs["input"].decode("utf-8")
        assert sent == "@startuml\nskinparam x y\nA -> B\n@enduml"

    @patch("plantdoc.engine.shutil.which", return_value="/usr/bin/java")
    @patch("plantdoc.engine.subprocess.run")
    def test_nonzero_exit_with_output_is_used(self, mock_run, _which, jar: Path) -> None:
        mock_run.return_value = _completed(stdout=b"<svg>syntax error</svg>", returncode=200)
        engine = PlantUmlEngine(EngineConfig(prefer="jar"), jar)
        stream = io.BytesIO()

        engine.render("@startuml\n?\n@enduml", stream, FileFormat.SVG)

        assert stream.getvalue() == b"<svg>syntax error</svg>"

    @patch("plantdoc.engine.shutil.which", return_value="/usr/bin/java")
    @patch("plantdoc.engine.subprocess.run")
    def test_jar_only_fails_without_output(self, mock_run, _which, jar: Path) -> None:
        mock_run.return_value = _completed(stderr=b"boom", returncode=1)
        engine = PlantUmlEngine(EngineConfig(prefer="jar"), jar)

        with pytest.raises(RenderEngineError, match="no output"):
            engine.render("@startuml\n@enduml", io.BytesIO(), FileFormat.SVG)

    def test_jar_only_fails_when_missing(self, tmp_path: Path) -> None:
        engine = PlantUmlEngine(EngineConfig(prefer="jar"), tmp_path / "absent.jar")

        with pytest.raises(RenderEngineError, match="no usable JAR"):
            engine.render("@startuml\n@enduml", io.BytesIO(), FileFormat.SVG)

    @patch("plantdoc.engine.shutil.which", return_value=None)
    def test_jar_unusable_without_java(self, _which, jar: Path) -> None:
        engine = PlantUmlEngine(EngineConfig(), jar)

        assert engine.available_jar() is None

    @patch("plantdoc.engine.shutil.which", return_value="/usr/bin/java")
    def test_jar_detection_runs_once(self, mock_which, jar: Path) -> None:
        engine = PlantUmlEngine(EngineConfig(), jar)

        assert engine.available_jar() == jar
        assert engine.available_jar() == jar
        assert mock_which.call_count == 1


@pytest.mark.unit
@pytest.mark.taglet
class TestServerRendering:
    """Rendering through a PlantUML server."""

    @patch("plantdoc.engine.get_client")
    def test_get_encoded_url(self, mock_get_client) -> None:
        client = MagicMock()
        client.get.return_value = httpx.Response(200, content=b"<svg/>")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="server", server_url="http://uml.local/plantuml/"))
        stream = io.BytesIO()

        engine.render("@startuml\nA -> B\n@enduml", stream, FileFormat.SVG)

        assert stream.getvalue() == b"<svg/>"
        url = client.get.call_args.args[0]
        assert url.startswith("http://uml.local/plantuml/svg/")
        assert _decode(url.rsplit("/", 1)[1]) == "@startuml\nA -> B\n@enduml"

    @patch("plantdoc.engine.get_client")
    def test_error_image_with_400_is_used(self, mock_get_client) -> None:
        client = MagicMock()
        client.get.return_value = httpx.Response(400, content=b"<svg>error</svg>")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="server"))
        stream = io.BytesIO()

        engine.render("@startuml\n?\n@enduml", stream, FileFormat.SVG)

        assert stream.getvalue() == b"<svg>error</svg>"

    @patch("plantdoc.engine.get_client")
    def test_server_error_raises(self, mock_get_client) -> None:
        client = MagicMock()
        client.get.return_value = httpx.Response(503, content=b"")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="server"))

        with pytest.raises(RenderEngineError, match="503"):
            engine.render("@startuml\n@enduml", io.BytesIO(), FileFormat.SVG)

    @patch("plantdoc.engine.get_client")
    def test_request_error_raises(self, mock_get_client) -> None:
        client = MagicMock()
        client.get.side_effect = httpx.ConnectError("refused")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="server"))

        with pytest.raises(RenderEngineError, match="request failed"):
            engine.render("@startuml\n@enduml", io.BytesIO(), FileFormat.SVG)

    def test_format_without_server_support(self) -> None:
        engine = PlantUmlEngine(EngineConfig(prefer="server"))

        with pytest.raises(RenderEngineError, match="LATEX"):
            engine.render("@startuml\n@enduml", io.BytesIO(), FileFormat.LATEX)

    @patch("plantdoc.engine.get_client")
    def test_auto_falls_back_to_server_without_jar(self, mock_get_client, tmp_path: Path) -> None:
        client = MagicMock()
        client.get.return_value = httpx.Response(200, content=b"<svg/>")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="auto"), tmp_path / "absent.jar")
        stream = io.BytesIO()

        engine.render("@startuml\n@enduml", stream, FileFormat.SVG)

        assert stream.getvalue() == b"<svg/>"

    @patch("plantdoc.engine.get_client")
    @patch("plantdoc.engine.shutil.which", return_value="/usr/bin/java")
    @patch("plantdoc.engine.subprocess.run")
    def test_auto_falls_back_when_jar_times_out(
        self, mock_run, _which, mock_get_client, jar: Path
    ) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="java", timeout=60)
        client = MagicMock()
        client.get.return_value = httpx.Response(200, content=b"<svg>server</svg>")
        mock_get_client.return_value = client
        engine = PlantUmlEngine(EngineConfig(prefer="auto"), jar)
        stream = io.BytesIO()

        engine.render("@startuml\n@enduml", stream, FileFormat.SVG)

        assert stream.getvalue() == b"<svg>server</svg>"
