"""The plantUml taglet.

Turns a tag such as::

    {@plantUml diagram.svg
        Alice -> Bob: hello
    }

into an SVG file next to the generated documentation page and an
``<img src="...">`` reference in the page itself. The first token of the tag
body only names the diagram; the file actually written gets a random name.

On a method, a tag without diagram source reads
``<Outer_Type>_<method>.sequence.<ext>`` from the sequence base path.
Content that is a URL is fetched and used as the diagram source.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from plantdoc.config.loader import TagletConfig, get_config
from plantdoc.config.render import RenderConfig
from plantdoc.elements import AnnotatedElement, ElementKind, enclosing_namespace
from plantdoc.engine import (
    END_MARKER,
    START_MARKER,
    PlantUmlEngine,
    file_format_for,
    has_error_marker,
)
from plantdoc.errors import (
    ContentNotFoundError,
    ContentReadError,
    MalformedTagError,
    OutputAllocationError,
    RenderEngineError,
)
from plantdoc.http import fetch_text
from plantdoc.logging import log
from plantdoc.output import OutputFile, OutputManager

TAG_NAME = "plantUml"

ALLOWED_LOCATIONS = frozenset(
    {ElementKind.OVERVIEW, ElementKind.PACKAGE, ElementKind.TYPE, ElementKind.METHOD}
)

URL_PATTERN = re.compile(r"\w+://.*")

_FIRST_WHITESPACE = re.compile(r"\s+")


def split_tag(body: str) -> tuple[str, str | None]:
    """Split a tag body into its first token and the rest (None if absent)."""
    parts = _FIRST_WHITESPACE.split(body, maxsplit=1)
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1]


def sequence_file_name(element: AnnotatedElement, extension: str = "uml") -> str:
    """``com.example.Foo`` + ``run`` -> ``com_example_Foo_run.sequence.uml``."""
    type_part = element.outermost_type.replace(".", "_")
    return f"{type_part}_{element.simple_name}.sequence.{extension.lstrip('.')}"


def read_sequence_file(path: Path) -> str:
    """Read a method-derived diagram source file.

    Raises:
        ContentNotFoundError: If the file does not exist.
        ContentReadError: If it cannot be read.
    """
    if not path.is_file():
        raise ContentNotFoundError(path.absolute())
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ContentReadError(path.absolute(), e) from e


def normalize_source(content: str, fetch: Callable[[str], str] = fetch_text) -> str:
    """Turn resolved content into complete PlantUML source.

    URLs are fetched and used as-is. Anything not already starting with
    ``@startuml`` is wrapped between start and end markers, so normalizing
    twice changes nothing.
    """
    if URL_PATTERN.fullmatch(content):
        return fetch(content)
    if content.lstrip().startswith(START_MARKER):
        return content
    return f"{START_MARKER}\n{content}\n{END_MARKER}"


def image_markup(filename: str) -> str:
    return f'<img src="{filename}"> '


class PlantUmlTaglet:
    """Renders plantUml tags into diagram files and image references.

    Construct once per documentation run; instances hold no mutable state
    and may be shared between threads.
    """

    name = TAG_NAME
    allowed_locations = ALLOWED_LOCATIONS

    def __init__(
        self,
        output: OutputManager,
        config: TagletConfig | None = None,
        *,
        render_config: RenderConfig | None = None,
        engine: PlantUmlEngine | None = None,
        fetch: Callable[[str], str] = fetch_text,
    ) -> None:
        self.output = output
        self.config = config or get_config()
        if render_config is None:
            render_config = RenderConfig.load(self.config.get_plantuml_config_path())
        self.render_config = render_config
        self.engine = engine or PlantUmlEngine(self.config.engine, self.config.get_jar_path())
        self._fetch = fetch

    def is_inline_tag(self) -> bool:
        return True

    def is_block_tag(self) -> bool:
        return True

    def to_string(self, tags: Iterable[str], element: AnnotatedElement) -> str:
        """Render every tag occurrence on ``element``; markup concatenated in order."""
        return "".join(self.process_tag(tag, element) for tag in tags)

    def process_tag(self, body: str, element: AnnotatedElement) -> str:
        """Render one tag occurrence and return its markup."""
        with log("taglet.process", element=element.describe()) as span:
            content = self.resolve_content(body, element)
            namespace = enclosing_namespace(element)
            filename = self.new_filename()
            span.add(namespace=namespace, file=filename)

            graphics = self._allocate(namespace, filename)
            source = normalize_source(content, self._fetch)
            self._render(source, graphics)
            self.check_output(graphics)
            return image_markup(filename)

    def resolve_content(self, body: str, element: AnnotatedElement) -> str:
        """Diagram content for a tag body: inline remainder or sequence file."""
        _, remainder = split_tag(body)

        if element.kind is ElementKind.METHOD and not remainder:
            path = self.config.get_sequence_basepath() / sequence_file_name(
                element, self.config.sequence_extension
            )
            logger.debug(f"Reading sequence diagram for {element.describe()} from {path}")
            return read_sequence_file(path)

        if not remainder or not remainder.strip():
            logger.warning(f"Invalid {self.name} tag on {element.describe()}. Content: {body!r}")
            raise MalformedTagError(self.name, body)
        return remainder.strip()

    def new_filename(self) -> str:
        return f"{uuid.uuid4()}{self.config.output_suffix()}"

    def _allocate(self, namespace: str, filename: str) -> OutputFile:
        try:
            return self.output.get_file_for_output(namespace, filename)
        except (OSError, ValueError) as e:
            raise OutputAllocationError(namespace, filename, e) from e

    def _render(self, source: str, graphics: OutputFile) -> None:
        file_format = file_format_for(graphics.name)
        try:
            with graphics.open_output_stream() as stream:
                self.engine.render(source, stream, file_format, self.render_config.lines)
        except OSError as e:
            raise RenderEngineError(
                f"Error generating UML image {graphics.name}: {e}", path=graphics.path
            ) from e

    def check_output(self, graphics: OutputFile) -> None:
        """Fail when the written diagram is PlantUML's 'Cannot open URL' image."""
        try:
            text = graphics.read_text()
        except OSError as e:
            raise RenderEngineError(
                f"Error reading back UML image {graphics.name}: {e}", path=graphics.path
            ) from e

        if has_error_marker(text):
            raise RenderEngineError(
                "PlantUML diagram generation error 'Cannot open URL'. "
                f"Please check file {graphics.path}",
                path=graphics.path,
            )
