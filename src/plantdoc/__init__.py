"""plantdoc - PlantUML diagrams in API documentation comments.

Features:
- plantUml tag usable inline and as a block tag
- Diagram source inline, in a per-method sequence file, or behind a URL
- Rendering through a local plantuml.jar or a PlantUML server
- Generated images placed next to the documentation page they belong to

Usage:
    from plantdoc import AnnotatedElement, FileOutputManager, PlantUmlTaglet

    taglet = PlantUmlTaglet(FileOutputManager("build/docs"))
    markup = taglet.to_string(
        ["classes.svg Foo <|-- Bar"],
        AnnotatedElement.for_type("com.example.Foo"),
    )
"""

from importlib.metadata import version
from typing import Any

from plantdoc.elements import AnnotatedElement, ElementKind
from plantdoc.errors import TagletError
from plantdoc.output import FileOutputManager, OutputFile, OutputManager

__version__ = version("plantdoc")

__all__ = [
    "AnnotatedElement",
    "ElementKind",
    "FileOutputManager",
    "OutputFile",
    "OutputManager",
    "PlantUmlTaglet",
    "TagletError",
    "__version__",
]


def __getattr__(name: str) -> Any:
    """Lazy import for the taglet to avoid loading config and httpx at import time."""
    if name == "PlantUmlTaglet":
        from plantdoc.taglet import PlantUmlTaglet

        return PlantUmlTaglet
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
