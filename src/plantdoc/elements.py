"""Documented program elements a plantUml tag can be attached to.

The host hands every tag occurrence over together with the element it
annotates. Only the element's kind, names and enclosing package/type matter
for tag processing, so elements are plain frozen records here.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ElementKind(str, Enum):
    """Kinds of documented elements."""

    OVERVIEW = "overview"  # top-level overview page
    PACKAGE = "package"
    TYPE = "type"
    METHOD = "method"
    OTHER = "other"  # fields, constructors, anything else the host knows


@dataclass(frozen=True)
class AnnotatedElement:
    """A documented element.

    Attributes:
        kind: What the element is.
        simple_name: Unqualified name (method name for methods).
        qualified_name: Dotted name of the element itself.
        package: Qualified name of the enclosing package.
        outermost_type: Qualified name of the outermost enclosing type.
    """

    kind: ElementKind
    simple_name: str = ""
    qualified_name: str = ""
    package: str = ""
    outermost_type: str = ""

    @classmethod
    def overview(cls) -> AnnotatedElement:
        return cls(kind=ElementKind.OVERVIEW)

    @classmethod
    def for_package(cls, name: str) -> AnnotatedElement:
        return cls(
            kind=ElementKind.PACKAGE,
            simple_name=name.rpartition(".")[2],
            qualified_name=name,
            package=name,
        )

    @classmethod
    def for_type(cls, qualified_name: str, package: str | None = None) -> AnnotatedElement:
        """Type element; ``package`` defaults to the lowercase leading segments."""
        if package is None:
            package = split_package(qualified_name)[0]
        else:
            qualified_name = _qualify(qualified_name, package)
        return cls(
            kind=ElementKind.TYPE,
            simple_name=qualified_name.rpartition(".")[2],
            qualified_name=qualified_name,
            package=package,
            outermost_type=_outermost(qualified_name, package),
        )

    @classmethod
    def for_method(
        cls, type_name: str, name: str, package: str | None = None
    ) -> AnnotatedElement:
        """Method ``name`` declared in type ``type_name`` (possibly nested)."""
        if package is None:
            package = split_package(type_name)[0]
        else:
            type_name = _qualify(type_name, package)
        return cls(
            kind=ElementKind.METHOD,
            simple_name=name,
            qualified_name=f"{type_name}.{name}",
            package=package,
            outermost_type=_outermost(type_name, package),
        )

    def describe(self) -> str:
        """Short label for messages, e.g. ``method com.example.Foo.run``."""
        return f"{self.kind.value} {self.qualified_name or '<overview>'}"


def split_package(qualified_name: str) -> tuple[str, str]:
    """Split ``com.example.Outer.Inner`` into ``("com.example", "Outer.Inner")``.

    The package is the run of leading segments that do not start with an
    uppercase letter.
    """
    parts = qualified_name.split(".")
    index = 0
    while index < len(parts) - 1 and not parts[index][:1].isupper():
        index += 1
    return ".".join(parts[:index]), ".".join(parts[index:])


def _qualify(type_name: str, package: str) -> str:
    """Prefix ``package`` unless ``type_name`` is already qualified with it."""
    if not package or type_name.startswith(f"{package}."):
        return type_name
    return f"{package}.{type_name}"


def _outermost(type_name: str, package: str) -> str:
    prefix = f"{package}." if package else ""
    head = type_name[len(prefix):].split(".", 1)[0]
    return prefix + head


def enclosing_namespace(element: AnnotatedElement) -> str:
    """Output namespace for diagrams generated on ``element``.

    Packages use their own name, types and methods their enclosing
    package. The overview and any other element live in the root namespace.
    """
    kind = element.kind
    if kind is ElementKind.PACKAGE:
        return element.qualified_name
    if kind is ElementKind.TYPE or kind is ElementKind.METHOD:
        return element.package
    return ""


def element_for(obj: Any) -> AnnotatedElement:
    """Build an element from a live Python module, class, or function.

    Module-level functions treat their module as the enclosing type, so the
    derived sequence file for ``pkg.mod.func`` is ``pkg_mod_func.sequence.*``.
    """
    if inspect.ismodule(obj):
        return AnnotatedElement.for_package(obj.__name__)

    module = getattr(obj, "__module__", None) or ""
    qualname = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", "")
    qualname = qualname.replace(".<locals>", "")

    if inspect.isclass(obj):
        qualified = f"{module}.{qualname}" if module else qualname
        return AnnotatedElement(
            kind=ElementKind.TYPE,
            simple_name=obj.__name__,
            qualified_name=qualified,
            package=module,
            outermost_type=f"{module}.{qualname.split('.')[0]}" if module else qualname,
        )

    if inspect.isroutine(obj):
        owner, _, name = qualname.rpartition(".")
        qualified = f"{module}.{qualname}" if module else qualname
        if owner:
            outermost = f"{module}.{owner.split('.')[0]}" if module else owner
        else:
            outermost = module
        return AnnotatedElement(
            kind=ElementKind.METHOD,
            simple_name=name,
            qualified_name=qualified,
            package=module,
            outermost_type=outermost,
        )

    raise TypeError(f"Cannot document object of type {type(obj).__name__}")
