"""Logging for plantdoc.

Diagnostic messages go through loguru. Operations that touch files, the
network or the engine are wrapped in timed spans that emit one JSON record
each.
"""

from __future__ import annotations

import json
import sys
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger

# Span records are emitted at this level unless the span failed
SPAN_LEVEL = "DEBUG"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with a stderr sink at ``level``.

    stdout stays free for the markup printed by the CLI.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> {message}",
    )


class LogSpan:
    """A structured logging span with timing and attributes."""

    def __init__(self, name: str, **attrs: Any) -> None:
        """Initialize a log span.

        Args:
            name: Span name (e.g., "taglet.process")
            **attrs: Initial attributes to log
        """
        self.name = name
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.monotonic()
        self.error: str | None = None

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Returns:
            Self for method chaining
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Build the record emitted for this span."""
        entry: dict[str, Any] = {
            "span": self.name,
            "elapsed_ms": round((time.monotonic() - self.start_time) * 1000, 2),
            **self.attrs,
        }
        if self.error:
            entry["error"] = self.error
        return entry

    def _emit(self) -> None:
        level = "WARNING" if self.error else SPAN_LEVEL
        logger.bind(span=self.name).log(level, json.dumps(self.to_dict(), default=str))


@contextmanager
def log(name: str, **attrs: Any) -> Generator[LogSpan, None, None]:
    """Context manager for structured logging.

    Automatically captures timing and errors; exceptions are re-raised.

    Example:
        >>> with log("engine.render", format="svg") as span:
        ...     data = render()
        ...     span.add(bytes=len(data))
    """
    span = LogSpan(name, **attrs)
    try:
        yield span
    except Exception as e:
        span.error = f"{type(e).__name__}: {e}"
        raise
    finally:
        span._emit()
