"""Scoped, hierarchical collector of parse findings.

A Diagnostics object is one scope in an append-only tree. Each top-level
operation creates its own root; every call below it receives either that root
or a child created with ``scope()``. Nothing here is global.

Ordering contract: ``all()`` flattens in creation order. A child scope occupies
the position at which ``scope()`` was called, not the position at which its
first finding arrived. Callers that fan out concurrent work therefore create all
child scopes up front, in a fixed order, before starting the work.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Diagnostic severities."""

    ERROR = "error"
    WARNING = "warning"
    CRITICAL = "critical"
    INFO = "info"


@dataclass(frozen=True)
class Diagnostic:
    """One finding. Immutable once emitted."""

    message: str
    severity: Severity = Severity.ERROR
    data: Any = None
    scope: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        path = " > ".join(self.scope)
        prefix = f"{path}: " if path else ""
        return f"[{self.severity.value}] {prefix}{self.message}"


class Diagnostics:
    """One scope of the diagnostics tree."""

    def __init__(self, name: str = "epub"):
        self.name = name
        self._entries: list[Diagnostic | Diagnostics] = []

    def __repr__(self) -> str:
        return f"Diagnostics(name={self.name!r}, entries={len(self._entries)})"

    def push(self, *entries: Diagnostic | str) -> None:
        """Append findings to this scope. Bare strings become errors."""
        for entry in entries:
            if isinstance(entry, str):
                entry = Diagnostic(message=entry)
            self._entries.append(entry)

    def error(self, message: str, data: Any = None) -> None:
        self.push(Diagnostic(message, Severity.ERROR, data))

    def warning(self, message: str, data: Any = None) -> None:
        self.push(Diagnostic(message, Severity.WARNING, data))

    def info(self, message: str, data: Any = None) -> None:
        self.push(Diagnostic(message, Severity.INFO, data))

    def critical(self, message: str, data: Any = None) -> None:
        self.push(Diagnostic(message, Severity.CRITICAL, data))

    def scope(self, name: str) -> Diagnostics:
        """Create a child scope at the current position and return it."""
        child = Diagnostics(name)
        self._entries.append(child)
        return child

    def all(self) -> list[Diagnostic]:
        """Flatten this scope and its children, prefixing each scope path."""
        return list(self._flatten(()))

    def _flatten(self, parents: tuple[str, ...]) -> Iterable[Diagnostic]:
        path = parents + (self.name,)
        for entry in self._entries:
            if isinstance(entry, Diagnostics):
                yield from entry._flatten(path)
            else:
                yield replace(entry, scope=path + entry.scope)


def ignored() -> Diagnostics:
    """A detached scope whose findings are never collected."""
    return Diagnostics("ignored")


def count_by_severity(diagnostics: Iterable[Diagnostic]) -> dict[Severity, int]:
    counts = Counter(d.severity for d in diagnostics)
    return {severity: counts.get(severity, 0) for severity in Severity}


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    """True when any finding is an error or critical."""
    return any(d.severity in (Severity.ERROR, Severity.CRITICAL) for d in diagnostics)


def diagnostics_to_string(diagnostics: Iterable[Diagnostic]) -> str:
    return "\n".join(str(d) for d in diagnostics)
