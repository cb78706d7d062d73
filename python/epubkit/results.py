"""Result envelope returned by every public operation.

``value`` present means a usable structure was produced, possibly alongside
non-fatal diagnostics. ``value`` absent means a terminal failure and the
diagnostics explain why.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from epubkit.diagnostics import Diagnostic, Severity

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None

    @property
    def errors(self) -> list[Diagnostic]:
        """Errors and critical findings."""
        return [
            d for d in self.diagnostics if d.severity in (Severity.ERROR, Severity.CRITICAL)
        ]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def messages(self, severity: Severity | None = None) -> list[str]:
        return [d.message for d in self.diagnostics if severity is None or d.severity == severity]


def success(value: T, diagnostics: list[Diagnostic] | None = None) -> Result[T]:
    return Result(value=value, diagnostics=list(diagnostics or []))


def failure(diagnostics: list[Diagnostic]) -> Result[T]:
    return Result(value=None, diagnostics=list(diagnostics))
