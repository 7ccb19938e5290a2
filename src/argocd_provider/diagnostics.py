# ABOUTME: Diagnostic results returned by reconciliation operations
# ABOUTME: Error records carrying a summary and the underlying error text

"""Diagnostics returned by resource operations instead of raised exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"


@dataclass
class Diagnostic:
    """One problem reported by a resource operation."""

    severity: Severity
    summary: str
    detail: str = ""

    @classmethod
    def error(cls, summary: str, detail: str = "") -> Diagnostic:
        return cls(severity=Severity.ERROR, summary=summary, detail=detail)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def format_message(self) -> str:
        """Format diagnostic for display."""
        message = f"{self.severity.value.upper()}: {self.summary}"
        if self.detail:
            message += f"\n{self.detail}"
        return message


Diagnostics = list[Diagnostic]


def has_errors(diags: Diagnostics) -> bool:
    """True if any diagnostic is an error."""
    return any(d.is_error for d in diags)
