"""Diagnostics returned by provider lifecycle operations."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    severity: Severity
    summary: str
    detail: str = ""
    error: Optional[Exception] = None


class Diagnostics(List[Diagnostic]):
    """
    Ordered list of diagnostics produced by an operation.

    An empty list means the operation succeeded without remarks.
    """

    def append_error(self, err: Exception, detail: str = "") -> "Diagnostics":
        self.append(Diagnostic(Severity.ERROR, str(err), detail, err))
        return self

    def append_warning(self, summary: str, detail: str = "") -> "Diagnostics":
        self.append(Diagnostic(Severity.WARNING, summary, detail))
        return self

    def has_error(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self)

    @property
    def errors(self) -> List[Exception]:
        return [d.error for d in self if d.severity == Severity.ERROR and d.error is not None]
