"""Diagnostic types shared by the validator and the dispatcher."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class DiagnosticKind(str, enum.Enum):
    UNKNOWN_CONTEXT = "unknown_context"
    UNKNOWN_DIRECTIVE = "unknown_directive"
    MALFORMED_SOURCE_EXPRESSION = "malformed_source_expression"
    CONFLICTING_NONE_KEYWORD = "conflicting_none_keyword"
    MISSING_STORED_RECORD = "missing_stored_record"
    EMPTY_DIRECTIVE = "empty_directive"
    MALFORMED_REPORT_TO = "malformed_report_to"
    UNDEFINED_REPORT_GROUP = "undefined_report_group"


class Severity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A problem found while validating or resolving a policy.

    Only problems are reported; a directive with no diagnostic is valid.
    """

    kind: DiagnosticKind
    message: str
    context: str = ""
    directive: str | None = None
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": self.context,
            "directive": self.directive,
            "severity": self.severity.value,
        }


# Validator output is a sequence of invalid outcomes.
ValidationResult = Diagnostic
