"""Per-context policy configuration, loaded from stored option records."""

from __future__ import annotations

import enum
import types
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from csp_manager.policy.directives import is_known, list_directives

logger = structlog.get_logger()

_OPTION_PREFIX = "csp_manager_"
_ENABLE_PREFIX = "enable_"
REPORT_TO_KEY = "header_reportto"

_TRUTHY = frozenset({"1", "true", "on", "yes"})


class PolicyContext(str, enum.Enum):
    """Audience a policy applies to."""

    ADMIN = "admin"
    LOGGED_IN = "logged-in"
    FRONTEND = "frontend"

    @property
    def option_name(self) -> str:
        """Name of the stored option holding this context's record."""
        return _OPTION_PREFIX + self.value.replace("-", "")

    @classmethod
    def parse(cls, value: str | PolicyContext) -> PolicyContext:
        """Parse a context id, accepting the stored ``loggedin`` spelling.

        Raises ValueError for anything else.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "loggedin":
            return cls.LOGGED_IN
        return cls(normalized)


class PolicyMode(str, enum.Enum):
    ENFORCE = "enforce"
    REPORT_ONLY = "report"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: Any) -> PolicyMode | None:
        """Return the mode for a stored value, or None if unrecognised."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        if normalized == "report-only":
            return cls.REPORT_ONLY
        try:
            return cls(normalized)
        except ValueError:
            return None


@dataclass(frozen=True)
class DirectiveEntry:
    enabled: bool = False
    value: str = ""


_EMPTY_ENTRY = DirectiveEntry()


@dataclass(frozen=True)
class PolicyModel:
    """Immutable configuration of one context's policy."""

    context: PolicyContext
    mode: PolicyMode = PolicyMode.DISABLED
    entries: Mapping[str, DirectiveEntry] = field(default_factory=dict)
    report_to: str = ""

    def __post_init__(self):
        # Freeze the entries so a model handed to concurrent requests cannot change.
        object.__setattr__(self, "entries", types.MappingProxyType(dict(self.entries)))

    def entry(self, name: str) -> DirectiveEntry:
        return self.entries.get(name, _EMPTY_ENTRY)

    def is_directive_active(self, name: str) -> bool:
        """True iff the directive is known, enabled and has a non-blank value."""
        if not is_known(name):
            return False
        entry = self.entries.get(name)
        return entry is not None and entry.enabled and bool(entry.value.strip())

    def to_record(self) -> dict[str, Any]:
        """Convert back to the stored record shape accepted by :func:`load`."""
        record: dict[str, Any] = {"mode": self.mode.value}
        for name, entry in self.entries.items():
            record[_ENABLE_PREFIX + name] = 1 if entry.enabled else 0
            record[name] = entry.value
        record[REPORT_TO_KEY] = self.report_to
        return record


def _is_enabled(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw == 1
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY
    return False


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)


def load(context: str | PolicyContext, raw: Mapping[str, Any] | None) -> PolicyModel:
    """Map a loosely-typed stored record onto a strict :class:`PolicyModel`.

    Unknown keys are ignored. A missing or unrecognised mode loads as disabled.
    Directives absent from the record load as disabled with an empty value.
    """
    ctx = PolicyContext.parse(context)
    record: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    raw_mode = record.get("mode")
    mode = PolicyMode.parse(raw_mode)
    if mode is None:
        if raw_mode is not None:
            logger.warning("csp_unknown_mode", context=ctx.value, mode=str(raw_mode))
        mode = PolicyMode.DISABLED

    entries = {
        directive.name: DirectiveEntry(
            enabled=_is_enabled(record.get(_ENABLE_PREFIX + directive.name)),
            value=_as_text(record.get(directive.name)),
        )
        for directive in list_directives()
    }

    return PolicyModel(
        context=ctx,
        mode=mode,
        entries=entries,
        report_to=_as_text(record.get(REPORT_TO_KEY)),
    )
