"""Deterministic rendering of policy models into response headers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from csp_manager.policy.directives import list_directives
from csp_manager.policy.model import PolicyMode, PolicyModel

CSP_HEADER = "Content-Security-Policy"
CSP_REPORT_ONLY_HEADER = "Content-Security-Policy-Report-Only"
REPORT_TO_HEADER = "Report-To"

_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")
# Visible ASCII only: header values are sent as latin-1 and IDN hosts need punycode.
_HEADER_SAFE_TOKEN = re.compile(r"[\x21-\x7e]+")
_HEADER_SAFE_VALUE = re.compile(r"[\t\x20-\x7e]*")


@dataclass(frozen=True)
class RenderedHeaders:
    """Ordered (name, value) header pairs to attach to a response."""

    headers: tuple[tuple[str, str], ...] = ()

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.headers)

    def __len__(self) -> int:
        return len(self.headers)

    def names(self) -> list[str]:
        return [name for name, _ in self.headers]

    def get(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for header, value in self.headers:
            if header.lower() == wanted:
                return value
        return default

    def as_dict(self) -> dict[str, str]:
        return dict(self.headers)


EMPTY = RenderedHeaders()


def build_policy(clauses: Iterable[tuple[str, str]]) -> str:
    """Join (directive, value) clauses into a CSP header value.

    Example:
        >>> build_policy([("default-src", "'self'"), ("img-src", "https:")])
        "default-src 'self'; img-src https:"
    """
    parts = []
    for directive, value in clauses:
        if value:
            parts.append(f"{directive} {value}")
        else:
            parts.append(directive)
    return "; ".join(parts)


def is_header_safe(token: str) -> bool:
    """True if *token* can be sent in a header value unchanged."""
    return _HEADER_SAFE_TOKEN.fullmatch(token) is not None


def policy_clauses(model: PolicyModel) -> list[tuple[str, str]]:
    """Return the active (directive, value) clauses in registry order.

    Tokens that cannot travel in a header are dropped so that the rest of the
    directive, and the rest of the policy, is still sent.
    """
    clauses = []
    for directive in list_directives():
        if model.is_directive_active(directive.name):
            tokens = [t for t in model.entry(directive.name).value.split() if is_header_safe(t)]
            if tokens:
                clauses.append((directive.name, " ".join(tokens)))
    return clauses


def header_name(mode: PolicyMode) -> str | None:
    if mode is PolicyMode.ENFORCE:
        return CSP_HEADER
    if mode is PolicyMode.REPORT_ONLY:
        return CSP_REPORT_ONLY_HEADER
    return None


def report_to_value(model: PolicyModel) -> str:
    """The Report-To value to send, or "" if none is set or it is not header safe."""
    value = _LINE_BREAKS.sub(" ", model.report_to.strip())
    if not _HEADER_SAFE_VALUE.fullmatch(value):
        return ""
    return value


def render(model: PolicyModel) -> RenderedHeaders:
    """Render *model* into at most a CSP header and a Report-To header.

    A disabled model, or one without active directives, emits no CSP header.
    A configured Report-To value is sent in every mode.
    """
    headers: list[tuple[str, str]] = []

    name = header_name(model.mode)
    if name is not None:
        clauses = policy_clauses(model)
        if clauses:
            headers.append((name, build_policy(clauses)))

    report_to = report_to_value(model)
    if report_to:
        headers.append((REPORT_TO_HEADER, report_to))

    return RenderedHeaders(tuple(headers))
