"""Advisory syntax checks for policy models.

Validation never mutates the model and never blocks rendering; it only
produces diagnostics for the operator.
"""

from __future__ import annotations

import json
import re

from csp_manager.policy.diagnostics import Diagnostic, DiagnosticKind, Severity
from csp_manager.policy.directives import get_directive
from csp_manager.policy.model import PolicyModel
from csp_manager.policy.serializer import is_header_safe, report_to_value

KEYWORDS = frozenset({
    "'self'",
    "'unsafe-inline'",
    "'unsafe-eval'",
    "'unsafe-hashes'",
    "'none'",
    "'strict-dynamic'",
    "'report-sample'",
    "'wasm-unsafe-eval'",
})

# Schemes that are never a legitimate source, whatever their syntax.
_FORBIDDEN_SCHEMES = frozenset({"javascript", "vbscript"})

_BASE64 = r"[A-Za-z0-9+/\-_]+={0,2}"
_NONCE = re.compile(rf"'nonce-{_BASE64}'", re.IGNORECASE)
_HASH = re.compile(rf"'(?:sha256|sha384|sha512)-{_BASE64}'", re.IGNORECASE)
_SCHEME_SOURCE = re.compile(r"(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):")
_HOST_SOURCE = re.compile(
    r"(?:(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://)?"
    r"(?P<host>\*|\[[0-9A-Fa-f:.]+\]|(?:\*\.)?[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?)*)"
    r"(?::(?P<port>[0-9]{1,5}|\*))?"
    r"(?P<path>/[^\s;,]*)?"
)
_REPORT_URI = re.compile(r"(?:https?://[^\s/;,]+)?/[^\s;,]*|https?://[^\s/;,]+")
_GROUP_NAME = re.compile(r"[A-Za-z0-9_\-]+")

_UNQUOTED_KEYWORDS = frozenset(k.strip("'") for k in KEYWORDS)


def _source_expression_error(token: str) -> str | None:
    """Return why *token* is not a valid source expression, or None."""
    if not is_header_safe(token):
        return f"unrecognized source expression: {token} (not printable ASCII; use punycode for international hosts)"
    if token == "*" or token.lower() in KEYWORDS:
        return None
    if token.startswith("'"):
        if _NONCE.fullmatch(token) or _HASH.fullmatch(token):
            return None
        return f"unrecognized source expression: {token}"
    if token.lower() in _UNQUOTED_KEYWORDS:
        return f"unrecognized source expression: {token} (keywords must be single-quoted)"

    match = _SCHEME_SOURCE.fullmatch(token) or _HOST_SOURCE.fullmatch(token)
    if match is None:
        return f"unrecognized source expression: {token}"
    scheme = match.group("scheme")
    if scheme and scheme.lower() in _FORBIDDEN_SCHEMES:
        return f"unrecognized source expression: {token} (scheme {scheme} is not allowed)"
    port = match.groupdict().get("port")
    if port and port != "*" and int(port) > 65535:
        return f"unrecognized source expression: {token} (port out of range)"
    return None


def _validate_sources(model: PolicyModel, name: str, tokens: list[str]) -> list[Diagnostic]:
    results: list[Diagnostic] = []
    for token in tokens:
        reason = _source_expression_error(token)
        if reason:
            results.append(Diagnostic(
                kind=DiagnosticKind.MALFORMED_SOURCE_EXPRESSION,
                message=reason,
                context=model.context.value,
                directive=name,
            ))
    if len(tokens) > 1 and any(t.lower() == "'none'" for t in tokens):
        results.append(Diagnostic(
            kind=DiagnosticKind.CONFLICTING_NONE_KEYWORD,
            message="'none' must be the sole source expression",
            context=model.context.value,
            directive=name,
        ))
    return results


def _validate_reporting(model: PolicyModel, name: str, tokens: list[str]) -> list[Diagnostic]:
    results: list[Diagnostic] = []
    if name == "report-to":
        if len(tokens) != 1 or not _GROUP_NAME.fullmatch(tokens[0]):
            results.append(Diagnostic(
                kind=DiagnosticKind.MALFORMED_SOURCE_EXPRESSION,
                message=f"report-to expects a single group name, got: {' '.join(tokens)}",
                context=model.context.value,
                directive=name,
            ))
        return results

    for token in tokens:
        if not is_header_safe(token) or not _REPORT_URI.fullmatch(token):
            results.append(Diagnostic(
                kind=DiagnosticKind.MALFORMED_SOURCE_EXPRESSION,
                message=f"invalid report URI: {token}",
                context=model.context.value,
                directive=name,
            ))
    return results


def parse_report_groups(value: str) -> list[dict]:
    """Parse a Report-To header value into its endpoint group objects.

    The header carries one or more JSON objects separated by commas.
    Raises ValueError if the value is not of that shape.
    """
    try:
        groups = json.loads(f"[{value}]")
    except json.JSONDecodeError as exc:
        raise ValueError(f"Report-To is not valid JSON: {exc.msg}") from exc
    if not groups:
        raise ValueError("Report-To defines no endpoint groups")
    for group in groups:
        if not isinstance(group, dict):
            raise ValueError("Report-To entries must be JSON objects")
        if not isinstance(group.get("endpoints"), list) or not group["endpoints"]:
            raise ValueError("Report-To group needs a non-empty endpoints list")
        max_age = group.get("max_age")
        if not isinstance(max_age, int) or isinstance(max_age, bool):
            raise ValueError("Report-To group needs an integer max_age")
    return groups


def _validate_report_to(model: PolicyModel) -> list[Diagnostic]:
    value = model.report_to.strip()
    if not value:
        return []
    if not report_to_value(model):
        return [Diagnostic(
            kind=DiagnosticKind.MALFORMED_REPORT_TO,
            message="Report-To contains characters that cannot be sent in a header; it will not be sent",
            context=model.context.value,
            directive="Report-To",
        )]
    try:
        groups = parse_report_groups(value)
    except ValueError as exc:
        return [Diagnostic(
            kind=DiagnosticKind.MALFORMED_REPORT_TO,
            message=str(exc),
            context=model.context.value,
            directive="Report-To",
        )]

    if not model.is_directive_active("report-to"):
        return []
    wanted = model.entry("report-to").value.strip()
    defined = {str(group.get("group", "default")) for group in groups}
    if wanted in defined:
        return []
    return [Diagnostic(
        kind=DiagnosticKind.UNDEFINED_REPORT_GROUP,
        message=f"report-to group {wanted!r} is not defined by the Report-To header",
        context=model.context.value,
        directive="report-to",
        severity=Severity.WARNING,
    )]


def validate(model: PolicyModel) -> list[Diagnostic]:
    """Check every enabled directive of *model* and return the problems found."""
    results: list[Diagnostic] = []
    for name, entry in model.entries.items():
        directive = get_directive(name)
        if directive is None:
            results.append(Diagnostic(
                kind=DiagnosticKind.UNKNOWN_DIRECTIVE,
                message=f"unknown directive: {name}",
                context=model.context.value,
                directive=name,
            ))
            continue
        if not entry.enabled:
            continue
        if not model.is_directive_active(name):
            results.append(Diagnostic(
                kind=DiagnosticKind.EMPTY_DIRECTIVE,
                message="directive is enabled but has no value; it will not be sent",
                context=model.context.value,
                directive=name,
                severity=Severity.WARNING,
            ))
            continue

        tokens = entry.value.split()
        if directive.is_reporting:
            results.extend(_validate_reporting(model, name, tokens))
        else:
            results.extend(_validate_sources(model, name, tokens))

    results.extend(_validate_report_to(model))
    return results
