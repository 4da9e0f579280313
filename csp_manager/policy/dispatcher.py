"""Select the policy for a request context and render its headers."""

from __future__ import annotations

import types
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from csp_manager.policy.diagnostics import Diagnostic, DiagnosticKind, Severity
from csp_manager.policy.model import PolicyContext, PolicyModel, load
from csp_manager.policy.serializer import EMPTY, RenderedHeaders, render
from csp_manager.policy.validator import validate

logger = structlog.get_logger()

DiagnosticSink = Callable[[Diagnostic], None]

_ONCE_SINK_MAX = 10_000


def log_diagnostic(diagnostic: Diagnostic) -> None:
    """Default sink: write the diagnostic to the structured log."""
    log = logger.error if diagnostic.is_error else logger.warning
    log(
        "csp_policy_diagnostic",
        kind=diagnostic.kind.value,
        context=diagnostic.context,
        directive=diagnostic.directive,
        reason=diagnostic.message,
    )


class OnceSink:
    """Forward each distinct diagnostic to *sink* only the first time it is seen."""

    def __init__(self, sink: DiagnosticSink = log_diagnostic, max_entries: int = _ONCE_SINK_MAX) -> None:
        self._sink = sink
        self._max_entries = max_entries
        self._seen: set[Diagnostic] = set()

    def __call__(self, diagnostic: Diagnostic) -> None:
        if diagnostic in self._seen:
            return
        # Bounded memory: start over rather than grow without limit.
        if len(self._seen) >= self._max_entries:
            self._seen.clear()
        self._seen.add(diagnostic)
        self._sink(diagnostic)


class PolicySnapshot(Mapping):
    """Immutable set of policy models, one per configured context."""

    def __init__(self, models: Mapping[PolicyContext, PolicyModel] | None = None) -> None:
        self._models = types.MappingProxyType(dict(models or {}))

    def __getitem__(self, key):
        return self._models[key]

    def __iter__(self):
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def __repr__(self) -> str:
        modes = {ctx.value: model.mode.value for ctx, model in self._models.items()}
        return f"PolicySnapshot({modes})"


def load_snapshot(records: Mapping[str, Any]) -> PolicySnapshot:
    """Build a snapshot from ``{option_name: raw_record}``.

    Contexts with no stored record are left out, so resolving them reports a
    missing record instead of guessing a policy.
    """
    models = {}
    for ctx in PolicyContext:
        raw = records.get(ctx.option_name)
        if raw is None:
            continue
        models[ctx] = load(ctx, raw)
    return PolicySnapshot(models)


def resolve(
    context_id: str | PolicyContext,
    models_by_id: Mapping[PolicyContext, PolicyModel],
    sink: DiagnosticSink = log_diagnostic,
) -> RenderedHeaders:
    """Return the headers for *context_id*.

    Never raises: header emission is best-effort hardening, so every failure
    is routed to *sink* or the log and yields an empty result.
    """
    try:
        try:
            ctx = PolicyContext.parse(context_id)
        except ValueError:
            sink(Diagnostic(
                kind=DiagnosticKind.UNKNOWN_CONTEXT,
                message=f"unknown policy context: {context_id}",
                context=str(context_id),
            ))
            return EMPTY

        model = models_by_id.get(ctx)
        if model is None:
            sink(Diagnostic(
                kind=DiagnosticKind.MISSING_STORED_RECORD,
                message=f"no stored policy for context {ctx.value}; sending no policy",
                context=ctx.value,
                severity=Severity.WARNING,
            ))
            return EMPTY

        for diagnostic in validate(model):
            sink(diagnostic)
        return render(model)
    except Exception:
        logger.exception("csp_resolve_error", context=str(context_id))
        return EMPTY
