"""Tests for context resolution and policy snapshots."""

from __future__ import annotations

from unittest.mock import patch

from csp_manager.policy.diagnostics import Diagnostic, DiagnosticKind, Severity
from csp_manager.policy.dispatcher import (
    OnceSink,
    PolicySnapshot,
    load_snapshot,
    log_diagnostic,
    resolve,
)
from csp_manager.policy.model import PolicyContext, PolicyMode, load
from csp_manager.policy.serializer import CSP_HEADER, CSP_REPORT_ONLY_HEADER, REPORT_TO_HEADER


def _records() -> dict:
    return {
        "csp_manager_admin": {"mode": "report", "enable_default-src": 1, "default-src": "'self'"},
        "csp_manager_loggedin": {"mode": "enforce", "enable_img-src": 1, "img-src": "self"},
        "csp_manager_frontend": {"mode": "disabled", "enable_default-src": 1, "default-src": "'self'"},
    }


# ── load_snapshot ───────────────────────────────────────────────────────


class TestLoadSnapshot:
    def test_all_contexts_loaded(self):
        snapshot = load_snapshot(_records())
        assert set(snapshot) == set(PolicyContext)
        assert snapshot[PolicyContext.ADMIN].mode is PolicyMode.REPORT_ONLY
        assert snapshot[PolicyContext.LOGGED_IN].mode is PolicyMode.ENFORCE

    def test_missing_record_left_out(self):
        records = _records()
        del records["csp_manager_frontend"]
        snapshot = load_snapshot(records)
        assert PolicyContext.FRONTEND not in snapshot
        assert len(snapshot) == 2

    def test_unrelated_options_ignored(self):
        snapshot = load_snapshot({"blogname": "x", **_records()})
        assert len(snapshot) == 3

    def test_snapshot_is_read_only(self):
        snapshot = load_snapshot(_records())
        assert not hasattr(snapshot, "__setitem__")

    def test_repr_shows_modes(self):
        assert "'admin': 'report'" in repr(load_snapshot(_records()))


# ── resolve ──────────────────────────────────────────────────────────────


class TestResolve:
    def test_admin_report_only(self):
        found: list[Diagnostic] = []
        rendered = resolve("admin", load_snapshot(_records()), sink=found.append)
        assert list(rendered) == [(CSP_REPORT_ONLY_HEADER, "default-src 'self'")]
        assert found == []

    def test_accepts_enum_and_stored_spelling(self):
        snapshot = load_snapshot(_records())
        by_enum = resolve(PolicyContext.LOGGED_IN, snapshot, sink=lambda d: None)
        by_name = resolve("loggedin", snapshot, sink=lambda d: None)
        assert by_enum == by_name
        assert by_enum.get(CSP_HEADER) == "img-src self"

    def test_validation_problems_reported_but_not_blocking(self):
        found: list[Diagnostic] = []
        rendered = resolve("logged-in", load_snapshot(_records()), sink=found.append)
        assert [d.kind for d in found] == [DiagnosticKind.MALFORMED_SOURCE_EXPRESSION]
        assert rendered.get(CSP_HEADER) == "img-src self"

    def test_disabled_context_empty(self):
        assert len(resolve("frontend", load_snapshot(_records()), sink=lambda d: None)) == 0

    def test_missing_record(self):
        found: list[Diagnostic] = []
        rendered = resolve("frontend", {}, sink=found.append)
        assert len(rendered) == 0
        assert len(found) == 1
        assert found[0].kind is DiagnosticKind.MISSING_STORED_RECORD
        assert found[0].context == "frontend"

    def test_unknown_context(self):
        found: list[Diagnostic] = []
        rendered = resolve("backend", load_snapshot(_records()), sink=found.append)
        assert len(rendered) == 0
        assert [d.kind for d in found] == [DiagnosticKind.UNKNOWN_CONTEXT]

    def test_never_raises_on_internal_error(self):
        snapshot = load_snapshot(_records())
        with patch("csp_manager.policy.dispatcher.render", side_effect=RuntimeError("boom")):
            rendered = resolve("admin", snapshot, sink=lambda d: None)
        assert len(rendered) == 0

    def test_never_raises_when_sink_fails(self):
        def broken_sink(diagnostic):
            raise RuntimeError("sink down")

        assert len(resolve("frontend", {}, sink=broken_sink)) == 0

    def test_report_to_from_disabled_context(self):
        header = '{"max_age":1,"endpoints":[{"url":"https://r.example.com"}]}'
        snapshot = PolicySnapshot({PolicyContext.FRONTEND: load("frontend", {"header_reportto": header})})
        rendered = resolve("frontend", snapshot, sink=lambda d: None)
        assert list(rendered) == [(REPORT_TO_HEADER, header)]

    def test_default_sink_logs(self):
        with patch("csp_manager.policy.dispatcher.logger") as mock_logger:
            resolve("frontend", {})
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["kind"] == "missing_stored_record"


# ── Sinks ────────────────────────────────────────────────────────────────


class TestLogDiagnostic:
    def test_error_severity(self):
        with patch("csp_manager.policy.dispatcher.logger") as mock_logger:
            log_diagnostic(Diagnostic(DiagnosticKind.UNKNOWN_DIRECTIVE, "x", "admin", "bogus-src"))
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["directive"] == "bogus-src"

    def test_warning_severity(self):
        with patch("csp_manager.policy.dispatcher.logger") as mock_logger:
            log_diagnostic(Diagnostic(DiagnosticKind.EMPTY_DIRECTIVE, "x", severity=Severity.WARNING))
        mock_logger.warning.assert_called_once()
        mock_logger.error.assert_not_called()


class TestOnceSink:
    def test_forwards_each_diagnostic_once(self):
        seen: list[Diagnostic] = []
        sink = OnceSink(seen.append)
        d = Diagnostic(DiagnosticKind.MALFORMED_SOURCE_EXPRESSION, "bad", "admin", "img-src")
        sink(d)
        sink(d)
        sink(Diagnostic(DiagnosticKind.MALFORMED_SOURCE_EXPRESSION, "bad", "admin", "img-src"))
        assert seen == [d]

    def test_distinct_diagnostics_forwarded(self):
        seen: list[Diagnostic] = []
        sink = OnceSink(seen.append)
        sink(Diagnostic(DiagnosticKind.MALFORMED_SOURCE_EXPRESSION, "a"))
        sink(Diagnostic(DiagnosticKind.MALFORMED_SOURCE_EXPRESSION, "b"))
        assert len(seen) == 2

    def test_bounded_memory(self):
        seen: list[Diagnostic] = []
        sink = OnceSink(seen.append, max_entries=2)
        a = Diagnostic(DiagnosticKind.UNKNOWN_CONTEXT, "a")
        sink(a)
        sink(Diagnostic(DiagnosticKind.UNKNOWN_CONTEXT, "b"))
        sink(Diagnostic(DiagnosticKind.UNKNOWN_CONTEXT, "c"))  # clears memory
        sink(a)
        assert seen.count(a) == 2
