"""CSP policy engine: model, validation, rendering and dispatch."""

from csp_manager.policy.diagnostics import Diagnostic, DiagnosticKind, Severity, ValidationResult
from csp_manager.policy.directives import Directive, list_directives
from csp_manager.policy.dispatcher import PolicySnapshot, load_snapshot, resolve
from csp_manager.policy.model import DirectiveEntry, PolicyContext, PolicyMode, PolicyModel, load
from csp_manager.policy.serializer import RenderedHeaders, render
from csp_manager.policy.validator import validate

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Directive",
    "DirectiveEntry",
    "PolicyContext",
    "PolicyMode",
    "PolicyModel",
    "PolicySnapshot",
    "RenderedHeaders",
    "Severity",
    "ValidationResult",
    "list_directives",
    "load",
    "load_snapshot",
    "render",
    "resolve",
    "validate",
]
