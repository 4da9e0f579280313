"""Pydantic models for the policy settings API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from csp_manager.policy.diagnostics import Diagnostic
from csp_manager.policy.directives import Directive
from csp_manager.policy.model import PolicyMode, PolicyModel
from csp_manager.policy.serializer import RenderedHeaders


class DirectiveSetting(BaseModel):
    enabled: bool = False
    value: str = ""


class DirectiveInfo(BaseModel):
    name: str
    description: str
    kind: str
    fallback: str | None = None

    @classmethod
    def from_directive(cls, directive: Directive) -> DirectiveInfo:
        return cls(
            name=directive.name,
            description=directive.description,
            kind=directive.kind.value,
            fallback=directive.fallback,
        )


class PolicyUpdate(BaseModel):
    """Request body replacing one context's policy."""

    mode: PolicyMode = PolicyMode.DISABLED
    directives: dict[str, DirectiveSetting] = Field(default_factory=dict)
    report_to: str = ""

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        parsed = PolicyMode.parse(value)
        if parsed is None:
            raise ValueError("mode must be one of: enforce, report, disabled")
        return parsed


class HeaderOut(BaseModel):
    name: str
    value: str


class DiagnosticOut(BaseModel):
    kind: str
    message: str
    directive: str | None = None
    severity: str

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> DiagnosticOut:
        return cls(
            kind=diagnostic.kind.value,
            message=diagnostic.message,
            directive=diagnostic.directive,
            severity=diagnostic.severity.value,
        )


class PolicyResponse(BaseModel):
    """A stored policy, optionally with its rendered headers and diagnostics."""

    context: str
    mode: PolicyMode
    directives: dict[str, DirectiveSetting]
    report_to: str
    headers: list[HeaderOut] = Field(default_factory=list)
    diagnostics: list[DiagnosticOut] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        model: PolicyModel,
        headers: RenderedHeaders | None = None,
        diagnostics: list[Diagnostic] | None = None,
    ) -> PolicyResponse:
        return cls(
            context=model.context.value,
            mode=model.mode,
            directives={
                name: DirectiveSetting(enabled=entry.enabled, value=entry.value)
                for name, entry in model.entries.items()
            },
            report_to=model.report_to,
            headers=[HeaderOut(name=n, value=v) for n, v in headers or ()],
            diagnostics=[DiagnosticOut.from_diagnostic(d) for d in diagnostics or ()],
        )


class PreviewResponse(BaseModel):
    context: str
    headers: list[HeaderOut]
    diagnostics: list[DiagnosticOut]
