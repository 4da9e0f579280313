"""Static catalogue of the CSP directives an operator can configure."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class RegistryError(RuntimeError):
    """Raised when the compiled-in directive catalogue is inconsistent."""


class DirectiveKind(str, enum.Enum):
    FETCH = "fetch"
    DOCUMENT = "document"
    NAVIGATION = "navigation"
    REPORTING = "reporting"


@dataclass(frozen=True)
class Directive:
    """A CSP directive and what its value controls."""

    name: str
    description: str
    kind: DirectiveKind = DirectiveKind.FETCH
    fallback: str | None = None

    @property
    def is_fetch(self) -> bool:
        return self.kind is DirectiveKind.FETCH

    @property
    def is_reporting(self) -> bool:
        return self.kind is DirectiveKind.REPORTING


# Declaration order is the serialization order.
_DIRECTIVES: tuple[Directive, ...] = (
    Directive("default-src", "Fallback for the src directives."),
    Directive(
        "connect-src",
        "Allowed URLs for fetch/XMLHttpRequest, WebSocket etc.",
        fallback="default-src",
    ),
    Directive(
        "script-src",
        "Allowed JavaScript sources. 'unsafe-eval' allows usage of eval, "
        "while 'unsafe-inline' allows inline scripts.",
        fallback="default-src",
    ),
    Directive(
        "style-src",
        "Allowed style sources. 'unsafe-eval' allows usage of eval, "
        "while 'unsafe-inline' allows inline styles.",
        fallback="default-src",
    ),
    Directive("img-src", "Allowed sources for images (including favicons).", fallback="default-src"),
    Directive("media-src", "Allowed audio/video sources.", fallback="default-src"),
    Directive("font-src", "Allowed web font file sources.", fallback="default-src"),
    Directive("frame-src", "Allowed sources for frame elements.", fallback="default-src"),
    Directive("manifest-src", "Allowed sources for web app manifests.", fallback="default-src"),
    Directive(
        "object-src",
        "Allowed sources for Flash content, Java applets or other content loaded "
        "using object, embed or applet tags. Recommended to set to 'none' if "
        "you're not using these types of content.",
        fallback="default-src",
    ),
    Directive(
        "prefetch-src",
        'Allowed sources in <link rel="prefetch"> and <link rel="prerender"> elements.',
        fallback="default-src",
    ),
    Directive(
        "script-src-elem",
        "Allowed sources for script elements, falls back to script-src if missing.",
        fallback="script-src",
    ),
    Directive(
        "script-src-attr",
        "Allowed inline event handler sources, falls back to script-src if missing.",
        fallback="script-src",
    ),
    Directive(
        "style-src-elem",
        "Allowed sources for style and stylesheet link elements, falls back to style-src if missing.",
        fallback="style-src",
    ),
    Directive(
        "style-src-attr",
        "Allowed inline style sources, falls back to style-src if missing.",
        fallback="style-src",
    ),
    Directive(
        "worker-src",
        "Allowed sources for web workers and service workers.",
        fallback="script-src",
    ),
    Directive(
        "base-uri",
        "Allowed URLs for the document's base element.",
        kind=DirectiveKind.DOCUMENT,
    ),
    Directive(
        "form-action",
        "Allowed targets for form submissions.",
        kind=DirectiveKind.NAVIGATION,
    ),
    Directive(
        "frame-ancestors",
        "Parents allowed to embed the page in a frame. 'none' prevents clickjacking.",
        kind=DirectiveKind.NAVIGATION,
    ),
    Directive(
        "report-uri",
        "URL to send a report to when policy violations happen. Prefer usage of "
        "report-to instead, this directive should only be used for compatibility purposes.",
        kind=DirectiveKind.REPORTING,
    ),
    Directive(
        "report-to",
        "Reporting group name to send violation reports to. Used together with the "
        "Report-To header, which defines these report groups and where to send the reports.",
        kind=DirectiveKind.REPORTING,
    ),
)


def _build_index(directives: tuple[Directive, ...]) -> dict[str, Directive]:
    """Index directives by name, checking the catalogue is self-consistent."""
    index: dict[str, Directive] = {}
    for directive in directives:
        if directive.name in index:
            raise RegistryError(f"duplicate directive: {directive.name}")
        if directive.fallback is not None:
            target = index.get(directive.fallback)
            if target is None or not target.is_fetch:
                raise RegistryError(
                    f"{directive.name} falls back to undeclared fetch directive {directive.fallback}"
                )
        index[directive.name] = directive
    return index


_INDEX = _build_index(_DIRECTIVES)


def list_directives() -> tuple[Directive, ...]:
    """Return all directives in declaration order."""
    return _DIRECTIVES


def is_known(name: str) -> bool:
    return name in _INDEX


def is_fetch_directive(name: str) -> bool:
    directive = _INDEX.get(name)
    return directive is not None and directive.is_fetch


def get_directive(name: str) -> Directive | None:
    return _INDEX.get(name)
