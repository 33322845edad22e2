"""Fills the ``{{ name }}`` placeholders of the bundled mail templates.

Each email kind ships three files: ``<kind>_subject.txt.j2``,
``<kind>_body.txt.j2`` and ``<kind>_body.html.j2``. Only the HTML part is
escaped.
"""
from __future__ import annotations

import html
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, NamedTuple

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_FIELD = re.compile(r"{{\s*(\w+)\s*}}")


class RenderedEmail(NamedTuple):
    subject: str
    text_body: str
    html_body: str


@lru_cache(maxsize=None)
def _source(filename: str) -> str:
    return (TEMPLATE_DIR / filename).read_text(encoding="utf-8")


def _fill(filename: str, context: Mapping[str, Any], *, escape: bool) -> str:
    def lookup(match: "re.Match[str]") -> str:
        value = context.get(match.group(1))
        text = "" if value is None else str(value)
        return html.escape(text) if escape else text

    return _FIELD.sub(lookup, _source(filename)).strip()


def render(kind: str, context: Mapping[str, Any]) -> RenderedEmail:
    return RenderedEmail(
        subject=_fill(f"{kind}_subject.txt.j2", context, escape=False),
        text_body=_fill(f"{kind}_body.txt.j2", context, escape=False),
        html_body=_fill(f"{kind}_body.html.j2", context, escape=True),
    )


def render_verification_email(context: Mapping[str, Any]) -> RenderedEmail:
    return render("verification", context)


def render_welcome_email(context: Mapping[str, Any]) -> RenderedEmail:
    return render("welcome", context)


__all__ = ["RenderedEmail", "render", "render_verification_email", "render_welcome_email"]
