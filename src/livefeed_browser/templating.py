"""
In-page script templates.

A template is JavaScript source containing `<NAME>` tokens. Rendering replaces
each token for which a value is supplied with that value, verbatim: there is
no escaping, so values must already be valid JavaScript at the token's
position and must not themselves contain `<NAME>` tokens. Tokens without a
value are left as they are.
"""

import json
from importlib import resources
from typing import Any, Mapping, Protocol

import logging
logger = logging.getLogger(__name__)


class ScriptTemplate(Protocol):
    def render(self, params: Mapping[str, str]) -> str:
        ...


class LiteralTokenTemplate:
    """Exact match-and-replace of `<NAME>` tokens."""

    def __init__(self, source: str, name: str = "<inline>"):
        self.source = source
        self.name = name

    def render(self, params: Mapping[str, str]) -> str:
        script = self.source
        for key, value in params.items():
            script = script.replace(f"<{key}>", str(value))
        return script

    def __repr__(self) -> str:
        return f"LiteralTokenTemplate({self.name!r})"


def js_literal(value: Any) -> str:
    """Render a Python value as a JavaScript literal for template substitution."""
    return json.dumps(value)


def load_template(name: str) -> LiteralTokenTemplate:
    """Load one of the bundled scripts from the package's scripts/ folder."""
    source = resources.files("livefeed_browser").joinpath("scripts").joinpath(name).read_text(encoding="utf-8")
    return LiteralTokenTemplate(source, name=name)


__all__ = [
    "ScriptTemplate",
    "LiteralTokenTemplate",
    "js_literal",
    "load_template",
]
