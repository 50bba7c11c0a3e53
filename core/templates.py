"""
Placeholder template rendering.

Templates use `{{name}}` tokens. Rendering is permissive: a token with no
matching value is left in the output verbatim. Validation is strict: a token
whose value is missing or empty is reported so the caller can refuse to send.
"""

import re
from typing import Mapping

_PLACEHOLDER_RE = re.compile(r"\{\{([^{}]+)\}\}")


def extract_placeholders(template: str | None) -> list[str]:
    """
    List placeholder names in order of first appearance, without duplicates.

    Names are stripped, so `{{ name }}` and `{{name}}` are the same placeholder.
    """
    if not template:
        return []

    names: list[str] = []
    for match in _PLACEHOLDER_RE.finditer(template):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def validate(template: str | None, values: Mapping[str, str] | None) -> list[str]:
    """
    Return placeholders in `template` that have no non-empty value.

    An empty list means the template can be rendered completely.
    """
    values = values or {}
    return [name for name in extract_placeholders(template) if not values.get(name)]


def render(template: str | None, values: Mapping[str, str] | None) -> str:
    """Replace every known `{{name}}` token; unknown tokens stay as written."""
    if not template:
        return ""
    if not values:
        return template

    def substitute(match: re.Match) -> str:
        name = match.group(1).strip()
        if name in values:
            return str(values[name])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(substitute, template)
