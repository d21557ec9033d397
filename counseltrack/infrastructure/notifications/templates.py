# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Literal {{placeholder}} substitution for notification templates.

Only supplied variables are replaced. Unknown placeholders stay in the
text as written, so a missing variable is visible to the reader instead
of silently disappearing.
"""

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str | None, variables: Mapping[str, Any]) -> str | None:
    """Replace each {{key}} with str(variables[key]).

    Args:
        template: Template text, or None.
        variables: Values to substitute.

    Returns:
        Rendered text, or None when template is None.
    """
    if template is None:
        return None

    rendered = template
    for key, value in variables.items():
        rendered = rendered.replace("{{" + key + "}}", str(value))
    return rendered


def find_placeholders(template: str | None) -> list[str]:
    """List placeholder names in order of first appearance."""
    if not template:
        return []
    seen: list[str] = []
    for name in _PLACEHOLDER.findall(template):
        if name not in seen:
            seen.append(name)
    return seen
