"""Classification of action argument values.

An action argument either hands a value straight through from the workflow
input (``.entityRef``, ``${ .entityRef }``) or produces it some other way. Only
the first kind asks something of the person starting the workflow, so only
those arguments end up in the derived data input schema.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

_FIELD = r"([A-Za-z_][A-Za-z0-9_]*)"

_JQ_PATH_PATTERNS = (
    re.compile(rf"^\s*\.{_FIELD}\s*$"),  # .field
    re.compile(rf"^\s*\$\{{\s*\.{_FIELD}\s*\}}\s*$"),  # ${ .field }
    re.compile(rf"^\s*\{{\{{\s*\.?{_FIELD}\s*\}}\}}\s*$"),  # {{ field }} / {{ .field }}
)

_WHOLE_EXPRESSION = re.compile(r"^\s*(\$\{.*\}|\{\{.*\}\}|\..+)\s*$", re.DOTALL)
_EXPRESSION_MARKER = re.compile(r"\$\{|\{\{")


class ArgumentKind(str, Enum):
    LITERAL = "literal"
    JQ_PATH = "jq_path"
    COMPUTED = "computed"
    UNKNOWN = "unknown"


def classify_argument(value: Any) -> ArgumentKind:
    """Classify a single argument value.

    - JQ_PATH: the whole value is one plain field reference into the input.
    - COMPUTED: the whole value is an expression doing anything more (pipes,
      nested paths, function calls).
    - UNKNOWN: text with an expression embedded somewhere inside it.
    - LITERAL: everything else, including all non-string values.
    """
    if not isinstance(value, str):
        return ArgumentKind.LITERAL
    if any(p.match(value) for p in _JQ_PATH_PATTERNS):
        return ArgumentKind.JQ_PATH
    if _WHOLE_EXPRESSION.match(value):
        return ArgumentKind.COMPUTED
    if _EXPRESSION_MARKER.search(value):
        return ArgumentKind.UNKNOWN
    return ArgumentKind.LITERAL


def requires_user_input(value: Any) -> bool:
    return classify_argument(value) is ArgumentKind.JQ_PATH


def referenced_field(value: Any) -> str | None:
    """Return the input field a JQ_PATH argument reads, or None for any other kind."""
    if not isinstance(value, str):
        return None
    for pattern in _JQ_PATH_PATTERNS:
        match = pattern.match(value)
        if match:
            return match.group(1)
    return None
