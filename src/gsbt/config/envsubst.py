"""Environment variable interpolation for configuration values.

Supported forms:
    ${VAR}          value of VAR, empty string if unset
    ${VAR:-default} value of VAR, or "default" if unset
    $VAR            value of VAR, empty string if unset

Only upper-case names are expanded, so strings like "$5.00" survive.
"""

import os
import re
from dataclasses import fields, is_dataclass
from typing import Any

BRACE_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(:-([^}]*))?\}")
SIMPLE_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a single string."""

    def _brace(match: re.Match) -> str:
        name, default = match.group(1), match.group(3) or ""
        return os.environ.get(name, default)

    def _simple(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return SIMPLE_PATTERN.sub(_simple, BRACE_PATTERN.sub(_brace, value))


def expand_env_vars_in(obj: Any) -> Any:
    """Expand every string field of a dataclass tree in place and return it."""
    if isinstance(obj, str):
        return expand_env_vars(obj)
    if isinstance(obj, list):
        for i, item in enumerate(obj):
            obj[i] = expand_env_vars_in(item)
        return obj
    if is_dataclass(obj) and not isinstance(obj, type):
        for f in fields(obj):
            setattr(obj, f.name, expand_env_vars_in(getattr(obj, f.name)))
    return obj
