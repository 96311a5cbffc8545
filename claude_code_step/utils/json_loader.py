"""Strict JSON decoding."""

import json
from typing import Any


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def loads_strict(text: str) -> Any:
    """json.loads without the NaN, Infinity and -Infinity extensions.

    Raises:
        ValueError: If text is not valid JSON
    """
    return json.loads(text, parse_constant=_reject_constant)
