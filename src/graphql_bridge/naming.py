"""Deterministic GraphQL-safe names derived from OpenAPI identifiers."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Set

from .errors import SynthesisError

_NAME = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")
_WORD_SPLIT = re.compile(r"[^0-9A-Za-z]+")
_RESERVED_ENUM_VALUES = {"true", "false", "null"}

MAX_SUFFIX = 10_000


def is_valid_name(name: str) -> bool:
    return bool(_NAME.match(name)) and not name.startswith("__")


def _words(text: str) -> List[str]:
    return [word for word in _WORD_SPLIT.split(text) if word]


def _finish(name: str) -> str:
    if not name:
        return "_"
    if name[0].isdigit():
        return f"_{name}"
    return name


def camel_case(text: str) -> str:
    """``get-user_by id`` -> ``getUserById``; inner capitals are preserved."""
    words = _words(text)
    if not words:
        return "_"
    head = words[0][0].lower() + words[0][1:]
    tail = "".join(word[0].upper() + word[1:] for word in words[1:])
    return _finish(head + tail)


def pascal_case(text: str) -> str:
    return _finish("".join(word[0].upper() + word[1:] for word in _words(text)))


def field_name_for(operation_id: Optional[str], method: str, path: str) -> str:
    if operation_id:
        return camel_case(operation_id)
    segments = [segment.strip("{}") for segment in path.split("/")]
    return camel_case(" ".join([method.lower(), *segments]))


def safe_name(text: str) -> str:
    """Keep valid names untouched, camel-case everything else."""
    if is_valid_name(text):
        return text
    return camel_case(text)


def enum_value_name(value: object) -> str:
    text = str(value)
    if text.lower() in _RESERVED_ENUM_VALUES:
        return text.upper()
    if is_valid_name(text):
        return text
    return _finish(re.sub(r"[^0-9A-Za-z_]", "_", text).strip("_") or "_")


class NameRegistry:
    """Hands out unique names, suffixing collisions in request order."""

    def __init__(self, reserved: Iterable[str] = ()) -> None:
        self._taken: Set[str] = set(reserved)
        self._counters: Dict[str, int] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._taken

    def claim(self, base: str) -> str:
        if base not in self._taken:
            self._taken.add(base)
            return base
        counter = self._counters.get(base, 1)
        while counter < MAX_SUFFIX:
            counter += 1
            candidate = f"{base}{counter}"
            if candidate not in self._taken:
                self._counters[base] = counter
                self._taken.add(candidate)
                return candidate
        raise SynthesisError(f"Could not find a free name for '{base}'")
