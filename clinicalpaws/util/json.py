"""JSON serialisation helpers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any


def make_json_safe(
    value: Any,
    *,
    stringify_keys: bool = True,
    sort_sets: bool = True,
    max_string_length: int | None = None,
    default: Callable[[Any], Any] | None = None,
) -> Any:
    """Return a structure compatible with :func:`json.dumps`.

    Binary payloads (audio and image uploads) are replaced with a short
    description so they never end up inside log files.
    """

    if default is None:
        default = repr

    def _limit(text: str) -> str:
        if max_string_length is not None and len(text) > max_string_length:
            return text[: max(max_string_length - 1, 0)] + "…"
        return text

    def _convert(item: Any) -> Any:
        if isinstance(item, Mapping):
            result: dict[Any, Any] = {}
            for key, val in item.items():
                safe_key = _limit(str(key)) if stringify_keys and not isinstance(key, str) else key
                result[safe_key] = _convert(val)
            return result
        if isinstance(item, (list, tuple)):
            return [_convert(entry) for entry in item]
        if isinstance(item, (set, frozenset)):
            converted = [_convert(entry) for entry in item]
            if sort_sets:
                converted.sort(key=repr)
            return converted
        if isinstance(item, (bytes, bytearray, memoryview)):
            return f"<{len(item)} bytes>"
        if isinstance(item, Enum):
            return _convert(item.value)
        if is_dataclass(item) and not isinstance(item, type):
            return _convert(asdict(item))
        if isinstance(item, str):
            return _limit(item)
        if isinstance(item, (int, float, bool)) or item is None:
            return item
        try:
            converted = default(item)
        except Exception:
            converted = f"<unserialisable {type(item).__name__}>"
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return _limit(converted) if isinstance(converted, str) else converted
        return _convert(converted)

    return _convert(value)


__all__ = ["make_json_safe"]
