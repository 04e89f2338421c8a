"""Tests for :mod:`clinicalpaws.util.json`."""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace

from clinicalpaws.api.types import JobStatus
from clinicalpaws.util.json import make_json_safe


def test_make_json_safe_basic_conversion() -> None:
    value = {
        "numbers": {3, 1, 2},
        "tuple": ("a", "b"),
        "custom": SimpleNamespace(name="value"),
    }

    result = make_json_safe(value)

    assert result["numbers"] == [1, 2, 3]
    assert result["tuple"] == ["a", "b"]
    assert isinstance(result["custom"], str)
    assert result["custom"].startswith("namespace(")


def test_make_json_safe_stringifies_keys_when_requested() -> None:
    value = {1: "one", "nested": {2: "two"}}

    result = make_json_safe(value, stringify_keys=True)

    assert set(result.keys()) == {"1", "nested"}
    assert set(result["nested"].keys()) == {"2"}


def test_make_json_safe_summarises_binary_uploads() -> None:
    result = make_json_safe({"audio_file": b"\x00" * 16, "image": bytearray(b"abc")})

    assert result == {"audio_file": "<16 bytes>", "image": "<3 bytes>"}


def test_make_json_safe_unwraps_enums_and_dataclasses() -> None:
    @dataclass
    class Point:
        job: str
        status: JobStatus

    result = make_json_safe(Point(job="o-1", status=JobStatus.COMPLETED))

    assert result == {"job": "o-1", "status": "completed"}


def test_make_json_safe_truncates_long_strings() -> None:
    result = make_json_safe({"final_answer": "x" * 50}, max_string_length=10)

    assert result["final_answer"] == "x" * 9 + "…"


def test_make_json_safe_handles_unprintable_objects() -> None:
    class Broken:
        def __repr__(self) -> str:
            raise RuntimeError("boom")

    result = make_json_safe({"message": Broken()})

    assert result["message"] == "<unserialisable Broken>"
