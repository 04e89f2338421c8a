"""Command-line interface for the ClinicalPaws client.

:func:`main` is resolved lazily so that importing
:mod:`clinicalpaws.cli.main` directly is not shadowed by the attribute.
"""

from importlib import import_module
from typing import Any


def __getattr__(name: str) -> Any:
    if name == "main":
        return import_module(".main", __name__).main
    raise AttributeError(f"module {__name__!r} has no attribute {name}")


__all__ = ["main"]
