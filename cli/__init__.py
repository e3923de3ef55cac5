"""CLI package for interacting with the METAR ingest service."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app``; keep the package attribute
# resolving to the module so patches on ``cli.app`` keep working.

__all__ = []
