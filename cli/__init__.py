"""CLI package for interacting with the temperature compliance engine."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` resolves to the module, not the Typer instance, so attributes such
# as ``cli.app.ApiClient`` stay patchable.

__all__ = []
