"""Terminal user interface: the root model, its screens and the prompt_toolkit driver."""

from .root import AppState, RootModel

__all__ = ["AppState", "RootModel"]
