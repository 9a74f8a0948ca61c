"""Source transformations on the syntax model."""

from guidget.refactoring.listener_refactor import ListenerCommandRefactor

__all__ = ["ListenerCommandRefactor"]
