"""Error taxonomy for the Zhuzh conversational engine.

Every error carries a ``user_message`` that is safe to post back to the chat
user. Errors are converted to replies at the command/reply boundary and never
propagate past it:

- InvalidInputError: re-prompt, pending conversation state is kept
- NotFoundError, PermissionDeniedError, PersistenceError: plain message,
  pending conversation state is cleared
"""

from __future__ import annotations


class ZhuzhError(Exception):
    """Base exception for user-facing Zhuzh errors."""

    def __init__(self, user_message: str) -> None:
        super().__init__(user_message)
        self.user_message = user_message


class NotFoundError(ZhuzhError):
    """An entity reference matched no candidates."""

    def __init__(self, kind: str, query: str) -> None:
        if kind == "project":
            message = (
                f"❌ I couldn't find a project matching \"{query}\". "
                "Try a different name or check the project list."
            )
        else:
            message = f"❌ I couldn't find anyone named \"{query}\"."
        super().__init__(message)
        self.kind = kind
        self.query = query


class InvalidInputError(ZhuzhError):
    """A reply could not be understood; the user may retry."""

    pass


class PermissionDeniedError(ZhuzhError):
    """The caller's role does not allow the requested action."""

    pass


class PersistenceError(ZhuzhError):
    """The data backend failed to read or write."""

    def __init__(self, detail: str) -> None:
        super().__init__("❌ Something went wrong saving that. Please try again.")
        self.detail = detail


__all__ = [
    "ZhuzhError",
    "NotFoundError",
    "InvalidInputError",
    "PermissionDeniedError",
    "PersistenceError",
]
