"""Exceptions raised by the limiters."""

from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """A limiter was given a parameter outside its allowed range."""

    def __init__(
        self,
        component: str,
        field: str,
        value: Any,
        message: str,
        hint: str | None = None,
    ) -> None:
        self.component = component
        self.field = field
        self.value = value
        self.message = message
        self.hint = hint
        text = f"{component}: invalid {field} {value!r}: {message}"
        if hint:
            text = f"{text} (hint: {hint})"
        super().__init__(text)


class WaitCancelled(Exception):
    """A blocking wait was abandoned because its cancel event was set."""