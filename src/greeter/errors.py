"""Exception types raised by the greeter actor and its collaborators."""

from __future__ import annotations


class GreeterError(Exception):
    """Base class for greeter failures surfaced to callers."""


class StoreUnavailableError(GreeterError):
    """The durable state store could not complete a read or write."""


class UnsupportedOperationError(GreeterError):
    """The operation is not offered by the configured protocol variant."""
