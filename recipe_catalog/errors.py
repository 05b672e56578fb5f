"""Exception hierarchy shared by the domain, use cases and storage backends.

Value objects raise :class:`ValidationError`, use cases raise
:class:`BusinessRuleError` (and :class:`NotFoundError` for unknown ids), and
key-value stores raise :class:`PersistenceError`. Repositories never let a
:class:`PersistenceError` escape; they log it and degrade to empty results.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for every error raised by the recipe catalog."""


class ValidationError(CatalogError, ValueError):
    """An input violated the shape or range rule of a value object."""


class BusinessRuleError(CatalogError):
    """A use case rejected the request before touching the repository."""


class NotFoundError(BusinessRuleError):
    """No stored recipe matches the requested id."""

    def __init__(self, message: str = "Recipe not found") -> None:
        super().__init__(message)


class PersistenceError(CatalogError):
    """Reading from or writing to a key-value store failed."""


__all__ = [
    "BusinessRuleError",
    "CatalogError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
