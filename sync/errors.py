"""Exceptions raised while importing an upstream show."""
from typing import Optional


class ShowImportError(Exception):
    """Base class for failures of a show import."""

    def __init__(
        self,
        message: str,
        show_id: Optional[int] = None,
        entity_kind: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.show_id = show_id
        self.entity_kind = entity_kind

    def with_context(
        self,
        show_id: Optional[int] = None,
        entity_kind: Optional[str] = None
    ) -> 'ShowImportError':
        """Fill in show id and entity kind when they are not already set."""
        if self.show_id is None:
            self.show_id = show_id
        if self.entity_kind is None:
            self.entity_kind = entity_kind
        return self

    def __str__(self) -> str:
        context = []
        if self.show_id is not None:
            context.append(f"show={self.show_id}")
        if self.entity_kind is not None:
            context.append(f"kind={self.entity_kind}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class FetchError(ShowImportError):
    """Upstream feed unreachable, timed out, or returned an unusable payload."""


class ValidationError(ShowImportError):
    """A field of the upstream payload could not be parsed."""


class Conflict(ShowImportError):
    """A (source, upstream id) uniqueness invariant was violated."""


class DuplicateMapping(Conflict):
    """An external reference is already bound to a different local id."""


class StorageError(ShowImportError):
    """The record store failed for a reason other than a uniqueness check."""
