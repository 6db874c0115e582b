"""ReviewGraph exception hierarchy."""

from __future__ import annotations

from typing import Optional, Tuple


class ReviewGraphError(Exception):
    """Base exception for ReviewGraph errors."""


class ChangeSetFormatError(ReviewGraphError):
    """Raised when a change-set document cannot be turned into a ChangeSet."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class ResolutionError(ReviewGraphError):
    """Base exception for failures of a single resolve call."""

    kind = "ResolutionError"

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        edge: Optional[Tuple[str, str]] = None,
    ):
        self.identifier = identifier
        self.edge = edge
        super().__init__(message)


class UnknownReference(ResolutionError):
    """Raised when an edge or parent names a node outside the change-set."""

    kind = "UnknownReference"


class SelfDependency(ResolutionError):
    """Raised when a node depends on, or contains, itself."""

    kind = "SelfDependency"


class DuplicateNode(ResolutionError):
    """Raised when a node identifier appears more than once."""

    kind = "DuplicateNode"


class InvalidOverride(ResolutionError):
    """Raised when an order override names unknown or repeated nodes."""

    kind = "InvalidOverride"


class InternalInvariantViolation(ResolutionError):
    """Raised when cycle condensation does not yield a DAG.

    This signals a defect in the resolver, never a caller error.
    """

    kind = "InternalInvariantViolation"
