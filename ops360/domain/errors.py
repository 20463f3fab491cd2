from __future__ import annotations


class Ops360Error(Exception):
    """Base class for errors raised by the scheduling core."""


class ValidationError(Ops360Error):
    """Input rejected before anything was written."""


class NotFoundError(Ops360Error):
    def __init__(self, kind: str, identity: object) -> None:
        super().__init__(f"{kind} {identity} not found")
        self.kind = kind
        self.identity = identity


class DependencyFailure(Ops360Error):
    """A directory or other collaborator could not be reached."""
