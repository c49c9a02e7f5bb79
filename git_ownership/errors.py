"""Error kinds raised while computing ownership."""

from __future__ import annotations


class OwnershipError(Exception):
    pass


class RepositoryNotFound(OwnershipError, RuntimeError):
    pass


class FileBlameFailure(OwnershipError, RuntimeError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot blame {path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidFilterInput(OwnershipError, ValueError):
    pass
