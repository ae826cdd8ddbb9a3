"""Exception hierarchy for docvault.

Every error raised by the version store derives from :class:`VaultError`, so
callers that only want to know "did the vault fail" can catch a single type.
"""

from __future__ import annotations


# =============================================================================
# Base
# =============================================================================


class VaultError(Exception):
    """Base exception for all docvault errors."""

    pass


# =============================================================================
# Storage
# =============================================================================


class BackendError(VaultError):
    """Raised when the storage backend fails to perform an I/O operation.

    The underlying exception is kept on ``cause`` and chained as
    ``__cause__`` by the backends that raise this error.
    """

    def __init__(
        self,
        operation: str,
        path: str,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.path = path
        self.cause = cause
        message = f"Backend {operation} failed for {path}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ParseError(VaultError):
    """Raised when persisted bytes are not a valid version series."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")


# =============================================================================
# Versions
# =============================================================================


class NotFoundError(VaultError):
    """Raised when a requested version id is absent from a series."""

    def __init__(self, document_path: str, version_id: str) -> None:
        self.document_path = document_path
        self.version_id = version_id
        super().__init__(f"Version {version_id} not found for {document_path}")


class UnreconstructableError(VaultError):
    """Raised when a record has neither content nor a resolvable diff chain."""

    def __init__(self, document_path: str, version_id: str, reason: str) -> None:
        self.document_path = document_path
        self.version_id = version_id
        self.reason = reason
        super().__init__(
            f"Cannot reconstruct version {version_id} of {document_path}: {reason}"
        )


# =============================================================================
# Diffs
# =============================================================================


class DiffError(VaultError):
    """Base exception for diff codec errors."""

    pass


class PatchApplyError(DiffError):
    """Raised when a patch cannot be applied cleanly to its base text."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"{message} (base line {line})"
        super().__init__(message)
