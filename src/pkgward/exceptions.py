"""pkgward exception hierarchy.

All public exceptions inherit from PkgwardError, giving callers a single
base class to catch when they want to handle any pkgward-specific failure
without swallowing unrelated errors.

Errors that aggregate several findings (unsatisfiable requests, package
conflicts) keep the individual findings in ``problems`` and render every
one of them in the message, so a user sees all of them at once.
"""

from __future__ import annotations


class PkgwardError(Exception):
    """Base exception for all pkgward errors."""


class _AggregateError(PkgwardError):
    """An error carrying a list of human-readable problems."""

    def __init__(self, summary: str, problems: list[str] | None = None) -> None:
        self.summary = summary
        self.problems = list(problems or [])
        if self.problems:
            message = summary + "\n" + "\n".join(f"  {p}" for p in self.problems)
        else:
            message = summary
        super().__init__(message)


class RequestError(PkgwardError):
    """Raised when a package request cannot be interpreted.

    Covers malformed request strings, invalid package filenames and
    requests naming files that are not packages.
    """


class UnsatisfiableError(_AggregateError):
    """Raised when no candidate can satisfy one or more requirements.

    Also raised when a removal would leave an installed package with an
    unsatisfied dependency.
    """


class SearchExhaustedError(PkgwardError):
    """Raised when the resolver exceeds its combination budget."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Checked {limit} possible solutions to requirements and "
            "dependencies, no solution found"
        )


class ConflictError(_AggregateError):
    """Raised for package-vs-package or file-vs-file conflicts."""


class LockHeldError(PkgwardError):
    """Raised when the repository lock is held by another live process."""

    def __init__(self, pid: int | None) -> None:
        self.pid = pid
        if pid is None:
            super().__init__("Package repository locked by another process")
        else:
            super().__init__(f"Package repository locked by another process (with PID {pid})")


class HookFailureError(PkgwardError):
    """Raised when a lifecycle hook or external exits non-zero."""


class PrivilegeDeniedError(PkgwardError):
    """Raised when a privileged operation fails while running as root."""


class PartialCleanupError(PkgwardError):
    """A file could not be removed during package removal.

    Never propagated out of a transaction; it is logged as a warning.
    """


class ArchiveError(PkgwardError):
    """Raised for unreadable packages and checksum mismatches."""


class TransactionError(PkgwardError):
    """Raised when the apply phase cannot make progress."""
