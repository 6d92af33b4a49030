"""Application-level exception types.

Convention:
- ``NotFoundError`` — a resource, highlight, or backup does not exist at the
  requested key. The global handler returns HTTP 404 with ``str(exc)``.
- ``ValueError`` — for *business logic* validation errors that are safe to
  forward to clients (bad offsets, text not present in the source, etc.).
  The global ``ValueError`` handler returns ``str(exc)`` as the 422 detail.
- ``OSError`` — storage failures. The global handler logs the details and
  returns a generic 500 so filesystem paths never reach clients.
"""

from __future__ import annotations


class NotFoundError(LookupError):
    """Raised when a resource, highlight, or backup cannot be found."""


class BackupNotFoundError(NotFoundError):
    """Raised when a backup file is missing from the backup cache."""
