from __future__ import annotations


class DuplicateKeyError(Exception):
    """A unique constraint rejected an insert.

    Raised by every repo implementation (in-memory and PostgreSQL) so the
    services can treat "lost the insert race" uniformly.
    """
