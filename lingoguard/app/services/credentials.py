"""Collaborator interfaces for user credential and session storage.

The security layer does not own persistence. Applications that have a user
database plug it in through these protocols; without one the password change
route only validates and hashes.
"""

from typing import Optional, Protocol

from lingoguard.app.core.security import SessionStore


class CredentialStore(Protocol):
    """Reads and replaces stored password hashes."""

    def get_password_hash(self, user_id: str) -> Optional[str]: ...

    def set_password_hash(self, user_id: str, password_hash: str) -> None: ...


__all__ = ["CredentialStore", "SessionStore"]
