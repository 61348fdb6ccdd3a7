"""Single-slot holder for "the current" transaction session.

Code that cannot be handed a session explicitly can look one up here.
Nothing registers or clears a session automatically; callers do both.
"""
from __future__ import annotations

from crudql.execution.transaction import TransactionSession


class TransactionRegistry:
    """Holds at most one :class:`TransactionSession`."""

    def __init__(self) -> None:
        self._session: TransactionSession | None = None

    def set(self, session: TransactionSession) -> None:
        """Register ``session``, replacing any previous one."""
        self._session = session

    def get(self) -> TransactionSession | None:
        return self._session

    def clear(self) -> None:
        self._session = None

    def has_active_transaction(self) -> bool:
        """True if a session is registered and currently active."""
        return self._session is not None and self._session.is_active
