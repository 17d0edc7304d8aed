"""Session-scoped record of the last fully completed response."""

from __future__ import annotations


class ResponseLedger:
    """Holds at most one response id: the most recent completed one.

    Only the terminal completed path writes to the ledger. A turn that is
    cancelled or fails leaves it exactly as the previous turn left it, so
    an unset ledger means the next request cannot chain and must carry an
    explicit item list.
    """

    def __init__(self, initial: str | None = None) -> None:
        self._current = initial or None
        self._commits = 0

    def current_id(self) -> str | None:
        return self._current

    def commit(self, response_id: str) -> None:
        if not response_id:
            raise ValueError("Cannot commit an empty response id")
        self._current = response_id
        self._commits += 1

    @property
    def commit_count(self) -> int:
        return self._commits

    def __repr__(self) -> str:
        return f"ResponseLedger(current={self._current!r}, commits={self._commits})"
