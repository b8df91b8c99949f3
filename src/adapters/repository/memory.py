"""
In-memory repository adapter - Implements CredentialStore protocol.

Keeps users in a process-local dict with the same transaction and locking
contract as the PostgreSQL store:

- Writes are buffered per transaction and applied atomically on commit.
- A locked read takes an exclusive per-key threading.Lock (for example
  "username:alice"), held until commit or rollback, whether or not a row
  matches. A matching row also locks "id:<id>".
- Uniqueness of username and email is re-checked when writes are applied.

Locks are always taken in the order username -> email -> id, so the
operations of IdentityService cannot deadlock each other.

Intended for development and tests; data does not survive a restart.
"""

import dataclasses
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from src.domain.exceptions import IdentityAlreadyExists, StoreError
from src.domain.models import User

_UPDATABLE_FIELDS = frozenset({"verified", "password_digest"})


class _KeyLock:
    """A per-key lock and the number of transactions holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class InMemoryTransaction:
    """Buffered writes plus the key locks held by one transaction."""

    def __init__(self, store: "InMemoryCredentialStore") -> None:
        self._store = store
        self.pending: dict[str, User] = {}
        self.held_keys: list[str] = []
        self.closed = False

    def commit(self) -> None:
        self._ensure_open()
        try:
            self._store._apply(self.pending)
        finally:
            self._close()

    def rollback(self) -> None:
        self._ensure_open()
        self._close()

    def _ensure_open(self) -> None:
        if self.closed:
            raise StoreError("Transaction already closed")

    def _close(self) -> None:
        self.pending.clear()
        self._store._release(self.held_keys)
        self.held_keys = []
        self.closed = True


class InMemoryCredentialStore:
    """
    Implements CredentialStore protocol with thread-safe dicts.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._data_lock = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def begin_transaction(self) -> Iterator[InMemoryTransaction]:
        """Open a transaction; rolled back unless committed."""
        txn = InMemoryTransaction(self)
        try:
            yield txn
        finally:
            if not txn.closed:
                txn.rollback()

    def find_by_username(
        self, txn: InMemoryTransaction, username: str, lock_for_update: bool = False
    ) -> User | None:
        return self._find(txn, f"username:{username}", lambda u: u.username == username, lock_for_update)

    def find_by_email(
        self, txn: InMemoryTransaction, email: str, lock_for_update: bool = False
    ) -> User | None:
        return self._find(txn, f"email:{email}", lambda u: u.email == email, lock_for_update)

    def create(
        self, txn: InMemoryTransaction, username: str, email: str, password_digest: str
    ) -> User:
        """
        Buffer a new unverified user.

        Raises:
            IdentityAlreadyExists: If username or email is already taken
        """
        txn._ensure_open()
        if not password_digest:
            raise ValueError("password_digest must not be empty")
        with self._data_lock:
            visible = {**self._users, **txn.pending}
            if _conflicts(visible.values(), username, email):
                raise IdentityAlreadyExists(username)
        user = User(id=str(uuid.uuid4()), username=username, email=email, password_digest=password_digest)
        txn.pending[user.id] = user
        return user

    def update(self, txn: InMemoryTransaction, user: User, **fields: Any) -> User:
        """
        Buffer an update of mutable fields.

        Raises:
            ValueError: If a field is unknown or immutable
        """
        txn._ensure_open()
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        current = txn.pending.get(user.id) or self._committed(user.id)
        if current is None:
            raise StoreError(f"User {user.id} vanished during update")
        updated = dataclasses.replace(current, **fields)
        txn.pending[user.id] = updated
        return updated

    def ping(self) -> None:
        """Always reachable."""
        return None

    def count(self) -> int:
        """Number of committed users."""
        with self._data_lock:
            return len(self._users)

    def _find(
        self,
        txn: InMemoryTransaction,
        key: str,
        match: Callable[[User], bool],
        lock_for_update: bool,
    ) -> User | None:
        txn._ensure_open()
        if lock_for_update:
            self._acquire(txn, key)
        user = self._lookup(txn, match)
        if user is not None and lock_for_update:
            self._acquire(txn, f"id:{user.id}")
            # Re-read: the row may have changed while waiting for its lock
            user = self._lookup(txn, match)
        return user

    def _lookup(self, txn: InMemoryTransaction, match: Callable[[User], bool]) -> User | None:
        with self._data_lock:
            visible = {**self._users, **txn.pending}
        return next((u for u in visible.values() if match(u)), None)

    def _committed(self, user_id: str) -> User | None:
        with self._data_lock:
            return self._users.get(user_id)

    def _acquire(self, txn: InMemoryTransaction, key: str) -> None:
        if key in txn.held_keys:
            return
        with self._registry_lock:
            entry = self._key_locks.setdefault(key, _KeyLock())
            entry.users += 1
        entry.lock.acquire()
        txn.held_keys.append(key)

    def _release(self, keys: list[str]) -> None:
        # Entries are dropped once no transaction holds or waits on them
        with self._registry_lock:
            for key in reversed(keys):
                entry = self._key_locks[key]
                entry.lock.release()
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    def _apply(self, pending: dict[str, User]) -> None:
        with self._data_lock:
            for user in pending.values():
                others = (u for uid, u in self._users.items() if uid != user.id)
                if _conflicts(others, user.username, user.email):
                    raise IdentityAlreadyExists(user.username)
            self._users.update(pending)


def _conflicts(users: Iterable[User], username: str, email: str) -> bool:
    return any(u.username == username or u.email == email for u in users)
