"""In-memory storage backend for profiles and verification records."""

from __future__ import annotations

import threading
from dataclasses import replace

from mentortrust.models import Profile, VerificationRecord


class InMemoryStore:
    """Thread-safe dict-based store implementing both store contracts.

    Records are keyed by user id and copied on the way in and out, so callers
    can never mutate stored state without going through ``update``.
    """

    def __init__(self) -> None:
        self._records: dict[str, VerificationRecord] = {}
        self._profiles: dict[str, Profile] = {}
        self._lock = threading.Lock()

    # -- Profiles -------------------------------------------------------------

    def put_profile(self, user_id: str, profile_type: str) -> Profile:
        """Store or overwrite a profile."""
        profile = Profile(user_id=user_id, type=profile_type)
        with self._lock:
            self._profiles[user_id] = profile
        return profile

    def get_profile(self, user_id: str) -> Profile | None:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                return None
            return replace(profile, has_verification_record=user_id in self._records)

    # -- Records --------------------------------------------------------------

    def get(self, user_id: str) -> VerificationRecord | None:
        """Retrieve a record copy, or None if not found."""
        with self._lock:
            record = self._records.get(user_id)
            return record.copy() if record is not None else None

    def create(self, record: VerificationRecord) -> VerificationRecord | None:
        """Insert a new record at version 1. Returns None if one already exists."""
        with self._lock:
            if record.user_id in self._records:
                return None
            stored = replace(record.copy(), version=1)
            self._records[record.user_id] = stored
            return stored.copy()

    def update(self, record: VerificationRecord, expected_version: int) -> VerificationRecord | None:
        """Compare-and-swap on ``version``. Returns None on a version mismatch."""
        with self._lock:
            current = self._records.get(record.user_id)
            if current is None or current.version != expected_version:
                return None
            stored = replace(record.copy(), version=expected_version + 1)
            self._records[record.user_id] = stored
            return stored.copy()

    def ping(self) -> bool:
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Remove all records and profiles."""
        with self._lock:
            self._records.clear()
            self._profiles.clear()
