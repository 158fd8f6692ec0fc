"""Read/write contracts for the stores the verification core depends on."""

from __future__ import annotations

from typing import Protocol

from mentortrust.models import Profile, VerificationRecord


class RecordStore(Protocol):
    """Durable VerificationRecord storage keyed by user id.

    ``create`` returns None when a record already exists for the user and
    ``update`` returns None when ``expected_version`` no longer matches the
    stored version. Both return the stored copy on success, with ``version``
    set by the store.
    """

    def get(self, user_id: str) -> VerificationRecord | None: ...

    def create(self, record: VerificationRecord) -> VerificationRecord | None: ...

    def update(self, record: VerificationRecord, expected_version: int) -> VerificationRecord | None: ...

    def ping(self) -> bool: ...


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> Profile | None: ...
