"""Eligibility guard: who may enter (or re-enter) the verification flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mentortrust.errors import ErrorKind
from mentortrust.store.base import ProfileStore, RecordStore

logger = logging.getLogger(__name__)

PROFILE_NOT_FOUND = "Profile not found"
NOT_A_MENTOR = "Profile is not a mentor type"
ALREADY_VERIFIED = "Already verified"


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: str | None = None
    kind: ErrorKind | None = None

    def to_dict(self) -> dict:
        data: dict = {"eligible": self.eligible}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


class EligibilityGuard:
    """Read-only predicate over the profile and record stores.

    Rules are checked in order and the first failure wins.
    """

    def __init__(self, profiles: ProfileStore, records: RecordStore) -> None:
        self._profiles = profiles
        self._records = records

    def check(self, user_id: str) -> EligibilityDecision:
        profile = self._profiles.get_profile(user_id)
        if profile is None:
            return EligibilityDecision(False, PROFILE_NOT_FOUND, ErrorKind.NOT_ELIGIBLE)

        if not profile.is_mentor:
            return EligibilityDecision(False, NOT_A_MENTOR, ErrorKind.NOT_ELIGIBLE)

        record = self._records.get(user_id)
        if record is not None and record.is_terminal:
            return EligibilityDecision(False, ALREADY_VERIFIED, ErrorKind.ALREADY_VERIFIED)

        return EligibilityDecision(True)
