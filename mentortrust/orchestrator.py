"""Verification orchestrator.

Coordinates one verification attempt for a user:

    eligibility -> load record -> call verifiers for supplied channels
    -> merge (replace-on-supply) -> score -> status -> persist

Channel failures are recorded on the record and never abort the attempt.
Structural failures (eligibility, invalid input, already verified,
unrecoverable conflict) raise ``VerificationError``.

Attempts for the same user are serialized by an in-process keyed lock; the
store's compare-and-swap on ``version`` covers writers in other processes.
Verifier calls finish before any merge starts and merge+persist contain no
await, so a cancelled attempt either writes its whole merge or nothing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from mentortrust.eligibility import EligibilityGuard
from mentortrust.errors import ErrorKind, VerificationError
from mentortrust.locks import KeyedLock
from mentortrust.models import (
    Channel,
    DocumentPayload,
    IdentityAssertion,
    VerificationRecord,
    VerificationRequest,
)
from mentortrust.scoring import (
    DEFAULT_THRESHOLDS,
    DEFAULT_WEIGHTS,
    StatusThresholds,
    WeightTable,
    resolve_status,
    score,
)
from mentortrust.store.base import ProfileStore, RecordStore
from mentortrust.utils import utc_now
from mentortrust.verifiers.base import (
    DocumentCheck,
    DocumentVerifier,
    SourceCheck,
    SourceVerifier,
    VerifierUnavailable,
)
from mentortrust.verifiers.challenge import ChallengeRegistry


@dataclass
class ChannelOutcomes:
    """Verifier results for the channels a request supplied.

    For source and documents, exactly one of ``*_check`` / ``*_failure`` is
    set when the channel was supplied; both are None otherwise.
    """

    source_handle: str | None = None
    source_check: SourceCheck | None = None
    source_failure: str | None = None
    documents_check: DocumentCheck | None = None
    documents_failure: str | None = None
    identity: IdentityAssertion | None = None


def merge_outcomes(record: VerificationRecord, outcomes: ChannelOutcomes, now: str) -> VerificationRecord:
    """Apply channel outcomes to a copy of ``record``.

    Supplied channels are fully replaced; the rest are left untouched.
    A transient source failure marks the source unverified; a transient
    document failure leaves the previous document results in place.
    """
    merged = record.copy()

    if outcomes.source_handle is not None:
        merged.source_handle = outcomes.source_handle
        if outcomes.source_check is not None:
            check = outcomes.source_check
            merged.source_verified = check.verified
            merged.source_evidence = {**check.raw, "score": check.score, "verified": check.verified}
            merged.channel_errors.pop(Channel.SOURCE.value, None)
        else:
            merged.source_verified = False
            merged.source_evidence = {
                "status": "unavailable",
                "reason": outcomes.source_failure,
                "retryable": True,
                "score": 0,
            }
            merged.channel_errors[Channel.SOURCE.value] = {"reason": outcomes.source_failure, "at": now}

    if outcomes.documents_check is not None:
        results = list(outcomes.documents_check.results)
        merged.document_results = results
        merged.documents_verified = bool(results) and all(r.passed for r in results)
        merged.channel_errors.pop(Channel.DOCUMENTS.value, None)
    elif outcomes.documents_failure is not None:
        merged.channel_errors[Channel.DOCUMENTS.value] = {"reason": outcomes.documents_failure, "at": now}

    if outcomes.identity is not None:
        assertion = outcomes.identity
        merged.identity_methods[assertion.method] = {
            "verified": assertion.verified,
            "detail": dict(assertion.detail),
            "asserted_at": now,
        }
        merged.identity_verified = any(
            bool(entry.get("verified")) for entry in merged.identity_methods.values()
        )

    merged.updated_at = now
    return merged


class VerificationOrchestrator:
    """Drives verification attempts and owns idempotent record updates."""

    def __init__(
        self,
        records: RecordStore,
        profiles: ProfileStore,
        source_verifier: SourceVerifier,
        document_verifier: DocumentVerifier,
        *,
        challenges: ChallengeRegistry | None = None,
        weights: WeightTable = DEFAULT_WEIGHTS,
        thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
        max_conflict_retries: int = 3,
        logger: logging.Logger | None = None,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self._records = records
        self._guard = EligibilityGuard(profiles, records)
        self._source = source_verifier
        self._documents = document_verifier
        self._challenges = challenges
        self._weights = weights
        self._thresholds = thresholds
        self._max_conflict_retries = max(int(max_conflict_retries), 0)
        self._log = logger or logging.getLogger(__name__)
        self._clock = clock
        self._locks = KeyedLock()

    @property
    def guard(self) -> EligibilityGuard:
        return self._guard

    async def verify(self, user_id: str, request: VerificationRequest) -> VerificationRecord:
        """Start or advance verification for ``user_id``."""
        if not user_id:
            raise VerificationError(ErrorKind.NOT_AUTHENTICATED, "No caller identity")

        async with self._locks.hold(user_id):
            return await self._verify_locked(user_id, request)

    async def _verify_locked(self, user_id: str, request: VerificationRequest) -> VerificationRecord:
        self._log.info("Starting verification process for user %s", user_id)

        # Store backends are blocking; keep them off the event loop
        decision = await asyncio.to_thread(self._guard.check, user_id)
        if not decision.eligible:
            kind = decision.kind or ErrorKind.NOT_ELIGIBLE
            self._log.info("Verification rejected for user %s: %s", user_id, decision.reason)
            raise VerificationError(kind, decision.reason or "Not eligible")

        existing = await asyncio.to_thread(self._records.get, user_id)
        if existing is None and not request.source_handle:
            raise VerificationError(ErrorKind.INVALID_INPUT, "A source handle is required to start verification")
        if existing is not None and existing.is_terminal:
            raise VerificationError(ErrorKind.ALREADY_VERIFIED, "Profile already verified")
        if request.is_empty:
            raise VerificationError(ErrorKind.INVALID_INPUT, "No verification input supplied")

        outcomes = await self._run_channels(user_id, request)
        record, trust_score = await asyncio.to_thread(self._persist, user_id, outcomes)

        if self._challenges is not None and outcomes.source_check is not None and outcomes.source_check.verified:
            self._challenges.consume(user_id)

        self._log.info(
            "Verification complete for user %s: status=%s score=%.2f",
            user_id, record.status.value, trust_score,
        )
        return record

    # -- Channels ---------------------------------------------------------------

    async def _run_channels(self, user_id: str, request: VerificationRequest) -> ChannelOutcomes:
        outcomes = ChannelOutcomes(source_handle=request.source_handle, identity=request.identity_assertion)

        tasks = []
        if request.source_handle:
            tasks.append(self._check_source(user_id, request.source_handle, outcomes))
        if request.documents:
            tasks.append(self._check_documents(user_id, request.documents, outcomes))
        if tasks:
            await asyncio.gather(*tasks)

        if request.identity_assertion is not None:
            self._log.info(
                "identity - %s for user %s: verified=%s",
                request.identity_assertion.method, user_id, request.identity_assertion.verified,
            )
        return outcomes

    async def _check_source(self, user_id: str, handle: str, outcomes: ChannelOutcomes) -> None:
        code = self._challenges.lookup(user_id, handle) if self._challenges is not None else None
        try:
            check = await self._source.verify_profile(handle, challenge_code=code)
        except VerifierUnavailable as exc:
            self._log.warning("Error in source verification for user %s: %s", user_id, exc.reason)
            outcomes.source_failure = exc.reason
            return
        except Exception:
            self._log.exception("Unexpected error in source verification for user %s", user_id)
            outcomes.source_failure = "Unexpected source verifier error"
            return

        outcomes.source_check = check
        self._log.info(
            "source - handle=%s verified=%s score=%s for user %s", handle, check.verified, check.score, user_id
        )

    async def _check_documents(self, user_id: str, documents: list[DocumentPayload], outcomes: ChannelOutcomes) -> None:
        try:
            check = await self._documents.validate_documents(documents)
        except VerifierUnavailable as exc:
            self._log.warning("Error in document verification for user %s: %s", user_id, exc.reason)
            outcomes.documents_failure = exc.reason
            return
        except Exception:
            self._log.exception("Unexpected error in document verification for user %s", user_id)
            outcomes.documents_failure = "Unexpected document verifier error"
            return

        outcomes.documents_check = check
        self._log.info(
            "documents - %d submitted, verified=%s for user %s", len(documents), check.verified, user_id
        )

    # -- Persistence ------------------------------------------------------------

    def _persist(self, user_id: str, outcomes: ChannelOutcomes) -> tuple[VerificationRecord, float]:
        """Merge onto the latest stored record and write it, retrying on conflict."""
        attempts = self._max_conflict_retries + 1
        for attempt in range(attempts):
            current = self._records.get(user_id)
            if current is not None and current.is_terminal:
                raise VerificationError(ErrorKind.ALREADY_VERIFIED, "Profile already verified")

            now = self._clock()
            base = current if current is not None else VerificationRecord(user_id=user_id, created_at=now, updated_at=now)
            merged = merge_outcomes(base, outcomes, now)
            trust_score = score(merged, self._weights)
            merged.status = resolve_status(trust_score, merged, self._weights, self._thresholds)

            if current is None:
                stored = self._records.create(merged)
            else:
                stored = self._records.update(merged, expected_version=current.version)
            if stored is not None:
                return stored, trust_score

            self._log.warning(
                "Version conflict persisting verification for user %s (attempt %d/%d)",
                user_id, attempt + 1, attempts,
            )

        raise VerificationError(
            ErrorKind.CONFLICT,
            f"Could not persist verification after {attempts} attempts",
        )
