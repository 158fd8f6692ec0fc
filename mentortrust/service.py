"""MentorVerificationService - high-level wrapper for the verification core.

Composes the stores, verifiers, eligibility guard and orchestrator into a
single API surface for the HTTP layer and the CLI, and owns the read-only
status query that recomputes score and status without calling verifiers.
"""

from __future__ import annotations

import logging
from typing import Any

from mentortrust.config import MentorTrustSettings
from mentortrust.eligibility import EligibilityDecision
from mentortrust.errors import ErrorKind, VerificationError
from mentortrust.models import StatusView, VerificationRecord, VerificationRequest
from mentortrust.orchestrator import VerificationOrchestrator
from mentortrust.scoring import StatusThresholds, WeightTable, status_view
from mentortrust.store import InMemoryStore, SQLiteStore
from mentortrust.verifiers import (
    ChallengeRegistry,
    DocumentVerifier,
    GitHubVerifier,
    MinimumRequirements,
    RuleBasedDocumentVerifier,
    SourceCheck,
    SourceVerifier,
    VerifierUnavailable,
)
from mentortrust.verifiers.challenge import INSTRUCTIONS

logger = logging.getLogger(__name__)


class MentorVerificationService:
    """Unified verification interface.

    ``store`` must implement both the record and the profile contracts
    (both bundled backends do).
    """

    def __init__(
        self,
        store: Any,
        source_verifier: SourceVerifier,
        document_verifier: DocumentVerifier,
        *,
        challenges: ChallengeRegistry | None = None,
        weights: WeightTable,
        thresholds: StatusThresholds,
        max_conflict_retries: int = 3,
    ) -> None:
        self._store = store
        self._source = source_verifier
        self._challenges = challenges
        self._weights = weights
        self._thresholds = thresholds
        self._orchestrator = VerificationOrchestrator(
            records=store,
            profiles=store,
            source_verifier=source_verifier,
            document_verifier=document_verifier,
            challenges=challenges,
            weights=weights,
            thresholds=thresholds,
            max_conflict_retries=max_conflict_retries,
            logger=logging.getLogger("mentortrust.verification"),
        )

    @property
    def store(self) -> Any:
        return self._store

    @property
    def weights(self) -> WeightTable:
        return self._weights

    @property
    def challenges(self) -> ChallengeRegistry | None:
        return self._challenges

    @property
    def orchestrator(self) -> VerificationOrchestrator:
        return self._orchestrator

    # -- Operations -------------------------------------------------------------

    async def verify(self, user_id: str, request: VerificationRequest) -> VerificationRecord:
        return await self._orchestrator.verify(user_id, request)

    def status(self, user_id: str) -> StatusView:
        """Recompute score/status from the stored record. Never calls verifiers."""
        return status_view(self._store.get(user_id), self._weights, self._thresholds)

    def eligibility(self, user_id: str) -> EligibilityDecision:
        return self._orchestrator.guard.check(user_id)

    async def issue_challenge(self, user_id: str, handle: str) -> dict[str, Any]:
        """Pre-check a GitHub handle and issue an ownership challenge code.

        Returns ``{"success": False, ...}`` with the failing requirements when
        the profile does not qualify. Raises VerificationError when the caller
        is not eligible, the handle is invalid or GitHub is unreachable.
        """
        if self._challenges is None:
            raise VerificationError(ErrorKind.INVALID_INPUT, "Ownership challenges are not enabled")

        decision = self.eligibility(user_id)
        if not decision.eligible:
            raise VerificationError(decision.kind or ErrorKind.NOT_ELIGIBLE, decision.reason or "Not eligible")

        try:
            precheck: SourceCheck = await self._source.verify_profile(handle)
        except VerifierUnavailable as exc:
            raise VerificationError(ErrorKind.UPSTREAM_UNAVAILABLE, exc.reason) from exc

        if precheck.raw.get("error") == "invalid_handle":
            raise VerificationError(ErrorKind.INVALID_INPUT, precheck.raw.get("reason", "Invalid handle"))

        failing = precheck.raw.get("failing") or []
        if failing:
            return {
                "success": False,
                "requirements_check": False,
                "error": "GitHub profile does not meet minimum requirements",
                "failing": failing,
                "requirements": precheck.raw.get("requirements", {}),
            }

        challenge = self._challenges.issue(user_id, precheck.raw.get("handle", handle))
        logger.info("Issued ownership challenge for user %s handle=%s", user_id, challenge.handle)
        return {
            "success": True,
            "requirements_check": True,
            "verification_code": challenge.code,
            "expires_at": challenge.expires_at,
            "instructions": INSTRUCTIONS,
        }

    def health(self) -> dict[str, Any]:
        return {
            "store_connected": self._store.ping(),
            "weights_version": self._weights.version,
        }

    async def aclose(self) -> None:
        close = getattr(self._source, "aclose", None)
        if close is not None:
            await close()


def build_store(config: MentorTrustSettings) -> InMemoryStore | SQLiteStore:
    if config.store_backend == "sqlite":
        return SQLiteStore(config.sqlite_path)
    return InMemoryStore()


def build_service(config: MentorTrustSettings, store: Any | None = None) -> MentorVerificationService:
    """Wire a service from configuration."""
    weights = WeightTable(
        version=config.weights_version,
        source=config.weight_source,
        documents=config.weight_documents,
        identity=config.weight_identity,
    )
    source = GitHubVerifier(
        token=config.github_token,
        base_url=config.github_api_url,
        timeout=config.github_timeout,
        max_retries=config.github_max_retries,
        retry_delay=config.github_retry_delay,
        requirements=MinimumRequirements(
            account_age_days=config.min_account_age_days,
            repositories=config.min_repositories,
            contributions=config.min_contributions,
            followers=config.min_followers,
        ),
    )
    return MentorVerificationService(
        store=store if store is not None else build_store(config),
        source_verifier=source,
        document_verifier=RuleBasedDocumentVerifier(),
        challenges=ChallengeRegistry(ttl_seconds=config.challenge_ttl_seconds),
        weights=weights,
        thresholds=StatusThresholds(verified=config.verified_threshold),
        max_conflict_retries=config.max_conflict_retries,
    )
