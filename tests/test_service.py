"""Tests for MentorVerificationService wired to the real verifiers."""

from datetime import datetime, timezone

import httpx
import pytest

from mentortrust.errors import ErrorKind, VerificationError
from mentortrust.models import DocumentPayload, VerificationRequest, VerificationStatus
from mentortrust.scoring import DEFAULT_THRESHOLDS, DEFAULT_WEIGHTS
from mentortrust.service import MentorVerificationService
from mentortrust.verifiers import ChallengeRegistry, GitHubVerifier, RuleBasedDocumentVerifier

from tests.conftest import DEGREE_TEXT, MENTOR_ID, StubDocumentVerifier, StubSourceVerifier

USER = {"login": "octocat", "created_at": "2016-10-17T00:00:00Z", "followers": 10, "bio": ""}


def _github(bio="", gists_status=200):
    def handler(request):
        if request.url.path == "/users/octocat":
            return httpx.Response(200, json={**USER, "bio": bio})
        if request.url.path == "/users/octocat/repos":
            return httpx.Response(200, json=[{"name": f"r{i}"} for i in range(5)])
        if request.url.path == "/users/octocat/gists":
            return httpx.Response(gists_status, json=[])
        return httpx.Response(404)

    return GitHubVerifier(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=lambda: datetime(2026, 10, 17, tzinfo=timezone.utc),
        retry_delay=0,
    )


def _service(store, source, challenges=None):
    return MentorVerificationService(
        store,
        source,
        RuleBasedDocumentVerifier(),
        challenges=challenges,
        weights=DEFAULT_WEIGHTS,
        thresholds=DEFAULT_THRESHOLDS,
    )


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_github_then_degree(self, store):
        challenges = ChallengeRegistry()
        issued = await _service(store, _github(), challenges).issue_challenge(MENTOR_ID, "octocat")
        service = _service(store, _github(bio=issued["verification_code"]), challenges)

        record = await service.verify(MENTOR_ID, VerificationRequest(source_handle="https://github.com/octocat"))
        # 10 years + 5 repos (25) + 0 contributions + 10 followers (20) = 55
        assert record.source_evidence["score"] == 55
        assert record.source_verified is True
        assert record.status is VerificationStatus.IN_REVIEW
        assert service.status(MENTOR_ID).score == 27.5

        degree = DocumentPayload(id="doc-1", doc_type="degree", content=DEGREE_TEXT.encode())
        record = await service.verify(MENTOR_ID, VerificationRequest(documents=[degree]))
        assert record.documents_verified is True
        assert service.status(MENTOR_ID).score == 57.5
        assert record.status is VerificationStatus.IN_REVIEW
        await service.aclose()

    @pytest.mark.asyncio
    async def test_challenge_round_trip(self, store):
        challenges = ChallengeRegistry()
        precheck = _service(store, _github(), challenges)
        issued = await precheck.issue_challenge(MENTOR_ID, "octocat")
        assert issued["success"] is True

        service = _service(store, _github(bio=f"hello {issued['verification_code']}"), challenges)
        record = await service.verify(MENTOR_ID, VerificationRequest(source_handle="octocat"))
        assert record.source_evidence["ownership"]["bio"] is True
        assert record.source_verified is True

    @pytest.mark.asyncio
    async def test_challenge_not_placed(self, store):
        challenges = ChallengeRegistry()
        service = _service(store, _github(), challenges)
        await service.issue_challenge(MENTOR_ID, "octocat")
        record = await service.verify(MENTOR_ID, VerificationRequest(source_handle="octocat"))
        assert record.source_verified is False
        assert record.status is VerificationStatus.PENDING

    @pytest.mark.asyncio
    async def test_someone_elses_handle_without_challenge(self, store):
        service = _service(store, _github(), ChallengeRegistry())
        record = await service.verify(MENTOR_ID, VerificationRequest(source_handle="octocat"))
        assert record.source_verified is False
        assert record.source_evidence["reason"] == "Ownership challenge required"
        assert record.status is VerificationStatus.PENDING
        assert service.status(MENTOR_ID).score == 0.0

    @pytest.mark.asyncio
    async def test_ownership_lookup_outage_is_retryable(self, store):
        challenges = ChallengeRegistry()
        issued = await _service(store, _github(), challenges).issue_challenge(MENTOR_ID, "octocat")

        service = _service(store, _github(gists_status=503), challenges)
        record = await service.verify(MENTOR_ID, VerificationRequest(source_handle="octocat"))

        assert record.source_verified is False
        assert record.source_evidence["retryable"] is True
        assert "source" in record.channel_errors
        assert challenges.lookup(MENTOR_ID, "octocat") == issued["verification_code"]


class TestServiceErrors:
    @pytest.mark.asyncio
    async def test_challenges_disabled(self, store):
        service = MentorVerificationService(
            store, StubSourceVerifier(), StubDocumentVerifier(),
            weights=DEFAULT_WEIGHTS, thresholds=DEFAULT_THRESHOLDS,
        )
        with pytest.raises(VerificationError) as exc:
            await service.issue_challenge(MENTOR_ID, "octocat")
        assert exc.value.kind is ErrorKind.INVALID_INPUT

    def test_health(self, store):
        service = _service(store, StubSourceVerifier())
        assert service.health() == {"store_connected": True, "weights_version": "2026-10"}
