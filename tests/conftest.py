"""Shared test fixtures for the mentortrust test suite."""

import asyncio
import os

import pytest

# Ensure test environment variables are set before any config import
os.environ.setdefault("MENTORTRUST_API_KEY", "test-api-key")
os.environ.setdefault("MENTORTRUST_DEMO_MODE", "true")
os.environ.setdefault("MENTORTRUST_STORE_BACKEND", "memory")

from mentortrust.models import DocumentPayload, DocumentResult, IdentityAssertion, VerificationRequest
from mentortrust.orchestrator import VerificationOrchestrator
from mentortrust.store import InMemoryStore
from mentortrust.verifiers import ChallengeRegistry, DocumentCheck, SourceCheck, VerifierUnavailable


MENTOR_ID = "mentor-1"
OTHER_MENTOR_ID = "mentor-2"
MENTEE_ID = "mentee-1"

DEGREE_TEXT = (
    "Stanford University\n"
    "This certifies that Jane Doe has been awarded the degree of\n"
    "Master of Science in Computer Science\n"
    "Conferred June 2019"
)

CERTIFICATE_TEXT = (
    "Cloud Certification Board\n"
    "Certified Professional - Solutions Architect\n"
    "Certificate issued 2022"
)


class StubSourceVerifier:
    """Scriptable source verifier. ``outcomes`` is consumed one per call."""

    def __init__(self, *outcomes, delay: float = 0.0):
        self.outcomes = list(outcomes) or [SourceCheck(verified=True, score=80, raw={"score": 80})]
        self.delay = delay
        self.calls: list[tuple[str, str | None]] = []

    async def verify_profile(self, handle, *, challenge_code=None):
        self.calls.append((handle, challenge_code))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[0] if len(self.outcomes) == 1 else self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StubDocumentVerifier:
    """Document verifier that passes every document unless told otherwise."""

    def __init__(self, passed: bool = True, error: Exception | None = None):
        self.passed = passed
        self.error = error
        self.calls: list[list[DocumentPayload]] = []

    async def validate_documents(self, documents):
        self.calls.append(list(documents))
        if self.error is not None:
            raise self.error
        results = [
            DocumentResult(
                id=d.id,
                passed=self.passed,
                reason=None if self.passed else "Required keywords not found",
                doc_type=d.doc_type,
            )
            for d in documents
        ]
        return DocumentCheck(verified=bool(results) and all(r.passed for r in results), results=results)


def source_ok(score: float = 80) -> SourceCheck:
    return SourceCheck(verified=True, score=score, raw={"handle": "octocat", "score": score})


def source_rejected(score: float = 40) -> SourceCheck:
    return SourceCheck(
        verified=False,
        score=score,
        raw={"handle": "octocat", "score": score, "reason": "GitHub profile does not meet minimum requirements"},
    )


def source_unavailable(reason: str = "timeout") -> VerifierUnavailable:
    return VerifierUnavailable("source", reason)


def degree_document(doc_id: str = "doc-1") -> DocumentPayload:
    return DocumentPayload(id=doc_id, doc_type="degree", content=DEGREE_TEXT.encode(), name="diploma.txt")


def identity(method: str = "email", verified: bool = True) -> IdentityAssertion:
    return IdentityAssertion(method=method, verified=verified)


@pytest.fixture
def store():
    """In-memory store seeded with two mentors and one mentee."""
    s = InMemoryStore()
    s.put_profile(MENTOR_ID, "mentor")
    s.put_profile(OTHER_MENTOR_ID, "mentor")
    s.put_profile(MENTEE_ID, "mentee")
    return s


@pytest.fixture
def source_verifier():
    return StubSourceVerifier(source_ok())


@pytest.fixture
def document_verifier():
    return StubDocumentVerifier()


@pytest.fixture
def challenges():
    return ChallengeRegistry(ttl_seconds=60)


@pytest.fixture
def make_orchestrator(store, document_verifier, challenges):
    """Factory building an orchestrator over the shared store."""

    def _make(source=None, documents=None, **kwargs):
        return VerificationOrchestrator(
            records=kwargs.pop("records", store),
            profiles=kwargs.pop("profiles", store),
            source_verifier=source or StubSourceVerifier(source_ok()),
            document_verifier=documents or document_verifier,
            challenges=kwargs.pop("challenges", challenges),
            **kwargs,
        )

    return _make


@pytest.fixture
def handle_request():
    return VerificationRequest(source_handle="octocat")
