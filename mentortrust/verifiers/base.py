"""Contracts for the external verifiers the orchestrator consumes."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from mentortrust.models import DocumentPayload, DocumentResult


class VerifierUnavailable(Exception):
    """Transient upstream failure (network, timeout, rate limit).

    Distinct from a definitive negative result, which verifiers return as a
    normal check with ``verified=False``.
    """

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"{channel} verifier unavailable: {reason}")
        self.channel = channel
        self.reason = reason


@dataclass(frozen=True)
class SourceCheck:
    """Source-hosting verifier output. ``raw`` is stored verbatim as evidence."""

    verified: bool
    score: float
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DocumentCheck:
    verified: bool
    results: list[DocumentResult] = field(default_factory=list)


class SourceVerifier(Protocol):
    async def verify_profile(self, handle: str, *, challenge_code: str | None = None) -> SourceCheck: ...


class DocumentVerifier(Protocol):
    async def validate_documents(self, documents: list[DocumentPayload]) -> DocumentCheck: ...
