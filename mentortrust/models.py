"""Value objects shared across the verification core.

VerificationRecord is the only mutable shared state in the system; everything
else here is an input to, or a read-only view of, that record.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any

from mentortrust.utils import utc_now

MENTOR_PROFILE_TYPE = "mentor"


class VerificationStatus(str, enum.Enum):
    """Three-state machine; VERIFIED is terminal."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    VERIFIED = "verified"


class Channel(str, enum.Enum):
    SOURCE = "source"
    DOCUMENTS = "documents"
    IDENTITY = "identity"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DocumentPayload:
    """An uploaded credential document, already fetched from blob storage."""

    id: str
    doc_type: str
    content: bytes
    name: str = ""
    media_type: str = ""


@dataclass(frozen=True)
class IdentityAssertion:
    """Outcome of an external identity-proofing step (email, phone, ...)."""

    method: str
    verified: bool
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationRequest:
    """Inputs for one verify() call. Each field is an independent channel."""

    source_handle: str | None = None
    documents: list[DocumentPayload] = field(default_factory=list)
    identity_assertion: IdentityAssertion | None = None

    def __post_init__(self) -> None:
        if self.source_handle is not None:
            self.source_handle = self.source_handle.strip() or None

    @property
    def is_empty(self) -> bool:
        return not self.source_handle and not self.documents and self.identity_assertion is None


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass
class DocumentResult:
    """Per-document outcome from the document verifier."""

    id: str
    passed: bool
    reason: str | None = None
    name: str = ""
    doc_type: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "passed": self.passed,
            "reason": self.reason,
            "name": self.name,
            "doc_type": self.doc_type,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentResult":
        return cls(
            id=str(data["id"]),
            passed=bool(data.get("passed", False)),
            reason=data.get("reason"),
            name=data.get("name", ""),
            doc_type=data.get("doc_type", ""),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class VerificationRecord:
    """Persisted per-user verification state, unique on ``user_id``."""

    user_id: str
    source_handle: str | None = None
    source_verified: bool | None = None
    source_evidence: dict[str, Any] = field(default_factory=dict)
    documents_verified: bool = False
    document_results: list[DocumentResult] = field(default_factory=list)
    identity_verified: bool = False
    identity_methods: dict[str, Any] = field(default_factory=dict)
    status: VerificationStatus = VerificationStatus.PENDING
    channel_errors: dict[str, dict[str, Any]] = field(default_factory=dict)
    version: int = 0
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def source_score(self) -> float:
        """Sub-score the source verifier stored with its evidence, clamped to 0-100."""
        raw = self.source_evidence.get("score", 0)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return 0.0
        return float(min(max(raw, 0), 100))

    @property
    def is_terminal(self) -> bool:
        return self.status is VerificationStatus.VERIFIED

    def channel_verified(self, channel: Channel) -> bool:
        if channel is Channel.SOURCE:
            return self.source_verified is True
        if channel is Channel.DOCUMENTS:
            return self.documents_verified
        return self.identity_verified

    def copy(self) -> "VerificationRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "source_handle": self.source_handle,
            "source_verified": self.source_verified,
            "source_evidence": self.source_evidence,
            "documents_verified": self.documents_verified,
            "document_results": [r.to_dict() for r in self.document_results],
            "identity_verified": self.identity_verified,
            "identity_methods": self.identity_methods,
            "status": self.status.value,
            "channel_errors": self.channel_errors,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerificationRecord":
        return cls(
            user_id=data["user_id"],
            source_handle=data.get("source_handle"),
            source_verified=data.get("source_verified"),
            source_evidence=dict(data.get("source_evidence") or {}),
            documents_verified=bool(data.get("documents_verified", False)),
            document_results=[DocumentResult.from_dict(r) for r in data.get("document_results") or []],
            identity_verified=bool(data.get("identity_verified", False)),
            identity_methods=dict(data.get("identity_methods") or {}),
            status=VerificationStatus(data.get("status", VerificationStatus.PENDING.value)),
            channel_errors=dict(data.get("channel_errors") or {}),
            version=int(data.get("version", 0)),
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
        )


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Profile:
    """External profile, read-only from the core's perspective."""

    user_id: str
    type: str
    has_verification_record: bool = False

    @property
    def is_mentor(self) -> bool:
        return self.type == MENTOR_PROFILE_TYPE


@dataclass(frozen=True)
class StatusView:
    """Result of the cheap status query."""

    source_verified: bool
    documents_verified: bool
    identity_verified: bool
    status: VerificationStatus
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_verified": self.source_verified,
            "documents_verified": self.documents_verified,
            "identity_verified": self.identity_verified,
            "status": self.status.value,
            "score": self.score,
        }
