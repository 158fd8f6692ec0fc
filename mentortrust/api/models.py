"""Pydantic request/response models for the mentortrust API."""

import base64
import binascii

from pydantic import BaseModel, Field, field_validator, model_validator

from mentortrust.models import DocumentPayload, IdentityAssertion, VerificationRecord, VerificationRequest
from mentortrust.verifiers.documents import normalize_document_type


# ---------------------------------------------------------------------------
# Verification requests
# ---------------------------------------------------------------------------

class DocumentIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    name: str = Field(default="", max_length=255)
    media_type: str = Field(default="", max_length=100)
    content_base64: str | None = None
    text: str | None = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        return normalize_document_type(v)

    @model_validator(mode="after")
    def require_content(self) -> "DocumentIn":
        if (self.content_base64 is None) == (self.text is None):
            raise ValueError("Provide exactly one of content_base64 or text.")
        return self

    def content_bytes(self) -> bytes:
        if self.text is not None:
            return self.text.encode("utf-8")
        try:
            return base64.b64decode(self.content_base64 or "", validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Document '{self.id}' content is not valid base64") from exc

    def to_payload(self) -> DocumentPayload:
        return DocumentPayload(
            id=self.id,
            doc_type=self.type,
            content=self.content_bytes(),
            name=self.name,
            media_type=self.media_type,
        )


class IdentityAssertionIn(BaseModel):
    method: str = Field(..., min_length=1, max_length=50)
    verified: bool
    detail: dict = {}


class VerifyRequest(BaseModel):
    source_handle: str | None = Field(default=None, max_length=100)
    documents: list[DocumentIn] | None = None
    identity_assertion: IdentityAssertionIn | None = None

    def to_domain(self) -> VerificationRequest:
        assertion = None
        if self.identity_assertion is not None:
            assertion = IdentityAssertion(
                method=self.identity_assertion.method,
                verified=self.identity_assertion.verified,
                detail=dict(self.identity_assertion.detail),
            )
        return VerificationRequest(
            source_handle=self.source_handle,
            documents=[d.to_payload() for d in self.documents or []],
            identity_assertion=assertion,
        )


class ChallengeRequest(BaseModel):
    handle: str = Field(..., min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class DocumentResultOut(BaseModel):
    id: str
    passed: bool
    reason: str | None = None
    name: str = ""
    doc_type: str = ""
    metadata: dict = {}


class RecordResponse(BaseModel):
    user_id: str
    source_handle: str | None = None
    source_verified: bool | None = None
    source_evidence: dict = {}
    documents_verified: bool = False
    document_results: list[DocumentResultOut] = []
    identity_verified: bool = False
    identity_methods: dict = {}
    status: str
    score: float = 0.0
    channel_errors: dict = {}
    version: int = 0
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: VerificationRecord, score: float) -> "RecordResponse":
        return cls(**record.to_dict(), score=score)


class StatusResponse(BaseModel):
    source_verified: bool
    documents_verified: bool
    identity_verified: bool
    status: str
    score: float


class EligibilityResponse(BaseModel):
    eligible: bool
    reason: str | None = None


class ChallengeResponse(BaseModel):
    success: bool
    requirements_check: bool
    verification_code: str | None = None
    expires_at: float | None = None
    instructions: str | None = None
    error: str | None = None
    failing: list[dict] = []
    requirements: dict = {}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    store_connected: bool = False
    github_token_configured: bool = False
    weights_version: str = ""
