"""Verification endpoints - start/advance verification, status, eligibility."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from mentortrust.api.auth import rate_limit_default, rate_limit_verify, require_caller, validate_user_id
from mentortrust.api.models import (
    ChallengeRequest,
    ChallengeResponse,
    EligibilityResponse,
    RecordResponse,
    StatusResponse,
    VerifyRequest,
)
from mentortrust.config import get_config
from mentortrust.errors import ErrorKind, VerificationError
from mentortrust.scoring import score
from mentortrust.service import MentorVerificationService, build_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verification", tags=["verification"])

_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.NOT_ELIGIBLE: 403,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.ALREADY_VERIFIED: 409,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.CONFLICT: 409,
}

# Lazy singleton
_service: Optional[MentorVerificationService] = None


def _get_service() -> MentorVerificationService:
    """Get or create the verification service singleton."""
    global _service
    if _service is None:
        cfg = get_config()
        _service = build_service(cfg)
        logger.info("Verification service ready (store=%s)", cfg.store_backend)
    return _service


async def close_service() -> None:
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None


def _http_error(err: VerificationError) -> HTTPException:
    return HTTPException(status_code=_STATUS_CODES.get(err.kind, 400), detail=err.to_dict())


def _invalid_input(reason: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": ErrorKind.INVALID_INPUT.value, "reason": reason})


def _resolve_target(request: Request, user_id: Optional[str]) -> str:
    if user_id:
        return validate_user_id(user_id)
    return require_caller(request)


@router.post("", response_model=RecordResponse, dependencies=[Depends(rate_limit_verify)])
async def verify(body: VerifyRequest, caller: str = Depends(require_caller)) -> RecordResponse:
    """Start or advance verification for the calling user."""
    cfg = get_config()
    documents = body.documents or []
    if len(documents) > cfg.max_documents:
        raise _invalid_input(f"At most {cfg.max_documents} documents per request")

    try:
        request = body.to_domain()
    except ValueError as exc:
        raise _invalid_input(str(exc)) from exc

    for doc in request.documents:
        if len(doc.content) > cfg.max_document_bytes:
            raise _invalid_input(f"Document '{doc.id}' exceeds {cfg.max_document_bytes} bytes")

    service = _get_service()
    try:
        record = await service.verify(caller, request)
    except VerificationError as err:
        logger.info("Verification for user %s failed: %s", caller, err.kind.value)
        raise _http_error(err) from err

    return RecordResponse.from_record(record, score(record, service.weights))


@router.get("/status", response_model=StatusResponse, dependencies=[Depends(rate_limit_default)])
def status(request: Request, user_id: Optional[str] = None) -> StatusResponse:
    """Return verification flags, status and score. Defaults to the caller."""
    target = _resolve_target(request, user_id)
    view = _get_service().status(target)
    return StatusResponse(**view.to_dict())


@router.get("/eligibility", response_model=EligibilityResponse, dependencies=[Depends(rate_limit_default)])
def eligibility(request: Request, user_id: Optional[str] = None) -> EligibilityResponse:
    """Check whether a user may enter the verification flow."""
    target = _resolve_target(request, user_id)
    decision = _get_service().eligibility(target)
    return EligibilityResponse(eligible=decision.eligible, reason=decision.reason)


@router.post("/github/challenge", response_model=ChallengeResponse, dependencies=[Depends(rate_limit_verify)])
async def github_challenge(body: ChallengeRequest, caller: str = Depends(require_caller)) -> ChallengeResponse:
    """Pre-check a GitHub handle and issue an ownership verification code."""
    try:
        result = await _get_service().issue_challenge(caller, body.handle)
    except VerificationError as err:
        raise _http_error(err) from err
    return ChallengeResponse(**result)
