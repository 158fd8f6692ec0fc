"""Credential document verification.

Extracts text from each uploaded document (PDF via pypdf, plain text
otherwise) and checks it against per-type rules: at least one required
keyword, an issue year, an institution and a credential designation must all
appear. Image scans are rejected since no OCR engine is configured.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from mentortrust.models import DocumentPayload, DocumentResult
from mentortrust.verifiers.base import DocumentCheck

logger = logging.getLogger(__name__)

_IMAGE_SIGNATURES = (b"\x89PNG", b"\xff\xd8\xff", b"GIF8", b"II*\x00", b"MM\x00*")


@dataclass(frozen=True)
class DocumentRules:
    required_keywords: tuple[str, ...]
    date_pattern: re.Pattern
    institution_pattern: re.Pattern
    credential_pattern: re.Pattern


_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")

VALIDATION_RULES: dict[str, DocumentRules] = {
    "degree": DocumentRules(
        required_keywords=("degree", "university", "graduate", "bachelor", "master", "phd"),
        date_pattern=_YEAR,
        institution_pattern=re.compile(r"\b(?:University|Institute|College)\b", re.IGNORECASE),
        credential_pattern=re.compile(r"\b(?:Bachelor|Master|Doctor|Ph\.D\.|MBA)", re.IGNORECASE),
    ),
    "certificate": DocumentRules(
        required_keywords=("certificate", "certification", "certified", "complete"),
        date_pattern=_YEAR,
        institution_pattern=re.compile(r"\b(?:Institution|Authority|Board|Organization)\b", re.IGNORECASE),
        credential_pattern=re.compile(r"\b(?:Professional|Certified|Licensed|Accredited)\b", re.IGNORECASE),
    ),
    "professionallicense": DocumentRules(
        required_keywords=("license", "licensed", "professional", "authorized"),
        date_pattern=_YEAR,
        institution_pattern=re.compile(r"\b(?:Board|Authority|Council|Association)\b", re.IGNORECASE),
        credential_pattern=re.compile(r"\b(?:License|Registration|Membership|Number)\b", re.IGNORECASE),
    ),
}


def normalize_document_type(value: str) -> str:
    """Map user spellings (``Professional License``, ``professional_license``)
    to a ``VALIDATION_RULES`` key. Raises ValueError for unknown types."""
    key = value.strip().lower().replace(" ", "").replace("_", "").replace("-", "")
    if key not in VALIDATION_RULES:
        raise ValueError(f"Unknown document type '{value}'. Expected one of: {', '.join(sorted(VALIDATION_RULES))}.")
    return key


class UnsupportedDocument(ValueError):
    pass


def extract_text(payload: DocumentPayload) -> str:
    """Return the text content of a document payload.

    Raises UnsupportedDocument for images, unreadable PDFs and other
    binary content.
    """
    content = payload.content
    if payload.media_type == "application/pdf" or content.startswith(b"%PDF"):
        try:
            reader = PdfReader(io.BytesIO(content))
            return "\n".join(page.extract_text() or "" for page in reader.pages)
        except (PdfReadError, ValueError) as exc:
            raise UnsupportedDocument(f"Unreadable PDF: {exc}") from exc

    if payload.media_type.startswith("image/") or content.startswith(_IMAGE_SIGNATURES):
        raise UnsupportedDocument("Image documents are not supported (no OCR configured)")

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UnsupportedDocument("Unsupported binary document") from exc


def check_text(text: str, doc_type: str) -> list[str]:
    """Return the list of failed checks for ``text`` (empty when it passes)."""
    rules = VALIDATION_RULES.get(doc_type.lower())
    if rules is None:
        return ["Invalid document type"]

    lowered = text.lower()
    reasons: list[str] = []
    if not any(keyword in lowered for keyword in rules.required_keywords):
        reasons.append("Required keywords not found")
    if not rules.date_pattern.search(text):
        reasons.append("Valid date not found")
    if not rules.institution_pattern.search(text):
        reasons.append("Institution name not found")
    if not rules.credential_pattern.search(text):
        reasons.append("Credential information not found")
    return reasons


def extract_metadata(text: str, doc_type: str) -> dict[str, str]:
    rules = VALIDATION_RULES.get(doc_type.lower())
    if rules is None:
        return {}

    metadata: dict[str, str] = {}
    for key, pattern in (
        ("issue_date", rules.date_pattern),
        ("institution", rules.institution_pattern),
        ("credential", rules.credential_pattern),
    ):
        match = pattern.search(text)
        if match:
            metadata[key] = match.group(0)
    return metadata


class RuleBasedDocumentVerifier:
    """Document verifier applying ``VALIDATION_RULES`` to extracted text."""

    def verify_document(self, payload: DocumentPayload) -> DocumentResult:
        try:
            text = extract_text(payload)
        except UnsupportedDocument as exc:
            return DocumentResult(
                id=payload.id,
                passed=False,
                reason=str(exc),
                name=payload.name,
                doc_type=payload.doc_type,
            )

        reasons = check_text(text, payload.doc_type)
        return DocumentResult(
            id=payload.id,
            passed=not reasons,
            reason="; ".join(reasons) if reasons else None,
            name=payload.name,
            doc_type=payload.doc_type,
            metadata={"document_type": payload.doc_type, **extract_metadata(text, payload.doc_type)},
        )

    async def validate_documents(self, documents: list[DocumentPayload]) -> DocumentCheck:
        """Validate every document; the set verifies only if all of them pass."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.verify_document, doc) for doc in documents)
        )
        results = list(results)
        verified = bool(results) and all(r.passed for r in results)
        logger.info(
            "Document verification: %d/%d passed", sum(r.passed for r in results), len(results)
        )
        return DocumentCheck(verified=verified, results=results)
