"""Trust scoring and status resolution.

The trust score is a weighted sum over the three verification channels:

    score = Wg * source_sub_score
          + Wd * (100 if documents_verified else 0)
          + Wi * (100 if identity_verified else 0)

A channel that was never exercised contributes 0, so a record cannot reach a
high score by skipping a channel. The source sub-score only counts when the
source verifier marked the handle as verified.

Status resolution layers a hard gate over the score: ``verified`` requires the
two highest-weighted channels of the active weight table to be verified AND
the score to reach ``verified_threshold``. A high source sub-score alone can
never produce ``verified``.

Both functions are pure and read only the record's stored fields, so the
status query path can call them without touching any verifier.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from mentortrust.models import Channel, StatusView, VerificationRecord, VerificationStatus

# Fixed channel order used to break ties between equal weights
_CHANNEL_ORDER = (Channel.SOURCE, Channel.DOCUMENTS, Channel.IDENTITY)


@dataclass(frozen=True)
class WeightTable:
    """Versioned per-channel weights. Must be non-negative and sum to 1."""

    version: str
    source: float
    documents: float
    identity: float

    def __post_init__(self) -> None:
        weights = (self.source, self.documents, self.identity)
        if any(w < 0 for w in weights):
            raise ValueError(f"Weight table {self.version}: weights must be non-negative, got {weights}")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError(f"Weight table {self.version}: weights must sum to 1, got {sum(weights)}")

    def weight(self, channel: Channel) -> float:
        return {
            Channel.SOURCE: self.source,
            Channel.DOCUMENTS: self.documents,
            Channel.IDENTITY: self.identity,
        }[channel]

    def gate_channels(self) -> tuple[Channel, Channel]:
        """The two highest-weighted channels, which must both verify."""
        ranked = sorted(_CHANNEL_ORDER, key=lambda c: (-self.weight(c), _CHANNEL_ORDER.index(c)))
        return ranked[0], ranked[1]

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "source": self.source,
            "documents": self.documents,
            "identity": self.identity,
        }


@dataclass(frozen=True)
class StatusThresholds:
    verified: float = 70.0


DEFAULT_WEIGHTS = WeightTable(version="2026-10", source=0.5, documents=0.3, identity=0.2)
DEFAULT_THRESHOLDS = StatusThresholds()


def score(record: VerificationRecord, weights: WeightTable = DEFAULT_WEIGHTS) -> float:
    """Combine per-channel signals into a trust score in [0, 100]."""
    source_signal = record.source_score if record.source_verified is True else 0.0
    document_signal = 100.0 if record.documents_verified else 0.0
    identity_signal = 100.0 if record.identity_verified else 0.0

    total = (
        weights.source * source_signal
        + weights.documents * document_signal
        + weights.identity * identity_signal
    )
    return round(min(max(total, 0.0), 100.0), 2)


def resolve_status(
    trust_score: float,
    record: VerificationRecord,
    weights: WeightTable = DEFAULT_WEIGHTS,
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
) -> VerificationStatus:
    """Map a score plus the hard gate to pending / in_review / verified."""
    gate_met = all(record.channel_verified(c) for c in weights.gate_channels())
    if gate_met and trust_score >= thresholds.verified:
        return VerificationStatus.VERIFIED
    if any(record.channel_verified(c) for c in _CHANNEL_ORDER):
        return VerificationStatus.IN_REVIEW
    return VerificationStatus.PENDING


def status_view(
    record: VerificationRecord | None,
    weights: WeightTable = DEFAULT_WEIGHTS,
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
) -> StatusView:
    """Recompute score and status from a stored record.

    A record already marked verified stays verified: the terminal state is
    never revoked by a later change to the weight table.
    """
    if record is None:
        return StatusView(
            source_verified=False,
            documents_verified=False,
            identity_verified=False,
            status=VerificationStatus.PENDING,
            score=0.0,
        )

    trust_score = score(record, weights)
    if record.is_terminal:
        status = VerificationStatus.VERIFIED
    else:
        status = resolve_status(trust_score, record, weights, thresholds)

    return StatusView(
        source_verified=record.source_verified is True,
        documents_verified=record.documents_verified,
        identity_verified=record.identity_verified,
        status=status,
        score=trust_score,
    )
