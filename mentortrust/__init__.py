"""
mentortrust - Mentor Verification & Trust Scoring Engine
GitHub, credential document and identity checks merged into one trust score
"""

__version__ = "0.1.0"

from mentortrust.config import MentorTrustSettings, get_config
from mentortrust.errors import ErrorKind, VerificationError
from mentortrust.models import VerificationRecord, VerificationRequest, VerificationStatus
from mentortrust.orchestrator import VerificationOrchestrator
from mentortrust.scoring import StatusThresholds, WeightTable
from mentortrust.service import MentorVerificationService, build_service

__all__ = [
    "MentorTrustSettings",
    "get_config",
    "ErrorKind",
    "VerificationError",
    "VerificationRecord",
    "VerificationRequest",
    "VerificationStatus",
    "VerificationOrchestrator",
    "StatusThresholds",
    "WeightTable",
    "MentorVerificationService",
    "build_service",
]
