"""External verifier contracts and reference implementations.

    SourceVerifier / DocumentVerifier - contracts consumed by the orchestrator
    VerifierUnavailable               - transient upstream failure signal
    GitHubVerifier                    - source-hosting verifier over the GitHub API
    RuleBasedDocumentVerifier         - credential document checks
    ChallengeRegistry                 - GitHub ownership challenge codes
"""

from mentortrust.verifiers.base import (
    DocumentCheck,
    DocumentVerifier,
    SourceCheck,
    SourceVerifier,
    VerifierUnavailable,
)
from mentortrust.verifiers.challenge import ChallengeRegistry
from mentortrust.verifiers.documents import RuleBasedDocumentVerifier
from mentortrust.verifiers.github import GitHubVerifier, MinimumRequirements

__all__ = [
    "DocumentCheck",
    "DocumentVerifier",
    "SourceCheck",
    "SourceVerifier",
    "VerifierUnavailable",
    "ChallengeRegistry",
    "RuleBasedDocumentVerifier",
    "GitHubVerifier",
    "MinimumRequirements",
]
