"""
Utilities Package.

Provides challenge detection and the human-like pointer interaction used
to remediate it.
"""

from .challenge_handler import (
    classify_page,
    has_challenge_title,
    has_challenge_markup,
    ChallengeResolver,
    ChallengeCheckResult,
    RemediationResult,
)

from .human_simulator import (
    HumanSimulator,
    HumanSimulatorConfig,
    create_human_simulator,
)

__all__ = [
    # Challenge handling
    "classify_page",
    "has_challenge_title",
    "has_challenge_markup",
    "ChallengeResolver",
    "ChallengeCheckResult",
    "RemediationResult",
    # Human simulation
    "HumanSimulator",
    "HumanSimulatorConfig",
    "create_human_simulator",
]
