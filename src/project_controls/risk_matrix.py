from __future__ import annotations

from enum import IntEnum

from .project_models import RiskAssessment, RiskLevel

SCALE_MIN = 1
SCALE_MAX = 5

# Upper score bound (inclusive) for each level; anything above the last is EXTREME.
LEVEL_THRESHOLDS: tuple[tuple[int, RiskLevel], ...] = (
    (4, RiskLevel.LOW),
    (9, RiskLevel.MEDIUM),
    (16, RiskLevel.HIGH),
)


class InvalidRiskInputError(ValueError):
    """Raised when likelihood or impact is not an integer on the 1-5 scale."""


class RiskLikelihood(IntEnum):
    RARE = 1
    UNLIKELY = 2
    POSSIBLE = 3
    LIKELY = 4
    ALMOST_CERTAIN = 5


class RiskImpact(IntEnum):
    NEGLIGIBLE = 1
    MINOR = 2
    MODERATE = 3
    MAJOR = 4
    CATASTROPHIC = 5


def compute_risk(likelihood: int, impact: int) -> RiskAssessment:
    """Score a risk on the 5x5 severity matrix; out-of-range inputs are rejected."""

    likelihood = _require_scale("likelihood", likelihood)
    impact = _require_scale("impact", impact)
    score = likelihood * impact
    return RiskAssessment(likelihood=likelihood, impact=impact, score=score, level=level_for_score(score))


def level_for_score(score: int) -> RiskLevel:
    for upper, level in LEVEL_THRESHOLDS:
        if score <= upper:
            return level
    return RiskLevel.EXTREME


def _require_scale(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRiskInputError(f"{name} must be an integer between {SCALE_MIN} and {SCALE_MAX}, got {value!r}")
    if not SCALE_MIN <= value <= SCALE_MAX:
        raise InvalidRiskInputError(f"{name} must be between {SCALE_MIN} and {SCALE_MAX}, got {value}")
    return int(value)
