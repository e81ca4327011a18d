import pytest

from project_controls.project_models import RiskLevel
from project_controls.risk_matrix import InvalidRiskInputError, RiskImpact, RiskLikelihood, compute_risk, level_for_score


def test_extremes_of_matrix():
    worst = compute_risk(5, 5)
    best = compute_risk(1, 1)

    assert (worst.score, worst.level) == (25, RiskLevel.EXTREME)
    assert (best.score, best.level) == (1, RiskLevel.LOW)


@pytest.mark.parametrize(
    "likelihood, impact, level",
    [
        (2, 2, RiskLevel.LOW),
        (3, 3, RiskLevel.MEDIUM),
        (4, 4, RiskLevel.HIGH),
        (5, 2, RiskLevel.HIGH),
        (4, 5, RiskLevel.EXTREME),
    ],
)
def test_level_boundaries(likelihood, impact, level):
    assert compute_risk(likelihood, impact).level == level


def test_score_17_is_extreme():
    # 17 is prime so no 1-5 pair produces it; the threshold is checked directly.
    assert level_for_score(16) == RiskLevel.HIGH
    assert level_for_score(17) == RiskLevel.EXTREME


def test_enum_inputs_are_accepted():
    assessment = compute_risk(RiskLikelihood.LIKELY, RiskImpact.CATASTROPHIC)

    assert assessment.score == 20
    assert assessment.level == RiskLevel.EXTREME


@pytest.mark.parametrize("likelihood, impact", [(0, 3), (6, 1), (3, -1), (2.5, 2), (True, 3)])
def test_out_of_range_inputs_are_rejected(likelihood, impact):
    with pytest.raises(InvalidRiskInputError):
        compute_risk(likelihood, impact)
