import pytest

from sperm_analysis.models.schemas import ImageQuality, WhoClassification
from sperm_analysis.services.classification_service import classify_who, image_quality_for


@pytest.mark.parametrize(
    "concentration, progressive, morphology, count, expected",
    [
        (60.0, 45.0, 12.0, 120, WhoClassification.NORMOZOOSPERMIA),
        (10.0, 45.0, 12.0, 120, WhoClassification.OLIGOZOOSPERMIA),
        (60.0, 20.0, 12.0, 120, WhoClassification.ASTHENOZOOSPERMIA),
        (60.0, 45.0, 2.0, 120, WhoClassification.TERATOZOOSPERMIA),
        (10.0, 20.0, 2.0, 120, WhoClassification.OLIGOASTHENOTERATOZOOSPERMIA),
    ],
)
def test_decision_table(concentration, progressive, morphology, count, expected):
    assert classify_who(concentration, progressive, morphology, count) == expected


def test_limits_are_inclusive_for_normal():
    assert classify_who(15, 40, 10, 100) == WhoClassification.NORMOZOOSPERMIA
    assert classify_who(40, 32, 10, 100) == WhoClassification.NORMOZOOSPERMIA
    assert classify_who(40, 40, 4, 100) == WhoClassification.NORMOZOOSPERMIA


def test_just_below_limits():
    assert classify_who(14.99, 40, 10, 100) == WhoClassification.OLIGOZOOSPERMIA
    assert classify_who(40, 31.99, 10, 100) == WhoClassification.ASTHENOZOOSPERMIA
    assert classify_who(40, 40, 3.99, 100) == WhoClassification.TERATOZOOSPERMIA


def test_zero_count_is_azoospermia_even_with_normal_values():
    assert classify_who(80, 55, 20, 0) == WhoClassification.AZOOSPERMIA
    assert classify_who(0, 0, 0, 0) == WhoClassification.AZOOSPERMIA


def test_triple_defect_wins_over_single_factor():
    assert classify_who(10, 20, 2, 5) == WhoClassification.OLIGOASTHENOTERATOZOOSPERMIA


def test_two_defects_fall_back_to_first_single_factor():
    # low concentration + low motility, normal morphology
    assert classify_who(10, 20, 10, 5) == WhoClassification.OLIGOZOOSPERMIA
    # low motility + low morphology, normal concentration
    assert classify_who(30, 20, 2, 5) == WhoClassification.ASTHENOZOOSPERMIA


def test_classification_is_deterministic():
    args = (14.5, 31.5, 3.5, 42)
    assert {classify_who(*args) for _ in range(20)} == {classify_who(*args)}


@pytest.mark.parametrize(
    "avg, expected",
    [
        (0.81, ImageQuality.EXCELLENT),
        (0.80, ImageQuality.GOOD),
        (0.61, ImageQuality.GOOD),
        (0.60, ImageQuality.FAIR),
        (0.41, ImageQuality.FAIR),
        (0.40, ImageQuality.POOR),
        (0.0, ImageQuality.POOR),
    ],
)
def test_image_quality_thresholds(avg, expected):
    assert image_quality_for(avg) == expected
