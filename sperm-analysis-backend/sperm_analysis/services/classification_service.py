# sperm_analysis/services/classification_service.py
from sperm_analysis.models.schemas import ImageQuality, WhoClassification

# WHO lower reference limits; a value exactly at the limit counts as normal
WHO_MIN_CONCENTRATION = 15.0  # million / ml
WHO_MIN_PROGRESSIVE_MOTILITY = 32.0  # %
WHO_MIN_NORMAL_MORPHOLOGY = 4.0  # %

# average detector confidence (0..1) -> quality, checked top-down with ">"
IMAGE_QUALITY_THRESHOLDS = (
    (0.8, ImageQuality.EXCELLENT),
    (0.6, ImageQuality.GOOD),
    (0.4, ImageQuality.FAIR),
)


def classify_who(concentration, progressive_motility, morphology, sperm_count) -> WhoClassification:
    """
    Map core measurements to one WHO-style category.

    Order matters:
      1. no cells at all -> azoospermia, whatever the other fields say
      2. all three defects -> oligoasthenoteratozoospermia
      3. single-factor checks: concentration, motility, morphology
    """
    if sperm_count == 0:
        return WhoClassification.AZOOSPERMIA

    low_concentration = concentration < WHO_MIN_CONCENTRATION
    low_motility = progressive_motility < WHO_MIN_PROGRESSIVE_MOTILITY
    low_morphology = morphology < WHO_MIN_NORMAL_MORPHOLOGY

    if low_concentration and low_motility and low_morphology:
        return WhoClassification.OLIGOASTHENOTERATOZOOSPERMIA
    if low_concentration:
        return WhoClassification.OLIGOZOOSPERMIA
    if low_motility:
        return WhoClassification.ASTHENOZOOSPERMIA
    if low_morphology:
        return WhoClassification.TERATOZOOSPERMIA
    return WhoClassification.NORMOZOOSPERMIA


def image_quality_for(avg_confidence: float) -> ImageQuality:
    for threshold, quality in IMAGE_QUALITY_THRESHOLDS:
        if avg_confidence > threshold:
            return quality
    return ImageQuality.POOR
