# sperm_analysis/models/schemas.py
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MOTILITY_SUM_TOLERANCE = 0.01


class ImageQuality(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class WhoClassification(str, Enum):
    NORMOZOOSPERMIA = "normozoospermia"
    OLIGOZOOSPERMIA = "oligozoospermia"
    ASTHENOZOOSPERMIA = "asthenozoospermia"
    TERATOZOOSPERMIA = "teratozoospermia"
    OLIGOASTHENOTERATOZOOSPERMIA = "oligoasthenoteratozoospermia"
    AZOOSPERMIA = "azoospermia"


class DetectedObject(BaseModel):
    """One bounding box returned by the external detector."""

    model_config = ConfigDict(allow_inf_nan=False)

    x: float = Field(..., ge=0.0)
    y: float = Field(..., ge=0.0)
    width: float = Field(..., ge=0.0)
    height: float = Field(..., ge=0.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    label: str = "sperm"


Percent = Annotated[float, Field(ge=0.0, le=100.0)]


class AnalysisResult(BaseModel):
    """
    One analysis outcome, either detector-backed or synthetic.

    synthetic=True means every number is a bounded random placeholder and
    must not be read as a measurement.
    """

    model_config = ConfigDict(allow_inf_nan=False, use_enum_values=False)

    sperm_count: int = Field(..., ge=0)

    motility_percentage: Percent
    progressive_motility_percentage: Percent
    non_progressive_motility_percentage: Percent
    immotile_percentage: Percent

    morphology_percentage: Percent
    head_defects_percentage: Percent
    midpiece_defects_percentage: Percent
    tail_defects_percentage: Percent

    concentration: float = Field(..., ge=0.0)  # million / ml

    vitality_percentage: Percent
    volume_ml: float = Field(..., ge=0.0)
    ph_level: float = Field(..., ge=0.0, le=14.0)
    leucocytes_count: int = Field(..., ge=0)  # per ml

    confidence_score: Percent
    image_quality: ImageQuality
    who_classification: WhoClassification

    analysis_duration: float = Field(..., ge=0.0)  # seconds
    detected_objects: List[DetectedObject] = Field(default_factory=list)

    synthetic: bool = False
    analysis_notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self):
        from sperm_analysis.services.classification_service import classify_who

        trio = (
            self.progressive_motility_percentage
            + self.non_progressive_motility_percentage
            + self.immotile_percentage
        )
        if abs(trio - 100.0) > MOTILITY_SUM_TOLERANCE:
            raise ValueError(f"motility breakdown sums to {trio:.4f}, expected 100")

        expected = classify_who(
            self.concentration,
            self.progressive_motility_percentage,
            self.morphology_percentage,
            self.sperm_count,
        )
        if self.who_classification != expected:
            raise ValueError(
                f"who_classification {self.who_classification.value} does not match "
                f"measurements (expected {expected.value})"
            )
        return self

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
