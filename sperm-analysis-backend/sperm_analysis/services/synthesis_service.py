# sperm_analysis/services/synthesis_service.py
"""
Result synthesizer.

Two branches:

- detector-backed: the only "measured" quantity is the number of accepted
  bounding boxes and their mean confidence. Motility, morphology and
  concentration are heuristic proxies derived from those two numbers; they
  are NOT motility tracking or a density computation.
- synthetic: no detector output. Every field is an independent bounded random
  draw shaped like WHO reference ranges, so the UI stays populated. The
  result carries synthetic=True plus a non-diagnostic note.
"""
import time

import numpy as np

from sperm_analysis.core.config import Config
from sperm_analysis.models.schemas import AnalysisResult, DetectedObject
from sperm_analysis.services.classification_service import classify_who, image_quality_for

SYNTHETIC_NOTE = "Synthetic placeholder data (no detector output). Not a diagnostic measurement."
HEURISTIC_NOTE = (
    "Count from detector boxes; motility, morphology and concentration are "
    "heuristic estimates, not measurements."
)

# (low, high) for uniform draws
SYNTHETIC_RANGES = {
    "sperm_count": (50, 250),
    "progressive_motility_percentage": (25.0, 60.0),
    "non_progressive_motility_percentage": (5.0, 20.0),
    "morphology_percentage": (10.0, 30.0),
    "concentration": (8.0, 120.0),
    "confidence_score": (70.0, 95.0),
}

AUXILIARY_RANGES = {
    "head_defects_percentage": (20.0, 50.0),
    "midpiece_defects_percentage": (5.0, 20.0),
    "tail_defects_percentage": (5.0, 20.0),
    "vitality_percentage": (50.0, 90.0),
    "volume_ml": (1.5, 5.5),
    "ph_level": (7.2, 7.8),
    "leucocytes_count": (0, 800_000),
}

# detector-backed heuristics
MOTILITY_CLAMP = (20.0, 95.0)
MORPHOLOGY_CLAMP = (15.0, 90.0)
PROGRESSIVE_SHARE = (0.55, 0.85)  # share of motile cells that are progressive
CONCENTRATION_MULTIPLIER = (0.5, 1.0)


def _pct(v) -> float:
    return round(float(np.clip(v, 0.0, 100.0)), 2)


def _uniform(rng, low, high) -> float:
    return float(rng.uniform(low, high))


def _motility_breakdown(progressive, motile):
    """
    Round the motile total first, then split it; non-progressive and immotile
    are remainders so the three always add up to 100.
    """
    motile = _pct(motile)
    progressive = _pct(min(progressive, motile))
    non_progressive = round(max(0.0, motile - progressive), 2)
    immotile = round(100.0 - motile, 2)
    return {
        "motility_percentage": motile,
        "progressive_motility_percentage": progressive,
        "non_progressive_motility_percentage": non_progressive,
        "immotile_percentage": immotile,
    }


def _auxiliary_fields(rng) -> dict:
    r = AUXILIARY_RANGES
    return {
        "head_defects_percentage": _pct(_uniform(rng, *r["head_defects_percentage"])),
        "midpiece_defects_percentage": _pct(_uniform(rng, *r["midpiece_defects_percentage"])),
        "tail_defects_percentage": _pct(_uniform(rng, *r["tail_defects_percentage"])),
        "vitality_percentage": _pct(_uniform(rng, *r["vitality_percentage"])),
        "volume_ml": round(_uniform(rng, *r["volume_ml"]), 2),
        "ph_level": round(_uniform(rng, *r["ph_level"]), 2),
        "leucocytes_count": int(rng.integers(r["leucocytes_count"][0], r["leucocytes_count"][1] + 1)),
    }


def _detector_fields(detections, rng) -> dict:
    accepted = [
        d for d in detections
        if d.confidence > Config.DETECTION_ACCEPT_THRESHOLD
    ]
    sperm_count = len(accepted)
    avg_conf = float(np.mean([d.confidence for d in accepted])) if accepted else 0.0

    motility = float(np.clip(sperm_count * 2 + _uniform(rng, 0.0, 20.0), *MOTILITY_CLAMP))
    progressive = motility * _uniform(rng, *PROGRESSIVE_SHARE)
    morphology = float(np.clip(avg_conf * 80 + _uniform(rng, 0.0, 15.0), *MORPHOLOGY_CLAMP))
    concentration = sperm_count * _uniform(rng, *CONCENTRATION_MULTIPLIER)

    fields = {
        "sperm_count": sperm_count,
        "morphology_percentage": _pct(morphology),
        "concentration": round(concentration, 2),
        "confidence_score": _pct(avg_conf * 100),
        "detected_objects": accepted,
        "synthetic": False,
        "analysis_notes": HEURISTIC_NOTE,
    }
    # quality from the stored (rounded) score so the two never disagree
    fields["image_quality"] = image_quality_for(fields["confidence_score"] / 100.0)
    fields.update(_motility_breakdown(progressive, motility))
    return fields


def _synthetic_fields(rng) -> dict:
    r = SYNTHETIC_RANGES
    confidence = _uniform(rng, *r["confidence_score"])

    fields = {
        "sperm_count": int(rng.integers(r["sperm_count"][0], r["sperm_count"][1] + 1)),
        "morphology_percentage": _pct(_uniform(rng, *r["morphology_percentage"])),
        "concentration": round(_uniform(rng, *r["concentration"]), 2),
        "confidence_score": _pct(confidence),
        "detected_objects": [],
        "synthetic": True,
        "analysis_notes": SYNTHETIC_NOTE,
    }
    fields["image_quality"] = image_quality_for(fields["confidence_score"] / 100.0)
    progressive = _uniform(rng, *r["progressive_motility_percentage"])
    non_progressive = _uniform(rng, *r["non_progressive_motility_percentage"])
    fields.update(_motility_breakdown(progressive, progressive + non_progressive))
    return fields


def simulated_latency(file_size: int, cap: float = None) -> float:
    """Half a second per MB, capped at SIMULATED_LATENCY_SECONDS."""
    cap = Config.SIMULATED_LATENCY_SECONDS if cap is None else float(cap)
    if cap <= 0:
        return 0.0
    size_mb = max(0, int(file_size)) / (1024 * 1024)
    return min(cap, size_mb * 0.5)


def synthesize_result(file_size: int, media_type: str, detections: list = None, rng=None) -> AnalysisResult:
    """
    detections=None -> synthetic branch
    detections=[...] (possibly empty) -> detector-backed branch
    """
    start = time.perf_counter()
    rng = rng if rng is not None else np.random.default_rng()

    if detections is None:
        delay = simulated_latency(file_size)
        if delay > 0:
            time.sleep(delay)
        fields = _synthetic_fields(rng)
        if str(media_type).startswith("video/"):
            fields["analysis_notes"] = SYNTHETIC_NOTE + " Video frames were not analyzed."
    else:
        detections = [
            d if isinstance(d, DetectedObject) else DetectedObject(**d)
            for d in detections
        ]
        fields = _detector_fields(detections, rng)

    fields.update(_auxiliary_fields(rng))

    # classify on the rounded values that are actually returned
    fields["who_classification"] = classify_who(
        fields["concentration"],
        fields["progressive_motility_percentage"],
        fields["morphology_percentage"],
        fields["sperm_count"],
    )
    fields["analysis_duration"] = round(time.perf_counter() - start, 2)

    return AnalysisResult(**fields)
