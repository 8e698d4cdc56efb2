# sperm_analysis/models/analysis_result.py
from sqlalchemy import Column, String, Integer, Float, Text, Boolean, DateTime
from sperm_analysis.database.db import Base


class SavedAnalysisResult(Base):
    __tablename__ = "sperm_analysis_results"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # file refs
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(64), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_path = Column(Text, nullable=False)
    file_url = Column(Text, nullable=False)

    # count + concentration
    sperm_count = Column(Integer, nullable=False)
    concentration = Column(Float, nullable=False)

    # motility
    motility_percentage = Column(Float, nullable=False)
    progressive_motility_percentage = Column(Float, nullable=False)
    non_progressive_motility_percentage = Column(Float, nullable=False)
    immotile_percentage = Column(Float, nullable=False)

    # morphology
    morphology_percentage = Column(Float, nullable=False)
    head_defects_percentage = Column(Float, nullable=False)
    midpiece_defects_percentage = Column(Float, nullable=False)
    tail_defects_percentage = Column(Float, nullable=False)

    # auxiliary
    vitality_percentage = Column(Float, nullable=False)
    volume_ml = Column(Float, nullable=False)
    ph_level = Column(Float, nullable=False)
    leucocytes_count = Column(Integer, nullable=False)

    # quality / outcome
    confidence_score = Column(Float, nullable=False)
    image_quality = Column(String(16), nullable=False)
    who_classification = Column(String(64), nullable=False)
    analysis_duration = Column(Float, nullable=False)
    detected_objects_json = Column(Text, nullable=True)

    synthetic = Column(Boolean, nullable=False, default=False)
    analysis_notes = Column(Text, nullable=True)
