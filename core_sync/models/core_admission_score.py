from sqlalchemy import Column, Integer, String, Text, Boolean, Float

from .base import Base, SyncMetadataMixin


class CoreAdmissionScore(SyncMetadataMixin, Base):
    __tablename__ = "core_admission_scores"

    id = Column(String(36), primary_key=True)
    college_id = Column(String(36), index=True)
    major_id = Column(String(36), index=True)

    # College snapshot
    college_name = Column(String(100))
    college_code = Column(String(20))
    college_province = Column(String(50))
    college_city = Column(String(50))
    college_is_985 = Column(Boolean)
    college_is_211 = Column(Boolean)
    college_is_double_first_class = Column(Boolean)
    college_type = Column(String(50))

    # Major snapshot
    major_name = Column(String(100))
    major_code = Column(String(20))
    major_category = Column(String(50))
    major_discipline = Column(String(50))

    # Admission data
    year = Column(Integer, nullable=False)
    source_province = Column(String(50))
    subject_type = Column(String(50))
    batch = Column(String(50))
    min_score = Column(Float)
    min_rank = Column(Integer)
    avg_score = Column(Float)
    max_score = Column(Float)
    max_rank = Column(Integer)
    plan_count = Column(Integer)
    major_group_code = Column(String(50))
    major_group_name = Column(String(100))
    subject_requirements = Column(Text)

    # Computed
    score_volatility = Column(Float)
    difficulty_level = Column(String(20))
    competitiveness = Column(Integer)
