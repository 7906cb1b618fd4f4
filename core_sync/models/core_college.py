from sqlalchemy import Column, Integer, String, Boolean, Float

from .base import Base, SyncMetadataMixin


class CoreCollege(SyncMetadataMixin, Base):
    __tablename__ = "core_colleges"

    # Same id as cleaned_colleges.id
    id = Column(String(36), primary_key=True)

    # Business fields
    name = Column(String(100), nullable=False)
    code = Column(String(20))
    province = Column(String(50))
    city = Column(String(50))
    college_type = Column(String(50))
    affiliation = Column(String(100))
    is_985 = Column(Boolean)
    is_211 = Column(Boolean)
    is_double_first_class = Column(Boolean)
    is_world_class = Column(Boolean)
    education_level = Column(String(50))
    founded_year = Column(Integer)
    student_count = Column(Integer)
    website = Column(String(100))

    # Admission statistics
    avg_admission_score_recent_3years = Column(Integer)
    min_rank_recent_3years = Column(Integer)
    avg_admission_score_recent_year = Column(Integer)
    min_rank_recent_year = Column(Integer)
    hot_level = Column(Integer, nullable=False, default=0)
    difficulty_level = Column(String(20))
    major_count = Column(Integer, nullable=False, default=0)
    enrollment_province_count = Column(Integer, nullable=False, default=0)

    # Campus life snapshot
    dorm_score = Column(Float)
    canteen_score = Column(Float)
    transport_score = Column(Float)
    study_environment_score = Column(Float)
    overall_life_score = Column(Float)
