"""
Cleaned layer tables.

Written by the upstream cleaning stage; the sync pipeline only reads them.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Float

from .base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class CleanedCollege(Base):
    __tablename__ = "cleaned_colleges"

    id = Column(String(36), primary_key=True, default=_uuid)
    standard_name = Column(String(100), nullable=False)
    code = Column(String(20))
    province = Column(String(50))
    city = Column(String(50))
    college_type = Column(String(50))
    affiliation = Column(String(100))

    # Tier flags
    is_985 = Column(Boolean, default=False)
    is_211 = Column(Boolean, default=False)
    is_double_first_class = Column(Boolean, default=False)
    is_world_class = Column(Boolean, default=False)

    education_level = Column(String(50))
    founded_year = Column(Integer)
    student_count = Column(Integer)
    website = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)


class CleanedMajor(Base):
    __tablename__ = "cleaned_majors"

    id = Column(String(36), primary_key=True, default=_uuid)
    standard_name = Column(String(100), nullable=False)
    code = Column(String(20))
    discipline = Column(String(50))
    category = Column(String(50))
    sub_category = Column(String(50))
    degree_type = Column(String(50))
    study_years = Column(Integer)
    description = Column(Text)
    avg_salary = Column(Integer)
    employment_rate = Column(Float)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)


class CleanedAdmissionScore(Base):
    __tablename__ = "cleaned_admission_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    cleaned_college_id = Column(String(36), index=True)
    cleaned_major_id = Column(String(36), index=True)

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

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)


class CleanedCampusLife(Base):
    __tablename__ = "cleaned_campus_life"

    id = Column(String(36), primary_key=True, default=_uuid)
    cleaned_college_id = Column(String(36), index=True)

    # Dormitory
    dorm_style = Column(String(100))
    has_air_conditioner = Column(Boolean)
    has_independent_bathroom = Column(Boolean)
    dorm_score = Column(Float)

    # Study
    has_library = Column(Boolean)
    has_overnight_study_room = Column(Boolean)
    study_environment_score = Column(Float)

    # Canteen
    canteen_price_level = Column(String(50))
    canteen_quality_score = Column(Float)

    # Transport
    has_subway = Column(Boolean)
    in_urban_area = Column(Boolean)
    transport_score = Column(Float)

    # Facilities
    campus_wifi_quality = Column(String(50))
    has_power_cutoff = Column(Boolean)

    reliability = Column(Float)
    answer_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)


class CleanedEnrollmentPlan(Base):
    __tablename__ = "cleaned_enrollment_plans"

    id = Column(String(36), primary_key=True, default=_uuid)
    cleaned_college_id = Column(String(36), index=True)
    cleaned_major_id = Column(String(36))
    year = Column(Integer)
    source_province = Column(String(50))
    plan_count = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)
