from sqlalchemy import Column, Integer, String, Text, Float

from .base import Base, SyncMetadataMixin


class CoreMajor(SyncMetadataMixin, Base):
    __tablename__ = "core_majors"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20))
    discipline = Column(String(50))
    category = Column(String(50))
    sub_category = Column(String(50))
    degree_type = Column(String(50))
    study_years = Column(Integer)
    description = Column(Text)
    avg_salary = Column(Integer)
    employment_rate = Column(Float)

    # Computed from admission history
    college_count = Column(Integer, nullable=False, default=0)
    avg_admission_score = Column(Integer)
