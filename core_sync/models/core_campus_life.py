from sqlalchemy import Column, Integer, String, Boolean, Float

from .base import Base, SyncMetadataMixin


class CoreCampusLife(SyncMetadataMixin, Base):
    __tablename__ = "core_campus_life"

    id = Column(String(36), primary_key=True)
    college_id = Column(String(36), index=True)

    # College snapshot
    college_name = Column(String(100))
    college_code = Column(String(20))
    college_province = Column(String(50))
    college_city = Column(String(50))

    # Survey answers
    dorm_style = Column(String(100))
    has_air_conditioner = Column(Boolean)
    has_independent_bathroom = Column(Boolean)
    dorm_score = Column(Float)
    has_library = Column(Boolean)
    has_overnight_study_room = Column(Boolean)
    study_environment_score = Column(Float)
    canteen_price_level = Column(String(50))
    canteen_quality_score = Column(Float)
    has_subway = Column(Boolean)
    in_urban_area = Column(Boolean)
    transport_score = Column(Float)
    campus_wifi_quality = Column(String(50))
    has_power_cutoff = Column(Boolean)

    overall_score = Column(Float)
    reliability = Column(Float)
    answer_count = Column(Integer, nullable=False, default=0)
