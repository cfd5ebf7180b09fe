"""Geographic service area with its own featured slot capacity ceiling."""
from sqlalchemy import Column, Integer, String, UniqueConstraint

from app.db.base import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    state = Column(String(8), nullable=True)
    slot_cap = Column(Integer, nullable=True)  # NULL = FEATURED_SLOT_MAX_PER_REGION

    __table_args__ = (UniqueConstraint("name", name="uq_regions_name"),)
