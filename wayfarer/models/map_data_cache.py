"""
MapDataCache model - TTL-bound store for geospatial API payloads.

One row per cache key. Rows are never updated in place: a refresh deletes
the old row and inserts a new one, so created_at always reflects the
fetch that produced the payload.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wayfarer.models.base import Base


class MapDataCache(Base):
    """
    Cached POI (or other map) payload for a location.

    Fields:
        cache_key: Deterministic key built from data type, coordinates,
                   radius and the sorted type set
        destination_id: Owning CMS destination, if any
        data_type: Payload kind (e.g. 'poi')
        lat, lng: Search centre
        search_params: The parameters that produced the payload
        data: The projected payload itself
        created_at, expires_at: Naive UTC; valid while now < expires_at
    """

    __tablename__ = 'map_data_cache'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    cache_key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment='Deterministic lookup key',
    )

    destination_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment='CMS destination that owns this entry',
    )

    data_type: Mapped[str] = mapped_column(String(32), nullable=False)

    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    search_params: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index('ix_map_data_cache_expires_at', 'expires_at'),
    )

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    def __repr__(self) -> str:
        return f'<MapDataCache {self.cache_key} expires={self.expires_at.isoformat()}>'
