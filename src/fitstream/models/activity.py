"""Activity data models: activities, per-sample datapoints, and laps."""
from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel


class Activity(SQLModel, table=True):
    """One row per recorded activity."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(default=1, index=True)
    external_id: Optional[str] = Field(default=None, index=True)  # id at the upstream provider
    name: str
    activity_type: str  # "ride", "run", ...
    start_time_utc: datetime
    duration_seconds: float
    distance_meters: float

    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_power: Optional[float] = None
    total_ascent_meters: Optional[float] = None

    synced_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    datapoints: List["ActivityDatapoint"] = Relationship(back_populates="activity")
    laps: List["ActivityLap"] = Relationship(back_populates="activity")


class ActivityDatapoint(SQLModel, table=True):
    """
    One row per recorded sample (~1 per second).
    A 3-hour ride produces ~10800 rows.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    activity_id: int = Field(foreign_key="activity.id", index=True)
    user_id: int = Field(default=1)

    elapsed_seconds: int  # seconds since activity start

    # Per-sample metrics, nullable (a device may not record every field at every sample)
    distance_meters: Optional[float] = None  # cumulative
    heart_rate: Optional[int] = None  # bpm
    power_watts: Optional[int] = None
    cadence: Optional[int] = None  # rpm
    altitude_meters: Optional[float] = None
    speed_ms: Optional[float] = None
    temperature_c: Optional[float] = None
    grade_pct: Optional[float] = None
    moving: Optional[bool] = None
    lat: Optional[float] = None  # decimal degrees
    lon: Optional[float] = None

    # Relationship
    activity: Optional[Activity] = Relationship(back_populates="datapoints")


class ActivityLap(SQLModel, table=True):
    """
    One row per lap. start_index/end_index are inclusive positions in the
    activity's datapoints ordered by elapsed_seconds.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    activity_id: int = Field(foreign_key="activity.id", index=True)
    user_id: int = Field(default=1)

    lap_index: int
    name: Optional[str] = None
    start_index: int
    end_index: int
    elapsed_seconds: float = 0.0
    distance_meters: float = 0.0

    avg_speed_ms: Optional[float] = None
    max_speed_ms: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_power: Optional[float] = None
    max_power: Optional[float] = None

    # Relationship
    activity: Optional[Activity] = Relationship(back_populates="laps")
