"""Shared test fixtures."""
from datetime import datetime
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from fitstream.models.activity import Activity, ActivityDatapoint, ActivityLap  # noqa: F401
from fitstream.config import StreamProcessingSettings


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test session."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="stream_settings")
def stream_settings_fixture() -> StreamProcessingSettings:
    """Default limits, pinned explicitly so a local .env can't leak in."""
    return StreamProcessingSettings(
        max_context_tokens=15000,
        token_per_char_ratio=0.25,
        default_page_size=1000,
        max_page_size=5000,
        redaction_enabled=True,
        resolutions=["low", "medium", "high"],
        large_dataset_threshold=10000,
        context_safety_margin=2000,
        max_retries=3,
        processing_timeout=30.0,
    )


@pytest.fixture(name="seeded_activity")
def seeded_activity_fixture(test_session: Session) -> Activity:
    """
    A persisted 20-minute ride: 1200 one-second datapoints and two laps.
    Heart rate climbs from 130 to ~150, power holds around 200 W.
    """
    activity = Activity(
        external_id="9876543210",
        name="Lunch Ride",
        activity_type="ride",
        start_time_utc=datetime(2025, 6, 1, 12, 0),
        duration_seconds=1200.0,
        distance_meters=9600.0,
        avg_hr=140.0,
        max_hr=150.0,
        avg_power=200.0,
    )
    test_session.add(activity)
    test_session.commit()
    test_session.refresh(activity)

    for t in range(1200):
        test_session.add(ActivityDatapoint(
            activity_id=activity.id,
            elapsed_seconds=t,
            distance_meters=t * 8.0,
            heart_rate=130 + t // 60,
            power_watts=200 + (5 if t % 2 else -5),
            cadence=90,
            altitude_meters=100.0 + (t % 120) / 10.0,
            speed_ms=8.0,
            lat=45.0 + t * 1e-5,
            lon=7.0 + t * 1e-5,
        ))
    test_session.add(ActivityLap(
        activity_id=activity.id, lap_index=0, name="Out",
        start_index=0, end_index=599, elapsed_seconds=600.0, distance_meters=4800.0,
        avg_speed_ms=8.2, avg_hr=135.0, avg_power=205.0,
    ))
    test_session.add(ActivityLap(
        activity_id=activity.id, lap_index=1, name="Back",
        start_index=600, end_index=1199, elapsed_seconds=600.0, distance_meters=4800.0,
        avg_speed_ms=7.8, avg_hr=145.0, avg_power=195.0,
    ))
    test_session.commit()
    return activity
