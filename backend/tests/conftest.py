# backend/tests/conftest.py
"""
Pytest configuration for the servicebook test suite.

Every test gets its own file-backed SQLite database under ``tmp_path`` so
threaded booking tests can open independent connections. Redis is disabled
so the booking lock uses the in-process registry.
"""

import os

# Set testing mode BEFORE any servicebook imports
os.environ["is_testing"] = "true"
os.environ["redis_url"] = ""
os.environ["database_url"] = "sqlite:///./servicebook-test.db"

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from servicebook.api.dependencies.database import get_db
from servicebook.core.booking_lock import reset_lock_state
from servicebook.core.enums import DayOfWeek
from servicebook.core.time_utils import parse_time_of_day
from servicebook.database import build_engine, init_db
from servicebook.main import app
from servicebook.models.appointment import Appointment, AppointmentStatus
from servicebook.models.availability import AvailabilityTemplate

from tests.helpers import PROVIDER_ID


@pytest.fixture(autouse=True)
def _no_redis() -> None:
    reset_lock_state()


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'servicebook-test.db'}")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_window(db: Session) -> Callable[..., AvailabilityTemplate]:
    """Insert a weekly window directly, bypassing service validation."""

    def _make(
        day: DayOfWeek | str,
        start: str,
        end: str,
        provider_id: str = PROVIDER_ID,
        is_active: bool = True,
        is_booked: bool = False,
        booked_occurrence_date: Optional[date] = None,
    ) -> AvailabilityTemplate:
        template = AvailabilityTemplate(
            provider_id=provider_id,
            day_of_week=DayOfWeek.parse(day).value,
            start_time=parse_time_of_day(start),
            end_time=parse_time_of_day(end),
            is_active=is_active,
            is_booked=is_booked,
            booked_occurrence_date=booked_occurrence_date,
        )
        db.add(template)
        db.commit()
        return template

    return _make


@pytest.fixture
def make_appointment(db: Session) -> Callable[..., Appointment]:
    """Insert a ledger row directly, with any (including legacy) status label."""

    def _make(
        scheduled_at: datetime,
        status: AppointmentStatus | str = AppointmentStatus.ACCEPTED,
        provider_id: str = PROVIDER_ID,
        customer_id: str = "customer-1",
        duration_minutes: int = 60,
        template: Optional[AvailabilityTemplate] = None,
        final_price: Optional[Decimal] = None,
    ) -> Appointment:
        appointment = Appointment(
            provider_id=provider_id,
            customer_id=customer_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=status.value if isinstance(status, AppointmentStatus) else status,
            availability_template_id=template.id if template is not None else None,
            final_price=final_price,
            repair_description="Leaking kitchen tap",
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make


@pytest.fixture
def client(session_factory) -> TestClient:
    """TestClient whose requests each get a fresh session on the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
