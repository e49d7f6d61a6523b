"""Pytest configuration and fixtures for backend tests."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from billing_engine.core.database import Base, get_db
from billing_engine.core.locks import reset_service_locks
from billing_engine.main import app
from billing_engine.models import (
    BillingCode,
    BillingCodeChainEdge,
    Physician,
    PhysicianPreferredSection,
    Section,
    Service,
)
from billing_engine.services.chain_analysis_db import rebuild_chain_table
from billing_engine.services.chain_builder import ChainEdge, CodeInfo
from factories import ADMISSION, HOSPITAL_SECTION_ID, code, edges

# In-memory SQLite shared across connections of one test
_test_engine = create_engine(
    "sqlite://",
    echo=False,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSession = sessionmaker(
    bind=_test_engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Create a database session with all billing tables."""
    Base.metadata.create_all(bind=_test_engine)
    session = _TestSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=_test_engine)
        reset_service_locks()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Test client whose requests share the test session."""

    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============================================================================
# In-memory catalogs
# ============================================================================


@pytest.fixture
def two_code_catalog() -> tuple[dict[int, CodeInfo], list[ChainEdge]]:
    """A (3 days) followed by B (4 days)."""
    codes = {
        1: code(1, 3, max_units=3, code_string="A001"),
        2: code(2, 4, max_units=4, code_string="B002"),
    }
    return codes, edges((1, 2))


@pytest.fixture
def three_window_catalog() -> tuple[dict[int, CodeInfo], list[ChainEdge]]:
    """Windows [0,5), [5,10) and an open-ended tail code."""
    codes = {
        10: code(10, 5, max_units=5, code_string="0010"),
        11: code(11, 5, max_units=5, code_string="0011"),
        12: code(12, 30, max_units=999, code_string="0012"),
    }
    return codes, edges((10, 11), (11, 12))


# ============================================================================
# Persisted data
# ============================================================================


@pytest.fixture
def seeded_db(db_session: Session) -> dict[str, int]:
    """Catalog with an A(3) -> B(4) per-diem chain, a physician and a service.

    Returns:
        Ids of the created rows.
    """
    section = Section(id=HOSPITAL_SECTION_ID, code="HC", title="Hospital Care")
    db_session.add(section)
    db_session.add_all(
        [
            BillingCode(id=1, code="0A01", title="Hospital care day 1-3", day_range=3,
                        max_units=3, billing_record_type=57, section_id=HOSPITAL_SECTION_ID,
                        fee_cents=3500),
            BillingCode(id=2, code="0B02", title="Hospital care day 4-7", day_range=4,
                        max_units=4, billing_record_type=57, section_id=HOSPITAL_SECTION_ID,
                        fee_cents=2500),
            BillingCode(id=3, code="0005", title="Office visit", billing_record_type=50,
                        fee_cents=4000),
        ]
    )
    db_session.add(BillingCodeChainEdge(code_id=2, previous_code_id=1))

    physician = Physician(
        billing_number="1234",
        group_number="000",
        clinic_number="123",
        first_name="Jane",
        last_name="Doe",
        city="Regina",
        province="SK",
        postal_code="S4P 3Y2",
        timezone="America/Regina",
        most_recent_claim_number=10041,
    )
    physician.preferred_sections.append(PhysicianPreferredSection(section_id=HOSPITAL_SECTION_ID))
    db_session.add(physician)
    db_session.flush()

    service = Service(physician_id=physician.id, service_date=ADMISSION)
    db_session.add(service)
    db_session.flush()

    rebuild_chain_table(db_session)
    db_session.commit()
    return {"physician_id": physician.id, "service_id": service.id}
