"""Tests for service rounding and discharge API endpoints."""

from fastapi.testclient import TestClient
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from billing_engine.models import Service, ServiceCode


def round_url(service_id: int) -> str:
    return f"/api/v1/services/{service_id}/round"


def discharge_url(service_id: int) -> str:
    return f"/api/v1/services/{service_id}/discharge"


class TestRoundEndpoint:
    """Tests for POST /services/{service_id}/round."""

    def test_round_creates_code(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test the first rounding of a stay."""
        response = client.post(
            round_url(seeded_db["service_id"]),
            json={"service_date": "2024-01-05"},
            headers={"X-User-Id": "42"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "created"
        assert data["days_since_start"] == 4
        assert data["selected_code_id"] == 2
        assert data["new_service_codes"][0]["code_id"] == 2
        assert data["new_service_codes"][0]["service_date"] == "2024-01-04"
        assert data["updated_service_codes"] == []

    def test_round_persists(
        self, client: TestClient, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test the new code is committed."""
        client.post(round_url(seeded_db["service_id"]), json={"service_date": "2024-01-05"})
        count = db_session.execute(select(func.count()).select_from(ServiceCode)).scalar_one()
        assert count == 1

    def test_same_day_twice(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test a repeated rounding is reported, not applied."""
        url = round_url(seeded_db["service_id"])
        client.post(url, json={"service_date": "2024-01-05"})
        response = client.post(url, json={"service_date": "2024-01-05"})
        assert response.status_code == 200
        assert response.json()["outcome"] == "already_rounded"

    def test_next_day_increments(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test the unit count returned after an increment."""
        url = round_url(seeded_db["service_id"])
        client.post(url, json={"service_date": "2024-01-05"})
        data = client.post(url, json={"service_date": "2024-01-06"}).json()
        assert data["outcome"] == "incremented"
        assert data["updated_service_codes"][0]["number_of_units"] == 2

    def test_date_before_admission(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test 400 for a rounding date before the stay."""
        response = client.post(
            round_url(seeded_db["service_id"]), json={"service_date": "2023-12-31"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["outcome"] == "invalid_date"

    def test_missing_configuration(
        self, client: TestClient, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test 400 when the physician has no preferred sections."""
        db_session.execute(text("DELETE FROM physician_preferred_sections"))
        db_session.expire_all()

        response = client.post(
            round_url(seeded_db["service_id"]), json={"service_date": "2024-01-05"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["outcome"] == "missing_configuration"

    def test_unknown_service(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test 404 for a missing service."""
        response = client.post(round_url(999), json={"service_date": "2024-01-05"})
        assert response.status_code == 404

    def test_invalid_body(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test 422 for an unparseable date."""
        response = client.post(round_url(seeded_db["service_id"]), json={"service_date": "soon"})
        assert response.status_code == 422


class TestDischargeEndpoint:
    """Tests for POST /services/{service_id}/discharge."""

    def test_discharge(
        self, client: TestClient, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test the end date is clamped and the service is pending."""
        service_id = seeded_db["service_id"]
        client.post(round_url(service_id), json={"service_date": "2024-01-05"})
        response = client.post(discharge_url(service_id), json={"discharge_date": "2024-01-10"})

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "discharged"
        assert data["updated_service_codes"][0]["service_end_date"] == "2024-01-07"
        assert db_session.get(Service, service_id).status == "PENDING"

    def test_discharge_without_codes(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test discharging a stay that was never rounded."""
        response = client.post(discharge_url(seeded_db["service_id"]), json={})
        assert response.status_code == 200
        assert response.json()["outcome"] == "nothing_to_discharge"

    def test_discharge_unknown_service(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test 404 for a missing service."""
        assert client.post(discharge_url(999), json={}).status_code == 404
