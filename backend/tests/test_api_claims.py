"""Tests for claim batch and return file API endpoints."""

from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from billing_engine.models import Physician

BATCH_URL = "/api/v1/billing-claims/batch"
PARSE_URL = "/api/v1/billing-claims/return-files/parse"

PRACTITIONER = {
    "billing_number": "1234",
    "clinic_number": "123",
    "first_name": "Jane",
    "last_name": "Doe",
    "street_address": "1 Main St",
    "city": "Regina",
    "province": "SK",
    "postal_code": "S4P 3Y2",
    "timezone": "America/Regina",
}


def service_payload(hsn: str = "123456789", **code: Any) -> dict[str, Any]:
    return {
        "hsn": hsn,
        "date_of_birth": "1980-05-17",
        "sex": "F",
        "last_name": "Smith",
        "first_name": "Anne",
        "service_date": "2024-01-15",
        "diagnostic_code": "250",
        "codes": [{"fee_code": "0005", "unit_fee_cents": 3750, **code}],
    }


class TestGenerateBatchEndpoint:
    """Tests for POST /billing-claims/batch."""

    def test_batch_for_practitioner(self, client: TestClient) -> None:
        """Test a batch for an inline practitioner."""
        response = client.post(
            BATCH_URL,
            json={
                "practitioner": PRACTITIONER,
                "most_recent_claim_number": 10041,
                "services": [service_payload()],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["first_claim_number"] == 10042
        assert data["last_claim_number"] == 10042
        assert data["service_record_count"] == 1
        assert data["total_fee_cents"] == 3750

        lines = data["batch_text"].split("\r\n")
        assert lines[0].startswith("101234000000123DOE,JANE")
        assert lines[1].startswith("50123410042")
        assert lines[2].startswith("901234999999")
        assert lines[3] == ""

    def test_per_diem_code(self, client: TestClient) -> None:
        """Test a hospital care code with several units."""
        response = client.post(
            BATCH_URL,
            json={
                "practitioner": PRACTITIONER,
                "services": [
                    service_payload(
                        billing_record_type=57,
                        number_of_units=3,
                        service_date="2024-01-01",
                        service_end_date="2024-01-03",
                    )
                ],
            },
        )
        data = response.json()
        assert data["first_claim_number"] == 10000
        assert data["total_fee_cents"] == 11250
        service_line = data["batch_text"].split("\r\n")[1]
        assert len(service_line) == 94
        assert service_line[58:70] == "010124030124"

    def test_batch_for_stored_physician(
        self, client: TestClient, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test numbering continues from and advances the physician's counter."""
        response = client.post(
            BATCH_URL,
            json={
                "physician_id": seeded_db["physician_id"],
                "services": [service_payload(), service_payload("987654321")],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["first_claim_number"] == 10042
        assert data["last_claim_number"] == 10043

        physician = db_session.get(Physician, seeded_db["physician_id"])
        assert physician.most_recent_claim_number == 10043

    def test_unknown_physician(self, client: TestClient, seeded_db: dict[str, int]) -> None:
        """Test 404 for a missing physician."""
        response = client.post(
            BATCH_URL, json={"physician_id": 999, "services": [service_payload()]}
        )
        assert response.status_code == 404

    def test_practitioner_source_required(self, client: TestClient) -> None:
        """Test exactly one practitioner source is accepted."""
        assert client.post(BATCH_URL, json={"services": [service_payload()]}).status_code == 422
        response = client.post(
            BATCH_URL,
            json={"practitioner": PRACTITIONER, "physician_id": 1, "services": [service_payload()]},
        )
        assert response.status_code == 422

    def test_empty_services_rejected(self, client: TestClient) -> None:
        """Test a batch needs at least one service."""
        response = client.post(BATCH_URL, json={"practitioner": PRACTITIONER, "services": []})
        assert response.status_code == 422

    def test_negative_fee_rejected(self, client: TestClient) -> None:
        """Test request validation of fees."""
        response = client.post(
            BATCH_URL,
            json={"practitioner": PRACTITIONER, "services": [service_payload(unit_fee_cents=-1)]},
        )
        assert response.status_code == 422

    def test_claim_number_overflow(self, client: TestClient) -> None:
        """Test 422 when claim numbers run past five digits."""
        response = client.post(
            BATCH_URL,
            json={
                "practitioner": PRACTITIONER,
                "most_recent_claim_number": 99999,
                "services": [service_payload()],
            },
        )
        assert response.status_code == 422
        assert "99999" in response.json()["detail"]


class TestParseReturnFileEndpoint:
    """Tests for POST /billing-claims/return-files/parse."""

    def test_parse_daily_echo(self, client: TestClient) -> None:
        """Test a daily return file echoing a generated batch."""
        batch = client.post(
            BATCH_URL,
            json={"practitioner": PRACTITIONER, "services": [service_payload()]},
        ).json()["batch_text"]

        response = client.post(PARSE_URL, json={"kind": "daily", "content": batch})
        assert response.status_code == 200
        data = response.json()
        assert [r["record_type"] for r in data["records"]] == ["10", "50", "90"]
        assert data["rejected_count"] == 1
        assert data["records"][1]["fields"]["claim_number"] == 10000

    def test_parse_biweekly(self, client: TestClient) -> None:
        """Test paid and message lines."""
        paid = list(" " * 255)
        for start, value in ((2, "1234"), (9, "10042"), (14, "P"), (113, "00000003750")):
            paid[start - 1 : start - 1 + len(value)] = list(value)
        message = " " * 13 + "M" + "RUN COMPLETE"
        content = "".join(paid) + "\r\n" + message + "\r\n"

        response = client.post(PARSE_URL, json={"kind": "biweekly", "content": content})
        data = response.json()
        assert data["paid_count"] == 1
        assert data["message_count"] == 1
        assert data["messages"] == ["RUN COMPLETE"]
        assert data["total_paid_amount"] == "37.50"

    def test_unknown_kind(self, client: TestClient) -> None:
        """Test 422 for an unsupported layout."""
        response = client.post(PARSE_URL, json={"kind": "weekly", "content": ""})
        assert response.status_code == 422
