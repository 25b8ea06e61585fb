from datetime import date, timedelta

from app.models.cancellation import CancellationRequest

URL = "/api/v1/public/cancellation-requests"


class TestMagicLinkEndpoint:
    def test_creates_request(self, client, booking, token_for, notify_mock):
        r = client.post(URL, json={"token": token_for(booking), "reason": "Weather"})

        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert data["requestId"]
        assert "alreadyExists" not in data
        notify_mock.assert_called_once_with(data["requestId"])

    def test_second_request_is_idempotent(self, client, db, booking, token_for, notify_mock):
        first = client.post(URL, json={"token": token_for(booking, issued_at_ms=1)}).json()
        r = client.post(URL, json={"token": token_for(booking, issued_at_ms=2)})

        assert r.status_code == 200
        assert r.json()["alreadyExists"] is True
        assert r.json()["requestId"] == first["requestId"]
        assert db.query(CancellationRequest).count() == 1
        assert notify_mock.call_count == 1

    def test_invalid_token(self, client, booking, notify_mock):
        r = client.post(URL, json={"token": "definitely-not-valid"})

        assert r.status_code == 400
        assert r.json()["error"] == "invalid_token"
        notify_mock.assert_not_called()

    def test_unknown_booking(self, client, token_for, booking, db):
        token = token_for(booking)
        db.delete(booking)
        db.commit()

        r = client.post(URL, json={"token": token})

        assert r.status_code == 404
        assert r.json()["error"] == "booking_not_found"

    def test_expired(self, client, make_booking, token_for):
        b = make_booking(booking_date=date.today() - timedelta(days=10))

        r = client.post(URL, json={"token": token_for(b)})

        assert r.status_code == 400
        assert r.json()["error"] == "token_expired"


class TestManualEndpoint:
    def test_creates_request(self, client, booking, notify_mock):
        r = client.post(URL, json={
            "orderNumber": "#a0gwptwh",
            "customerEmail": "Test@Example.com",
            "customerName": "mario rossi",
        })

        assert r.status_code == 200
        assert r.json()["success"] is True
        notify_mock.assert_called_once()

    def test_name_mismatch(self, client, booking):
        r = client.post(URL, json={
            "orderNumber": "A0GWPTWH",
            "customerEmail": "test@example.com",
            "customerName": "Mario Rossini",
        })

        assert r.status_code == 400
        assert r.json()["error"] == "validation_failed"

    def test_already_cancelled(self, client, make_booking):
        make_booking(status="cancelled")

        r = client.post(URL, json={
            "orderNumber": "A0GWPTWH",
            "customerEmail": "test@example.com",
            "customerName": "Mario Rossi",
        })

        assert r.status_code == 400
        assert r.json()["error"] == "already_cancelled"


class TestMalformedBodies:
    def test_empty_object(self, client):
        r = client.post(URL, json={})

        assert r.status_code == 400
        assert r.json()["error"] == "missing_fields"

    def test_incomplete_manual_fields(self, client):
        r = client.post(URL, json={"orderNumber": "A0GWPTWH", "customerEmail": "test@example.com"})

        assert r.status_code == 400
        assert r.json()["error"] == "missing_fields"

    def test_not_an_object(self, client):
        r = client.post(URL, json=["token"])

        assert r.status_code == 400
        assert r.json() == {
            "error": "missing_fields",
            "message": "Missing data. Provide a token, or order number, email and name.",
        }

    def test_wrong_field_type(self, client):
        r = client.post(URL, json={"token": 12345})

        assert r.status_code == 400
        assert r.json()["error"] == "missing_fields"


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
