"""End-to-end tests for the clinic onboarding API."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any
import unittest

from backend.app import create_app
from backend.app.models import Clinic, Payment, Subscription, User
from backend.extensions import bcrypt, db
from workflow.onboarding import clear_evaluation_cache


CLINIC_PAYLOAD = {
    "name": "Calm Waters Hypnotherapy",
    "address": "Jl. Sudirman No. 12, Jakarta",
    "phone_number": "+62 21 555 0101",
    "email": "hello@calmwaters.example",
    "province": "DKI Jakarta",
}


class OnboardingApiTestCase(unittest.TestCase):
    """Walk a clinic admin through clinic, subscription and payment."""

    def setUp(self) -> None:  # noqa: D401 - inherited documentation
        """Configure a fresh application and database for each test."""

        clear_evaluation_cache()
        self.app = create_app("testing")
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

        self.password = "owner-pass"
        owner = User(
            email="owner@example.com",
            password_hash=bcrypt.generate_password_hash(self.password).decode("utf-8"),
            full_name="Clinic Owner",
            roles=["clinic_admin"],
        )
        therapist = User(
            email="therapist@example.com",
            password_hash=bcrypt.generate_password_hash(self.password).decode("utf-8"),
            full_name="Staff Therapist",
            roles=["Therapist"],
        )
        db.session.add_all([owner, therapist])
        db.session.commit()
        self.owner = owner
        self.therapist = therapist

        self.client = self.app.test_client()

    def tearDown(self) -> None:  # noqa: D401 - inherited documentation
        """Tear down the database and application context."""

        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _login(self, email: str) -> str:
        response = self.client.post(
            "/api/auth/login",
            json={"email": email, "password": self.password},
        )
        self.assertEqual(response.status_code, HTTPStatus.OK, response.get_data(as_text=True))
        data = response.get_json()
        assert data is not None
        token = data.get("access_token")
        self.assertTrue(token)
        return token

    def _post(self, token: str, step: str, payload: dict[str, Any]):
        return self.client.post(
            f"/api/onboarding/{step}",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )

    def _status(self, token: str) -> dict[str, Any]:
        response = self.client.get(
            "/api/onboarding/status",
            headers={"Authorization": f"Bearer {token}"},
        )
        self.assertEqual(response.status_code, HTTPStatus.OK)
        data = response.get_json()
        assert data is not None
        return data

    # ------------------------------------------------------------------
    # Tests
    # ------------------------------------------------------------------
    def test_fresh_clinic_admin_starts_at_clinic_info(self) -> None:
        token = self._login("owner@example.com")

        status = self._status(token)

        self.assertEqual(status["current_step"], "clinic_info")
        self.assertEqual(status["missing_fields"], ["clinic"])
        self.assertFalse(status["can_proceed"])
        self.assertEqual(status["progress_percentage"], 0)
        self.assertEqual(status["next_step"], "subscription")
        self.assertIsNone(status["previous_step"])

    def test_full_onboarding_flow(self) -> None:
        token = self._login("owner@example.com")

        clinic_response = self._post(token, "clinic", CLINIC_PAYLOAD)
        self.assertEqual(clinic_response.status_code, HTTPStatus.CREATED, clinic_response.get_json())
        clinic_data = clinic_response.get_json()
        self.assertEqual(clinic_data["status"]["current_step"], "subscription")

        subscription_response = self._post(
            token,
            "subscription",
            {"tier_code": "beta", "billing_cycle": "monthly", "amount": "750000"},
        )
        self.assertEqual(subscription_response.status_code, HTTPStatus.CREATED)
        self.assertEqual(subscription_response.get_json()["status"]["current_step"], "payment")

        payment_response = self._post(
            token,
            "payment",
            {"payment_method": "bank_transfer", "amount": 750000, "transaction_id": "TX-1"},
        )
        self.assertEqual(payment_response.status_code, HTTPStatus.CREATED)
        status = payment_response.get_json()["status"]
        self.assertEqual(status["current_step"], "complete")
        self.assertTrue(status["is_valid"])
        self.assertEqual(status["progress_percentage"], 100)

        clinic = db.session.get(Clinic, clinic_data["clinic_id"])
        self.assertIsNotNone(clinic)
        self.assertEqual(db.session.get(User, self.owner.id).clinic_id, clinic.id)
        subscription = Subscription.query.filter_by(clinic_id=clinic.id).one()
        self.assertEqual(subscription.tier_code, "beta")
        self.assertEqual(subscription.currency, "IDR")
        self.assertEqual(Payment.query.filter_by(clinic_id=clinic.id).count(), 1)

    def test_steps_cannot_be_skipped(self) -> None:
        token = self._login("owner@example.com")

        response = self._post(
            token,
            "subscription",
            {"tier_code": "alpha", "billing_cycle": "yearly", "amount": "100"},
        )

        self.assertEqual(response.status_code, HTTPStatus.CONFLICT)
        data = response.get_json()
        self.assertIn("clinic", data["message"].lower())
        self.assertEqual(data["status"]["current_step"], "clinic_info")
        self.assertEqual(Subscription.query.count(), 0)

    def test_payment_requires_subscription(self) -> None:
        token = self._login("owner@example.com")
        self._post(token, "clinic", CLINIC_PAYLOAD)

        response = self._post(token, "payment", {"payment_method": "e_wallet", "amount": 10})

        self.assertEqual(response.status_code, HTTPStatus.CONFLICT)
        self.assertEqual(Payment.query.count(), 0)

    def test_invalid_clinic_payload_is_rejected(self) -> None:
        token = self._login("owner@example.com")

        response = self._post(token, "clinic", {**CLINIC_PAYLOAD, "address": "short"})

        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        self.assertIn("address", response.get_json()["message"])
        self.assertEqual(Clinic.query.count(), 0)

    def test_invalid_tier_and_amount_are_rejected(self) -> None:
        token = self._login("owner@example.com")
        self._post(token, "clinic", CLINIC_PAYLOAD)

        bad_tier = self._post(
            token, "subscription", {"tier_code": "omega", "billing_cycle": "monthly", "amount": 5}
        )
        bad_amount = self._post(
            token, "subscription", {"tier_code": "alpha", "billing_cycle": "monthly", "amount": 0}
        )

        self.assertEqual(bad_tier.status_code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(bad_amount.status_code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(Subscription.query.count(), 0)

    def test_second_subscription_conflicts(self) -> None:
        token = self._login("owner@example.com")
        self._post(token, "clinic", CLINIC_PAYLOAD)
        payload = {"tier_code": "gamma", "billing_cycle": "yearly", "amount": "9000000"}
        self._post(token, "subscription", payload)

        response = self._post(token, "subscription", payload)

        self.assertEqual(response.status_code, HTTPStatus.CONFLICT)
        self.assertEqual(Subscription.query.count(), 1)

    def test_therapist_cannot_onboard(self) -> None:
        token = self._login("therapist@example.com")

        response = self._post(token, "clinic", CLINIC_PAYLOAD)

        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)

    def test_anonymous_request_is_unauthorized(self) -> None:
        response = self.client.post("/api/onboarding/clinic", json=CLINIC_PAYLOAD)

        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)


if __name__ == "__main__":
    unittest.main()
