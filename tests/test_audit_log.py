from __future__ import annotations

from http import HTTPStatus
import unittest

from backend.app import create_app
from backend.app.models import AuditLog, User
from backend.extensions import bcrypt, db
from workflow.roles import Role


class AuditLogTestCase(unittest.TestCase):
    """Significant actions leave hashed audit entries behind."""

    def setUp(self) -> None:  # noqa: D401 - documented in base class
        self.app = create_app("testing")
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()
        self.client = self.app.test_client()

    def tearDown(self) -> None:  # noqa: D401 - documented in base class
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def _register_and_login(self) -> str:
        response = self.client.post(
            "/api/auth/register",
            json={
                "email": "Owner@Example.com",
                "password": "strong-pass",
                "name": "Owner",
                "roles": "clinic_admin",
            },
        )
        self.assertEqual(response.status_code, HTTPStatus.CREATED, response.get_json())

        response = self.client.post(
            "/api/auth/login", json={"email": "owner@example.com", "password": "strong-pass"}
        )
        self.assertEqual(response.status_code, HTTPStatus.OK)
        data = response.get_json()
        assert data is not None
        self.assertEqual(data["user"]["roles"], [Role.CLINIC_ADMIN.value])
        return data["access_token"]

    def test_login_is_audited(self) -> None:
        self._register_and_login()

        entry = AuditLog.query.filter_by(action="auth.login").one()
        user = User.query.filter_by(email="owner@example.com").one()
        self.assertEqual(entry.user_id, user.id)
        self.assertEqual(entry.entity_id, str(user.id))
        self.assertEqual(entry.method, "POST")
        self.assertEqual(entry.path, "/api/auth/login")
        self.assertEqual(len(entry.request_hash), 64)
        self.assertEqual(len(entry.response_hash), 64)

    def test_failed_login_is_not_audited(self) -> None:
        response = self.client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": "nope"}
        )

        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        self.assertEqual(AuditLog.query.count(), 0)

    def test_onboarding_and_client_actions_are_audited(self) -> None:
        token = self._register_and_login()
        headers = {"Authorization": f"Bearer {token}"}

        clinic = self.client.post(
            "/api/onboarding/clinic",
            json={
                "name": "Audit Trail Clinic",
                "address": "Jl. Gajah Mada 3, Medan",
                "phone_number": "+62 61 555 0505",
                "email": "info@audit.example",
            },
            headers=headers,
        )
        self.assertEqual(clinic.status_code, HTTPStatus.CREATED)
        clinic_id = clinic.get_json()["clinic_id"]

        created = self.client.post("/api/clients", json={"full_name": "Sari"}, headers=headers)
        self.assertEqual(created.status_code, HTTPStatus.CREATED)
        changed = self.client.post(
            f"/api/clients/{created.get_json()['id']}/status",
            json={"from_status": "new", "to_status": "consultation"},
            headers=headers,
        )
        self.assertEqual(changed.status_code, HTTPStatus.CREATED)

        onboarding_entry = AuditLog.query.filter_by(action="onboarding.clinic").one()
        self.assertEqual(onboarding_entry.entity_id, str(clinic_id))
        self.assertEqual(onboarding_entry.clinic_id, clinic_id)

        client_entry = AuditLog.query.filter_by(action="client.created").one()
        self.assertEqual(client_entry.entity_id, str(created.get_json()["id"]))

        status_entry = AuditLog.query.filter_by(action="client.status_changed").one()
        self.assertEqual(status_entry.entity_id, changed.get_json()["transition"]["id"])
        self.assertEqual(status_entry.entity_type, "client_status_transition")

    def test_administrator_cannot_self_register(self) -> None:
        response = self.client.post(
            "/api/auth/register",
            json={
                "email": "root@example.com",
                "password": "x",
                "name": "Root",
                "roles": ["Administrator"],
            },
        )

        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(User.query.count(), 0)


if __name__ == "__main__":
    unittest.main()
