"""HTTP surface: cookies and Bearer fallback, status codes, and admin user management."""

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from pydantic import SecretStr
from starlette.responses import Response

from tests.factories import DEFAULT_PASSWORD, make_database, make_school, make_user
from uplus.api.v1.auth import clear_auth_cookie, set_auth_cookie
from uplus.core.config import Settings
from uplus.core.roles import Role
from uplus.main import create_app

API = "/api"


class ApiTestCase(unittest.TestCase):
    """App over a seeded in-memory store: one admin, one teacher, one outsider school."""

    def setUp(self) -> None:
        self.database = make_database()
        db = self.database.session()
        try:
            school = make_school(db)
            other = make_school(db, slug="riverside", name="Riverside Academy")
            self.school_id = school.id
            self.headadmin_id = make_user(db, "owner@uplus.io", Role.HEADADMIN).id
            self.admin_id = make_user(db, "admin@greenfield.edu", Role.ADMIN, school).id
            self.teacher_id = make_user(
                db, "teacher@greenfield.edu", Role.TEACHER, school, username="mrsmith"
            ).id
            self.outsider_id = make_user(db, "teacher@riverside.edu", Role.TEACHER, other).id
        finally:
            db.close()
        self.client = TestClient(create_app(self.database))

    def tearDown(self) -> None:
        self.client.close()
        self.database.close()

    def login(self, identifier: str, role: str, client: TestClient | None = None) -> str:
        client = client or self.client
        response = client.post(
            f"{API}/auth/school/login",
            json={
                "identifier": identifier,
                "password": DEFAULT_PASSWORD,
                "role": role,
                "school_slug": "greenfield",
            },
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["access_token"]

    def bearer(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def check(self, token: str) -> int:
        """Status of an auth check using only the Bearer header."""
        self.client.cookies.clear()
        return self.client.get(f"{API}/protected/auth/check", headers=self.bearer(token)).status_code


class TestLogin(ApiTestCase):
    """Login routes answer with the user, landing path and session cookie."""

    def test_school_login_sets_session_cookie(self) -> None:
        response = self.client.post(
            f"{API}/auth/school/login",
            json={
                "identifier": "mrsmith",
                "password": DEFAULT_PASSWORD,
                "role": "teacher",
                "school_slug": "greenfield",
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["redirect_to"], "/protected/teachers")
        self.assertEqual(body["school"]["slug"], "greenfield")
        self.assertEqual(body["token_type"], "bearer")
        self.assertNotIn("password_hash", body["user"])

        cookie = response.headers["set-cookie"].lower()
        self.assertIn("auth_token=", cookie)
        self.assertIn("httponly", cookie)
        self.assertIn("samesite=strict", cookie)
        self.assertIn("max-age=86400", cookie)
        self.assertIn("path=/", cookie)

    def test_headadmin_login(self) -> None:
        response = self.client.post(
            f"{API}/auth/headadmin/login",
            json={"email": "owner@uplus.io", "password": DEFAULT_PASSWORD},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["redirect_to"], "/protected/headadmin")
        self.assertIsNone(response.json()["school"])

    def test_bad_password(self) -> None:
        response = self.client.post(
            f"{API}/auth/headadmin/login",
            json={"email": "owner@uplus.io", "password": "wrong"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"detail": "Invalid credentials"})
        self.assertNotIn("set-cookie", response.headers)

    def test_unknown_school(self) -> None:
        response = self.client.post(
            f"{API}/auth/school/login",
            json={
                "identifier": "teacher@greenfield.edu",
                "password": DEFAULT_PASSWORD,
                "role": "teacher",
                "school_slug": "nowhere",
            },
        )
        self.assertEqual(response.status_code, 404)

    def test_malformed_body(self) -> None:
        response = self.client.post(
            f"{API}/auth/school/login",
            json={"identifier": "x", "password": "y", "role": "headadmin", "school_slug": "greenfield"},
        )
        self.assertEqual(response.status_code, 422)


class TestSessionTransport(ApiTestCase):
    """The token is accepted from the cookie or an Authorization: Bearer header."""

    def test_cookie_authenticates(self) -> None:
        self.login("teacher@greenfield.edu", "teacher")
        response = self.client.get(f"{API}/protected/auth/check")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["id"], self.teacher_id)

    def test_bearer_fallback(self) -> None:
        token = self.login("teacher@greenfield.edu", "teacher")
        self.assertEqual(self.check(token), 200)

    def test_missing_token(self) -> None:
        response = self.client.get(f"{API}/protected/auth/check")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers["www-authenticate"], "Bearer")
        self.assertIn("detail", response.json())

    def test_garbage_token(self) -> None:
        self.assertEqual(self.check("not.a.token"), 401)

    def test_verify(self) -> None:
        self.login("teacher@greenfield.edu", "teacher")
        response = self.client.get(f"{API}/auth/verify")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["authenticated"])
        self.assertEqual(body["redirect_to"], "/protected/teachers")


class TestLogout(ApiTestCase):
    """Logout revokes the presenting session and always answers 200."""

    def test_revokes_and_clears_cookie(self) -> None:
        token = self.login("teacher@greenfield.edu", "teacher")
        response = self.client.post(f"{API}/auth/logout")
        self.assertEqual(response.status_code, 200)
        cookie = response.headers["set-cookie"].lower()
        self.assertIn("auth_token=", cookie)
        self.assertIn("max-age=0", cookie)
        self.assertEqual(self.check(token), 401)

    def test_always_succeeds(self) -> None:
        self.assertEqual(self.client.post(f"{API}/auth/logout").status_code, 200)
        response = self.client.post(f"{API}/auth/logout", headers=self.bearer("garbage"))
        self.assertEqual(response.status_code, 200)


class TestRefresh(ApiTestCase):
    """Refresh rotates the token and always answers with a redirect."""

    def test_rotates_and_redirects(self) -> None:
        old = self.login("teacher@greenfield.edu", "teacher")
        response = self.client.get(f"{API}/auth/refresh", follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/protected/teachers")
        self.assertIn("auth_token=", response.headers["set-cookie"])
        new = response.cookies.get("auth_token")
        self.assertIsNotNone(new)
        self.assertNotEqual(new, old)
        self.assertEqual(self.check(old), 401)
        self.assertEqual(self.check(new), 200)

    def test_without_session_redirects_to_login(self) -> None:
        response = self.client.get(f"{API}/auth/refresh", follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/auth/login")

    def test_unexpected_failure_redirects_to_login(self) -> None:
        token = self.login("teacher@greenfield.edu", "teacher")
        self.client.cookies.clear()
        with patch("uplus.services.lifecycle.refresh", side_effect=RuntimeError("boom")):
            response = self.client.get(
                f"{API}/auth/refresh", headers=self.bearer(token), follow_redirects=False
            )
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/auth/login")
        self.assertNotIn("set-cookie", response.headers)


class TestChangePassword(ApiTestCase):
    """Changing the own password ends every session of the caller."""

    def test_signs_out_everywhere(self) -> None:
        other_device = self.login("teacher@greenfield.edu", "teacher")
        self.login("teacher@greenfield.edu", "teacher")
        response = self.client.post(
            f"{API}/protected/user/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "N3w!password"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("max-age=0", response.headers["set-cookie"].lower())
        self.assertEqual(self.check(other_device), 401)

    def test_wrong_current_password(self) -> None:
        self.login("teacher@greenfield.edu", "teacher")
        response = self.client.post(
            f"{API}/protected/user/change-password",
            json={"current_password": "nope", "new_password": "N3w!password"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Current password is incorrect")


class TestAdminUsers(ApiTestCase):
    """Admin user management is role gated and scoped to the admin's school."""

    def test_teacher_is_forbidden(self) -> None:
        self.login("teacher@greenfield.edu", "teacher")
        response = self.client.get(f"{API}/protected/admin/users")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"detail": "Access denied"})

    def test_admin_lists_own_school_only(self) -> None:
        self.login("admin@greenfield.edu", "admin")
        response = self.client.get(f"{API}/protected/admin/users")
        self.assertEqual(response.status_code, 200)
        ids = {u["id"] for u in response.json()["users"]}
        self.assertEqual(ids, {self.admin_id, self.teacher_id})

        filtered = self.client.get(f"{API}/protected/admin/users", params={"role": "teacher"})
        self.assertEqual([u["id"] for u in filtered.json()["users"]], [self.teacher_id])

    def test_deactivation_ends_sessions(self) -> None:
        teacher_token = self.login("teacher@greenfield.edu", "teacher")
        self.client.cookies.clear()
        self.login("admin@greenfield.edu", "admin")
        response = self.client.patch(
            f"{API}/protected/admin/users/{self.teacher_id}/toggle-status",
            json={"is_active": False},
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["user"]["is_active"])
        self.assertEqual(self.check(teacher_token), 401)

    def test_toggle_requires_boolean(self) -> None:
        self.login("admin@greenfield.edu", "admin")
        response = self.client.patch(
            f"{API}/protected/admin/users/{self.teacher_id}/toggle-status",
            json={"is_active": "no"},
        )
        self.assertEqual(response.status_code, 422)

    def test_cannot_deactivate_self(self) -> None:
        self.login("admin@greenfield.edu", "admin")
        response = self.client.patch(
            f"{API}/protected/admin/users/{self.admin_id}/toggle-status",
            json={"is_active": False},
        )
        self.assertEqual(response.status_code, 400)

    def test_other_school_is_not_found(self) -> None:
        self.login("admin@greenfield.edu", "admin")
        response = self.client.delete(f"{API}/protected/admin/users/{self.outsider_id}")
        self.assertEqual(response.status_code, 404)

    def test_cannot_delete_self(self) -> None:
        self.login("admin@greenfield.edu", "admin")
        response = self.client.delete(f"{API}/protected/admin/users/{self.admin_id}")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Cannot delete your own account")

    def test_delete_user(self) -> None:
        teacher_token = self.login("teacher@greenfield.edu", "teacher")
        self.client.cookies.clear()
        self.login("admin@greenfield.edu", "admin")
        response = self.client.delete(f"{API}/protected/admin/users/{self.teacher_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.check(teacher_token), 401)

    def test_set_password(self) -> None:
        teacher_token = self.login("teacher@greenfield.edu", "teacher")
        self.client.cookies.clear()
        self.login("admin@greenfield.edu", "admin")
        response = self.client.put(
            f"{API}/protected/admin/users/{self.teacher_id}/password",
            json={"new_password": "Adm1n!chosen"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.check(teacher_token), 401)


class TestPasswordResetRoutes(ApiTestCase):
    """Reset routes never reveal whether an account exists."""

    def test_request_does_not_reveal_accounts(self) -> None:
        known = self.client.post(
            f"{API}/auth/reset-password",
            json={"email": "teacher@greenfield.edu", "type": "school", "school_slug": "greenfield"},
        )
        unknown = self.client.post(
            f"{API}/auth/reset-password",
            json={"email": "ghost@greenfield.edu", "type": "school", "school_slug": "greenfield"},
        )
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())

    def test_confirm_with_bad_token(self) -> None:
        response = self.client.post(
            f"{API}/auth/reset-password/confirm",
            json={"token": "bogus", "new_password": "R3set!pass", "confirm_password": "R3set!pass"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Invalid or expired reset token")


class TestAuthCookieAttributes(unittest.TestCase):
    """The session cookie is marked Secure only in production."""

    def _set_cookie_header(self, app_env: str, secret: str = "s" * 32) -> str:
        configured = Settings(_env_file=None, APP_ENV=app_env, JWT_SECRET=SecretStr(secret))
        response = Response()
        with patch("uplus.api.v1.auth.get_settings", return_value=configured):
            set_auth_cookie(response, "signed-token")
        return response.headers["set-cookie"].lower()

    def test_secure_in_prod(self) -> None:
        cookie = self._set_cookie_header("prod")
        self.assertIn("auth_token=signed-token", cookie)
        self.assertIn("secure", cookie)
        self.assertIn("httponly", cookie)
        self.assertIn("samesite=strict", cookie)

    def test_not_secure_in_dev(self) -> None:
        self.assertNotIn("secure", self._set_cookie_header("dev"))

    def test_clear_keeps_attributes_in_prod(self) -> None:
        configured = Settings(_env_file=None, APP_ENV="prod", JWT_SECRET=SecretStr("s" * 32))
        response = Response()
        with patch("uplus.api.v1.auth.get_settings", return_value=configured):
            clear_auth_cookie(response)
        cookie = response.headers["set-cookie"].lower()
        self.assertIn("max-age=0", cookie)
        self.assertIn("secure", cookie)


class TestHealth(ApiTestCase):
    """Health probe reports store connectivity."""

    def test_health(self) -> None:
        response = self.client.get(f"{API}/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")


if __name__ == "__main__":
    unittest.main()
