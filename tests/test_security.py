"""Unit tests for the token codec, token digests and password helpers."""

import base64
import json
import unittest
from datetime import UTC, datetime, timedelta

import jwt

from uplus.core.config import settings
from uplus.core.security import (
    ExpiredTokenError,
    InvalidTokenError,
    hash_password,
    hash_token,
    issue_token,
    validate_password_strength,
    verify_password,
    verify_token,
)
from uplus.schemas.auth import TokenClaims

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)


def _claims(**overrides) -> TokenClaims:
    fields = {"user_id": 7, "role": "teacher", "school_id": 3, "school_slug": "greenfield"}
    fields.update(overrides)
    return TokenClaims(**fields)


def _forge_payload(token: str, **changes) -> str:
    """Swap claims in the payload segment while keeping the original signature."""
    header, payload, signature = token.split(".")
    data = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    data.update(changes)
    forged = base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()
    return ".".join([header, forged, signature])


class TestIssueAndVerify(unittest.TestCase):
    """Issued tokens carry the claims and expire exactly after the TTL."""

    def test_claims_survive_issue(self) -> None:
        token = issue_token(_claims(email="t@example.com"), now=T0)
        claims = verify_token(token, now=T0 + timedelta(minutes=1))
        self.assertEqual(claims.user_id, 7)
        self.assertEqual(claims.role, "teacher")
        self.assertEqual(claims.school_id, 3)
        self.assertEqual(claims.school_slug, "greenfield")
        self.assertEqual(claims.email, "t@example.com")
        self.assertEqual(claims.issued_at, int(T0.timestamp()))
        self.assertEqual(claims.expires_at, int((T0 + timedelta(hours=24)).timestamp()))

    def test_payload_uses_wire_claim_names(self) -> None:
        token = issue_token(_claims(), now=T0)
        payload = jwt.decode(token, options={"verify_signature": False})
        self.assertIn("userId", payload)
        self.assertIn("schoolSlug", payload)
        self.assertNotIn("user_id", payload)

    def test_same_claims_same_instant_give_distinct_tokens(self) -> None:
        first = issue_token(_claims(), now=T0)
        second = issue_token(_claims(), now=T0)
        self.assertNotEqual(first, second)
        self.assertNotEqual(hash_token(first), hash_token(second))

    def test_valid_just_before_expiry(self) -> None:
        token = issue_token(_claims(), now=T0)
        verify_token(token, now=T0 + timedelta(hours=23, minutes=59))

    def test_expired_just_after_expiry(self) -> None:
        token = issue_token(_claims(), now=T0)
        with self.assertRaises(ExpiredTokenError):
            verify_token(token, now=T0 + timedelta(hours=24, seconds=1))

    def test_expired_is_an_invalid_token(self) -> None:
        token = issue_token(_claims(), now=T0, ttl=timedelta(minutes=5))
        with self.assertRaises(InvalidTokenError):
            verify_token(token, now=T0 + timedelta(minutes=5))


class TestVerifyRejects(unittest.TestCase):
    """Verification fails closed on forged, foreign or malformed tokens."""

    def test_tampered_payload(self) -> None:
        token = issue_token(_claims(), now=T0)
        with self.assertRaises(InvalidTokenError):
            verify_token(_forge_payload(token, role="headadmin"), now=T0)

    def test_foreign_secret(self) -> None:
        token = jwt.encode(
            {"userId": 7, "role": "admin", "iat": int(T0.timestamp()), "exp": int(T0.timestamp()) + 60},
            "not-the-server-secret",
            algorithm="HS256",
        )
        with self.assertRaises(InvalidTokenError):
            verify_token(token, now=T0)

    def test_garbage(self) -> None:
        for bad in ("", "abc", "a.b.c", "Bearer x"):
            with self.subTest(token=bad), self.assertRaises(InvalidTokenError):
                verify_token(bad, now=T0)

    def test_missing_required_claim(self) -> None:
        token = jwt.encode(
            {"role": "admin", "iat": int(T0.timestamp()), "exp": int(T0.timestamp()) + 60},
            settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
        )
        with self.assertRaises(InvalidTokenError):
            verify_token(token, now=T0)


class TestHashToken(unittest.TestCase):
    """Token digests are deterministic sha256 hex."""

    def test_deterministic_hex_digest(self) -> None:
        digest = hash_token("raw-token")
        self.assertEqual(digest, hash_token("raw-token"))
        self.assertEqual(len(digest), 64)
        int(digest, 16)

    def test_distinct_inputs(self) -> None:
        self.assertNotEqual(hash_token("a"), hash_token("b"))

    def test_digest_is_not_the_token(self) -> None:
        token = issue_token(_claims(), now=T0)
        self.assertNotIn(token, hash_token(token))


class TestPasswords(unittest.TestCase):
    """bcrypt hashing and the password strength rules."""

    def test_hash_and_verify(self) -> None:
        hashed = hash_password("Corr3ct!horse")
        self.assertNotEqual(hashed, "Corr3ct!horse")
        self.assertTrue(verify_password("Corr3ct!horse", hashed))
        self.assertFalse(verify_password("wrong", hashed))

    def test_malformed_hash_is_a_mismatch(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-bcrypt-hash"))

    def test_strong_password_passes(self) -> None:
        self.assertEqual(validate_password_strength("Str0ng!pass"), [])

    def test_each_rule_reported(self) -> None:
        cases = {
            "Sh0rt!": "at least 8",
            "alllower1!": "uppercase",
            "ALLUPPER1!": "lowercase",
            "NoDigits!!": "number",
            "NoSpecial11": "special character",
        }
        for password, fragment in cases.items():
            with self.subTest(password=password):
                problems = validate_password_strength(password)
                self.assertTrue(any(fragment in p for p in problems), problems)


if __name__ == "__main__":
    unittest.main()
