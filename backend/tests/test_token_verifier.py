import unittest

import jwt
import pytest

from routewatch.core.security import AuthenticationError, TokenVerifier, parse_bearer_header

AUDIENCE = "https://api.routewatch.test"


class TestParseBearerHeader(unittest.TestCase):
    def test_valid_header(self):
        self.assertEqual(parse_bearer_header("Bearer abc.def.ghi"), "abc.def.ghi")

    def test_missing_header(self):
        with self.assertRaisesRegex(AuthenticationError, "Missing authorization header"):
            parse_bearer_header(None)
        with self.assertRaisesRegex(AuthenticationError, "Missing authorization header"):
            parse_bearer_header("")

    def test_malformed_headers(self):
        for header in ["bearer abc", "Basic abc", "Bearer", "Bearer ", "Bearer a b", "Bearer  abc", "abc"]:
            with self.subTest(header=header):
                with self.assertRaisesRegex(AuthenticationError, "Invalid authorization format"):
                    parse_bearer_header(header)


def test_valid_token_returns_claims(token_verifier, issue_token):
    claims = token_verifier.verify(issue_token("auth0|abc"))
    assert claims["sub"] == "auth0|abc"


def test_audience_list_membership(token_verifier, issue_token):
    token = issue_token(aud=["https://other.example", AUDIENCE])
    assert token_verifier.verify(token)["sub"] == "auth0|u1"


def test_wrong_audience_rejected(token_verifier, issue_token):
    with pytest.raises(AuthenticationError, match="Invalid audience"):
        token_verifier.verify(issue_token(aud="https://other.example"))


def test_issuer_requires_trailing_slash(token_verifier, issue_token):
    with pytest.raises(AuthenticationError, match="Invalid issuer"):
        token_verifier.verify(issue_token(iss="https://tenant.example.com"))


def test_expired_token_rejected(token_verifier, issue_token):
    with pytest.raises(AuthenticationError, match="expired"):
        token_verifier.verify(issue_token(expires_in=-60))


def test_other_algorithm_rejected_before_key_lookup(token_verifier, jwks_client, issue_token):
    token = issue_token(key="a-shared-secret-that-is-long-enough-for-hs256", algorithm="HS256")
    with pytest.raises(AuthenticationError, match="Unexpected signing method: HS256"):
        token_verifier.verify(token)
    assert jwks_client.fetch_count == 0


def test_signature_from_foreign_key_rejected(token_verifier, issue_token, foreign_key):
    with pytest.raises(AuthenticationError, match="Invalid token"):
        token_verifier.verify(issue_token(key=foreign_key))


def test_unknown_key_id_rejected(token_verifier, issue_token):
    with pytest.raises(AuthenticationError, match="Unable to resolve signing key"):
        token_verifier.verify(issue_token(kid="rotated-away"))


def test_key_set_fetch_failure_rejected(settings, static_jwks_client, issue_token):
    client = static_jwks_client(error=jwt.PyJWKClientConnectionError("connection refused"))
    verifier = TokenVerifier(issuer=settings.issuer, audience=AUDIENCE, jwks_client=client)
    with pytest.raises(AuthenticationError, match="Unable to resolve signing key"):
        verifier.verify(issue_token())


def test_missing_subject_rejected(token_verifier, issue_token):
    with pytest.raises(AuthenticationError, match="Invalid token"):
        token_verifier.verify(issue_token(sub=None))


def test_garbage_token_rejected(token_verifier):
    with pytest.raises(AuthenticationError, match="Invalid token"):
        token_verifier.verify("not-a-jwt")


def test_key_set_is_cached_between_verifications(token_verifier, jwks_client, issue_token):
    token_verifier.verify(issue_token())
    token_verifier.verify(issue_token("auth0|u2"))
    assert jwks_client.fetch_count == 1
