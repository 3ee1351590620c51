import asyncio

import pytest

from integration import identity
from integration.identity import FirebaseIdentityVerifier, bearer_token
from momentum.errors import Unauthorized


def test_bearer_token():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_verify_returns_uid(monkeypatch):
    def fake_verify(token, request, audience=None):
        assert token == "good"
        assert audience == "momentum-app"
        return {"sub": "u1", "aud": audience, "iss": "https://securetoken.google.com/momentum-app"}

    monkeypatch.setattr(identity.id_token, "verify_firebase_token", fake_verify)
    uid = asyncio.run(FirebaseIdentityVerifier("momentum-app").verify("good"))
    assert uid == "u1"


def test_verify_rejects_bad_token(monkeypatch):
    def fake_verify(token, request, audience=None):
        raise ValueError("Token expired")

    monkeypatch.setattr(identity.id_token, "verify_firebase_token", fake_verify)
    with pytest.raises(Unauthorized):
        asyncio.run(FirebaseIdentityVerifier("momentum-app").verify("stale"))


def test_verify_requires_token():
    with pytest.raises(Unauthorized):
        asyncio.run(FirebaseIdentityVerifier("momentum-app").verify(None))


def test_missing_project_id_rejects_every_token(monkeypatch):
    def fake_verify(token, request, audience=None):
        return {"sub": "victim-uid", "aud": "attacker-project"}

    monkeypatch.setattr(identity.id_token, "verify_firebase_token", fake_verify)
    with pytest.raises(Unauthorized):
        asyncio.run(FirebaseIdentityVerifier("").verify("minted-elsewhere"))


def test_verify_rejects_foreign_issuer(monkeypatch):
    def fake_verify(token, request, audience=None):
        return {
            "sub": "u1",
            "aud": audience,
            "iss": "https://securetoken.google.com/attacker-project",
        }

    monkeypatch.setattr(identity.id_token, "verify_firebase_token", fake_verify)
    with pytest.raises(Unauthorized):
        asyncio.run(FirebaseIdentityVerifier("momentum-app").verify("good"))
