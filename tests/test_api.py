# =============================================================================
# API Tests — FastAPI TestClient against the full app
# =============================================================================
#
# Exercises routing, status codes, error bodies and the wiring between
# routers and services. The database session, AI services and translator
# are swapped via app.dependency_overrides; Stripe calls are patched at the
# billing service boundary. No network, no database.
#
# Test groups:
#   1. Health, middleware, validation errors
#   2. Pipeline: /transcribe, /clean, /tags
#   3. Auth + usage gate (401, 402, minutes recorded)
#   4. Thoughts CRUD
#   5. Usage
#   6. Stripe
#   7. Translation
# =============================================================================

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import stripe
from fastapi import HTTPException
from fastapi.testclient import TestClient

from vellum.api.deps import get_current_user
from vellum.api.transcribe import transcribe_audio
from vellum.config import settings
from vellum.db.engine import get_async_session
from vellum.db.models import Profile
from vellum.main import app
from vellum.services.audio import AudioStats, PreparedAudio
from vellum.services.auth import AuthenticatedUser
from vellum.services.cleaning import CleaningService, get_cleaning_service
from vellum.services.errors import ProviderError, SilentAudioError
from vellum.services.tagging import TaggingService, get_tagging_service
from vellum.services.transcription import TranscriptionService, get_transcription_service
from vellum.services.translation import Translator, get_translator

MB = 1024 * 1024

USER_ID = "8f14e45f-ceea-467f-a0e6-2b1c5e7a9d01"
OTHER_USER_ID = "c9f0f895-fb98-4b91-9d3b-6e3a7f2c4d02"


# ---------------------------------------------------------------------------
# Fakes & fixtures
# ---------------------------------------------------------------------------


class FakeSession:
    """
    Stands in for AsyncSession: get() by (model, key), records add/delete.

    execute() records the statement and returns an empty result.
    """

    def __init__(self, objects: dict | None = None):
        self.objects = objects or {}
        self.added: list = []
        self.deleted: list = []
        self.executed: list = []

    async def execute(self, stmt):
        self.executed.append(stmt)
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        result.scalars.return_value.all.return_value = []
        result.scalar.return_value = 0
        return result

    async def get(self, model, key):
        return self.objects.get((model, key))

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        pass

    async def delete(self, obj):
        self.deleted.append(obj)


@dataclass
class FakeThought:
    id: str = "5b0e4c1e-0000-4000-8000-000000000001"
    user_id: str = "00000000-0000-0000-0000-000000000001"
    raw_transcript: str = "um so today I went running"
    cleaned_text: str | None = "Today I went running."
    tags: list[str] = field(default_factory=lambda: ["health", "running"])
    category: str | None = None
    title: str | None = None
    source: str = "voice"
    tokens_used: int = 0
    created_at: datetime = datetime(2025, 3, 1, tzinfo=UTC)
    updated_at: datetime = datetime(2025, 3, 1, tzinfo=UTC)


class FakeUpload:
    """UploadFile stand-in that records every read() size."""

    def __init__(self, data: bytes, size: int | None):
        self.filename = "a.webm"
        self.content_type = "audio/webm"
        self.size = size
        self.read_sizes: list[int] = []
        self._data = data

    async def read(self, size: int = -1) -> bytes:
        self.read_sizes.append(size)
        return self._data if size < 0 else self._data[:size]


def _provider(api_key: str = "test-key", **methods) -> MagicMock:
    provider = MagicMock()
    provider.api_key = api_key
    for name, mock in methods.items():
        setattr(provider, name, mock)
    return provider


def _profile(user_id: str = USER_ID, **kwargs) -> Profile:
    values = {
        "tier": "trial",
        "tokens_used": 0,
        "minutes_used": 0.0,
        "usage_period_start": datetime.now(UTC),
    }
    values.update(kwargs)
    return Profile(id=user_id, **values)


def _sign(payload: bytes, secret: str) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    app.dependency_overrides[get_async_session] = lambda: session
    with patch.object(settings, "auth_enabled", False):
        yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in():
    """Act as a signed-in user without going through Supabase or Redis."""
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=USER_ID, email="user1@example.com",
    )
    with patch("vellum.api.deps.check_rate_limit", new_callable=AsyncMock):
        yield


@pytest.fixture
def stripe_on():
    with patch.object(settings, "stripe_secret_key", "sk_test_123"), \
         patch.object(settings, "stripe_webhook_secret", "whsec_test"):
        yield


@pytest.fixture
def stripe_off():
    with patch.object(settings, "stripe_secret_key", ""):
        yield


# ---------------------------------------------------------------------------
# 1. Health, middleware, validation
# ---------------------------------------------------------------------------


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert set(body["services"]) == {
            "transcription", "cleaning", "tagging", "stripe", "supabase",
        }

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/languages", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_request_id_is_generated(self, client):
        response = client.get("/api/languages")
        assert len(response.headers["X-Request-ID"]) == 12

    def test_validation_error_shape(self, client):
        response = client.post("/api/thoughts", json={"tags": ["x"]})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request"
        assert isinstance(body["details"], list)

    def test_wrong_type_is_rejected(self, client):
        response = client.post("/api/clean", json={"transcript": 5})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


# ---------------------------------------------------------------------------
# 2. Pipeline
# ---------------------------------------------------------------------------


class TestTranscribe:

    def _use(self, provider):
        app.dependency_overrides[get_transcription_service] = (
            lambda: TranscriptionService(provider=provider)
        )

    def test_missing_file(self, client):
        response = client.post("/api/transcribe")
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}

    def test_empty_file(self, client):
        self._use(_provider(transcribe=AsyncMock()))
        response = client.post(
            "/api/transcribe", files={"audio": ("a.webm", b"", "audio/webm")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Audio file is empty"}

    def test_file_too_large(self, client):
        self._use(_provider(transcribe=AsyncMock()))
        with patch.object(settings, "max_upload_mb", 1):
            response = client.post(
                "/api/transcribe",
                files={"audio": ("a.webm", b"x" * (MB + 1), "audio/webm")},
            )
        assert response.status_code == 400
        assert response.json() == {"error": "Audio file too large (max 1MB)"}

    def test_declared_size_over_cap_is_never_read(self):
        upload = FakeUpload(b"", size=10 * 1024 * MB)
        service = TranscriptionService(provider=_provider(transcribe=AsyncMock()))
        with patch.object(settings, "max_upload_mb", 1):
            with pytest.raises(HTTPException) as exc_info:
                asyncio.run(transcribe_audio(audio=upload, profile=None, service=service))

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Audio file too large (max 1MB)"
        assert upload.read_sizes == []

    def test_unknown_size_reads_at_most_one_byte_past_cap(self):
        upload = FakeUpload(b"x" * (3 * MB), size=None)
        service = TranscriptionService(provider=_provider(transcribe=AsyncMock()))
        with patch.object(settings, "max_upload_mb", 1):
            with pytest.raises(HTTPException) as exc_info:
                asyncio.run(transcribe_audio(audio=upload, profile=None, service=service))

        assert exc_info.value.detail == "Audio file too large (max 1MB)"
        assert upload.read_sizes == [MB + 1]

    def test_success_without_conversion(self, client):
        provider = _provider(transcribe=AsyncMock(return_value="  hello world "))
        self._use(provider)
        with patch.object(settings, "audio_conversion_enabled", False):
            response = client.post(
                "/api/transcribe",
                files={"audio": ("a.webm", b"webm-bytes", "audio/webm")},
            )

        assert response.status_code == 200
        assert response.json() == {
            "transcript": "hello world",
            "duration_seconds": None,
            "converted": False,
        }
        args = provider.transcribe.await_args
        assert args.args[0] == b"webm-bytes"
        assert args.args[1] == "audio/webm"

    def test_silent_audio(self, client):
        self._use(_provider(transcribe=AsyncMock()))
        silent = AsyncMock(side_effect=SilentAudioError(
            "No speech detected: audio appears to be silent",
        ))
        with patch("vellum.api.transcribe.prepare_audio", new=silent):
            response = client.post(
                "/api/transcribe", files={"audio": ("a.webm", b"x", "audio/webm")},
            )
        assert response.status_code == 400
        assert response.json()["error"].startswith("No speech detected")

    def test_not_configured(self, client):
        self._use(_provider(api_key="", transcribe=AsyncMock()))
        with patch.object(settings, "audio_conversion_enabled", False):
            response = client.post(
                "/api/transcribe", files={"audio": ("a.webm", b"x", "audio/webm")},
            )
        assert response.status_code == 503
        assert response.json() == {
            "error": "Transcription service not configured",
            "details": "GROQ_API_KEY is not set",
        }

    def test_provider_failure(self, client):
        self._use(_provider(
            transcribe=AsyncMock(side_effect=ProviderError("Groq API error: bad file")),
        ))
        with patch.object(settings, "audio_conversion_enabled", False):
            response = client.post(
                "/api/transcribe", files={"audio": ("a.webm", b"x", "audio/webm")},
            )
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to transcribe audio"
        assert body["details"] == "Transcription failed: Groq API error: bad file"

    def test_blank_transcript(self, client):
        self._use(_provider(transcribe=AsyncMock(return_value="   ")))
        with patch.object(settings, "audio_conversion_enabled", False):
            response = client.post(
                "/api/transcribe", files={"audio": ("a.webm", b"x", "audio/webm")},
            )
        assert response.status_code == 400
        assert response.json() == {"error": "No speech detected in audio"}


class TestClean:

    def _use(self, provider):
        app.dependency_overrides[get_cleaning_service] = (
            lambda: CleaningService(provider=provider)
        )

    def test_missing_transcript(self, client):
        response = client.post("/api/clean", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "No transcript provided"}

    def test_cleaned(self, client):
        self._use(_provider(complete=AsyncMock(return_value="I think we should ship.")))
        transcript = "um I think uh we should ship"
        response = client.post("/api/clean", json={"transcript": transcript})

        assert response.status_code == 200
        assert response.json() == {
            "cleaned_text": "I think we should ship.",
            "cleaned": True,
            "reason": None,
            "original_length": len(transcript),
            "cleaned_length": len("I think we should ship."),
        }

    def test_failure_returns_original(self, client):
        self._use(_provider(complete=AsyncMock(side_effect=ProviderError("quota"))))
        response = client.post("/api/clean", json={"transcript": "um hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["cleaned_text"] == "um hello"
        assert body["cleaned"] is False
        assert body["reason"] == "quota"

    def test_unconfigured_returns_original(self, client):
        self._use(_provider(api_key="", complete=AsyncMock()))
        response = client.post("/api/clean", json={"transcript": "um hello"})
        assert response.json()["cleaned_text"] == "um hello"
        assert response.json()["reason"] == "cleaning service not configured"


class TestTags:

    def test_missing_text(self, client):
        response = client.post("/api/tags", json={"text": ""})
        assert response.status_code == 400
        assert response.json() == {"error": "No text provided"}

    def test_tags(self, client):
        provider = _provider(complete=AsyncMock(return_value="#Work #planning #work"))
        app.dependency_overrides[get_tagging_service] = (
            lambda: TaggingService(provider=provider)
        )
        response = client.post("/api/tags", json={"text": "Plan the sprint"})
        assert response.status_code == 200
        assert response.json() == {"tags": ["work", "planning"]}


# ---------------------------------------------------------------------------
# 3. Auth + usage gate
# ---------------------------------------------------------------------------


class TestAuthGate:

    def test_missing_token_when_auth_enabled(self, client):
        with patch.object(settings, "auth_enabled", True):
            response = client.get("/api/usage")
        assert response.status_code == 401
        assert response.json()["error"].startswith("Missing access token")
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_usage_limit_reached(self, client, session, signed_in):
        session.objects[(Profile, USER_ID)] = _profile(tokens_used=25_000)
        response = client.post("/api/clean", json={"transcript": "hello"})

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "Monthly usage limit reached. Upgrade your plan to continue."
        assert body["tier"] == "trial"

    def test_transcribe_records_minutes(self, client, session, signed_in):
        profile = _profile(tier="apprentice")
        session.objects[(Profile, USER_ID)] = profile
        app.dependency_overrides[get_transcription_service] = lambda: TranscriptionService(
            provider=_provider(transcribe=AsyncMock(return_value="hello")),
        )
        prepared = PreparedAudio(
            data=b"mp3", mime_type="audio/mpeg", filename="a.mp3",
            converted=True, stats=AudioStats(duration_seconds=61.0),
        )
        with patch("vellum.api.transcribe.prepare_audio", new=AsyncMock(return_value=prepared)):
            response = client.post(
                "/api/transcribe", files={"audio": ("a.webm", b"x", "audio/webm")},
            )

        assert response.status_code == 200
        assert response.json()["duration_seconds"] == 61.0
        assert response.json()["converted"] is True
        assert profile.minutes_used == 1.1

    def test_cannot_delete_another_account(self, client, signed_in):
        response = client.post("/api/stripe/delete-account", json={"userId": OTHER_USER_ID})
        assert response.status_code == 403
        assert response.json() == {"error": "You can only manage your own account."}


# ---------------------------------------------------------------------------
# 4. Thoughts
# ---------------------------------------------------------------------------


class TestThoughts:

    def test_list(self, client):
        listing = AsyncMock(return_value=([FakeThought()], 1))
        with patch("vellum.services.thoughts.list_thoughts", new=listing):
            response = client.get("/api/thoughts", params={"tag": "health", "limit": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["thoughts"][0]["tags"] == ["health", "running"]
        assert listing.await_args.kwargs == {"tag": "health", "limit": 10, "offset": 0}
        assert listing.await_args.args[1] == settings.dev_user_id

    def test_create_records_estimated_tokens(self, client, session):
        create = AsyncMock(return_value=FakeThought(tokens_used=24))
        with patch("vellum.services.thoughts.create_thought", new=create):
            response = client.post("/api/thoughts", json={
                "raw_transcript": "one two three",
                "cleaned_text": "one two three",
            })

        assert response.status_code == 201
        assert response.json()["tokens_used"] == 24
        assert create.await_args.kwargs["tokens_used"] == 24

        profile = session.added[0]
        assert isinstance(profile, Profile)
        assert profile.tokens_used == 24

    def test_create_typed_thought_skips_transcription_estimate(self, client):
        create = AsyncMock(return_value=FakeThought(source="typed"))
        with patch("vellum.services.thoughts.create_thought", new=create):
            client.post("/api/thoughts", json={
                "raw_transcript": "one two three",
                "cleaned_text": "one two three",
                "source": "typed",
            })
        assert create.await_args.kwargs["tokens_used"] == 12
        assert create.await_args.kwargs["source"] == "typed"

    def test_get_missing(self, client, session):
        response = client.get(f"/api/thoughts/{FakeThought().id}")
        assert response.status_code == 404
        assert response.json() == {"error": "Thought not found"}
        assert len(session.executed) == 1

    @pytest.mark.parametrize("method", ["get", "patch", "delete"])
    def test_malformed_id_is_404_without_query(self, client, session, method):
        kwargs = {"json": {"title": "x"}} if method == "patch" else {}
        response = client.request(method.upper(), "/api/thoughts/does-not-exist", **kwargs)

        assert response.status_code == 404
        assert response.json() == {"error": "Thought not found"}
        assert session.executed == []

    def test_unhandled_error_is_json_500(self, session):
        app.dependency_overrides[get_async_session] = lambda: session
        failing = AsyncMock(side_effect=RuntimeError("connection reset"))
        try:
            with (
                patch.object(settings, "auth_enabled", False),
                patch("vellum.services.thoughts.list_thoughts", new=failing),
            ):
                response = TestClient(app, raise_server_exceptions=False).get("/api/thoughts")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_update(self, client):
        thought = FakeThought()
        updated = FakeThought(title="Morning run")
        with (
            patch("vellum.services.thoughts.get_thought", new=AsyncMock(return_value=thought)),
            patch("vellum.services.thoughts.update_thought", new=AsyncMock(return_value=updated)) as update,
        ):
            response = client.patch(f"/api/thoughts/{thought.id}", json={"title": "Morning run"})

        assert response.status_code == 200
        assert response.json()["title"] == "Morning run"
        assert update.await_args.kwargs["title"] == "Morning run"
        assert update.await_args.kwargs["tags"] is None

    def test_delete(self, client):
        thought = FakeThought()
        with (
            patch("vellum.services.thoughts.get_thought", new=AsyncMock(return_value=thought)),
            patch("vellum.services.thoughts.delete_thought", new=AsyncMock()) as delete,
        ):
            response = client.delete(f"/api/thoughts/{thought.id}")

        assert response.status_code == 204
        assert delete.await_args.args[1] is thought


# ---------------------------------------------------------------------------
# 5. Usage
# ---------------------------------------------------------------------------


class TestUsage:

    def test_new_user_gets_trial(self, client):
        response = client.get("/api/usage")
        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "trial"
        assert body["tokens_used"] == 0
        assert body["token_limit"] == 25_000
        assert body["tokens_remaining"] == 25_000
        assert body["limit_reached"] is False

    def test_existing_profile(self, client, session):
        session.objects[(Profile, settings.dev_user_id)] = _profile(
            settings.dev_user_id, tier="apprentice", minutes_used=120.5,
        )
        body = client.get("/api/usage").json()
        assert body["tier"] == "apprentice"
        assert body["minute_limit"] == 300
        assert body["minutes_remaining"] == 179.5
        assert body["token_limit"] is None


# ---------------------------------------------------------------------------
# 6. Stripe
# ---------------------------------------------------------------------------


class TestStripeNotConfigured:

    def test_checkout_returns_503(self, client, stripe_off):
        response = client.post("/api/stripe/create-checkout-session", json={
            "userId": USER_ID, "email": "u@example.com",
        })
        assert response.status_code == 503
        assert response.json() == {"error": "Stripe is not configured"}

    def test_subscription_status_reports_none(self, client, stripe_off):
        response = client.get(f"/api/stripe/subscription-status/{USER_ID}")
        assert response.status_code == 200
        assert response.json() == {
            "hasSubscription": False,
            "customerId": None,
            "subscriptionId": None,
        }

    def test_delete_account_still_erases_data(self, client, session, stripe_off):
        profile = _profile()
        session.objects[(Profile, USER_ID)] = profile
        with (
            patch.object(settings, "supabase_url", ""),
            patch("vellum.services.thoughts.delete_all_for_user", new=AsyncMock(return_value=3)) as wipe,
        ):
            response = client.post("/api/stripe/delete-account", json={"userId": USER_ID})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert wipe.await_args.args[1] == USER_ID
        assert session.deleted == [profile]


class TestStripeCheckout:

    def test_requires_user_and_email(self, client, stripe_on):
        response = client.post("/api/stripe/create-checkout-session", json={"userId": USER_ID})
        assert response.status_code == 400
        assert response.json() == {"error": "userId and email are required"}

    def test_creates_session(self, client, stripe_on):
        create = AsyncMock(return_value={"id": "cs_1", "url": "https://checkout.stripe.com/c/1"})
        with patch("vellum.services.billing.create_checkout_session", new=create):
            response = client.post(
                "/api/stripe/create-checkout-session",
                json={"userId": USER_ID, "email": "u@example.com", "tier": "apprentice"},
                headers={"Origin": "https://journal.example"},
            )

        assert response.status_code == 200
        assert response.json() == {"sessionId": "cs_1", "url": "https://checkout.stripe.com/c/1"}
        kwargs = create.await_args.kwargs
        assert kwargs["origin"] == "https://journal.example"
        assert kwargs["tier"] == "apprentice"
        assert kwargs["customer_id"] is None

    def test_reuses_existing_customer(self, client, session, stripe_on):
        session.objects[(Profile, USER_ID)] = _profile(stripe_customer_id="cus_1")
        create = AsyncMock(return_value={"id": "cs_2", "url": "https://checkout.stripe.com/c/2"})
        with patch("vellum.services.billing.create_checkout_session", new=create):
            client.post("/api/stripe/create-checkout-session", json={
                "userId": USER_ID, "email": "u@example.com",
            })
        assert create.await_args.kwargs["customer_id"] == "cus_1"

    def test_stripe_error_returns_500(self, client, stripe_on):
        error = stripe.InvalidRequestError("No such price", None)
        with patch("vellum.services.billing.create_checkout_session", new=AsyncMock(side_effect=error)):
            response = client.post("/api/stripe/create-checkout-session", json={
                "userId": USER_ID, "email": "u@example.com",
            })
        assert response.status_code == 500
        assert "No such price" in response.json()["error"]


class TestStripeSessions:

    def test_portal_requires_customer(self, client, stripe_on):
        response = client.post("/api/stripe/create-portal-session", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "customerId is required"}

    def test_portal(self, client, stripe_on):
        portal = AsyncMock(return_value={"url": "https://billing.stripe.com/p/1"})
        with patch("vellum.services.billing.create_portal_session", new=portal):
            response = client.post(
                "/api/stripe/create-portal-session",
                json={"customerId": "cus_1"},
                headers={"Origin": "https://journal.example"},
            )
        assert response.json() == {"url": "https://billing.stripe.com/p/1"}
        assert portal.await_args.kwargs["return_url"] == "https://journal.example/settings"

    def test_verify_requires_session_id(self, client, stripe_on):
        response = client.post("/api/stripe/verify-session", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "sessionId is required"}

    def test_verify_upgrades_profile(self, client, session, stripe_on):
        profile = _profile()
        session.objects[(Profile, USER_ID)] = profile
        checkout = {
            "id": "cs_1",
            "status": "complete",
            "payment_status": "paid",
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"userId": USER_ID, "tier": "apprentice"},
        }
        with patch(
            "vellum.services.billing.retrieve_checkout_session",
            new=AsyncMock(return_value=checkout),
        ):
            response = client.post("/api/stripe/verify-session", json={"sessionId": "cs_1"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "tier": "apprentice",
            "customerId": "cus_1",
            "subscriptionId": "sub_1",
        }
        assert profile.tier == "apprentice"

    def test_verify_unpaid(self, client, stripe_on):
        checkout = {"id": "cs_1", "status": "open", "payment_status": "unpaid", "metadata": {}}
        with patch(
            "vellum.services.billing.retrieve_checkout_session",
            new=AsyncMock(return_value=checkout),
        ):
            response = client.post("/api/stripe/verify-session", json={"sessionId": "cs_1"})
        assert response.json()["success"] is False


class TestStripeWebhook:

    PAYLOAD = json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": "invoice.paid",
        "data": {"object": {"id": "in_1"}},
    }).encode()

    def test_bad_signature(self, client, stripe_on):
        response = client.post(
            "/api/stripe/webhook",
            content=self.PAYLOAD,
            headers={"Stripe-Signature": "t=1,v1=deadbeef"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook signature"}

    def test_valid_event(self, client, stripe_on):
        handle = AsyncMock(return_value=True)
        with patch("vellum.services.billing.handle_webhook_event", new=handle):
            response = client.post(
                "/api/stripe/webhook",
                content=self.PAYLOAD,
                headers={"Stripe-Signature": _sign(self.PAYLOAD, "whsec_test")},
            )
        assert response.status_code == 200
        assert response.json() == {"received": True, "duplicate": False}
        handle.assert_awaited_once()

    def test_duplicate_event(self, client, stripe_on):
        with patch("vellum.services.billing.handle_webhook_event", new=AsyncMock(return_value=False)):
            response = client.post(
                "/api/stripe/webhook",
                content=self.PAYLOAD,
                headers={"Stripe-Signature": _sign(self.PAYLOAD, "whsec_test")},
            )
        assert response.json() == {"received": True, "duplicate": True}


class TestStripeUserIds:

    def test_checkout_rejects_malformed_user_id(self, client, session, stripe_on):
        response = client.post("/api/stripe/create-checkout-session", json={
            "userId": "user-1", "email": "u@example.com",
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid userId"}

    def test_subscription_status_rejects_malformed_user_id(self, client, stripe_on):
        response = client.get("/api/stripe/subscription-status/not-a-uuid")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid userId"}

    def test_delete_account_rejects_malformed_user_id(self, client, session):
        response = client.post("/api/stripe/delete-account", json={"userId": "abc"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid userId"}
        assert session.executed == []
        assert session.deleted == []


class TestSubscriptionStatus:

    def test_no_profile(self, client, stripe_on):
        response = client.get(f"/api/stripe/subscription-status/{USER_ID}")
        assert response.json() == {
            "hasSubscription": False,
            "customerId": None,
            "subscriptionId": None,
            "status": None,
            "tier": None,
        }

    def test_active_subscription_syncs_profile(self, client, session, stripe_on):
        profile = _profile(stripe_customer_id="cus_1", stripe_subscription_id="sub_1")
        session.objects[(Profile, USER_ID)] = profile
        subscription = {
            "id": "sub_1",
            "status": "active",
            "customer": "cus_1",
            "metadata": {"tier": "pro"},
        }
        with patch(
            "vellum.services.billing.retrieve_subscription",
            new=AsyncMock(return_value=subscription),
        ):
            response = client.get(f"/api/stripe/subscription-status/{USER_ID}")

        assert response.json() == {
            "hasSubscription": True,
            "customerId": "cus_1",
            "subscriptionId": "sub_1",
            "status": "active",
            "tier": "pro",
        }
        assert profile.tier == "pro"

    def test_delete_cancels_active_subscription(self, client, session, stripe_on):
        session.objects[(Profile, USER_ID)] = _profile(
            tier="pro", stripe_subscription_id="sub_1", subscription_status="active",
        )
        with (
            patch.object(settings, "supabase_url", ""),
            patch("vellum.services.billing.cancel_subscription", new=AsyncMock()) as cancel,
            patch("vellum.services.thoughts.delete_all_for_user", new=AsyncMock(return_value=0)),
        ):
            response = client.post("/api/stripe/delete-account", json={"userId": USER_ID})

        assert response.status_code == 200
        cancel.assert_awaited_once_with("sub_1")

    def test_delete_requires_user_id(self, client):
        response = client.post("/api/stripe/delete-account", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "userId is required"}


# ---------------------------------------------------------------------------
# 7. Translation
# ---------------------------------------------------------------------------


class TestTranslation:

    def _use(self, handler):
        translator = Translator(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        app.dependency_overrides[get_translator] = lambda: translator

    def test_languages(self, client):
        body = client.get("/api/languages").json()
        assert len(body["languages"]) == 20
        assert body["languages"][0] == {"code": "en", "name": "English"}

    def test_translate(self, client):
        self._use(lambda request: httpx.Response(
            200, json=[[["Hola", "Hello", None, None, 10]], None, "en"],
        ))
        response = client.post("/api/translate", json={"text": "Hello", "targetLang": "es"})
        assert response.status_code == 200
        assert response.json() == {"translatedText": "Hola", "targetLang": "es"}

    def test_missing_text(self, client):
        response = client.post("/api/translate", json={"targetLang": "es"})
        assert response.status_code == 400
        assert response.json() == {"error": "No text provided"}

    def test_unsupported_language(self, client):
        response = client.post("/api/translate", json={"text": "Hello", "targetLang": "xx"})
        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported language 'xx'"}

    def test_upstream_failure(self, client):
        self._use(lambda request: httpx.Response(503))
        response = client.post("/api/translate", json={"text": "Hello", "targetLang": "fr"})
        assert response.status_code == 502
        assert response.json() == {"error": "Failed to translate text. Please try again."}

    def test_detect_language(self, client):
        self._use(lambda request: httpx.Response(
            200, json=[[["Hello", "Hola", None, None, 10]], None, "es"],
        ))
        response = client.post("/api/detect-language", json={"text": "Hola"})
        assert response.json() == {"language": "es"}
