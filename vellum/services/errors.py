# =============================================================================
# Service Exceptions
# =============================================================================
#
# Raised by the service layer, translated to HTTP status codes by the route
# handlers:
#
#   ProviderNotConfiguredError → 503  (missing API key)
#   ProviderTimeoutError       → degraded result / 500 for transcription
#   ProviderError              → degraded result / 500 for transcription
#   AudioProcessingError       → 400  (empty, too large, undecodable)
#   SilentAudioError           → 400
#   BillingNotConfiguredError  → 503
#   TranslationError           → 502
#   AuthNotConfiguredError     → 503
# =============================================================================

from __future__ import annotations


class ProviderError(Exception):
    """An upstream AI provider call failed."""


class ProviderTimeoutError(ProviderError):
    """An upstream call did not finish before its deadline."""


class ProviderNotConfiguredError(ProviderError):
    """The provider has no API key."""


class TranscriptionError(Exception):
    """Transcription failed after reaching the provider."""


class AudioProcessingError(Exception):
    """The uploaded audio cannot be accepted or decoded."""


class SilentAudioError(AudioProcessingError):
    """The uploaded audio contains no audible signal."""


class BillingNotConfiguredError(Exception):
    """Stripe has no secret key configured."""


class TranslationError(Exception):
    """The translation endpoint failed or returned an unexpected shape."""


class AuthNotConfiguredError(Exception):
    """Supabase URL or service-role key is missing."""
