# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - providers.py: Groq / Google AI / Anthropic clients with timeouts
#   - transcription.py, cleaning.py, tagging.py: the voice pipeline stages
#   - audio.py: upload validation + ffmpeg conversion and silence detection
#   - thoughts.py: per-user thought storage
#   - tiers.py, usage.py: subscription plans, token estimation, monthly caps
#   - billing.py: Stripe checkout/portal/webhooks and profile sync
#   - auth.py, rate_limiter.py: Supabase token checks, Redis rate limiting
#   - translation.py: thought translation and language detection
# =============================================================================
