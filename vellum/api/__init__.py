# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for one feature, mounted under
# /api by vellum.main:
#   - transcribe.py, clean.py, tags.py: the voice pipeline
#   - thoughts.py: saved thoughts CRUD
#   - usage.py: monthly usage and limits
#   - billing.py: Stripe endpoints (/api/stripe/*)
#   - translate.py: languages, translation, language detection
#   - health.py: liveness and integration status
# Shared pieces: deps.py (auth, limits), middleware.py, errors.py.
# =============================================================================
