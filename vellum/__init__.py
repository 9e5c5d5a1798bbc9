# =============================================================================
# Vellum Voice Journal API
# =============================================================================
# Backend for a voice-journaling app: record audio, transcribe it, clean the
# filler words out, tag it, and keep the resulting "thoughts" per user.
#
# Package structure:
#   vellum/
#   ├── api/          → FastAPI route handlers (transcribe, clean, tags,
#   │                    thoughts, usage, stripe, translate, health)
#   ├── db/           → Database engine, session, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → Provider clients, pipeline services, billing,
#   │                    auth, rate limiting, usage accounting
#   └── main.py       → Application factory (uvicorn entry point)
# =============================================================================
