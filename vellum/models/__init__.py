# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the API, kept SEPARATE from the database
# models (vellum/db/models.py). The API contract follows the SPA's field
# names; the tables follow Supabase's.
# =============================================================================
