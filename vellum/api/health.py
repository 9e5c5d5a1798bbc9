# =============================================================================
# Health API
# =============================================================================
#
# GET /api/health — liveness plus which integrations have credentials.
# Never calls out to a provider; a missing key shows up as `false`.
# =============================================================================

from fastapi import APIRouter, Depends

from vellum.config import settings
from vellum.models.responses import HealthResponse
from vellum.services.cleaning import CleaningService, get_cleaning_service
from vellum.services.tagging import TaggingService, get_tagging_service
from vellum.services.transcription import TranscriptionService, get_transcription_service

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(
    transcription: TranscriptionService = Depends(get_transcription_service),
    cleaning: CleaningService = Depends(get_cleaning_service),
    tagging: TaggingService = Depends(get_tagging_service),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        services={
            "transcription": transcription.is_configured(),
            "cleaning": cleaning.is_configured(),
            "tagging": tagging.is_configured(),
            "stripe": settings.stripe_configured,
            "supabase": settings.supabase_configured,
        },
    )
