# =============================================================================
# Cleaning API — Filler-Word Removal
# =============================================================================
#
# ENDPOINT:
#   POST /api/clean   {"transcript": "..."}
#
# Always 200 for a non-empty transcript. When the cleaner is unconfigured,
# slow, or failing, `cleaned_text` is the original transcript and
# `cleaned=false` with a `reason`, so the SPA can save the thought anyway.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException

from vellum.api.deps import enforce_pipeline_limits
from vellum.models.requests import CleanRequest
from vellum.models.responses import CleanResponse
from vellum.services.cleaning import CleaningService, get_cleaning_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pipeline"])


@router.post(
    "/clean",
    response_model=CleanResponse,
    summary="Remove filler words from a transcript",
    dependencies=[Depends(enforce_pipeline_limits)],
)
async def clean_transcript(
    request: CleanRequest,
    service: CleaningService = Depends(get_cleaning_service),
) -> CleanResponse:
    if not request.transcript:
        raise HTTPException(status_code=400, detail="No transcript provided")

    result = await service.clean_detailed(request.transcript)
    if not result.cleaned:
        logger.info("Returning original transcript uncleaned: %s", result.reason)

    return CleanResponse(
        cleaned_text=result.text,
        cleaned=result.cleaned,
        reason=result.reason,
        original_length=len(request.transcript),
        cleaned_length=len(result.text),
    )
