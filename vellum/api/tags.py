# =============================================================================
# Tagging API
# =============================================================================
#
# ENDPOINT:
#   POST /api/tags   {"text": "..."}  →  {"tags": ["product", "launch"]}
#
# Tagging failures degrade to an empty list; the thought is still saved.
# =============================================================================

from fastapi import APIRouter, Depends, HTTPException

from vellum.api.deps import enforce_pipeline_limits
from vellum.models.requests import TagsRequest
from vellum.models.responses import TagsResponse
from vellum.services.tagging import TaggingService, get_tagging_service

router = APIRouter(tags=["Pipeline"])


@router.post(
    "/tags",
    response_model=TagsResponse,
    summary="Extract 3–5 topic tags from text",
    dependencies=[Depends(enforce_pipeline_limits)],
)
async def extract_tags(
    request: TagsRequest,
    service: TaggingService = Depends(get_tagging_service),
) -> TagsResponse:
    if not request.text:
        raise HTTPException(status_code=400, detail="No text provided")

    tags = await service.extract_tags(request.text)
    return TagsResponse(tags=tags)
