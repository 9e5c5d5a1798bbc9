# =============================================================================
# Transcription API — Audio Upload → Whisper Transcript
# =============================================================================
#
# ENDPOINT:
#   POST /api/transcribe   multipart/form-data, field `audio`
#
# PIPELINE:
#   1. Read the upload (400 if missing, empty, or over the size cap)
#   2. ffmpeg: normalise to 16 kHz mono MP3 + measure loudness
#      (400 if silent or undecodable; passthrough if ffmpeg is absent)
#   3. Groq Whisper transcription (503 if no key, 500 on provider failure)
#   4. Add the recording's minutes to the user's monthly usage
#
# Unlike cleaning and tagging there is no graceful fallback here: without
# a transcript there is nothing to save, so failures are reported.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from vellum.api.deps import enforce_pipeline_limits
from vellum.config import settings
from vellum.db.models import Profile
from vellum.models.responses import TranscribeResponse
from vellum.services.audio import check_upload_size, prepare_audio
from vellum.services.errors import AudioProcessingError, TranscriptionError
from vellum.services.transcription import TranscriptionService, get_transcription_service
from vellum.services.usage import record_minutes

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pipeline"])


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    summary="Transcribe an audio recording",
    description=(
        "Upload a browser recording (webm, ogg, mp4, m4a, wav; max 50MB) "
        "as the `audio` form field. Returns the raw Whisper transcript."
    ),
)
async def transcribe_audio(
    audio: UploadFile | None = File(
        default=None,
        description="Recorded audio file",
    ),
    profile: Profile | None = Depends(enforce_pipeline_limits),
    service: TranscriptionService = Depends(get_transcription_service),
) -> TranscribeResponse:
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")

    try:
        if audio.size is not None:
            check_upload_size(audio.size, settings.max_upload_bytes)
        # Never buffer more than one byte past the cap
        data = await audio.read(settings.max_upload_bytes + 1)
        prepared = await prepare_audio(
            data,
            filename=audio.filename,
            content_type=audio.content_type,
            max_bytes=settings.max_upload_bytes,
            convert=settings.audio_conversion_enabled,
            ffmpeg_path=settings.ffmpeg_path,
            timeout_seconds=settings.ffmpeg_timeout_seconds,
            silence_threshold_db=settings.silence_threshold_db,
        )
    except AudioProcessingError as e:
        logger.info("Rejected audio upload '%s': %s", audio.filename, e)
        raise HTTPException(status_code=400, detail=str(e)) from e

    if not service.is_configured():
        raise HTTPException(
            status_code=503,
            detail={
                "error": "Transcription service not configured",
                "details": "GROQ_API_KEY is not set",
            },
        )

    try:
        transcript = await service.transcribe(
            prepared.data,
            mime_type=prepared.mime_type,
            filename=prepared.filename,
        )
    except TranscriptionError as e:
        logger.error("Transcription failed for '%s': %s", audio.filename, e)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to transcribe audio", "details": str(e)},
        ) from e

    transcript = transcript.strip()
    if not transcript:
        raise HTTPException(status_code=400, detail="No speech detected in audio")

    if profile is not None and record_minutes(profile, prepared.duration_seconds):
        logger.info(
            "Recorded %.1fs of audio for user %s (minutes_used=%.1f)",
            prepared.duration_seconds, profile.id, profile.minutes_used,
        )

    return TranscribeResponse(
        transcript=transcript,
        duration_seconds=prepared.duration_seconds,
        converted=prepared.converted,
    )
