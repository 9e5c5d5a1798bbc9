# =============================================================================
# Translation API
# =============================================================================
#
# ENDPOINTS:
#   GET  /api/languages         supported display languages
#   POST /api/translate         {"text", "targetLang"} → {"translatedText"}
#   POST /api/detect-language   {"text"} → {"language"}
# =============================================================================

from fastapi import APIRouter, Depends, HTTPException

from vellum.models.requests import DetectLanguageRequest, TranslateRequest
from vellum.models.responses import (
    DetectLanguageResponse,
    LanguageItem,
    LanguagesResponse,
    TranslateResponse,
)
from vellum.services.errors import TranslationError
from vellum.services.translation import (
    LANGUAGE_CODES,
    LANGUAGES,
    Translator,
    get_translator,
)

router = APIRouter(tags=["Translation"])


@router.get(
    "/languages",
    response_model=LanguagesResponse,
    summary="List supported translation languages",
)
async def list_languages() -> LanguagesResponse:
    return LanguagesResponse(
        languages=[LanguageItem(code=code, name=name) for code, name in LANGUAGES],
    )


@router.post(
    "/translate",
    response_model=TranslateResponse,
    summary="Translate text into a supported language",
)
async def translate(
    request: TranslateRequest,
    translator: Translator = Depends(get_translator),
) -> TranslateResponse:
    if not request.text:
        raise HTTPException(status_code=400, detail="No text provided")
    if request.target_lang not in LANGUAGE_CODES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported language '{request.target_lang}'",
        )

    try:
        translated = await translator.translate(request.text, request.target_lang)
    except TranslationError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return TranslateResponse(translated_text=translated, target_lang=request.target_lang)


@router.post(
    "/detect-language",
    response_model=DetectLanguageResponse,
    summary="Detect the language of a text",
)
async def detect_language(
    request: DetectLanguageRequest,
    translator: Translator = Depends(get_translator),
) -> DetectLanguageResponse:
    language = await translator.detect_language(request.text or "")
    return DetectLanguageResponse(language=language)
