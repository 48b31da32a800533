"""
FastAPI application for youtube-study.

Routes cover generation (per-path and the server-side fallback chain),
provider diagnostics, chat, notes, speech preparation, history and accounts.
Every error is rendered as ``{error, details?}``.
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Configuration
from .error_handling import (
    AppError, InvalidRequestError, NotFoundError, PersistenceUnavailableError, UpstreamError
)
from .fallback_chain import FallbackChain
from .identity import optional_identity, require_identity
from .models import (
    GENERATED_CONTENT_TYPES, ContentType, GeneratedArtifact, GenerationRequest, GeneratorPath,
    HistoryEntryInput, Identity, VideoReference, utcnow
)
from .schemas import (
    AccountUpdateBody, ChatBody, GenerateBody, HistoryCreateBody, NoteBody, SpeechBody, StatsBody,
    VideoUrlBody
)
from .services import ServiceContainer
from .speech import estimate_duration_seconds, prepare_for_speech
from .url_parser import extract_video_id, validate_youtube_url

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def parse_generated_type(value: Optional[str]) -> ContentType:
    """Accept only the two generated content types."""
    for content_type in GENERATED_CONTENT_TYPES:
        if value == content_type.value:
            return content_type
    raise InvalidRequestError('Invalid type. Must be "study-guide" or "briefing-doc"')


def _history_entry_for(
    request: GenerationRequest,
    artifact: GeneratedArtifact,
    video_title: Optional[str]
) -> HistoryEntryInput:
    metadata = artifact.metadata
    generation_info: Dict[str, Any] = {
        "transcriptLength": artifact.transcript_length_chars,
        "apiUsed": artifact.generator_path.value,
    }
    if artifact.processing_time_ms is not None:
        generation_info["processingTime"] = artifact.processing_time_ms

    return HistoryEntryInput(
        video_url=request.video_ref.url,
        video_title=(metadata.title if metadata else None) or video_title or f"YouTube Video {artifact.video_id}",
        content_type=artifact.content_type,
        content=artifact.content,
        channel_name=metadata.channel_title if metadata else None,
        video_duration=metadata.duration if metadata else None,
        video_views=metadata.view_count if metadata else None,
        video_thumbnail=metadata.thumbnail_url if metadata else None,
        metadata=generation_info,
    )


async def _run_generation(
    body: GenerateBody,
    chain: FallbackChain,
    services: ServiceContainer,
    identity: Optional[Identity]
) -> Dict[str, Any]:
    video_id = validate_youtube_url(body.url)
    content_type = parse_generated_type(body.type)
    request = GenerationRequest(
        video_ref=VideoReference(url=body.url.strip(), id=video_id),
        content_type=content_type,
    )

    result = await chain.run(request)
    artifact = result.artifact

    history_queued = False
    if identity is not None:
        services.record_detached(
            identity,
            _history_entry_for(request, artifact, body.video_title),
            f"save {content_type.value} for {video_id}",
        )
        history_queued = True

    response = artifact.to_response(history_queued=history_queued)
    response["attemptedPaths"] = [path.value for path in result.attempted_paths]
    return response


async def _best_effort_transcript(services: ServiceContainer, video_url: Optional[str]) -> Optional[str]:
    """Transcript used as chat or note context; absence is not an error."""
    video_id = extract_video_id(video_url)
    if not video_id:
        return None
    try:
        result = await services.transcripts.fetch_raw_transcript(video_id)
    except Exception as e:
        logger.warning(f"Could not fetch transcript context for {video_id}: {e}")
        return None
    return result.text or None


# Generation

@router.post("/generate")
async def generate(
    body: GenerateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    """Generate with the full enhanced, standard, mock fallback chain."""
    return await _run_generation(body, services.chain, services, identity)


@router.post("/generate/enhanced")
async def generate_enhanced(
    body: GenerateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    return await _run_generation(body, services.single_path_chains[GeneratorPath.ENHANCED], services, identity)


@router.post("/generate/standard")
async def generate_standard(
    body: GenerateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    return await _run_generation(body, services.single_path_chains[GeneratorPath.STANDARD], services, identity)


@router.post("/generate/mock")
async def generate_mock(
    body: GenerateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    return await _run_generation(body, services.single_path_chains[GeneratorPath.MOCK], services, identity)


# Provider diagnostics

@router.post("/transcript/test")
async def transcript_check(body: VideoUrlBody, services: ServiceContainer = Depends(get_services)):
    video_id = validate_youtube_url(body.url)
    try:
        result = await services.transcripts.fetch_raw_transcript(video_id)
    except Exception as e:
        logger.error(f"Transcript test failed for {video_id}: {e}")
        raise UpstreamError("Failed to fetch transcript", details=str(e))

    return {
        "success": True,
        "videoId": video_id,
        "transcriptLength": result.length_chars,
        "transcriptPreview": result.text[:200] + "...",
        "totalSegments": result.segment_count,
    }


@router.post("/metadata/test")
async def metadata_check(body: VideoUrlBody, services: ServiceContainer = Depends(get_services)):
    video_id = validate_youtube_url(body.url)
    metadata = await services.youtube.fetch_metadata(video_id)
    return {"success": True, **metadata.to_full_response()}


@router.get("/diagnostics/health")
async def health(services: ServiceContainer = Depends(get_services)):
    """Liveness plus the status of each external dependency."""
    config = services.config
    service_status = {"identity": "unknown", "database": "unknown", "llm": "unknown"}

    service_status["identity"] = "available" if services.identity.check() else "error"

    try:
        await services.database.ping()
        service_status["database"] = "available"
    except Exception as e:
        logger.warning(f"Health check - database error: {e}")
        service_status["database"] = "error"

    service_status["llm"] = "available" if services.generator.is_configured else "no-key"

    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "environment": {"debug": config.debug, **config.get_key_status()},
        "services": service_status,
    }


@router.get("/diagnostics/llm")
async def llm_check(services: ServiceContainer = Depends(get_services)):
    content = await services.generator.ping()
    return {
        "success": True,
        "content": content,
        "model": services.generator.model,
        "message": "LLM API is working correctly",
    }


@router.get("/diagnostics/models")
async def list_models(services: ServiceContainer = Depends(get_services)):
    models = await services.generator.list_models()
    return {"success": True, "models": models}


# Chat and notes

@router.post("/chat")
async def chat(
    body: ChatBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    if not body.message or not body.message.strip():
        raise InvalidRequestError("Message is required")

    transcript = await _best_effort_transcript(services, body.video_url)
    answer = await services.generator.chat(body.message, body.video_url, body.video_title, transcript)

    if identity is not None and body.video_url and body.video_title:
        entry = HistoryEntryInput(
            video_url=body.video_url,
            video_title=body.video_title,
            content_type=ContentType.CHAT,
            content=f"**User Question:** {body.message}\n\n**AI Response:** {answer}",
            metadata={
                "apiUsed": "chat",
                "userQuestion": body.message,
                "transcriptLength": len(transcript) if transcript else 0,
            },
        )
        services.record_detached(identity, entry, "save chat exchange")

    return {
        "response": answer,
        "hasVideoContext": bool(transcript),
        "videoTitle": body.video_title,
        "videoUrl": body.video_url,
    }


@router.post("/notes")
async def notes(
    body: NoteBody,
    services: ServiceContainer = Depends(get_services),
    identity: Optional[Identity] = Depends(optional_identity),
):
    if not body.note or not body.note.strip():
        raise InvalidRequestError("Note content is required")
    if not body.video_url:
        raise InvalidRequestError("Video URL is required")
    if body.type not in ("save", "analyze"):
        raise InvalidRequestError('Invalid type. Must be "save" or "analyze"')

    if body.type == "analyze":
        transcript = await _best_effort_transcript(services, body.video_url)
        analysis = await services.generator.analyze_note(body.note, body.video_title, body.video_url, transcript)
        if identity is not None:
            entry = HistoryEntryInput(
                video_url=body.video_url,
                video_title=body.video_title,
                content_type=ContentType.NOTE,
                content=body.note,
                analysis=analysis,
                metadata={"apiUsed": "notes-analyze"},
            )
            services.record_detached(identity, entry, "save analyzed note")
        return {
            "success": True,
            "note": body.note,
            "analysis": analysis,
            "videoTitle": body.video_title,
            "videoUrl": body.video_url,
            "hasVideoContext": bool(transcript),
            "type": "analyze",
        }

    if identity is not None:
        entry = HistoryEntryInput(
            video_url=body.video_url,
            video_title=body.video_title,
            content_type=ContentType.NOTE,
            content=body.note,
            metadata={"apiUsed": "notes-save"},
        )
        services.record_detached(identity, entry, "save note")
    return {
        "success": True,
        "note": body.note,
        "videoTitle": body.video_title,
        "videoUrl": body.video_url,
        "message": "Note saved successfully",
        "type": "save",
    }


# Speech

@router.post("/speech/prepare")
async def prepare_speech(body: SpeechBody):
    if not body.content:
        raise InvalidRequestError("Content is required")

    cleaned = prepare_for_speech(body.content)
    return {
        "success": True,
        "data": {
            "cleanedContent": cleaned,
            "originalLength": len(body.content),
            "cleanedLength": len(cleaned),
            "estimatedDuration": estimate_duration_seconds(cleaned, body.speed),
            "title": body.title,
            "voice": body.voice,
            "speed": body.speed,
        },
        "message": "Content prepared for audio synthesis",
    }


@router.get("/speech/info")
async def speech_info(action: Optional[str] = None):
    if action == "voices":
        return {
            "success": True,
            "data": {
                "browserVoices": "Available through speechSynthesis.getVoices()",
                "features": [
                    "Browser-based text-to-speech",
                    "Multiple voice selection",
                    "Speed control (0.5x - 2x)",
                    "Play/pause/stop controls",
                ],
            },
        }
    return {
        "success": True,
        "data": {
            "service": "Speech preparation API",
            "version": __version__,
            "status": "active",
            "features": [
                "Content preparation for TTS",
                "Duration estimation",
                "Voice information",
            ],
        },
    }


# History

@router.get("/history")
async def list_history(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    content_type: Optional[ContentType] = Query(None, alias="type"),
    video_id: Optional[str] = Query(None, alias="videoId"),
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    limit = limit or services.history.page_size
    items, total = await services.history.list(identity.user_id, content_type, video_id, page, limit)
    return {
        "success": True,
        "data": [item.to_dict() for item in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.post("/history", status_code=201)
async def create_history(
    body: HistoryCreateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    row = await services.history.record(identity.user_id, body.to_entry())
    return {"success": True, "data": row.to_dict(), "message": "Summary saved to history"}


@router.delete("/history")
async def delete_history(
    entry_id: Optional[str] = Query(None, alias="id"),
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    if not entry_id:
        raise InvalidRequestError("History ID required")
    if not await services.history.remove(identity.user_id, entry_id):
        raise NotFoundError("History entry not found")
    return {"success": True, "message": "History entry deleted successfully"}


# Accounts

@router.get("/account")
async def get_account(
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    try:
        user = await services.accounts.get_or_create(identity)
    except PersistenceUnavailableError as e:
        logger.warning(f"Serving identity-only profile for {identity.user_id}: {e.details}")
        return {
            "success": True,
            "data": services.accounts.identity_only_profile(identity),
            "mode": "identity-only",
        }
    return {"success": True, "data": user.to_dict(), "mode": "database"}


@router.put("/account")
async def update_account(
    body: AccountUpdateBody,
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    try:
        user = await services.accounts.update(identity, body.to_changes())
    except PersistenceUnavailableError as e:
        logger.warning(f"Profile update for {identity.user_id} not saved: {e.details}")
        return {
            "success": True,
            "data": None,
            "message": "Profile update not saved (database unavailable)",
            "mode": "offline",
        }
    return {"success": True, "data": user.to_dict(), "message": "Profile updated successfully"}


@router.post("/account/stats")
async def account_stats(
    body: StatsBody,
    services: ServiceContainer = Depends(get_services),
    identity: Identity = Depends(require_identity),
):
    if body.action != "stats":
        raise InvalidRequestError("Invalid action")
    return {"success": True, "data": await services.accounts.stats(identity)}


# Application

async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    field = ".".join(str(part) for part in errors[0]["loc"] if part not in ("body", "query")) if errors else ""
    message = f"Invalid or missing field: {field}" if field else "Invalid request body"
    details = "; ".join(error.get("msg", "") for error in errors)
    return JSONResponse(status_code=400, content={"error": message, "details": details})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Failed to process request", "details": str(exc)})


def create_app(config: Optional[Configuration] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration; loaded from the environment when omitted
        services: Pre-built service container (tests inject doubles here)

    Returns:
        FastAPI application
    """
    if services is None:
        config = config or Configuration()
        services = ServiceContainer.from_config(config)
    config = services.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting youtube-study API v{__version__}")
        config.ensure_directories()
        try:
            await services.database.init_models()
        except Exception as e:
            logger.warning(f"Database init failed (history and accounts degraded): {e}")
        yield
        await services.shutdown()
        logger.info("youtube-study API stopped")

    app = FastAPI(
        title="youtube-study",
        description="Study guides and briefing documents from YouTube videos",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)
    return app
