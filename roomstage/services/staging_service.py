"""
Room staging entry point.

StagingService.generate_staged_design() is what an HTTP handler calls. It
never raises for pipeline failures: every outcome becomes a StageRoomResponse
carrying an error code, a retryable flag and the request correlation ID.

Order of operations:
1. Assign request ID
2. Validate style and image reference
3. Select pipeline mode (fails fast with no I/O when no provider exists)
4. Load and normalize the image
5. Generate (planner, passes, fallbacks)
6. Persist, then append to the project history (best effort)
"""
import asyncio
from pathlib import Path
from typing import Optional

from roomstage.config.style_definitions import RoomStyle
from roomstage.core.config import Settings
from roomstage.core.errors import ConfigurationError, ErrorCode, StagingError
from roomstage.core.request_context import bind_request_id, get_logger, new_request_id, reset_request_id
from roomstage.schemas.staging import StageRoomRequest, StageRoomResponse
from roomstage.services.blob_storage_service import (
    BlobStore,
    LocalBlobStore,
    OutputPersister,
    VercelBlobStore,
    design_filename,
)
from roomstage.services.design_history import DesignHistoryStore, DesignRecord
from roomstage.services.generation_orchestrator import GenerationOrchestrator, GenerationRequest, PipelineMode
from roomstage.services.image_normalization_service import normalize_image
from roomstage.services.image_source_service import ImageSource
from roomstage.services.openai_edit_service import OpenAIEditClient
from roomstage.services.planning_service import GeminiTextClient, StagingPlanner
from roomstage.services.prompt_service import clean_user_prompt
from roomstage.services.stability_renderer import StabilityRenderer

logger = get_logger(__name__)


class StagingService:
    """Runs staging requests end to end"""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        image_source: ImageSource,
        persister: OutputPersister,
        history: Optional[DesignHistoryStore] = None,
    ):
        self.orchestrator = orchestrator
        self.image_source = image_source
        self.persister = persister
        self.history = history

    async def generate_staged_design(self, request: StageRoomRequest) -> StageRoomResponse:
        request_id = new_request_id()
        token = bind_request_id(request_id)
        try:
            return await self._generate(request, request_id)
        except StagingError as e:
            logger.error(f"Staging failed: {e.code.value}: {e.message}")
            return StageRoomResponse(
                success=False,
                request_id=request_id,
                error_code=e.code.value,
                error_message=e.message,
                retryable=e.retryable,
            )
        except Exception as e:
            logger.exception(f"Unexpected staging error: {e}")
            return StageRoomResponse(
                success=False,
                request_id=request_id,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                error_message="Unexpected error while staging the room",
                retryable=True,
            )
        finally:
            reset_request_id(token)

    async def _generate(self, request: StageRoomRequest, request_id: str) -> StageRoomResponse:
        style = request.style or ""
        image_ref = request.image_url or ""

        if not style:
            raise StagingError(ErrorCode.MISSING_STYLE, "Style is required", request_id)
        if not image_ref or image_ref.startswith("blob:"):
            raise StagingError(ErrorCode.MISSING_IMAGE, "An uploaded room image is required", request_id)

        mode = self.orchestrator.mode
        if mode == PipelineMode.NO_PROVIDER:
            raise ConfigurationError(
                ErrorCode.MISSING_PROVIDER_KEY,
                "No image provider configured (set STABILITY_API_KEY or OPENAI_API_KEY)",
                request_id,
            )

        style_key = RoomStyle.from_value(style)
        logger.info(
            f"Staging request: style={style} ({style_key.value}) mode={mode.value} "
            f"more_furniture={request.more_furniture} has_prompt={bool(clean_user_prompt(request.prompt))}"
        )

        raw = await self.image_source.load(image_ref)
        image = await asyncio.to_thread(normalize_image, raw)

        result = await self.orchestrator.generate(
            GenerationRequest(
                image=image,
                style=style,
                style_key=style_key,
                user_prompt=request.prompt or "",
                more_furniture=request.more_furniture,
                request_id=request_id,
            )
        )

        filename = design_filename(style)
        image_url = await self.persister.persist(result.data, filename, result.min_bytes)
        design_id = Path(filename).stem

        if request.project_id and self.history is not None:
            record = DesignRecord(
                id=design_id,
                image_url=image_url,
                style=style,
                provider=result.provider,
                fallback_used=result.fallback_used,
                planner_used=result.planner_used,
                user_prompt=clean_user_prompt(request.prompt),
            )
            try:
                await self.history.append(request.project_id, record)
            except Exception as e:
                logger.warning(f"Failed to save design history for project {request.project_id}: {e}")

        logger.info(
            f"Staging succeeded: provider={result.provider} fallback_used={result.fallback_used} "
            f"planner_used={result.planner_used} low_confidence={result.low_confidence}"
        )
        return StageRoomResponse(
            success=True,
            request_id=request_id,
            image_url=image_url,
            design_id=design_id,
            provider_used=result.provider,
            fallback_used=result.fallback_used,
            planner_used=result.planner_used,
            low_confidence=result.low_confidence,
        )


def create_blob_store(settings: Settings) -> BlobStore:
    if settings.storage_backend == "vercel":
        if not settings.blob_read_write_token:
            raise ConfigurationError(ErrorCode.UPLOAD_IMAGE_FAILED, "BLOB_READ_WRITE_TOKEN not configured")
        return VercelBlobStore(settings.blob_read_write_token, settings.blob_api_url)
    return LocalBlobStore(settings.upload_path, settings.storage_public_base_url)


def create_staging_service(settings: Settings, history: Optional[DesignHistoryStore] = None) -> StagingService:
    """Build a StagingService with the collaborators present in configuration"""
    credentials = settings.credentials()

    renderer = None
    if credentials.has_stability:
        renderer = StabilityRenderer(
            settings.stability_api_key,
            endpoint=settings.stability_endpoint,
            guidance_scale=settings.stability_guidance_scale,
            timeout_seconds=settings.render_timeout_seconds,
        )

    edit_client = None
    if credentials.has_openai:
        edit_client = OpenAIEditClient(
            settings.openai_api_key,
            endpoint=settings.openai_edit_endpoint,
            size=settings.openai_edit_size,
            timeout_seconds=settings.render_timeout_seconds,
        )

    planner = None
    if credentials.has_gemini:
        planner = StagingPlanner(
            GeminiTextClient(
                settings.gemini_api_key,
                model=settings.gemini_text_model,
                timeout_seconds=settings.planner_timeout_seconds,
            )
        )

    orchestrator = GenerationOrchestrator(
        settings,
        credentials,
        renderer=renderer,
        edit_client=edit_client,
        planner=planner,
    )
    logger.info(
        f"Staging service ready: mode={orchestrator.mode.value} stability={credentials.has_stability} "
        f"gemini={credentials.has_gemini} openai={credentials.has_openai} storage={settings.storage_backend}"
    )

    return StagingService(
        orchestrator=orchestrator,
        image_source=ImageSource(
            public_dir=settings.public_dir,
            local_prefixes=settings.local_image_prefixes,
            timeout_seconds=settings.image_fetch_timeout_seconds,
        ),
        persister=OutputPersister(create_blob_store(settings)),
        history=history,
    )
