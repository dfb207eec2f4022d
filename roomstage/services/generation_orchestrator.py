"""
Generation orchestrator: provider selection, two-pass rendering and fallbacks.

Pipeline modes (first match wins, see select_pipeline_mode):
1. MOCK when mocking is forced
2. STABILITY_WITH_PLANNER when both the renderer and planner keys exist
3. STABILITY_ONLY when only the renderer key exists
4. OPENAI_EDIT when only the edit provider key exists
5. MOCK when the development mock fallback is permitted
6. NO_PROVIDER otherwise (no I/O is attempted)

Renderer path (two-pass by default):
- Pass 1 "coherence": unmasked, low strength, lighting/material only. Any
  failure here is absorbed and the original image is used for pass 2.
- Pass 2 "furniture": masked inpaint with the full staging prompt.

A renderer failure falls back once to the edit provider when it is
configured. When everything is exhausted the development mock is used if
permitted; otherwise GenerationError is raised.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Optional

from roomstage.config.style_definitions import RoomStyle
from roomstage.core.config import ProviderCredentials, Settings
from roomstage.core.errors import (
    ConfigurationError,
    ErrorCode,
    GenerationError,
    OutputValidationError,
    PlanningError,
    ProviderError,
    StagingError,
)
from roomstage.core.request_context import get_logger
from roomstage.schemas.staging import StagingPlan
from roomstage.services.image_normalization_service import ImageBuffer
from roomstage.services.mask_service import MaskResult, build_mask, save_debug_artifacts
from roomstage.services.mock_renderer import MockRenderer
from roomstage.services.openai_edit_service import OpenAIEditClient
from roomstage.services.output_validation_service import (
    EDIT_API_MIN_BYTES,
    RENDERER_MIN_BYTES,
    check_signature,
    validate_output,
)
from roomstage.services.planning_service import StagingPlanner, fallback_plan
from roomstage.services.prompt_service import (
    build_coherence_prompt,
    build_edit_prompt,
    build_planned_prompt,
    build_unplanned_prompt,
    clean_user_prompt,
    resolve_style_prompts,
)
from roomstage.services.stability_renderer import StabilityRenderer

logger = get_logger(__name__)

PERSIST_MIN_BYTES = {
    "stability": RENDERER_MIN_BYTES,
    "openai": EDIT_API_MIN_BYTES,
    "mock": 0,
}


class PipelineMode(str, Enum):
    """Which providers a request will use"""

    NO_PROVIDER = "no_provider"
    STABILITY_WITH_PLANNER = "stability_with_planner"
    STABILITY_ONLY = "stability_only"
    OPENAI_EDIT = "openai_edit"
    MOCK = "mock"


def select_pipeline_mode(credentials: ProviderCredentials) -> PipelineMode:
    if credentials.force_mock:
        return PipelineMode.MOCK
    if credentials.has_stability and credentials.has_gemini:
        return PipelineMode.STABILITY_WITH_PLANNER
    if credentials.has_stability:
        return PipelineMode.STABILITY_ONLY
    if credentials.has_openai:
        return PipelineMode.OPENAI_EDIT
    if credentials.allow_dev_mock:
        return PipelineMode.MOCK
    return PipelineMode.NO_PROVIDER


@dataclass
class GenerationRequest:
    """Input to the orchestrator; the image is already normalized"""

    image: ImageBuffer
    style: str  # label as requested, used in prompt text
    style_key: RoomStyle
    user_prompt: str = ""
    more_furniture: bool = False
    request_id: Optional[str] = None


@dataclass
class GenerationResult:
    """Validated provider output plus provenance"""

    provider: str
    data: bytes
    fallback_used: bool = False
    planner_used: bool = False
    plan_fallback_used: bool = False
    pass1_skipped: bool = False
    plan: Optional[StagingPlan] = None

    @property
    def min_bytes(self) -> int:
        """Size threshold the persister re-checks for this provider"""
        return PERSIST_MIN_BYTES.get(self.provider, 0)

    @property
    def low_confidence(self) -> bool:
        return self.fallback_used or self.plan_fallback_used or self.pass1_skipped or self.provider == "mock"


class GenerationOrchestrator:
    """Runs one staging generation through the configured providers"""

    def __init__(
        self,
        settings: Settings,
        credentials: ProviderCredentials,
        renderer: Optional[StabilityRenderer] = None,
        edit_client: Optional[OpenAIEditClient] = None,
        planner: Optional[StagingPlanner] = None,
        mock_renderer: Optional[MockRenderer] = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self.renderer = renderer
        self.edit_client = edit_client
        self.planner = planner
        self.mock_renderer = mock_renderer or MockRenderer()

    @property
    def mode(self) -> PipelineMode:
        return select_pipeline_mode(self.credentials)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate a staged image.

        Raises:
            ConfigurationError: no provider is usable for the selected mode
            GenerationError: every provider and fallback failed
        """
        mode = self.mode
        logger.info(f"Pipeline mode: {mode.value} (two_pass={self.settings.enable_two_pass_generation})")

        if mode == PipelineMode.NO_PROVIDER:
            raise ConfigurationError(
                ErrorCode.MISSING_PROVIDER_KEY,
                "No image provider configured (set STABILITY_API_KEY or OPENAI_API_KEY)",
                request.request_id,
            )

        if mode == PipelineMode.MOCK:
            return await self._run_mock(request)

        positive, negative = resolve_style_prompts(request.style_key, request.user_prompt)

        if mode == PipelineMode.OPENAI_EDIT:
            try:
                return await self._run_edit(request, positive, negative, fallback_used=False)
            except (ProviderError, OutputValidationError) as e:
                logger.warning(f"Edit provider failed: {e}")
                return await self._exhausted(request, e)

        try:
            return await self._run_renderer(request, mode, positive, negative)
        except (ProviderError, OutputValidationError) as e:
            logger.warning(f"Renderer failed: {e}")
            last_error: StagingError = e

        if self.edit_client is None:
            return await self._exhausted(request, last_error)

        logger.info("Falling back to edit provider")
        try:
            return await self._run_edit(request, positive, negative, fallback_used=True)
        except (ProviderError, OutputValidationError) as e:
            logger.warning(f"Fallback edit provider failed: {e}")
            return await self._exhausted(request, e)

    async def _call_provider(self, provider: str, call: Awaitable[bytes], request_id: Optional[str]) -> bytes:
        """Await a provider call under the render deadline"""
        timeout = self.settings.render_timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(provider, f"{provider} call timed out after {timeout}s", request_id) from e
        except StagingError:
            raise
        except Exception as e:
            raise ProviderError(provider, f"{provider} call failed: {type(e).__name__}: {e}", request_id) from e

    async def _plan(self, request: GenerationRequest):
        """Returns (plan, plan_fallback_used)"""
        if self.planner is None:
            raise ConfigurationError(ErrorCode.MISSING_GEMINI_KEY, "Planner not configured", request.request_id)
        try:
            plan = await self.planner.plan(
                request.style,
                clean_user_prompt(request.user_prompt),
                request.image.data,
                request.more_furniture,
            )
            return plan, False
        except PlanningError as e:
            logger.warning(f"Planner failed, using fallback plan: {e}")
            return fallback_plan(request.style, request.more_furniture), True

    async def _mask(self, image_bytes: bytes, invert: bool, label: str) -> MaskResult:
        """Mask building and debug output run in a worker thread"""
        mask = await asyncio.to_thread(build_mask, image_bytes, invert)
        if self.settings.save_debug_artifacts and self.settings.is_development:
            await asyncio.to_thread(save_debug_artifacts, image_bytes, mask, self.settings.debug_artifacts_dir, label)
        return mask

    async def _run_renderer(
        self, request: GenerationRequest, mode: PipelineMode, positive: str, negative: str
    ) -> GenerationResult:
        if self.renderer is None:
            raise ConfigurationError(ErrorCode.MISSING_STABILITY_KEY, "Renderer not configured", request.request_id)

        request_id = request.request_id
        source = request.image.data
        invert = self.settings.stability_mask_invert
        label = request_id or "staging"

        plan = None
        plan_fallback_used = False
        if mode == PipelineMode.STABILITY_WITH_PLANNER:
            plan, plan_fallback_used = await self._plan(request)
            prompt = build_planned_prompt(positive, negative, plan)
        else:
            prompt = build_unplanned_prompt(request.style, request.style_key, positive, negative, request.more_furniture)

        pass1_skipped = False
        if self.settings.enable_two_pass_generation:
            logger.info(f"PASS 1 START: global coherence (strength={self.settings.pass1_strength})")
            try:
                pass1_output = await self._call_provider(
                    self.renderer.name,
                    self.renderer.render(source, build_coherence_prompt(request.style, negative), self.settings.pass1_strength),
                    request_id,
                )
                check_signature(pass1_output, request_id)
                mask = await self._mask(pass1_output, invert, f"{label}-pass2")
                pass2_input = pass1_output
                logger.info(f"PASS 1 END: {len(pass1_output)} bytes")
            except StagingError as e:
                logger.warning(f"PASS 1 FAILED: {e}, using original image for pass 2")
                pass1_skipped = True
                pass2_input = source
                mask = await self._mask(source, invert, f"{label}-pass2")
            strength = self.settings.pass2_strength
        else:
            pass2_input = source
            mask = await self._mask(source, invert, label)
            strength = self.settings.stability_strength

        logger.info(f"Furniture pass START (strength={strength}, mask={mask.convention.value})")
        output = await self._call_provider(
            self.renderer.name,
            self.renderer.render(pass2_input, prompt, strength, mask.data),
            request_id,
        )
        validate_output(output, source, RENDERER_MIN_BYTES, request_id)
        logger.info(f"Furniture pass END: {len(output)} bytes")

        return GenerationResult(
            provider=self.renderer.name,
            data=output,
            fallback_used=False,
            planner_used=mode == PipelineMode.STABILITY_WITH_PLANNER,
            plan_fallback_used=plan_fallback_used,
            pass1_skipped=pass1_skipped,
            plan=plan,
        )

    async def _run_edit(
        self, request: GenerationRequest, positive: str, negative: str, fallback_used: bool
    ) -> GenerationResult:
        if self.edit_client is None:
            raise ConfigurationError(ErrorCode.MISSING_OPENAI_KEY, "Edit provider not configured", request.request_id)

        source = request.image.data
        mask = await self._mask(source, False, f"{request.request_id or 'staging'}-edit")
        output = await self._call_provider(
            self.edit_client.name,
            self.edit_client.edit(source, mask.data, build_edit_prompt(positive, negative)),
            request.request_id,
        )
        validate_output(output, source, EDIT_API_MIN_BYTES, request.request_id)

        return GenerationResult(provider=self.edit_client.name, data=output, fallback_used=fallback_used)

    async def _run_mock(self, request: GenerationRequest) -> GenerationResult:
        logger.warning("Using mock renderer")
        output = await self.mock_renderer.render(request.image.data)
        return GenerationResult(provider=self.mock_renderer.name, data=output, fallback_used=True)

    async def _exhausted(self, request: GenerationRequest, last_error: StagingError) -> GenerationResult:
        if self.credentials.allow_dev_mock:
            logger.warning("All providers failed, development mock fallback permitted")
            return await self._run_mock(request)

        code = last_error.code if isinstance(last_error, OutputValidationError) else ErrorCode.GENERATION_FAILED
        raise GenerationError(code, f"All providers failed: {last_error.message}", request.request_id)
