import asyncio
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from charmesh.generators.base import CancellationToken, GenerationResult, GenerationStatus
from charmesh.generators.models import GenerationRequest, ProgressUpdate
from charmesh.models.character_model import CharacterAnalysis, PixelBuffer, UserPlan
from charmesh.utils.validators import AnalysisValidator, PlanValidator

if TYPE_CHECKING:
    from charmesh.core.app import CharacterMeshApp

logger = structlog.get_logger(__name__)


class GenerationPipeline:
    """Runs mesh generations off the event loop and tracks them as tasks."""

    def __init__(self, app: "CharacterMeshApp"):
        self.app = app

    def build_request(
        self,
        pixels: PixelBuffer,
        analysis: dict[str, Any] | CharacterAnalysis | None = None,
        user_plan: str | UserPlan | None = None,
        **overrides: Any,
    ) -> GenerationRequest:
        """Assemble a request, filling unset options from configuration defaults."""
        defaults = self.app.config.generation
        parsed = AnalysisValidator.parse(analysis) if analysis is not None else CharacterAnalysis()
        fields: dict[str, Any] = {
            "max_resolution": defaults.max_resolution,
            "time_budget_seconds": defaults.time_budget_seconds,
            "include_textures": defaults.include_textures,
            "mesh_scale": defaults.mesh_scale,
        }
        fields.update({key: value for key, value in overrides.items() if value is not None})

        return GenerationRequest(
            pixels=pixels,
            analysis=parsed,
            user_plan=PlanValidator.normalize(user_plan, fallback=defaults.default_plan),
            **fields,
        )

    async def submit(
        self,
        request: GenerationRequest,
        progress_callback: Callable[[ProgressUpdate], None] | None = None,
    ) -> str:
        """
        Start a generation in the background.

        Returns the task_id for status queries and cancellation.
        """
        task_id = str(uuid.uuid4())
        cancel_token = CancellationToken()

        self.app.task_manager.create_task(
            self._execute(request, task_id, cancel_token, progress_callback),
            task_id,
            cancel_token=cancel_token,
        )
        logger.info("Generation submitted", task_id=task_id, user_plan=request.user_plan.value)
        return task_id

    async def generate(
        self,
        request: GenerationRequest,
        progress_callback: Callable[[ProgressUpdate], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> GenerationResult:
        """Run one generation in a worker thread and wait for its result."""
        return await asyncio.to_thread(self.app.generator.generate, request, progress_callback, cancel_token)

    async def _execute(
        self,
        request: GenerationRequest,
        task_id: str,
        cancel_token: CancellationToken,
        progress_callback: Callable[[ProgressUpdate], None] | None = None,
    ) -> GenerationResult:
        """Execute one tracked generation, mirroring progress into task status."""
        loop = asyncio.get_running_loop()

        def update_progress(update: ProgressUpdate) -> None:
            self.app.task_manager.update_task_status(
                task_id,
                status="in_progress",
                progress=update.progress,
                message=update.message,
                current_step=update.step.value,
            )
            if progress_callback:
                progress_callback(update)

        def from_worker(update: ProgressUpdate) -> None:
            loop.call_soon_threadsafe(update_progress, update)

        try:
            result = await self.generate(request, from_worker, cancel_token)
        except asyncio.CancelledError:
            cancel_token.cancel()
            self.app.task_manager.update_task_status(task_id, status="cancelled", message="Generation cancelled")
            raise

        if result.is_successful:
            self.app.task_manager.update_task_status(
                task_id,
                status="completed",
                progress=1.0,
                message="Generation completed successfully",
                result=result,
            )
            logger.info("Generation task completed", task_id=task_id, used_fallback=result.used_fallback)
        else:
            status = "cancelled" if result.status == GenerationStatus.CANCELLED else "failed"
            error_message = result.error.message if result.error else "Generation failed"
            self.app.task_manager.update_task_status(
                task_id,
                status=status,
                message=error_message,
                error=result.error.to_dict() if result.error else error_message,
                result=result,
            )
            logger.error("Generation task did not complete", task_id=task_id, status=status, error=error_message)

        return result
