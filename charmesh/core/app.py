from collections.abc import Callable
from typing import Any

import structlog

from charmesh.core.generation_pipeline import GenerationPipeline
from charmesh.core.task_manager import TaskManager
from charmesh.generators.base import CancellationToken, GenerationResult
from charmesh.generators.mesh_generator import AvatarMeshGenerator
from charmesh.generators.models import GenerationRequest, ProgressUpdate
from charmesh.utils.config import EngineConfig, get_config

logger = structlog.get_logger(__name__)


class CharacterMeshApp:
    """Main application object wiring configuration, generator and task tracking."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        """Initialize the application."""
        self.config = config or get_config()

        self.task_manager = TaskManager(
            cleanup_interval=self.config.tasks.cleanup_interval_seconds,
            max_task_age=self.config.tasks.max_task_age_seconds,
        )
        self.generator = AvatarMeshGenerator(generator_name=self.config.generation.generator_name)
        self.pipeline: GenerationPipeline | None = None

        self.is_initialized = False

    async def initialize(self) -> None:
        """Initialize components that need a running event loop."""
        if self.is_initialized:
            return

        logger.info("Initializing character mesh app", environment=self.config.environment)
        self.pipeline = GenerationPipeline(self)
        self.task_manager.start_cleanup()

        self.is_initialized = True
        logger.info("App initialization completed successfully")

    def _require_pipeline(self) -> GenerationPipeline:
        if self.pipeline is None:
            raise RuntimeError("Application not initialized")
        return self.pipeline

    def build_request(self, *args: Any, **kwargs: Any) -> GenerationRequest:
        """Assemble a request using configured defaults."""
        return self._require_pipeline().build_request(*args, **kwargs)

    async def submit_generation(
        self,
        request: GenerationRequest,
        progress_callback: Callable[[ProgressUpdate], None] | None = None,
    ) -> str:
        """Start a background generation and return its task_id."""
        return await self._require_pipeline().submit(request, progress_callback)

    async def generate(
        self,
        request: GenerationRequest,
        progress_callback: Callable[[ProgressUpdate], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> GenerationResult:
        """Run a generation and wait for it."""
        return await self._require_pipeline().generate(request, progress_callback, cancel_token)

    def get_generation_status(self, task_id: str) -> dict[str, Any]:
        """Get the status of a generation task."""
        return self.task_manager.get_task_status(task_id)

    def cancel_generation(self, task_id: str) -> bool:
        """Cancel a running generation task."""
        return self.task_manager.cancel_task(task_id)

    async def shutdown(self) -> None:
        """Shutdown the application and clean up resources."""
        logger.info("Shutting down character mesh app")
        await self.task_manager.shutdown()
        self.is_initialized = False
