"""
Task management for background mesh generations.

This module tracks generation tasks from creation to cleanup, mirrors their
progress for status queries, and forwards cancellation to the cooperative
cancellation token the generator checks between grid rows.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog

from charmesh.generators.base import CancellationToken

logger = structlog.get_logger(__name__)


class TaskManager:
    """Manages background tasks and their lifecycle."""

    def __init__(self, cleanup_interval: int = 300, max_task_age: int = 3600):
        self.tasks: Dict[str, asyncio.Task] = {}
        self.task_status: Dict[str, Dict[str, Any]] = {}
        self.cancel_tokens: Dict[str, CancellationToken] = {}
        self.cleanup_interval = cleanup_interval
        self.max_task_age = timedelta(seconds=max_task_age)
        self._cleanup_task: Optional[asyncio.Task] = None

    def start_cleanup(self) -> None:
        """Start the cleanup task."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def _periodic_cleanup(self) -> None:
        """Periodically clean up completed tasks."""
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                await self.cleanup_completed_tasks()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in task cleanup", error=str(e))

    async def cleanup_completed_tasks(self) -> int:
        """Drop finished tasks; forget their status once it is older than the max age."""
        completed_tasks = []

        for task_id, task in self.tasks.items():
            if task.done():
                completed_tasks.append(task_id)
                if not task.cancelled() and task.exception() is not None:
                    logger.error("Task completed with error", task_id=task_id, error=str(task.exception()))

        for task_id in completed_tasks:
            self.tasks.pop(task_id, None)
            self.cancel_tokens.pop(task_id, None)
            if task_id in self.task_status:
                self.task_status[task_id]["cleaned"] = True

        cutoff = datetime.now(timezone.utc) - self.max_task_age
        expired = [
            task_id
            for task_id, status in self.task_status.items()
            if status.get("cleaned") and status.get("updated_at", status["created_at"]) < cutoff
        ]
        for task_id in expired:
            self.task_status.pop(task_id, None)

        logger.info("Cleaned up completed tasks", completed=len(completed_tasks), expired=len(expired))
        return len(completed_tasks)

    def create_task(
        self,
        coro,
        task_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Create and track a new background task."""
        if task_id is None:
            task_id = str(uuid.uuid4())

        task = asyncio.create_task(coro)
        self.tasks[task_id] = task
        if cancel_token is not None:
            self.cancel_tokens[task_id] = cancel_token
        self.task_status[task_id] = {
            "created_at": datetime.now(timezone.utc),
            "status": "started",
            "progress": 0.0,
            "message": "Task started",
            "current_step": None,
            "result": None,
            "error": None,
        }

        logger.debug("Task created", task_id=task_id)
        return task_id

    def get_task_status(self, task_id: str) -> Dict[str, Any]:
        """Get the current status of a task."""
        return self.task_status.get(task_id, {"status": "not_found"})

    def update_task_status(self, task_id: str, **kwargs) -> None:
        """Update the status of a task."""
        if task_id in self.task_status:
            self.task_status[task_id].update(kwargs)
            self.task_status[task_id]["updated_at"] = datetime.now(timezone.utc)

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a running task and signal its generation to stop."""
        task = self.tasks.get(task_id)
        if task is None or task.done():
            return False

        token = self.cancel_tokens.get(task_id)
        if token is not None:
            token.cancel()
        task.cancel()
        self.update_task_status(task_id, status="cancelled", message="Task cancelled")
        logger.info("Task cancelled", task_id=task_id)
        return True

    async def shutdown(self) -> None:
        """Shutdown the task manager and clean up all tasks."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass

        for token in self.cancel_tokens.values():
            token.cancel()
        for task in self.tasks.values():
            if not task.done():
                task.cancel()

        if self.tasks:
            await asyncio.gather(*self.tasks.values(), return_exceptions=True)

        self.tasks.clear()
        self.task_status.clear()
        self.cancel_tokens.clear()
