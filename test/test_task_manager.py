import asyncio

import pytest

from charmesh.core.task_manager import TaskManager
from charmesh.generators.base import CancellationToken


@pytest.mark.asyncio
async def test_create_task(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        await asyncio.sleep(0.1)
        return 42

    task_id = task_manager.create_task(test_task())
    assert task_id in task_manager.tasks, "Task should be created"
    status = task_manager.get_task_status(task_id)
    assert status["status"] == "started", "Task status should be started"
    assert status["progress"] == 0.0
    assert status["current_step"] is None


@pytest.mark.asyncio
async def test_explicit_task_id(task_manager: TaskManager) -> None:
    async def test_task() -> None:
        return None

    task_id = task_manager.create_task(test_task(), "generation-1")
    assert task_id == "generation-1"
    await task_manager.tasks[task_id]


@pytest.mark.asyncio
async def test_task_cleanup(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        await asyncio.sleep(0.1)
        return 42

    task_id = task_manager.create_task(test_task(), cancel_token=CancellationToken())
    await asyncio.sleep(0.2)  # Wait for task completion
    cleaned = await task_manager.cleanup_completed_tasks()
    assert cleaned == 1, "One finished task should be cleaned"
    assert task_id not in task_manager.tasks, "Completed task should be removed"
    assert task_id not in task_manager.cancel_tokens, "Its cancel token should be released"


@pytest.mark.asyncio
async def test_cleanup_keeps_running_tasks(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        await asyncio.sleep(1)
        return 42

    task_id = task_manager.create_task(test_task())
    cleaned = await task_manager.cleanup_completed_tasks()
    assert cleaned == 0
    assert task_id in task_manager.tasks, "Running tasks are never cleaned"
    assert "cleaned" not in task_manager.get_task_status(task_id)


@pytest.mark.asyncio
async def test_recent_status_survives_cleanup() -> None:
    async def test_task() -> int:
        return 42

    manager = TaskManager(max_task_age=3600)
    try:
        task_id = manager.create_task(test_task())
        await manager.tasks[task_id]
        await manager.cleanup_completed_tasks()
        assert manager.get_task_status(task_id)["cleaned"] is True, "Status is kept until it expires"
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_cancel_task(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        await asyncio.sleep(1)
        return 42

    token = CancellationToken()
    task_id = task_manager.create_task(test_task(), cancel_token=token)
    success = task_manager.cancel_task(task_id)
    assert success, "Task cancellation should succeed"
    assert task_manager.get_task_status(task_id)["status"] == "cancelled", "Task status should be cancelled"
    assert token.is_cancelled, "The generation's cancel token should be set"


@pytest.mark.asyncio
async def test_cancel_finished_task(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        return 42

    task_id = task_manager.create_task(test_task())
    await task_manager.tasks[task_id]
    assert not task_manager.cancel_task(task_id), "Finished tasks cannot be cancelled"
    assert not task_manager.cancel_task("unknown"), "Unknown tasks cannot be cancelled"


@pytest.mark.asyncio
async def test_update_task_status(task_manager: TaskManager) -> None:
    async def test_task() -> int:
        await asyncio.sleep(0.1)
        return 42

    task_id = task_manager.create_task(test_task())
    task_manager.update_task_status(task_id, status="in_progress", progress=0.5, current_step="mesh")
    status = task_manager.get_task_status(task_id)
    assert status["progress"] == 0.5
    assert status["current_step"] == "mesh"
    assert "updated_at" in status


def test_unknown_task_status() -> None:
    manager = TaskManager()
    assert manager.get_task_status("missing") == {"status": "not_found"}
    manager.update_task_status("missing", status="completed")
    assert "missing" not in manager.task_status, "Unknown tasks are not created by updates"


@pytest.mark.asyncio
async def test_shutdown_cancels_everything() -> None:
    async def test_task() -> int:
        await asyncio.sleep(10)
        return 42

    manager = TaskManager()
    manager.start_cleanup()
    token = CancellationToken()
    manager.create_task(test_task(), cancel_token=token)

    await manager.shutdown()

    assert token.is_cancelled
    assert manager.tasks == {}
    assert manager.task_status == {}
