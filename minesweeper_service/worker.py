"""Temporal worker for Minesweeper game."""
import asyncio
import logging
from temporalio.worker import Worker
from minesweeper_service.workflows import MinesweeperWorkflow
from minesweeper_service import activities
from minesweeper_service.client_provider import get_task_queue, get_temporal_client

logger = logging.getLogger(__name__)


async def main():
    """Start the Temporal worker."""
    logging.basicConfig(level=logging.INFO)

    client = await get_temporal_client()
    task_queue = get_task_queue()

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=[MinesweeperWorkflow],
        activities=[
            activities.create_game_session,
            activities.apply_game_move,
        ],
    )

    logger.info("Worker started, connected to Temporal")
    logger.info(f"Listening on task queue: {task_queue}")

    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
