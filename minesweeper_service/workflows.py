"""Temporal workflows for Minesweeper game."""
import asyncio
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ApplicationError

with workflow.unsafe.imports_passed_through():
    from minesweeper_service.types import GameConfig, GameRecord, MoveOutcome, MoveRequest
    from minesweeper_service.activities import apply_game_move, create_game_session


ACTIVITY_TIMEOUT = timedelta(seconds=60)
ACTIVITY_RETRY_POLICY = RetryPolicy(maximum_attempts=3)


@workflow.defn
class MinesweeperWorkflow:
    """Workflow that stores a single Minesweeper game.

    Moves arrive as updates and are applied one at a time, so a session never
    has two mutations in flight.
    """

    def __init__(self):
        self.game_id: str = ""
        self.record: Optional[GameRecord] = None
        self.last_activity_time: float = 0
        self.should_close: bool = False
        self.move_lock = asyncio.Lock()

    @workflow.run
    async def run(self, game_id: str, owner_id: str, config: GameConfig,
                  inactivity_seconds: float = 24 * 3600) -> None:
        """Main workflow entry point."""
        self.game_id = game_id
        self.last_activity_time = workflow.time()

        snapshot = await workflow.execute_activity(
            create_game_session,
            config,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=ACTIVITY_RETRY_POLICY,
        )
        self.record = GameRecord(id=game_id, owner_id=owner_id, snapshot=snapshot)

        while not self.should_close:
            remaining = inactivity_seconds - (workflow.time() - self.last_activity_time)
            if remaining <= 0:
                workflow.logger.info(f"Game {game_id} auto-closing after {inactivity_seconds}s of inactivity")
                break
            try:
                await workflow.wait_condition(lambda: self.should_close, timeout=remaining)
            except asyncio.TimeoutError:
                continue

        self.record.closed = True
        await workflow.wait_condition(workflow.all_handlers_finished)
        workflow.logger.info(f"Minesweeper workflow {game_id} completed")

    @workflow.update
    async def make_move_update(self, move: MoveRequest) -> MoveOutcome:
        """Apply a move and return the updated snapshot with the move result."""
        await workflow.wait_condition(lambda: self.record is not None)

        async with self.move_lock:
            if self.record.closed:
                raise ApplicationError(f"Game {self.game_id} is closed", type="GameClosed")

            self.last_activity_time = workflow.time()
            outcome = await workflow.execute_activity(
                apply_game_move,
                args=[self.record.snapshot, move],
                start_to_close_timeout=ACTIVITY_TIMEOUT,
                retry_policy=ACTIVITY_RETRY_POLICY,
            )
            self.record.snapshot = outcome.snapshot
            return outcome

    @workflow.signal
    def close_game_signal(self) -> None:
        """Signal to close the game."""
        self.should_close = True
        if self.record is not None:
            self.record.closed = True

    @workflow.query
    def get_game_query(self) -> GameRecord:
        """Query the stored game."""
        if self.record is None:
            raise ApplicationError(f"Game {self.game_id} is not initialized yet", type="GameNotReady")
        return self.record
