"""Temporal activities for game logic."""
from temporalio import activity
from temporalio.exceptions import ApplicationError

from minesweeper_service import engine
from minesweeper_service.types import GameConfig, MoveOutcome, MoveRequest, SessionSnapshot


@activity.defn
async def create_game_session(config: GameConfig) -> SessionSnapshot:
    """Create a new game board with randomly placed mines."""
    try:
        snapshot = engine.new_game(config.difficulty, config.dimensions(), seed=config.seed)
    except ValueError as error:
        raise ApplicationError(str(error), type='InvalidGameConfig', non_retryable=True)

    activity.logger.info(
        f"Created {snapshot.difficulty} board {snapshot.rows}x{snapshot.cols} with {snapshot.mines} mines"
    )
    return snapshot


@activity.defn
async def apply_game_move(snapshot: SessionSnapshot, move: MoveRequest) -> MoveOutcome:
    """Apply a move to the stored snapshot and return the new snapshot."""
    outcome = engine.apply_move(snapshot, move.row, move.col, move.action)

    if not outcome.result.valid:
        activity.logger.info(
            f"Rejected {move.action} at ({move.row}, {move.col}): {outcome.result.message}"
        )
    elif outcome.result.game_over:
        activity.logger.info(f"Game finished with status {outcome.result.status.value}")
    return outcome
