"""JSON-safe conversion of game sessions and move results."""
from datetime import datetime
from typing import Any, Dict, Optional

from minesweeper_service.engine import MinesweeperGame
from minesweeper_service.types import GameStatus, MoveRecord, MoveResult, SessionSnapshot


def serialize_datetime(obj):
    """Helper to serialize datetime objects."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj


def parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def status_value(status) -> str:
    """Status as its lower-case string, whether given as an enum or a string."""
    if hasattr(status, 'value'):
        return str(status.value)
    return str(status).lower()


def snapshot_to_dict(snapshot: SessionSnapshot) -> Dict[str, Any]:
    """Full snapshot, mines and seed included. For storage only."""
    return {
        'difficulty': snapshot.difficulty,
        'rows': snapshot.rows,
        'cols': snapshot.cols,
        'mines': snapshot.mines,
        'baseScore': snapshot.base_score,
        'board': [list(row) for row in snapshot.board],
        'revealed': [list(row) for row in snapshot.revealed],
        'flagged': [list(row) for row in snapshot.flagged],
        'status': status_value(snapshot.status),
        'startedAt': serialize_datetime(snapshot.started_at),
        'completedAt': serialize_datetime(snapshot.completed_at),
        'firstMoveTaken': snapshot.first_move_taken,
        'seed': snapshot.seed,
        'score': snapshot.score,
        'moves': [
            {
                'row': move.row,
                'col': move.col,
                'action': move.action,
                'timestamp': serialize_datetime(move.timestamp),
            }
            for move in snapshot.moves
        ],
    }


def snapshot_from_dict(data: Dict[str, Any]) -> SessionSnapshot:
    """Rebuild a snapshot produced by ``snapshot_to_dict``."""
    return SessionSnapshot(
        difficulty=data['difficulty'],
        rows=data['rows'],
        cols=data['cols'],
        mines=data['mines'],
        base_score=data['baseScore'],
        board=[list(row) for row in data['board']],
        revealed=[list(row) for row in data['revealed']],
        flagged=[list(row) for row in data['flagged']],
        status=GameStatus(data['status']),
        started_at=parse_datetime(data['startedAt']),
        completed_at=parse_datetime(data.get('completedAt')),
        first_move_taken=data.get('firstMoveTaken', False),
        seed=data.get('seed'),
        score=data.get('score'),
        moves=[
            MoveRecord(
                row=move['row'],
                col=move['col'],
                action=move['action'],
                timestamp=parse_datetime(move['timestamp']),
            )
            for move in data.get('moves', [])
        ],
    )


def serialize_move_result(result: MoveResult) -> Dict[str, Any]:
    payload = {
        'valid': result.valid,
        'gameOver': result.game_over,
        'status': status_value(result.status),
        'message': result.message,
    }
    if result.score is not None:
        payload['score'] = result.score
    if result.flagged is not None:
        payload['flagged'] = result.flagged
    if result.board is not None:
        payload['board'] = result.board
    return payload


def serialize_game_state(game_id: str, snapshot: SessionSnapshot) -> Dict[str, Any]:
    """Game state as sent to players.

    Mine positions are hidden while the game is active. The seed is never sent
    since it determines the board.
    """
    game = MinesweeperGame(snapshot)
    summary = game.summary()
    return {
        'gameId': game_id,
        'difficulty': summary['difficulty'],
        'rows': summary['rows'],
        'cols': summary['cols'],
        'mines': summary['mines'],
        'status': status_value(summary['status']),
        'startedAt': serialize_datetime(summary['started_at']),
        'completedAt': serialize_datetime(summary['completed_at']),
        'duration': summary['duration'],
        'moveCount': summary['move_count'],
        'flagsPlaced': summary['flags_placed'],
        'minesRemaining': summary['mines_remaining'],
        'cellsRemaining': summary['cells_remaining'],
        'score': snapshot.score,
        'revealed': snapshot.revealed,
        'flagged': snapshot.flagged,
        'board': game.client_view(),
    }
