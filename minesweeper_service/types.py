"""Type definitions for the Minesweeper service."""
from dataclasses import dataclass, field
from typing import List, Optional, Union
from datetime import datetime
from enum import StrEnum


MINE = -1
FLAG = 'F'

Board = List[List[int]]
Mask = List[List[bool]]
ClientCell = Union[int, str, None]
ClientBoard = List[List[ClientCell]]


@dataclass(frozen=True)
class Difficulty:
    """A board preset looked up by name."""
    name: str
    rows: int
    cols: int
    mines: int
    base_score: int
    weight: float = 1.0


class GameStatus(StrEnum):
    """Possible game states."""
    ACTIVE = 'active'
    WON = 'won'
    LOST = 'lost'


class MoveAction(StrEnum):
    """Actions a player may submit."""
    REVEAL = 'reveal'
    FLAG = 'flag'
    CHORD = 'chord'


@dataclass
class MoveRecord:
    """One entry of the append-only move log."""
    row: int
    col: int
    action: str  # 'reveal', 'flag', 'unflag', 'chord'
    timestamp: datetime


@dataclass
class SessionSnapshot:
    """Serializable state of one game, exchanged with persistence."""
    difficulty: str
    rows: int
    cols: int
    mines: int
    base_score: int
    board: Board
    revealed: Mask
    flagged: Mask
    status: GameStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    first_move_taken: bool = False
    seed: Optional[int] = None
    score: Optional[float] = None
    moves: List[MoveRecord] = field(default_factory=list)


@dataclass
class MoveResult:
    """Outcome of applying one move."""
    valid: bool
    message: str
    status: GameStatus
    game_over: bool = False
    score: Optional[float] = None
    flagged: Optional[bool] = None
    board: Optional[Board] = None


@dataclass
class MoveOutcome:
    """Snapshot after a move together with the move's result."""
    snapshot: SessionSnapshot
    result: MoveResult


@dataclass
class GameConfig:
    """Configuration for creating a new game."""
    difficulty: str = 'easy'
    rows: Optional[int] = None
    cols: Optional[int] = None
    mines: Optional[int] = None
    seed: Optional[int] = None

    def dimensions(self) -> Optional[dict]:
        """Explicit dimensions, or None when the preset should be used."""
        if self.rows and self.cols and self.mines:
            return {'rows': self.rows, 'cols': self.cols, 'mines': self.mines}
        return None


@dataclass
class MoveRequest:
    """Request to make a move."""
    row: int
    col: int
    action: str  # 'reveal', 'flag', 'chord'


@dataclass
class GameRecord:
    """What the session workflow stores for one game."""
    id: str
    owner_id: str
    snapshot: SessionSnapshot
    closed: bool = False
