"""Minesweeper game engine.

The engine owns one game session. It places mines, guarantees a safe first
reveal, applies reveal/flag/chord moves and scores won games. Rejected moves
are reported through ``MoveResult.valid``; the engine never raises for bad
move input.
"""
import copy
import logging
import math
import random
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Mapping, Optional, Set, Tuple

from minesweeper_service.difficulty import DEFAULT_DIFFICULTY, get_difficulty
from minesweeper_service.types import (
    FLAG,
    MINE,
    Board,
    ClientBoard,
    GameStatus,
    MoveAction,
    MoveOutcome,
    MoveRecord,
    MoveResult,
    SessionSnapshot,
)

logger = logging.getLogger(__name__)

Coordinate = Tuple[int, int]
Clock = Callable[[], datetime]

TIME_MULTIPLIER = 2
MIN_SCORE_RATIO = 0.1
MAX_DIMENSION = 50

ACTIONS = frozenset(action.value for action in MoveAction)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def neighbors(row: int, col: int, rows: int, cols: int) -> Iterator[Coordinate]:
    """Yield the in-bounds cells of the 8-neighborhood of (row, col)."""
    for dr in (-1, 0, 1):
        for dc in (-1, 0, 1):
            if dr == 0 and dc == 0:
                continue
            new_row = row + dr
            new_col = col + dc
            if 0 <= new_row < rows and 0 <= new_col < cols:
                yield new_row, new_col


def count_neighbor_mines(board: Board, row: int, col: int) -> int:
    """Count the number of mines in neighboring cells."""
    rows, cols = len(board), len(board[0])
    return sum(1 for r, c in neighbors(row, col, rows, cols) if board[r][c] == MINE)


def generate_board(rows: int, cols: int, mines: int, rng: random.Random,
                   excluded: Optional[Set[Coordinate]] = None) -> Board:
    """Create a board with ``mines`` randomly placed mines and neighbor counts.

    Mines are placed by rejection sampling: a random cell is drawn and retried
    if it already holds a mine or lies in ``excluded``.
    """
    excluded = excluded or set()
    board: Board = [[0] * cols for _ in range(rows)]

    placed = 0
    while placed < mines:
        row = rng.randrange(rows)
        col = rng.randrange(cols)
        if board[row][col] == MINE or (row, col) in excluded:
            continue
        board[row][col] = MINE
        placed += 1

    for row in range(rows):
        for col in range(cols):
            if board[row][col] != MINE:
                board[row][col] = count_neighbor_mines(board, row, col)

    return board


def calculate_score(base_score: float, elapsed_seconds: float,
                    time_multiplier: float = TIME_MULTIPLIER) -> float:
    """Score a won game: base score minus a time penalty, floored at 10% of base."""
    return float(max(math.floor(base_score - elapsed_seconds * time_multiplier),
                     base_score * MIN_SCORE_RATIO))


def custom_base_score(rows: int, cols: int, mines: int, weight: float) -> int:
    cells = rows * cols
    mine_density = mines / cells
    return round(cells * mine_density * 100 * weight)


def resolve_dimensions(difficulty: Optional[str], dims: Optional[Mapping[str, int]] = None):
    """Return (difficulty name, rows, cols, mines, base score) for a new game.

    Unknown difficulty names fall back to easy. Explicit dimensions override
    the preset entirely and are scored by mine density and difficulty weight.
    """
    preset = get_difficulty(difficulty)
    if preset is None:
        preset = get_difficulty(DEFAULT_DIFFICULTY)

    if dims and dims.get('rows') and dims.get('cols') and dims.get('mines'):
        rows, cols, mines = dims['rows'], dims['cols'], dims['mines']
        if not all(_is_int(value) for value in (rows, cols, mines)):
            raise ValueError('Board dimensions and mine count must be integers')
        if not (1 <= rows <= MAX_DIMENSION and 1 <= cols <= MAX_DIMENSION):
            raise ValueError(f'Board dimensions must be between 1 and {MAX_DIMENSION}')
        if not 1 <= mines < rows * cols:
            raise ValueError('Too many mines for the board size')
        return preset.name, rows, cols, mines, custom_base_score(rows, cols, mines, preset.weight)

    return preset.name, preset.rows, preset.cols, preset.mines, preset.base_score


class MinesweeperGame:
    """A single Minesweeper session.

    The engine mutates ``snapshot`` in place. Build one from a stored snapshot
    with ``MinesweeperGame(snapshot)`` or start a fresh game with
    ``MinesweeperGame.create``.
    """

    def __init__(self, snapshot: SessionSnapshot, clock: Optional[Clock] = None):
        self.snapshot = snapshot
        self._clock = clock or _utcnow

    @classmethod
    def create(cls, difficulty: Optional[str] = DEFAULT_DIFFICULTY,
               dims: Optional[Mapping[str, int]] = None,
               seed: Optional[int] = None,
               clock: Optional[Clock] = None) -> 'MinesweeperGame':
        name, rows, cols, mines, base_score = resolve_dimensions(difficulty, dims)
        if seed is None:
            seed = random.SystemRandom().getrandbits(32)

        now = (clock or _utcnow)()
        snapshot = SessionSnapshot(
            difficulty=name,
            rows=rows,
            cols=cols,
            mines=mines,
            base_score=base_score,
            board=generate_board(rows, cols, mines, random.Random(seed)),
            revealed=[[False] * cols for _ in range(rows)],
            flagged=[[False] * cols for _ in range(rows)],
            status=GameStatus.ACTIVE,
            started_at=now,
            seed=seed,
        )
        logger.debug(f"Created {name} game {rows}x{cols} with {mines} mines")
        return cls(snapshot, clock=clock)

    # Moves

    def validate_move(self, row, col, action) -> Optional[str]:
        """Return why a move is rejected, or None when it may be applied.

        Chord flag-count mismatches are checked later, by the chord itself.
        """
        s = self.snapshot
        if s.status != GameStatus.ACTIVE:
            return 'Game is already over'
        if not (_is_int(row) and _is_int(col)) or not (0 <= row < s.rows and 0 <= col < s.cols):
            return 'Invalid move coordinates'
        if not isinstance(action, str) or action not in ACTIONS:
            return 'Invalid action'

        if action == MoveAction.REVEAL:
            if s.revealed[row][col]:
                return 'Cell already revealed'
            if s.flagged[row][col]:
                return 'Cannot reveal flagged cell. Remove flag first.'
        elif action == MoveAction.FLAG:
            if s.revealed[row][col]:
                return 'Cannot flag a revealed cell'
        elif action == MoveAction.CHORD:
            if not s.revealed[row][col]:
                return 'Cannot chord an unrevealed cell'
            if s.board[row][col] <= 0:
                return 'Can only chord on cells with adjacent mines'
        return None

    def apply_move(self, row, col, action) -> MoveResult:
        error = self.validate_move(row, col, action)
        if error:
            return self._rejected(error)

        action = MoveAction(action)
        if action == MoveAction.REVEAL:
            return self._reveal(row, col)
        if action == MoveAction.FLAG:
            return self._toggle_flag(row, col)
        return self._chord(row, col)

    def _reveal(self, row: int, col: int) -> MoveResult:
        s = self.snapshot
        self._record(row, col, 'reveal')

        if not s.first_move_taken:
            self.ensure_safe_first_move(row, col)

        if s.board[row][col] == MINE:
            self._end_game(GameStatus.LOST)
            return MoveResult(
                valid=True,
                game_over=True,
                status=s.status,
                message='Game over - you hit a mine!',
                board=self.full_view(),
            )

        self.flood_reveal(row, col)

        if self.check_win():
            return self._win()
        return MoveResult(valid=True, status=s.status, message='Cell revealed')

    def _toggle_flag(self, row: int, col: int) -> MoveResult:
        s = self.snapshot
        flagged = not s.flagged[row][col]
        self._record(row, col, 'flag' if flagged else 'unflag')
        s.flagged[row][col] = flagged

        if flagged:
            message = f'Flag placed at position ({row}, {col})'
        else:
            message = f'Flag removed from position ({row}, {col})'
        return MoveResult(valid=True, status=s.status, message=message, flagged=flagged)

    def _chord(self, row: int, col: int) -> MoveResult:
        s = self.snapshot
        required = s.board[row][col]

        flag_count = 0
        to_reveal: List[Coordinate] = []
        for r, c in neighbors(row, col, s.rows, s.cols):
            if s.flagged[r][c]:
                flag_count += 1
            elif not s.revealed[r][c]:
                to_reveal.append((r, c))

        if flag_count != required:
            return self._rejected(f'Cannot chord: need {required} flags, but {flag_count} are placed')

        self._record(row, col, 'chord')

        hit_mine = False
        for r, c in to_reveal:
            if self.flood_reveal(r, c):
                hit_mine = True

        if hit_mine:
            self._end_game(GameStatus.LOST)
            return MoveResult(
                valid=True,
                game_over=True,
                status=s.status,
                message='Game over - chord hit a mine!',
                board=self.full_view(),
            )

        if self.check_win():
            return self._win()
        return MoveResult(valid=True, status=s.status, message='Chord action successful')

    def _win(self) -> MoveResult:
        s = self.snapshot
        self._end_game(GameStatus.WON)
        score = calculate_score(s.base_score, self.elapsed_seconds())
        s.score = score
        logger.info(f"Game won on {s.difficulty} with score {score}")
        return MoveResult(
            valid=True,
            game_over=True,
            status=s.status,
            score=score,
            message='Congratulations! You won!',
            board=self.full_view(),
        )

    def _rejected(self, message: str) -> MoveResult:
        return MoveResult(valid=False, status=self.snapshot.status, message=message)

    def _record(self, row: int, col: int, action: str) -> None:
        self.snapshot.moves.append(MoveRecord(row=row, col=col, action=action, timestamp=self._clock()))

    def _end_game(self, status: GameStatus) -> None:
        self.snapshot.status = status
        self.snapshot.completed_at = self._clock()
        if status == GameStatus.LOST:
            logger.info(f"Game lost on {self.snapshot.difficulty} after {len(self.snapshot.moves)} moves")

    # Board mechanics

    def ensure_safe_first_move(self, row: int, col: int) -> None:
        """Regenerate the board once so the first reveal opens a cascade.

        Runs only while ``first_move_taken`` is False. If (row, col) is a mine
        or has mine neighbors, mines are re-placed away from its 3x3
        neighborhood. Boards too dense for that only keep the cell itself clear.
        """
        s = self.snapshot
        if s.first_move_taken:
            return

        if s.board[row][col] != 0:
            excluded = {(row, col)} | set(neighbors(row, col, s.rows, s.cols))
            if s.rows * s.cols - len(excluded) < s.mines:
                excluded = {(row, col)}
            s.board = generate_board(s.rows, s.cols, s.mines, self._regeneration_rng(row, col), excluded)
            logger.debug(f"Regenerated board around first reveal at ({row}, {col})")

        s.first_move_taken = True

    def _regeneration_rng(self, row: int, col: int) -> random.Random:
        if self.snapshot.seed is None:
            return random.Random()
        return random.Random(f'{self.snapshot.seed}:{row}:{col}')

    def flood_reveal(self, row: int, col: int) -> bool:
        """Reveal (row, col) and cascade through zero cells.

        Flagged and already revealed cells are skipped. Numbered cells are
        revealed but not expanded. Returns True if a mine was revealed, which
        only a chord can cause.
        """
        s = self.snapshot
        hit_mine = False
        stack: List[Coordinate] = [(row, col)]

        while stack:
            r, c = stack.pop()
            if s.revealed[r][c] or s.flagged[r][c]:
                continue
            s.revealed[r][c] = True

            if s.board[r][c] == MINE:
                hit_mine = True
            elif s.board[r][c] == 0:
                stack.extend(
                    (nr, nc) for nr, nc in neighbors(r, c, s.rows, s.cols)
                    if not s.revealed[nr][nc] and not s.flagged[nr][nc]
                )

        return hit_mine

    def remaining_safe_cells(self) -> int:
        s = self.snapshot
        return sum(
            1
            for row in range(s.rows)
            for col in range(s.cols)
            if s.board[row][col] != MINE and not s.revealed[row][col]
        )

    def check_win(self) -> bool:
        return self.remaining_safe_cells() == 0

    # Views

    def elapsed_seconds(self) -> float:
        s = self.snapshot
        end = s.completed_at or self._clock()
        return (end - s.started_at).total_seconds()

    def flag_count(self) -> int:
        return sum(row.count(True) for row in self.snapshot.flagged)

    def full_view(self) -> Board:
        return [list(row) for row in self.snapshot.board]

    def client_view(self) -> ClientBoard:
        """Board as the player may see it.

        While active, unrevealed cells are None and flags are 'F'. Once the
        game is over the full board is returned.
        """
        s = self.snapshot
        if s.status != GameStatus.ACTIVE:
            return self.full_view()

        view: ClientBoard = [[None] * s.cols for _ in range(s.rows)]
        for row in range(s.rows):
            for col in range(s.cols):
                if s.revealed[row][col]:
                    view[row][col] = s.board[row][col]
                elif s.flagged[row][col]:
                    view[row][col] = FLAG
        return view

    def summary(self) -> dict:
        s = self.snapshot
        flags = self.flag_count()
        return {
            'status': s.status,
            'difficulty': s.difficulty,
            'rows': s.rows,
            'cols': s.cols,
            'mines': s.mines,
            'started_at': s.started_at,
            'completed_at': s.completed_at,
            'duration': self.elapsed_seconds(),
            'move_count': len(s.moves),
            'flags_placed': flags,
            'mines_remaining': s.mines - flags,
            'cells_remaining': self.remaining_safe_cells(),
        }


def new_game(difficulty: Optional[str] = DEFAULT_DIFFICULTY,
             dims: Optional[Mapping[str, int]] = None,
             seed: Optional[int] = None,
             clock: Optional[Clock] = None) -> SessionSnapshot:
    """Start a new game and return its snapshot."""
    return MinesweeperGame.create(difficulty, dims, seed=seed, clock=clock).snapshot


def apply_move(snapshot: SessionSnapshot, row, col, action,
               clock: Optional[Clock] = None) -> MoveOutcome:
    """Apply a move to a copy of ``snapshot``."""
    game = MinesweeperGame(copy.deepcopy(snapshot), clock=clock)
    result = game.apply_move(row, col, action)
    return MoveOutcome(snapshot=game.snapshot, result=result)


def client_view(snapshot: SessionSnapshot) -> ClientBoard:
    return MinesweeperGame(snapshot).client_view()


def full_view(snapshot: SessionSnapshot) -> Board:
    return MinesweeperGame(snapshot).full_view()
