from datetime import datetime, timedelta, timezone

import pytest

from minesweeper_service.engine import count_neighbor_mines
from minesweeper_service.types import MINE, GameStatus, SessionSnapshot


START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def build_board(rows, cols, mine_cells):
    board = [[0] * cols for _ in range(rows)]
    for row, col in mine_cells:
        board[row][col] = MINE
    for row in range(rows):
        for col in range(cols):
            if board[row][col] != MINE:
                board[row][col] = count_neighbor_mines(board, row, col)
    return board


def build_snapshot(mine_cells, rows=9, cols=9, revealed=(), flagged=(),
                   first_move_taken=True, seed=1, base_score=1000, difficulty='easy'):
    snapshot = SessionSnapshot(
        difficulty=difficulty,
        rows=rows,
        cols=cols,
        mines=len(mine_cells),
        base_score=base_score,
        board=build_board(rows, cols, mine_cells),
        revealed=[[False] * cols for _ in range(rows)],
        flagged=[[False] * cols for _ in range(rows)],
        status=GameStatus.ACTIVE,
        started_at=START,
        first_move_taken=first_move_taken,
        seed=seed,
    )
    for row, col in revealed:
        snapshot.revealed[row][col] = True
    for row, col in flagged:
        snapshot.flagged[row][col] = True
    return snapshot


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_snapshot():
    return build_snapshot
