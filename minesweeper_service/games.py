"""Registry of the games the service can host."""
from typing import Dict, List

from minesweeper_service.difficulty import DIFFICULTIES
from minesweeper_service.engine import MinesweeperGame


GAME_ENGINES = {
    'minesweeper': MinesweeperGame,
}


def available_games() -> List[Dict]:
    return [
        {
            'id': 'minesweeper',
            'name': 'Minesweeper',
            'description': 'Clear a minefield without detonating any mines',
            'difficulties': list(DIFFICULTIES),
        }
    ]


def is_game_supported(game_type: str) -> bool:
    return isinstance(game_type, str) and game_type.lower() in GAME_ENGINES


def create_game(game_type: str, **options) -> MinesweeperGame:
    """Create an engine for ``game_type``.

    Raises ValueError for unknown game types.
    """
    if not is_game_supported(game_type):
        raise ValueError(f"Unsupported game type: {game_type}")
    return GAME_ENGINES[game_type.lower()].create(**options)
