"""Difficulty presets."""
from typing import Dict, List, Optional

from minesweeper_service.types import Difficulty


DEFAULT_DIFFICULTY = 'easy'

DIFFICULTIES: Dict[str, Difficulty] = {
    'easy': Difficulty(name='easy', rows=9, cols=9, mines=10, base_score=1000, weight=1.0),
    'medium': Difficulty(name='medium', rows=16, cols=16, mines=40, base_score=3000, weight=1.5),
    'hard': Difficulty(name='hard', rows=30, cols=16, mines=99, base_score=5000, weight=2.0),
}


def get_difficulty(name: Optional[str]) -> Optional[Difficulty]:
    """Look up a preset by name. Unknown names return None."""
    if not isinstance(name, str):
        return None
    return DIFFICULTIES.get(name)


def list_difficulties() -> List[Difficulty]:
    return list(DIFFICULTIES.values())
