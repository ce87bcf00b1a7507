import random
from typing import List, Optional, Sequence

BOARD_SIZE = 9

WIN_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)

RPS_CHOICES = ('rock', 'paper', 'scissors')

# choice -> the choice it beats
_BEATS = {
    'rock': 'scissors',
    'scissors': 'paper',
    'paper': 'rock',
}


def empty_board() -> List[Optional[str]]:
    return [None] * BOARD_SIZE


def winning_symbol(board: Sequence[Optional[str]]) -> Optional[str]:
    """Return the symbol occupying a full line, or None."""
    for a, b, c in WIN_LINES:
        if board[a] is not None and board[a] == board[b] == board[c]:
            return board[a]
    return None


def is_full(board: Sequence[Optional[str]]) -> bool:
    return all(cell is not None for cell in board)


def empty_cells(board: Sequence[Optional[str]]) -> List[int]:
    return [i for i, cell in enumerate(board) if cell is None]


def is_valid_position(position) -> bool:
    # bool is an int subclass; True must not mean cell 1
    return isinstance(position, int) and not isinstance(position, bool) and 0 <= position < BOARD_SIZE


def resolve_rps(first: str, first_choice: str, second: str, second_choice: str,
                rng: Optional[random.Random] = None) -> str:
    """Return the username that moves first.

    Unequal choices are decided by the usual cycle; a tie is a coin flip.
    """
    if first_choice == second_choice:
        return (rng or random).choice((first, second))
    if _BEATS[first_choice] == second_choice:
        return first
    return second
