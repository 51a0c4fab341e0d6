"""Heuristic position evaluation for the search engine."""

from typing import Dict, List, Optional

import numpy as np

from . import rules
from .board import Board, Piece, PieceType, Position, Side
from .config import EvalConfig

# Piece-square tables from red's point of view: row = rank (0 is black's back
# rank, i.e. the far end for red), column = file. Black uses the flipped table.
PIECE_SQUARE_TABLES: Dict[PieceType, np.ndarray] = {
    PieceType.GENERAL: np.array([
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, -10, -15, -10, 0, 0, 0],
        [0, 0, 0, 5, 10, 5, 0, 0, 0],
        [0, 0, 0, 10, 20, 10, 0, 0, 0],
    ]),
    PieceType.ADVISOR: np.array([
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 5, 0, 5, 0, 0, 0],
        [0, 0, 0, 0, 15, 0, 0, 0, 0],
        [0, 0, 0, 5, 0, 5, 0, 0, 0],
    ]),
    PieceType.ELEPHANT: np.array([
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 10, 0, 0, 0, 10, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [5, 0, 0, 0, 30, 0, 0, 0, 5],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 20, 0, 0, 0, 20, 0, 0],
    ]),
    PieceType.HORSE: np.array([
        [0, 5, 10, 15, 20, 15, 10, 5, 0],
        [5, 15, 25, 30, 35, 30, 25, 15, 5],
        [10, 25, 35, 40, 45, 40, 35, 25, 10],
        [15, 30, 40, 45, 50, 45, 40, 30, 15],
        [20, 35, 45, 50, 55, 50, 45, 35, 20],
        [15, 30, 40, 45, 50, 45, 40, 30, 15],
        [10, 25, 35, 40, 45, 40, 35, 25, 10],
        [5, 15, 25, 30, 35, 30, 25, 15, 5],
        [0, 5, 10, 15, 10, 15, 10, 5, 0],
        [0, -5, 5, 0, 0, 0, 5, -5, 0],
    ]),
    PieceType.CHARIOT: np.array([
        [5, 5, 5, 10, 10, 10, 5, 5, 5],
        [5, 10, 10, 15, 20, 15, 10, 10, 5],
        [5, 10, 15, 15, 15, 15, 15, 10, 5],
        [5, 10, 15, 20, 20, 20, 15, 10, 5],
        [5, 10, 15, 20, 25, 20, 15, 10, 5],
        [5, 10, 15, 20, 20, 20, 15, 10, 5],
        [5, 10, 15, 15, 15, 15, 15, 10, 5],
        [5, 10, 10, 10, 10, 10, 10, 10, 5],
        [5, 5, 5, 5, 5, 5, 5, 5, 5],
        [-5, 5, 0, 5, 0, 5, 0, 5, -5],
    ]),
    PieceType.CANNON: np.array([
        [2, 2, 2, 2, 2, 2, 2, 2, 2],
        [2, 5, 5, 5, 5, 5, 5, 5, 2],
        [2, 5, 10, 10, 10, 10, 10, 5, 2],
        [2, 5, 10, 15, 15, 15, 10, 5, 2],
        [2, 5, 10, 15, 20, 15, 10, 5, 2],
        [2, 5, 10, 15, 15, 15, 10, 5, 2],
        [2, 5, 10, 10, 10, 10, 10, 5, 2],
        [2, 5, 5, 5, 10, 5, 5, 5, 2],
        [2, 2, 2, 2, 2, 2, 2, 2, 2],
        [0, 0, 2, 5, 5, 5, 2, 0, 0],
    ]),
    PieceType.SOLDIER: np.array([
        [0, 3, 6, 9, 12, 9, 6, 3, 0],
        [18, 36, 56, 80, 120, 80, 56, 36, 18],
        [14, 26, 42, 60, 80, 60, 42, 26, 14],
        [10, 20, 30, 34, 40, 34, 30, 20, 10],
        [6, 12, 18, 18, 20, 18, 18, 12, 6],
        [2, 0, 8, 0, 8, 0, 8, 0, 2],
        [0, 0, -2, 0, 4, 0, -2, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0],
    ]),
}

BLACK_PIECE_SQUARE_TABLES: Dict[PieceType, np.ndarray] = {
    piece_type: np.flipud(table) for piece_type, table in PIECE_SQUARE_TABLES.items()
}

CENTRAL_FILES = range(3, 6)
CENTRAL_RANKS = range(3, 6)


def is_central(position: Position) -> bool:
    return position.file in CENTRAL_FILES and position.rank in CENTRAL_RANKS


class Evaluator:
    """Material, position, safety, mobility and king-safety evaluator.

    Scores are from the perspective of the side passed to ``evaluate``:
    positive favors that side.
    """

    def __init__(self, config: Optional[EvalConfig] = None):
        self.config = config or EvalConfig()
        self.piece_values = {
            piece_type: self.config.piece_values.get(piece_type.name, 0)
            for piece_type in PieceType
        }

    def piece_value(self, piece: Piece) -> float:
        return self.piece_values[piece.piece_type]

    def position_value(self, piece: Piece) -> float:
        tables = PIECE_SQUARE_TABLES if piece.side == Side.RED else BLACK_PIECE_SQUARE_TABLES
        return float(tables[piece.piece_type][piece.position.rank, piece.position.file])

    def evaluate(self, board: Board, side: Side) -> float:
        """Evaluate board position for ``side``."""
        opponent = side.opponent
        moves = {piece.id: rules.legal_moves(piece, board) for piece in board.live_pieces()}

        score = 0.0
        for piece in board.live_pieces():
            value = (
                self.piece_value(piece)
                + self.position_value(piece)
                + self._safety_value(piece, board, moves)
            )
            score += value if piece.side == side else -value

        if rules.is_in_check(opponent, board):
            score += self.config.check_bonus
        if rules.is_in_check(side, board):
            score -= self.config.check_bonus

        own_mobility = self._mobility(board, side, moves)
        opponent_mobility = self._mobility(board, opponent, moves)
        score += (own_mobility - opponent_mobility) * self.config.mobility_weight

        own_control = self._central_control(board, side, moves)
        opponent_control = self._central_control(board, opponent, moves)
        score += (own_control - opponent_control) * self.config.control_weight

        score += self._king_safety(board, side, moves)
        score -= self._king_safety(board, opponent, moves)
        return score

    def _safety_value(self, piece: Piece, board: Board, moves: Dict[int, List[Position]]) -> float:
        """Penalty for a piece attacked by cheaper enemy pieces."""
        penalty = 0.0
        defender_value = self.piece_value(piece)
        for attacker in board.pieces_of(piece.side.opponent):
            if piece.position not in moves[attacker.id]:
                continue
            attacker_value = self.piece_value(attacker)
            if attacker_value < defender_value:
                penalty -= (defender_value - attacker_value) / 2
        return penalty

    @staticmethod
    def _mobility(board: Board, side: Side, moves: Dict[int, List[Position]]) -> int:
        return sum(len(moves[piece.id]) for piece in board.pieces_of(side))

    @staticmethod
    def _central_control(board: Board, side: Side, moves: Dict[int, List[Position]]) -> int:
        return sum(
            1
            for piece in board.pieces_of(side)
            for target in moves[piece.id]
            if is_central(target)
        )

    def _king_safety(self, board: Board, side: Side, moves: Dict[int, List[Position]]) -> float:
        """King safety score for ``side`` (zero or negative)."""
        general = board.general(side)
        if general is None:
            return -self.config.missing_general_penalty
        # A side to move with nothing to play has lost as surely as its general
        if board.side_to_move == side and self._mobility(board, side, moves) == 0:
            return -self.config.missing_general_penalty

        attacked = 0
        for df, dr in rules.ORTHOGONAL:
            square = general.position.offset(df, dr)
            if not square.is_valid():
                continue
            for attacker in board.pieces_of(side.opponent):
                if square in moves[attacker.id]:
                    attacked += 1
        return -attacked * self.config.king_square_penalty
