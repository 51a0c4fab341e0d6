"""Xiangqi (Chinese chess) rule engine and AI."""

from .board import Board, BoardStateError, Piece, PieceType, Position, Side
from .config import Config, EvalConfig, SearchConfig, ServerConfig, load_config
from .engine import Difficulty, Engine, SearchTimeout
from .evaluation import Evaluator
from .game import Game, GameMode, GameStatus
from .rules import (
    all_legal_moves,
    apply_move,
    game_over,
    generals_facing,
    is_in_check,
    is_legal_move,
    legal_moves,
    pseudo_legal,
    would_give_check,
)

__all__ = [
    # Board and game
    'Board', 'BoardStateError', 'Piece', 'PieceType', 'Position', 'Side',
    'Game', 'GameMode', 'GameStatus',
    # Rules
    'all_legal_moves', 'apply_move', 'game_over', 'generals_facing',
    'is_in_check', 'is_legal_move', 'legal_moves', 'pseudo_legal',
    'would_give_check',
    # Search
    'Difficulty', 'Engine', 'SearchTimeout', 'Evaluator',
    # Configuration
    'Config', 'EvalConfig', 'SearchConfig', 'ServerConfig', 'load_config',
]
