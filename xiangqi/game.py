"""Game controller: one live board, turn flow, undo history and the AI turn."""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from . import rules
from .board import Board, BoardStateError, Piece, Position, Side
from .engine import Difficulty, Engine

logger = logging.getLogger(__name__)


class GameMode(Enum):
    PVP = "pvp"  # player vs player
    PVE = "pve"  # player vs computer


class GameStatus(Enum):
    PLAYING = "playing"
    OVER = "over"


class Game:
    """Owns the canonical board of one game."""

    def __init__(
        self,
        mode: GameMode = GameMode.PVP,
        difficulty: Difficulty = Difficulty.MEDIUM,
        ai_side: Side = Side.BLACK,
        engine: Optional[Engine] = None,
        board: Optional[Board] = None,
        history_limit: Optional[int] = None,
    ):
        self.mode = mode
        self.difficulty = difficulty
        self.ai_side = ai_side
        self.engine = engine or Engine()
        self.history_limit = history_limit
        self.history: List[Board] = []
        self.selected_piece_id: Optional[int] = None
        self.highlighted_moves: List[Position] = []
        self.board = board if board is not None else Board()
        self.status = GameStatus.OVER if self.board.winner else GameStatus.PLAYING

    @property
    def winner(self) -> Optional[Side]:
        return self.board.winner

    def new_game(self) -> None:
        """Replace the board with a fresh starting position."""
        self.board = Board()
        self.history = []
        self.status = GameStatus.PLAYING
        self.select(None)
        logger.info("New %s game", self.mode.value)

    def is_ai_turn(self) -> bool:
        return (
            self.mode == GameMode.PVE
            and self.status == GameStatus.PLAYING
            and self.board.side_to_move == self.ai_side
        )

    def select(self, piece_id: Optional[int]) -> bool:
        """Select a piece of the side to move and cache its legal moves."""
        self.selected_piece_id = None
        self.highlighted_moves = []
        if piece_id is None:
            return True
        piece = self.board.get_piece_by_id(piece_id)
        if piece is None or not piece.alive or piece.side != self.board.side_to_move:
            return False
        self.selected_piece_id = piece_id
        self.highlighted_moves = rules.legal_moves(piece, self.board)
        return True

    def legal_moves_for(self, position: Position) -> List[Position]:
        """Legal targets of the side-to-move piece on the square."""
        if self.status != GameStatus.PLAYING:
            return []
        piece = self.board.piece_at(position)
        if piece is None or piece.side != self.board.side_to_move:
            return []
        return rules.legal_moves(piece, self.board)

    def make_move(self, origin: Position, target: Position) -> bool:
        """Make a move. Returns True if legal, False otherwise."""
        if self.status != GameStatus.PLAYING:
            return False
        piece = self.board.piece_at(origin)
        if piece is None or piece.side != self.board.side_to_move:
            return False
        if not rules.is_legal_move(piece, target, self.board):
            return False
        self._play(piece, target)
        return True

    def _play(self, piece: Piece, target: Position) -> None:
        self._push_history()
        origin = piece.position
        captured = rules.apply_move(self.board, piece, target)
        self.select(None)
        logger.info(
            "%s %s %s -> %s%s",
            piece.side.value, piece.piece_type.value,
            origin.to_square(), target.to_square(),
            f" captures {captured.piece_type.value}" if captured else "",
        )

        self.board.switch_turn()
        self.board.in_check = rules.is_in_check(self.board.side_to_move, self.board)
        if self.board.in_check:
            logger.info("%s is in check", self.board.side_to_move.value)
        self.check_game_over()

    def _push_history(self) -> None:
        self.history.append(self.board.clone())
        if self.history_limit is not None and len(self.history) > self.history_limit:
            self.history.pop(0)

    @property
    def can_undo(self) -> bool:
        return bool(self.history)

    def undo(self) -> bool:
        """Take back the last move (last two against the computer)."""
        if not self.history:
            return False
        count = 2 if self.mode == GameMode.PVE else 1
        count = min(count, len(self.history))
        target = self.history[-count]
        del self.history[-count:]
        self.board = target
        self.status = GameStatus.OVER if target.winner else GameStatus.PLAYING
        self.select(None)
        return True

    def ai_turn(self) -> Optional[Tuple[Piece, Position]]:
        """Let the engine play for the AI side, if it is its turn."""
        if not self.is_ai_turn():
            return None
        move = self.engine.choose_move(self.board, self.ai_side, self.difficulty)
        if move is None:
            self.check_game_over()
            return None
        self._play(*move)
        return move

    def apply_engine_move(self, piece_id: int, target: Position) -> bool:
        """Apply a move computed elsewhere (e.g. by a background search)."""
        piece = self.board.get_piece_by_id(piece_id)
        if piece is None or not piece.alive:
            return False
        return self.make_move(piece.position, target)

    def check_game_over(self) -> None:
        winner = rules.game_over(self.board)
        if winner is not None:
            self.board.winner = winner
            self.status = GameStatus.OVER
            logger.info("Game over, %s wins", winner.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "board": self.board.to_dict(),
            "status": self.status.value,
            "mode": self.mode.value,
            "difficulty": self.difficulty.value,
            "ai_side": self.ai_side.value,
            "history": [board.to_dict() for board in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], engine: Optional[Engine] = None, history_limit: Optional[int] = None) -> "Game":
        try:
            mode = GameMode(data.get("mode", GameMode.PVP.value))
            difficulty = Difficulty(data.get("difficulty", Difficulty.MEDIUM.value))
            ai_side = Side(data.get("ai_side", Side.BLACK.value))
            board_data = data["board"]
            history_data = data.get("history", [])
            if not isinstance(history_data, list):
                raise TypeError(f"history must be a list, got {type(history_data).__name__}")
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BoardStateError(f"Malformed game data: {e}") from e

        game = cls(
            mode=mode,
            difficulty=difficulty,
            ai_side=ai_side,
            engine=engine,
            board=Board.from_dict(board_data),
            history_limit=history_limit,
        )
        game.history = [Board.from_dict(item) for item in history_data]
        if history_limit is not None:
            game.history = game.history[-history_limit:] if history_limit > 0 else []
        if data.get("status") == GameStatus.OVER.value:
            game.status = GameStatus.OVER
        return game
