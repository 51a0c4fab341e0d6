"""Xiangqi board representation: positions, pieces and the board state."""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class BoardStateError(Exception):
    """Raised when a caller breaks the board's structural invariants."""


class Side(Enum):
    """Player sides."""

    RED = "red"  # Bottom side, moves first
    BLACK = "black"  # Top side, moves second

    @property
    def opponent(self) -> "Side":
        return Side.BLACK if self is Side.RED else Side.RED


class PieceType(Enum):
    """Piece types."""

    GENERAL = "general"
    ADVISOR = "advisor"
    ELEPHANT = "elephant"
    HORSE = "horse"
    CHARIOT = "chariot"
    CANNON = "cannon"
    SOLDIER = "soldier"


FILES = 9
RANKS = 10
FILE_NAMES = "abcdefghi"

# Single-letter codes used by custom setups and text diagrams
PIECE_CODES = {
    PieceType.GENERAL: "G",
    PieceType.ADVISOR: "A",
    PieceType.ELEPHANT: "E",
    PieceType.HORSE: "H",
    PieceType.CHARIOT: "R",
    PieceType.CANNON: "C",
    PieceType.SOLDIER: "S",
}
CODE_TO_PIECE_TYPE = {code: piece_type for piece_type, code in PIECE_CODES.items()}
SIDE_CODES = {Side.RED: "r", Side.BLACK: "b"}
CODE_TO_SIDE = {code: side for side, code in SIDE_CODES.items()}

_POSITION_RE = re.compile(r"\((-?\d+),\s*(-?\d+)\)")


@dataclass(frozen=True)
class Position:
    """An intersection on the board."""

    file: int  # 0-8 (a-i), left to right
    rank: int  # 0-9, black's back rank is 0, red's is 9

    def is_valid(self) -> bool:
        """Check if the position lies on the board."""
        return 0 <= self.file < FILES and 0 <= self.rank < RANKS

    def offset(self, df: int, dr: int) -> "Position":
        return Position(self.file + df, self.rank + dr)

    def distance(self, other: "Position") -> float:
        """Euclidean distance between two positions."""
        return math.hypot(self.file - other.file, self.rank - other.rank)

    def manhattan_distance(self, other: "Position") -> int:
        return abs(self.file - other.file) + abs(self.rank - other.rank)

    def to_square(self) -> str:
        """Convert to square notation (e.g. 'e9')."""
        return f"{FILE_NAMES[self.file]}{self.rank}"

    @classmethod
    def from_square(cls, square: str) -> "Position":
        """Parse square notation (e.g. 'e9').

        Raises:
            ValueError: if the notation does not name a square on the board.
        """
        if len(square) != 2 or square[0] not in FILE_NAMES or not square[1].isdigit():
            raise ValueError(f"Invalid square notation: {square!r}")
        return cls(FILE_NAMES.index(square[0]), int(square[1]))

    @classmethod
    def from_string(cls, text: str) -> "Position":
        """Parse the '(x, y)' form produced by str()."""
        match = _POSITION_RE.fullmatch(text.strip())
        if not match:
            raise ValueError(f"Invalid position string: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    def __str__(self) -> str:
        return f"({self.file}, {self.rank})"


@dataclass
class Piece:
    """Represents a piece in the board's piece arena.

    A captured piece is never removed from the arena; it is marked dead and
    keeps its id.
    """

    id: int
    piece_type: PieceType
    side: Side
    position: Position
    alive: bool = True

    def clone(self) -> "Piece":
        return Piece(self.id, self.piece_type, self.side, self.position, self.alive)

    @property
    def code(self) -> str:
        return f"{SIDE_CODES[self.side]}{PIECE_CODES[self.piece_type]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.piece_type.value,
            "side": self.side.value,
            "position": {"file": self.position.file, "rank": self.position.rank},
            "alive": self.alive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Piece":
        try:
            alive = data.get("alive", True)
            if not isinstance(alive, bool):
                raise TypeError(f"alive must be a bool, got {alive!r}")
            return cls(
                id=int(data["id"]),
                piece_type=PieceType(data["type"]),
                side=Side(data["side"]),
                position=Position(
                    int(data["position"]["file"]), int(data["position"]["rank"])
                ),
                alive=alive,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BoardStateError(f"Malformed piece data: {data!r}") from e

    def __str__(self) -> str:
        return f"{self.side.value}_{self.piece_type.value}@{self.position.to_square()}"


# Red's half of the starting layout, in creation order. Black is mirrored.
STARTING_LAYOUT: List[Tuple[PieceType, List[Tuple[int, int]]]] = [
    (PieceType.GENERAL, [(4, 9)]),
    (PieceType.ADVISOR, [(3, 9), (5, 9)]),
    (PieceType.ELEPHANT, [(2, 9), (6, 9)]),
    (PieceType.HORSE, [(1, 9), (7, 9)]),
    (PieceType.CHARIOT, [(0, 9), (8, 9)]),
    (PieceType.CANNON, [(1, 7), (7, 7)]),
    (PieceType.SOLDIER, [(0, 6), (2, 6), (4, 6), (6, 6), (8, 6)]),
]


class Board:
    """Xiangqi board state.

    Pieces live in an arena list indexed by their id. ``grid`` is a derived
    occupancy index of live pieces, ``grid[rank][file] -> piece id``.
    """

    FILES = FILES
    RANKS = RANKS

    def __init__(self, custom_setup: Optional[Dict[str, str]] = None, side_to_move: Side = Side.RED):
        """Initialize a board.

        Args:
            custom_setup: Optional dictionary mapping squares (e.g. "e9") to
                piece codes (e.g. "rG" for the red general, "bC" for a black
                cannon). When omitted the standard starting layout is used.
            side_to_move: Side to move first.
        """
        self.pieces: List[Piece] = []
        self.grid: List[List[Optional[int]]] = [
            [None for _ in range(self.FILES)] for _ in range(self.RANKS)
        ]
        self.side_to_move = side_to_move
        self.in_check = False
        self.winner: Optional[Side] = None

        if custom_setup is None:
            self._initialize_starting_position()
        else:
            self._initialize_custom_position(custom_setup)

    @classmethod
    def empty(cls, side_to_move: Side = Side.RED) -> "Board":
        return cls(custom_setup={}, side_to_move=side_to_move)

    def _initialize_starting_position(self):
        """Set up the starting position, red first, black mirrored."""
        for side in (Side.RED, Side.BLACK):
            for piece_type, squares in STARTING_LAYOUT:
                for file, rank in squares:
                    if side is Side.BLACK:
                        rank = self.RANKS - 1 - rank
                    self.place(piece_type, side, Position(file, rank))

    def _initialize_custom_position(self, custom_setup: Dict[str, str]):
        """Initialize board with custom piece positions.

        Raises:
            BoardStateError: for unknown squares or piece codes.
        """
        for square, code in custom_setup.items():
            try:
                position = Position.from_square(square)
            except ValueError as e:
                raise BoardStateError(str(e)) from e
            if len(code) != 2 or code[0] not in CODE_TO_SIDE or code[1] not in CODE_TO_PIECE_TYPE:
                raise BoardStateError(f"Invalid piece code {code!r} on {square}")
            self.place(CODE_TO_PIECE_TYPE[code[1]], CODE_TO_SIDE[code[0]], position)

    def place(self, piece_type: PieceType, side: Side, position: Position) -> Piece:
        """Add a new live piece to the arena."""
        if not position.is_valid():
            raise BoardStateError(f"Cannot place a piece off the board at {position}")
        if self.grid[position.rank][position.file] is not None:
            raise BoardStateError(f"Square {position.to_square()} is already occupied")
        if piece_type == PieceType.GENERAL and self.general(side) is not None:
            raise BoardStateError(f"{side.value} already has a general")
        piece = Piece(len(self.pieces), piece_type, side, position)
        self.pieces.append(piece)
        self.grid[position.rank][position.file] = piece.id
        return piece

    def get_piece(self, file: int, rank: int) -> Optional[Piece]:
        """Get live piece at given coordinates."""
        if 0 <= file < self.FILES and 0 <= rank < self.RANKS:
            piece_id = self.grid[rank][file]
            if piece_id is not None:
                return self.pieces[piece_id]
        return None

    def piece_at(self, position: Position) -> Optional[Piece]:
        return self.get_piece(position.file, position.rank)

    def get_piece_by_id(self, piece_id: int) -> Optional[Piece]:
        """Look up a piece (alive or captured) by id."""
        if isinstance(piece_id, int) and 0 <= piece_id < len(self.pieces):
            return self.pieces[piece_id]
        return None

    def live_pieces(self) -> List[Piece]:
        return [piece for piece in self.pieces if piece.alive]

    def pieces_of(self, side: Side) -> List[Piece]:
        """Live pieces of a side in creation order."""
        return [piece for piece in self.pieces if piece.alive and piece.side == side]

    def general(self, side: Side) -> Optional[Piece]:
        """Get the live general of a side, or None once it has been captured."""
        for piece in self.pieces:
            if piece.alive and piece.side == side and piece.piece_type == PieceType.GENERAL:
                return piece
        return None

    def owns(self, piece: Piece) -> bool:
        """Check that a piece object belongs to this board's arena."""
        return 0 <= piece.id < len(self.pieces) and self.pieces[piece.id] is piece

    def move_piece(self, piece_id: int, target: Position) -> Optional[Piece]:
        """Relocate a piece, capturing the live occupant of the target.

        No rule checking happens here. Returns the captured piece, if any.
        """
        piece = self.pieces[piece_id]
        captured = self.piece_at(target)
        if captured is not None:
            captured.alive = False
        self.grid[piece.position.rank][piece.position.file] = None
        self.grid[target.rank][target.file] = piece.id
        piece.position = target
        return captured

    def switch_turn(self) -> None:
        self.side_to_move = self.side_to_move.opponent

    def clone(self) -> "Board":
        """Deep structural copy; the copy shares no mutable storage."""
        copy = Board.__new__(Board)
        copy.pieces = [piece.clone() for piece in self.pieces]
        copy.grid = [row[:] for row in self.grid]
        copy.side_to_move = self.side_to_move
        copy.in_check = self.in_check
        copy.winner = self.winner
        return copy

    def to_dict(self) -> Dict[str, Any]:
        """Convert the board to plain structured data."""
        return {
            "pieces": [piece.to_dict() for piece in self.pieces],
            "side_to_move": self.side_to_move.value,
            "in_check": self.in_check,
            "winner": self.winner.value if self.winner else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        """Rebuild a board from to_dict() output.

        Raises:
            BoardStateError: if the data is malformed or breaks an invariant.
        """
        try:
            side_to_move = Side(data["side_to_move"])
            winner = Side(data["winner"]) if data.get("winner") else None
            raw_pieces = list(data["pieces"])
        except (KeyError, TypeError, ValueError) as e:
            raise BoardStateError(f"Malformed board data: {e}") from e

        board = cls.empty(side_to_move)
        board.in_check = bool(data.get("in_check", False))
        board.winner = winner

        pieces = sorted((Piece.from_dict(item) for item in raw_pieces), key=lambda p: p.id)
        generals = set()
        for index, piece in enumerate(pieces):
            if piece.id != index:
                raise BoardStateError(f"Piece ids must be 0..n-1, got {piece.id} at {index}")
            if not piece.position.is_valid():
                raise BoardStateError(f"Piece {piece.id} is off the board at {piece.position}")
            board.pieces.append(piece)
            if not piece.alive:
                continue
            if board.grid[piece.position.rank][piece.position.file] is not None:
                raise BoardStateError(f"Two live pieces on {piece.position.to_square()}")
            if piece.piece_type == PieceType.GENERAL:
                if piece.side in generals:
                    raise BoardStateError(f"{piece.side.value} has two generals")
                generals.add(piece.side)
            board.grid[piece.position.rank][piece.position.file] = piece.id
        return board

    def to_fen(self) -> str:
        """Convert board to a FEN-like string (black's back rank first)."""
        fen_parts = []
        for rank in range(self.RANKS):
            rank_str = ""
            empty_count = 0
            for file in range(self.FILES):
                piece = self.get_piece(file, rank)
                if piece is None:
                    empty_count += 1
                    continue
                if empty_count > 0:
                    rank_str += str(empty_count)
                    empty_count = 0
                letter = PIECE_CODES[piece.piece_type]
                rank_str += letter if piece.side == Side.RED else letter.lower()
            if empty_count > 0:
                rank_str += str(empty_count)
            fen_parts.append(rank_str)

        side_char = "r" if self.side_to_move == Side.RED else "b"
        return "/".join(fen_parts) + f" {side_char}"

    def __str__(self) -> str:
        return self.to_fen()
