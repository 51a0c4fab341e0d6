"""Xiangqi move legality, check detection and game-over rules.

All functions are pure queries over a Board except ``apply_move``, which
performs the one mutation the rules allow.
"""

import logging
from typing import List, Optional, Tuple

from .board import Board, BoardStateError, Piece, PieceType, Position, Side

logger = logging.getLogger(__name__)

ORTHOGONAL = [(0, 1), (0, -1), (1, 0), (-1, 0)]
DIAGONAL = [(1, 1), (1, -1), (-1, 1), (-1, -1)]
ELEPHANT_STEPS = [(2, 2), (2, -2), (-2, 2), (-2, -2)]
HORSE_STEPS = [(1, 2), (-1, 2), (1, -2), (-1, -2), (2, 1), (-2, 1), (2, -1), (-2, -1)]

Move = Tuple[Piece, Position]


def is_in_palace(position: Position, side: Side) -> bool:
    """Check if a square is in the palace for the given side."""
    if not 3 <= position.file <= 5:
        return False
    if side == Side.RED:
        return 7 <= position.rank <= 9
    return 0 <= position.rank <= 2


def on_own_half(position: Position, side: Side) -> bool:
    """Check if a square is on the given side's half of the river."""
    if side == Side.RED:
        return position.rank >= 5
    return position.rank <= 4


def _count_between(board: Board, origin: Position, target: Position) -> int:
    """Count live pieces strictly between two squares on one line."""
    count = 0
    if origin.rank == target.rank:
        low, high = sorted((origin.file, target.file))
        for file in range(low + 1, high):
            if board.grid[origin.rank][file] is not None:
                count += 1
    elif origin.file == target.file:
        low, high = sorted((origin.rank, target.rank))
        for rank in range(low + 1, high):
            if board.grid[rank][origin.file] is not None:
                count += 1
    return count


def _is_valid_general_move(piece: Piece, target: Position) -> bool:
    if not is_in_palace(target, piece.side):
        return False
    df = abs(target.file - piece.position.file)
    dr = abs(target.rank - piece.position.rank)
    return df + dr == 1


def _is_valid_advisor_move(piece: Piece, target: Position) -> bool:
    if not is_in_palace(target, piece.side):
        return False
    df = abs(target.file - piece.position.file)
    dr = abs(target.rank - piece.position.rank)
    return df == 1 and dr == 1


def _is_valid_elephant_move(piece: Piece, target: Position, board: Board) -> bool:
    # Elephants never cross the river
    if not on_own_half(target, piece.side):
        return False
    origin = piece.position
    if abs(target.file - origin.file) != 2 or abs(target.rank - origin.rank) != 2:
        return False
    eye_file = (origin.file + target.file) // 2
    eye_rank = (origin.rank + target.rank) // 2
    return board.grid[eye_rank][eye_file] is None


def _is_valid_horse_move(piece: Piece, target: Position, board: Board) -> bool:
    origin = piece.position
    df = abs(target.file - origin.file)
    dr = abs(target.rank - origin.rank)
    if df == 1 and dr == 2:
        leg_file, leg_rank = origin.file, (origin.rank + target.rank) // 2
    elif df == 2 and dr == 1:
        leg_file, leg_rank = (origin.file + target.file) // 2, origin.rank
    else:
        return False
    # Only the leg next to the origin can hobble the horse
    return board.grid[leg_rank][leg_file] is None


def _is_valid_chariot_move(piece: Piece, target: Position, board: Board) -> bool:
    origin = piece.position
    if origin.file != target.file and origin.rank != target.rank:
        return False
    return _count_between(board, origin, target) == 0


def _is_valid_cannon_move(piece: Piece, target: Position, board: Board) -> bool:
    origin = piece.position
    if origin.file != target.file and origin.rank != target.rank:
        return False
    between = _count_between(board, origin, target)
    if board.piece_at(target) is not None:
        # Capturing needs exactly one screen
        return between == 1
    return between == 0


def _is_valid_soldier_move(piece: Piece, target: Position) -> bool:
    origin = piece.position
    df = target.file - origin.file
    dr = target.rank - origin.rank
    if abs(df) + abs(dr) != 1:
        return False

    forward = -1 if piece.side == Side.RED else 1
    if dr == -forward:
        return False  # Never retreats
    if df != 0:
        # Sideways only after crossing the river
        return not on_own_half(origin, piece.side)
    return True


def pseudo_legal(piece: Piece, target: Position, board: Board) -> bool:
    """Check the piece's movement rule, ignoring whether the mover ends in check."""
    if not piece.alive or not target.is_valid():
        return False
    if target == piece.position:
        return False

    occupant = board.piece_at(target)
    if occupant is not None and occupant.side == piece.side:
        return False

    piece_type = piece.piece_type
    if piece_type == PieceType.GENERAL:
        return _is_valid_general_move(piece, target)
    if piece_type == PieceType.ADVISOR:
        return _is_valid_advisor_move(piece, target)
    if piece_type == PieceType.ELEPHANT:
        return _is_valid_elephant_move(piece, target, board)
    if piece_type == PieceType.HORSE:
        return _is_valid_horse_move(piece, target, board)
    if piece_type == PieceType.CHARIOT:
        return _is_valid_chariot_move(piece, target, board)
    if piece_type == PieceType.CANNON:
        return _is_valid_cannon_move(piece, target, board)
    if piece_type == PieceType.SOLDIER:
        return _is_valid_soldier_move(piece, target)
    return False


def _candidate_targets(piece: Piece) -> List[Position]:
    """Squares the piece could geometrically reach on an empty board."""
    origin = piece.position
    piece_type = piece.piece_type
    if piece_type in (PieceType.GENERAL, PieceType.SOLDIER):
        steps = ORTHOGONAL
    elif piece_type == PieceType.ADVISOR:
        steps = DIAGONAL
    elif piece_type == PieceType.ELEPHANT:
        steps = ELEPHANT_STEPS
    elif piece_type == PieceType.HORSE:
        steps = HORSE_STEPS
    else:
        # Chariot and cannon: the whole file and rank
        line = [Position(origin.file, rank) for rank in range(Board.RANKS) if rank != origin.rank]
        line += [Position(file, origin.rank) for file in range(Board.FILES) if file != origin.file]
        return line
    candidates = [origin.offset(df, dr) for df, dr in steps]
    return [position for position in candidates if position.is_valid()]


def _board_scan_key(position: Position) -> Tuple[int, int]:
    return (position.file, position.rank)


def _resolve(piece: Piece, board: Board) -> Optional[Piece]:
    """Find the board's own copy of a piece (callers may hold a clone's piece)."""
    if board.owns(piece):
        return piece
    resolved = board.get_piece_by_id(piece.id)
    if resolved is None or resolved.piece_type != piece.piece_type or resolved.side != piece.side:
        return None
    return resolved


def would_be_in_check_after(piece: Piece, target: Position, board: Board) -> bool:
    """Play the move on a clone and test the mover's own general."""
    copy = board.clone()
    copy.move_piece(piece.id, target)
    return is_in_check(piece.side, copy)


def is_legal_move(piece: Piece, target: Position, board: Board) -> bool:
    """Check if a piece may move to the target square.

    The target must be on the board and free of friendly pieces, the piece's
    movement rule must hold, and the move must not leave the mover's own
    general in check.
    """
    own = _resolve(piece, board)
    if own is None or not pseudo_legal(own, target, board):
        return False
    return not would_be_in_check_after(own, target, board)


def legal_moves(piece: Piece, board: Board) -> List[Position]:
    """All legal targets of a piece, in board-scan order (file, then rank)."""
    own = _resolve(piece, board)
    if own is None or not own.alive:
        return []
    targets = [
        target
        for target in _candidate_targets(own)
        if pseudo_legal(own, target, board) and not would_be_in_check_after(own, target, board)
    ]
    targets.sort(key=_board_scan_key)
    return targets


def all_legal_moves(board: Board, side: Optional[Side] = None) -> List[Move]:
    """Every legal (piece, target) move of a side, pieces in creation order."""
    side = side or board.side_to_move
    moves = []
    for piece in board.pieces_of(side):
        for target in legal_moves(piece, board):
            moves.append((piece, target))
    return moves


def has_legal_move(board: Board, side: Side) -> bool:
    for piece in board.pieces_of(side):
        for target in _candidate_targets(piece):
            if pseudo_legal(piece, target, board) and not would_be_in_check_after(piece, target, board):
                return True
    return False


def generals_facing(board: Board) -> bool:
    """Check if the two generals see each other along an open file."""
    red = board.general(Side.RED)
    black = board.general(Side.BLACK)
    if red is None or black is None:
        return False
    if red.position.file != black.position.file:
        return False
    return _count_between(board, red.position, black.position) == 0


def is_in_check(side: Side, board: Board) -> bool:
    """Check if the given side's general is in check.

    Facing generals count as check. A side without a general is never in check.
    """
    general = board.general(side)
    if general is None:
        return False
    if generals_facing(board):
        return True
    for piece in board.pieces_of(side.opponent):
        if pseudo_legal(piece, general.position, board):
            return True
    return False


def attacked_by(position: Position, side: Side, board: Board) -> List[Piece]:
    """Pieces of a side whose movement rule reaches the square."""
    return [piece for piece in board.pieces_of(side) if pseudo_legal(piece, position, board)]


def game_over(board: Board) -> Optional[Side]:
    """Return the winner, or None while the game is in progress.

    * a captured general loses immediately;
    * facing generals award the game to the side to move;
    * a side to move without any legal move loses.
    """
    if board.general(Side.RED) is None:
        return Side.BLACK
    if board.general(Side.BLACK) is None:
        return Side.RED
    if generals_facing(board):
        return board.side_to_move
    if not has_legal_move(board, board.side_to_move):
        return board.side_to_move.opponent
    return None


def is_capture(board: Board, target: Position) -> bool:
    return board.piece_at(target) is not None


def would_give_check(board: Board, piece: Piece, target: Position) -> bool:
    """Check if the move leaves the mover's opponent in check."""
    copy = board.clone()
    copy.move_piece(piece.id, target)
    return is_in_check(piece.side.opponent, copy)


def apply_move(board: Board, piece: Piece, target: Position) -> Optional[Piece]:
    """Relocate a piece and capture the target's occupant.

    The turn is not switched. Returns the captured piece, if any.

    Raises:
        BoardStateError: if the piece is dead, does not belong to the board,
            or the target is off the board.
    """
    own = _resolve(piece, board)
    if own is None:
        raise BoardStateError(f"Piece {piece.id} does not belong to this board")
    if not own.alive:
        raise BoardStateError(f"Cannot move captured piece {own}")
    if not target.is_valid():
        raise BoardStateError(f"Target {target} is off the board")
    occupant = board.piece_at(target)
    if occupant is not None and occupant.side == own.side:
        raise BoardStateError(f"{own} cannot capture its own side on {target.to_square()}")
    captured = board.move_piece(own.id, target)
    if captured is not None:
        logger.debug("%s captured %s", own, captured)
    return captured
