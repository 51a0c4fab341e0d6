"""Unit tests for piece-specific movement rules."""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from xiangqi import Board, PieceType, Position, Side
from xiangqi.rules import is_legal_move, legal_moves, pseudo_legal


# Generals on different files so they never face each other
GENERALS = {"d9": "rG", "f0": "bG"}


def make_board(extra, side_to_move=Side.RED):
    setup = dict(GENERALS)
    setup.update(extra)
    return Board(custom_setup=setup, side_to_move=side_to_move)


def targets(board, square):
    return legal_moves(board.piece_at(Position.from_square(square)), board)


def squares(positions):
    return [position.to_square() for position in positions]


class TestGeneralMoves:
    """Test general movement rules."""

    def test_general_stays_in_palace(self):
        """The general steps orthogonally and never leaves the palace."""
        board = Board(custom_setup={"d7": "rG", "f0": "bG"})

        assert squares(targets(board, "d7")) == ["d8", "e7"]

    def test_general_cannot_face_other_general(self):
        """Stepping onto an open file with the enemy general is illegal."""
        board = Board(custom_setup={"e9": "rG", "d0": "bG"})

        assert squares(targets(board, "e9")) == ["e8", "f9"]
        assert not is_legal_move(board.piece_at(Position(4, 9)), Position(3, 9), board)

    def test_black_general_palace(self):
        board = Board(custom_setup={"d9": "rG", "e0": "bG"}, side_to_move=Side.BLACK)

        assert squares(targets(board, "e0")) == ["e1", "f0"]


class TestAdvisorMoves:
    """Test advisor movement rules."""

    def test_advisor_diagonals(self):
        board = make_board({"e8": "rA"})

        assert squares(targets(board, "e8")) == ["d7", "f7", "f9"]

    def test_advisor_confined_to_palace(self):
        board = make_board({"f7": "rA"})

        assert squares(targets(board, "f7")) == ["e8"]


class TestElephantMoves:
    """Test elephant movement rules."""

    def test_elephant_moves(self):
        board = make_board({"c9": "rE"})

        assert squares(targets(board, "c9")) == ["a7", "e7"]

    def test_blocked_elephant_eye(self):
        """A piece on the midpoint blocks the elephant."""
        board = make_board({"c9": "rE", "b8": "rS"})

        assert squares(targets(board, "c9")) == ["e7"]

    def test_elephant_cannot_cross_river(self):
        board = make_board({"c5": "rE"})

        assert squares(targets(board, "c5")) == ["a7", "e7"]
        assert not pseudo_legal(board.piece_at(Position(2, 5)), Position(0, 3), board)

    def test_black_elephant_cannot_cross_river(self):
        board = make_board({"c4": "bE"}, side_to_move=Side.BLACK)

        assert squares(targets(board, "c4")) == ["a2", "e2"]


class TestHorseMoves:
    """Test horse movement rules."""

    def test_horse_open_board(self):
        """An unobstructed horse in the open has eight targets."""
        board = make_board({"e5": "rH"})

        assert len(targets(board, "e5")) == 8

    def test_horse_leg_blocks(self):
        """A piece orthogonally adjacent blocks the two moves past it."""
        board = make_board({"e5": "rH", "e4": "rS"})
        moves = targets(board, "e5")

        assert len(moves) == 6
        assert Position(3, 3) not in moves
        assert Position(5, 3) not in moves

    def test_horse_diagonal_neighbor_does_not_block(self):
        board = make_board({"e5": "rH", "f4": "rS"})

        assert len(targets(board, "e5")) == 8

    def test_horse_from_corner(self):
        board = make_board({"a9": "rH"})

        assert squares(targets(board, "a9")) == ["b7", "c8"]


class TestChariotMoves:
    """Test chariot movement rules."""

    def test_chariot_open_lines(self):
        board = make_board({"a5": "rR"})

        assert len(targets(board, "a5")) == 17

    def test_chariot_blocked_and_captures(self):
        """The chariot stops at the first piece, capturing it if hostile."""
        board = make_board({"a5": "rR", "d5": "bS"})
        moves = targets(board, "a5")

        assert len(moves) == 12
        assert Position(3, 5) in moves
        assert Position(4, 5) not in moves

    def test_chariot_cannot_capture_own(self):
        board = make_board({"a5": "rR", "a3": "rS"})
        chariot = board.piece_at(Position(0, 5))

        assert not is_legal_move(chariot, Position(0, 3), board)
        assert not is_legal_move(chariot, Position(0, 2), board)
        assert is_legal_move(chariot, Position(0, 4), board)


class TestCannonMoves:
    """Test cannon movement and capture rules."""

    def test_cannon_capture_needs_screen(self):
        """No screen: the cannon cannot capture."""
        board = make_board({"a5": "rC", "a0": "bR"})
        cannon = board.piece_at(Position(0, 5))

        assert not is_legal_move(cannon, Position(0, 0), board)
        assert is_legal_move(cannon, Position(0, 1), board)

    def test_cannon_capture_one_screen(self):
        """Exactly one screen: the capture is legal, quiet moves past it are not."""
        board = make_board({"a5": "rC", "a3": "rS", "a0": "bR"})
        cannon = board.piece_at(Position(0, 5))

        assert is_legal_move(cannon, Position(0, 0), board)
        assert not is_legal_move(cannon, Position(0, 2), board)
        assert not is_legal_move(cannon, Position(0, 1), board)

    def test_cannon_capture_two_screens(self):
        board = make_board({"a5": "rC", "a3": "rS", "a2": "bS", "a0": "bR"})
        cannon = board.piece_at(Position(0, 5))

        assert not is_legal_move(cannon, Position(0, 0), board)
        # The nearer black soldier has exactly one screen
        assert is_legal_move(cannon, Position(0, 2), board)

    def test_cannon_in_starting_position(self):
        """The opening cannon can jump its rival cannon to take the horse."""
        board = Board()
        cannon = board.piece_at(Position(1, 7))

        assert is_legal_move(cannon, Position(1, 0), board)
        assert not is_legal_move(cannon, Position(1, 2), board)
        assert not is_legal_move(cannon, Position(1, 1), board)
        assert len(legal_moves(cannon, board)) == 12


class TestSoldierMoves:
    """Test soldier movement rules."""

    def test_soldier_advances(self):
        board = Board()
        soldier = board.piece_at(Position(0, 6))

        assert is_legal_move(soldier, Position(0, 5), board)

    def test_soldier_never_retreats(self):
        board = Board()
        soldier = board.piece_at(Position(0, 6))

        assert not is_legal_move(soldier, Position(0, 7), board)

    def test_no_sideways_before_river(self):
        board = Board()
        soldier = board.piece_at(Position(4, 6))

        assert squares(legal_moves(soldier, board)) == ["e5"]

    def test_sideways_after_crossing(self):
        board = make_board({"e4": "rS"})

        assert squares(targets(board, "e4")) == ["d4", "e3", "f4"]

    def test_black_soldier_direction(self):
        board = make_board({"a3": "bS"}, side_to_move=Side.BLACK)
        soldier = board.piece_at(Position(0, 3))

        assert is_legal_move(soldier, Position(0, 4), board)
        assert not is_legal_move(soldier, Position(0, 2), board)
        assert not is_legal_move(soldier, Position(1, 3), board)

    def test_soldier_on_last_rank(self):
        """A soldier on the far rank can only go sideways."""
        board = make_board({"b0": "rS"})

        assert squares(targets(board, "b0")) == ["a0", "c0"]


class TestSelfCheck:
    """Moves that leave the mover's own general in check are illegal."""

    def test_pinned_chariot(self):
        board = Board(custom_setup={"e9": "rG", "e5": "rR", "e2": "bR", "d0": "bG"})
        chariot = board.piece_at(Position(4, 5))

        assert not is_legal_move(chariot, Position(0, 5), board)
        assert is_legal_move(chariot, Position(4, 3), board)
        assert is_legal_move(chariot, Position(4, 2), board)
        assert all(target.file == 4 for target in legal_moves(chariot, board))

    def test_pinned_cannon_quiet_move(self):
        """The check veto applies to cannon quiet moves too."""
        board = Board(custom_setup={"e9": "rG", "e5": "rC", "e2": "bR", "d0": "bG"})
        cannon = board.piece_at(Position(4, 5))

        assert not is_legal_move(cannon, Position(3, 5), board)
        assert is_legal_move(cannon, Position(4, 4), board)

    def test_screen_piece_cannot_unblock_generals(self):
        """The only piece between the generals must stay on the file."""
        board = Board(custom_setup={"e9": "rG", "e5": "rH", "e0": "bG"})
        horse = board.piece_at(Position(4, 5))

        assert legal_moves(horse, board) == []

    def test_must_escape_check(self):
        board = Board(custom_setup={"e9": "rG", "a5": "rR", "e2": "bR", "d0": "bG"})
        chariot = board.piece_at(Position(0, 5))

        assert squares(legal_moves(chariot, board)) == ["e5"]


class TestLegalMoveHelpers:
    """Test pseudo-legal checks and foreign pieces."""

    def test_dead_piece_has_no_moves(self):
        board = Board()
        soldier = board.piece_at(Position(0, 6))
        soldier.alive = False

        assert legal_moves(soldier, board) == []
        assert not pseudo_legal(soldier, Position(0, 5), board)

    def test_off_board_target(self):
        board = Board()
        chariot = board.piece_at(Position(0, 9))

        assert not is_legal_move(chariot, Position(-1, 9), board)
        assert not is_legal_move(chariot, Position(0, 10), board)

    def test_staying_put_is_not_a_move(self):
        board = Board()
        chariot = board.piece_at(Position(0, 9))

        assert not pseudo_legal(chariot, Position(0, 9), board)

    def test_clone_piece_resolves_to_board(self):
        """A piece taken from a clone is checked against the given board."""
        board = Board()
        copy = board.clone()
        soldier = copy.piece_at(Position(0, 6))

        assert is_legal_move(soldier, Position(0, 5), board)
        assert squares(legal_moves(soldier, board)) == ["a5"]

    def test_piece_types_covered(self):
        """Every red piece type has at least one move from the start."""
        board = Board()
        movable = {piece.piece_type for piece in board.pieces_of(Side.RED) if legal_moves(piece, board)}

        assert movable == set(PieceType)
