"""Unit tests for the game controller."""

import pytest
import random
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from xiangqi import (
    Board,
    BoardStateError,
    Difficulty,
    Engine,
    Game,
    GameMode,
    GameStatus,
    Position,
    SearchConfig,
    Side,
)


START = Board().to_fen()


def P(square):
    return Position.from_square(square)


def seeded_engine():
    return Engine(
        config=SearchConfig(max_depth=1, time_budget=None, random_pick_probability=0.0),
        rng=random.Random(0),
    )


class TestGameSetup:
    """Test game creation."""

    def test_defaults(self):
        game = Game()

        assert game.mode == GameMode.PVP
        assert game.difficulty == Difficulty.MEDIUM
        assert game.status == GameStatus.PLAYING
        assert game.board.side_to_move == Side.RED
        assert game.winner is None
        assert not game.can_undo

    def test_finished_board_is_over(self):
        board = Board(custom_setup={"e9": "rG"})
        board.winner = Side.RED

        assert Game(board=board).status == GameStatus.OVER

    def test_new_game_resets(self):
        game = Game()
        game.make_move(P("a6"), P("a5"))
        game.new_game()

        assert game.board.to_fen() == START
        assert game.history == []
        assert game.status == GameStatus.PLAYING


class TestMakeMove:
    """Test the turn flow."""

    def test_legal_move(self):
        game = Game()

        assert game.make_move(P("a6"), P("a5"))
        assert game.board.side_to_move == Side.BLACK
        assert game.board.piece_at(P("a5")) is not None
        assert len(game.history) == 1

    def test_illegal_move(self):
        game = Game()

        assert not game.make_move(P("a6"), P("a7"))
        assert game.board.side_to_move == Side.RED
        assert game.history == []

    def test_wrong_side(self):
        game = Game()

        assert not game.make_move(P("a3"), P("a4"))

    def test_empty_origin(self):
        game = Game()

        assert not game.make_move(P("e5"), P("e4"))

    def test_check_is_flagged(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "a5": "rR", "d0": "bG"}))

        assert game.make_move(P("a5"), P("d5"))
        assert game.board.in_check
        assert game.status == GameStatus.PLAYING

    def test_check_clears(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "a5": "rR", "d0": "bG"}))
        game.make_move(P("a5"), P("d5"))

        assert game.make_move(P("d0"), P("e0"))
        assert not game.board.in_check

    def test_checkmate_ends_game(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "e6": "rR", "a5": "rR", "d0": "bG"}))

        assert game.make_move(P("a5"), P("d5"))
        assert game.status == GameStatus.OVER
        assert game.winner == Side.RED
        assert game.board.in_check

    def test_no_moves_after_game_over(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "e6": "rR", "a5": "rR", "d0": "bG"}))
        game.make_move(P("a5"), P("d5"))

        assert not game.make_move(P("d0"), P("e0"))
        assert game.legal_moves_for(P("d0")) == []

    def test_capturing_general_wins(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "d5": "rR", "d0": "bG"}))

        assert game.make_move(P("d5"), P("d0"))
        assert game.status == GameStatus.OVER
        assert game.winner == Side.RED


class TestSelection:
    """Test piece selection and move highlighting."""

    def test_select_own_piece(self):
        game = Game()
        soldier = game.board.piece_at(P("a6"))

        assert game.select(soldier.id)
        assert game.selected_piece_id == soldier.id
        assert game.highlighted_moves == [P("a5")]

    def test_select_opponent_piece(self):
        game = Game()
        soldier = game.board.piece_at(P("a3"))

        assert not game.select(soldier.id)
        assert game.selected_piece_id is None

    def test_clear_selection(self):
        game = Game()
        game.select(game.board.piece_at(P("a6")).id)

        assert game.select(None)
        assert game.highlighted_moves == []

    def test_select_unknown_id(self):
        assert not Game().select(99)

    def test_legal_moves_for(self):
        game = Game()

        assert game.legal_moves_for(P("a6")) == [P("a5")]
        assert game.legal_moves_for(P("a3")) == []
        assert game.legal_moves_for(P("e5")) == []


class TestUndo:
    """Test taking moves back."""

    def test_undo_nothing(self):
        assert not Game().undo()

    def test_undo_pvp_one_move(self):
        game = Game()
        game.make_move(P("a6"), P("a5"))
        game.make_move(P("a3"), P("a4"))

        assert game.undo()
        assert game.board.side_to_move == Side.BLACK
        assert game.board.piece_at(P("a3")) is not None
        assert len(game.history) == 1

    def test_undo_pve_two_moves(self):
        game = Game(mode=GameMode.PVE)
        game.make_move(P("a6"), P("a5"))
        game.make_move(P("a3"), P("a4"))

        assert game.undo()
        assert game.board.to_fen() == START
        assert game.history == []

    def test_undo_pve_single_move(self):
        game = Game(mode=GameMode.PVE)
        game.make_move(P("a6"), P("a5"))

        assert game.undo()
        assert game.board.to_fen() == START

    def test_undo_after_game_over(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "e6": "rR", "a5": "rR", "d0": "bG"}))
        game.make_move(P("a5"), P("d5"))

        assert game.undo()
        assert game.status == GameStatus.PLAYING
        assert game.winner is None

    def test_history_limit(self):
        game = Game(history_limit=2)
        game.make_move(P("a6"), P("a5"))
        game.make_move(P("a3"), P("a4"))
        game.make_move(P("i6"), P("i5"))

        assert len(game.history) == 2


class TestAITurn:
    """Test the computer's turn."""

    def test_ai_plays_its_side(self):
        game = Game(mode=GameMode.PVE, ai_side=Side.RED, difficulty=Difficulty.EASY, engine=seeded_engine())

        assert game.is_ai_turn()
        piece, target = game.ai_turn()

        assert piece.side == Side.RED
        assert game.board.side_to_move == Side.BLACK
        assert len(game.history) == 1

    def test_not_ai_turn(self):
        game = Game(mode=GameMode.PVE, ai_side=Side.BLACK, engine=seeded_engine())

        assert not game.is_ai_turn()
        assert game.ai_turn() is None

    def test_pvp_has_no_ai_turn(self):
        game = Game(mode=GameMode.PVP, ai_side=Side.RED, engine=seeded_engine())

        assert not game.is_ai_turn()

    def test_ai_reply_after_player(self):
        game = Game(mode=GameMode.PVE, ai_side=Side.BLACK, difficulty=Difficulty.HARD, engine=seeded_engine())
        game.make_move(P("b7"), P("e7"))

        assert game.ai_turn() is not None
        assert game.board.side_to_move == Side.RED

    def test_ai_without_moves_loses(self):
        board = Board(
            custom_setup={"f9": "rG", "e5": "rR", "i1": "rR", "d0": "bG"},
            side_to_move=Side.BLACK,
        )
        game = Game(mode=GameMode.PVE, ai_side=Side.BLACK, engine=seeded_engine(), board=board)

        assert game.ai_turn() is None
        assert game.status == GameStatus.OVER
        assert game.winner == Side.RED

    def test_apply_engine_move(self):
        game = Game()
        soldier = game.board.piece_at(P("a6"))

        assert game.apply_engine_move(soldier.id, P("a5"))
        assert not game.apply_engine_move(99, P("a5"))


class TestGameSerialization:
    """Test export and import of games."""

    def test_round_trip(self):
        game = Game(mode=GameMode.PVE, difficulty=Difficulty.HARD, ai_side=Side.RED)
        game.make_move(P("a6"), P("a5"))
        game.make_move(P("a3"), P("a4"))

        restored = Game.from_dict(game.to_dict())

        assert restored.board.to_fen() == game.board.to_fen()
        assert restored.mode == GameMode.PVE
        assert restored.difficulty == Difficulty.HARD
        assert restored.ai_side == Side.RED
        assert len(restored.history) == 2
        assert restored.undo()
        assert restored.board.to_fen() == START

    def test_finished_game_round_trip(self):
        game = Game(board=Board(custom_setup={"f9": "rG", "e6": "rR", "a5": "rR", "d0": "bG"}))
        game.make_move(P("a5"), P("d5"))

        restored = Game.from_dict(game.to_dict())

        assert restored.status == GameStatus.OVER
        assert restored.winner == Side.RED

    @pytest.mark.parametrize("data", [
        {},
        {"board": Board().to_dict(), "mode": "chess"},
        {"board": Board().to_dict(), "difficulty": "impossible"},
        {"board": {"pieces": []}},
        {"board": Board().to_dict(), "history": 5},
        {"board": Board().to_dict(), "history": [5]},
        [],
    ])
    def test_malformed(self, data):
        with pytest.raises(BoardStateError):
            Game.from_dict(data)

    def test_restored_history_respects_limit(self):
        game = Game()
        game.make_move(P("a6"), P("a5"))
        game.make_move(P("a3"), P("a4"))
        game.make_move(P("i6"), P("i5"))

        restored = Game.from_dict(game.to_dict(), history_limit=2)

        assert len(restored.history) == 2
        assert restored.history[-1].to_fen() == game.history[-1].to_fen()
