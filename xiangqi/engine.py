"""Xiangqi AI engine: random, greedy and iterative-deepening alpha-beta play."""

import logging
import random
import time
from concurrent.futures import Executor, Future
from enum import Enum
from typing import List, Optional, Tuple

from . import rules
from .board import Board, Piece, Position, Side
from .config import SearchConfig
from .evaluation import Evaluator

logger = logging.getLogger(__name__)

Move = Tuple[Piece, Position]


class Difficulty(Enum):
    """AI strength tiers."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SearchTimeout(Exception):
    """Raised inside the search when the time budget runs out."""


class Engine:
    """Xiangqi AI engine.

    Every call to ``choose_move`` is a fresh search over clones of the given
    board; nothing is carried over between calls except the statistics of the
    last search.
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        evaluator: Optional[Evaluator] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize engine.

        Args:
            config: Search limits and move-selection knobs
            evaluator: Static evaluator used by the hard tier
            rng: Randomness source for easy/medium picks, move-order shuffling
                and the hard tier's random pick among the top candidates
        """
        self.config = config or SearchConfig()
        self.evaluator = evaluator or Evaluator()
        self.rng = rng or random.Random()
        self.nodes_searched = 0
        self.depth_reached = 0
        self.last_score: Optional[float] = None
        self.timed_out = False
        self._deadline: Optional[float] = None

    def choose_move(self, board: Board, side: Side, difficulty: Difficulty) -> Optional[Move]:
        """Pick a move for ``side``.

        Returns the moving piece (from ``board``) and its target, or None if
        the side has no legal move or it is not that side's turn.
        """
        self.nodes_searched = 0
        self.depth_reached = 0
        self.last_score = None
        self.timed_out = False

        if board.side_to_move != side:
            logger.warning("Asked to move for %s but %s is to move", side.value, board.side_to_move.value)
            return None

        moves = rules.all_legal_moves(board, side)
        if not moves:
            return None

        if difficulty == Difficulty.EASY:
            move = self._choose_random(moves)
        elif difficulty == Difficulty.MEDIUM:
            move = self._choose_greedy(board, moves)
        else:
            move = self._choose_searched(board, moves, side)

        piece, target = move
        logger.info(
            "%s (%s) plays %s -> %s",
            side.value, difficulty.value, piece, target.to_square(),
        )
        return move

    def submit(self, executor: Executor, board: Board, side: Side, difficulty: Difficulty) -> "Future[Optional[Tuple[int, Position]]]":
        """Run ``choose_move`` on a snapshot of the board in a background executor.

        The future resolves to ``(piece_id, target)`` so the caller can apply
        the move to its own board once it is done.
        """
        snapshot = board.clone()

        def run():
            move = self.choose_move(snapshot, side, difficulty)
            if move is None:
                return None
            piece, target = move
            return piece.id, target

        return executor.submit(run)

    def _choose_random(self, moves: List[Move]) -> Move:
        return moves[self.rng.randrange(len(moves))]

    def _choose_greedy(self, board: Board, moves: List[Move]) -> Move:
        """Prefer checks, then captures, then anything."""
        checks = [move for move in moves if rules.would_give_check(board, *move)]
        if checks:
            return self._choose_random(checks)
        captures = [move for move in moves if rules.is_capture(board, move[1])]
        if captures:
            return self._choose_random(captures)
        return self._choose_random(moves)

    def _choose_searched(self, board: Board, moves: List[Move], side: Side) -> Move:
        scored = self._iterative_deepening(board, moves, side)
        return self._select_with_randomness(scored)

    def _order_moves(self, board: Board, moves: List[Move]) -> List[Move]:
        """Order moves for better alpha-beta pruning: captures, then checks."""
        shuffled = list(moves)
        self.rng.shuffle(shuffled)

        def priority(move: Move) -> Tuple[int, int]:
            capture = 0 if rules.is_capture(board, move[1]) else 1
            check = 0 if rules.would_give_check(board, *move) else 1
            return capture, check

        return sorted(shuffled, key=priority)

    def _iterative_deepening(self, board: Board, moves: List[Move], side: Side) -> List[Tuple[Move, float]]:
        start = time.perf_counter()
        budget = self.config.time_budget
        self._deadline = None if budget is None else start + budget

        scored: List[Tuple[Move, float]] = [
            (move, float("-inf")) for move in self._order_moves(board, moves)
        ]

        for depth in range(1, self.config.max_depth + 1):
            if self._out_of_time():
                break

            completed = True
            searched = 0
            for index, (move, _) in enumerate(scored):
                if self._out_of_time():
                    completed = False
                    break
                child = board.clone()
                piece, target = move
                rules.apply_move(child, child.pieces[piece.id], target)
                child.switch_turn()
                try:
                    score = self._minimax(child, depth - 1, float("-inf"), float("inf"), False, side)
                except SearchTimeout:
                    completed = False
                    break
                scored[index] = (move, score)
                searched += 1

            if not completed:
                # Moves not reached keep their depth - 1 score; the sort below mixes both depths
                logger.debug(
                    "depth %d interrupted after %d of %d root moves",
                    depth, searched, len(scored),
                )
            scored.sort(key=lambda item: item[1], reverse=True)
            self.depth_reached = depth
            self.last_score = scored[0][1]
            logger.debug(
                "depth %d%s: best %s -> %s score=%.1f nodes=%d elapsed=%.3fs",
                depth,
                "" if completed else " (partial)",
                scored[0][0][0], scored[0][0][1].to_square(),
                scored[0][1], self.nodes_searched, time.perf_counter() - start,
            )

            if not completed:
                self.timed_out = True
                break
            # A forced result needs no deeper look
            if abs(scored[0][1]) > self.config.forced_win_threshold:
                break

        return scored

    def _out_of_time(self) -> bool:
        return self._deadline is not None and time.perf_counter() > self._deadline

    def _select_with_randomness(self, scored: List[Tuple[Move, float]]) -> Move:
        """Take the best move, occasionally one of the other top candidates."""
        candidates = scored[: min(self.config.top_candidates, len(scored))]
        if len(candidates) > 1 and self.rng.random() < self.config.random_pick_probability:
            return candidates[self.rng.randrange(len(candidates))][0]
        return scored[0][0]

    def _minimax(
        self,
        board: Board,
        depth: int,
        alpha: float,
        beta: float,
        maximizing: bool,
        root_side: Side,
    ) -> float:
        """Minimax algorithm with alpha-beta pruning over board clones."""
        self.nodes_searched += 1
        if self._out_of_time():
            raise SearchTimeout()

        if depth == 0:
            return self.evaluator.evaluate(board, root_side)
        moves = rules.all_legal_moves(board)
        if not moves:
            return self.evaluator.evaluate(board, root_side)

        moves = self._order_moves(board, moves)

        if maximizing:
            max_eval = float("-inf")
            for piece, target in moves:
                child = board.clone()
                rules.apply_move(child, child.pieces[piece.id], target)
                child.switch_turn()
                eval_score = self._minimax(child, depth - 1, alpha, beta, False, root_side)
                max_eval = max(max_eval, eval_score)
                alpha = max(alpha, eval_score)
                if beta <= alpha:
                    break
            return max_eval
        else:
            min_eval = float("inf")
            for piece, target in moves:
                child = board.clone()
                rules.apply_move(child, child.pieces[piece.id], target)
                child.switch_turn()
                eval_score = self._minimax(child, depth - 1, alpha, beta, True, root_side)
                min_eval = min(min_eval, eval_score)
                beta = min(beta, eval_score)
                if beta <= alpha:
                    break
            return min_eval
