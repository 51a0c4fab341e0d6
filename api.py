"""FastAPI backend for Xiangqi game."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from time import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from xiangqi import rules
from xiangqi.board import BoardStateError, Board, Position, Side
from xiangqi.config import CONFIG
from xiangqi.engine import Difficulty, Engine
from xiangqi.evaluation import Evaluator
from xiangqi.game import Game, GameMode, GameStatus

logger = logging.getLogger(__name__)

# Thread pool for CPU-intensive AI searches
executor = ThreadPoolExecutor(max_workers=CONFIG.server.ai_workers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    yield
    # Cleanup: shutdown thread pool on app shutdown
    executor.shutdown(wait=True)


app = FastAPI(title="Xiangqi AI Engine", lifespan=lifespan)


class GameState:
    """Thread-safe game state container."""

    def __init__(self, game: Game):
        self.game = game
        self.lock = asyncio.Lock()
        self.last_access = time()
        self.is_processing = False  # AI search in flight


# Global game state with proper locking
games: Dict[str, GameState] = {}
games_lock = asyncio.Lock()

# Rate limiting configuration
RATE_LIMIT_WINDOW = CONFIG.server.rate_limit_window
RATE_LIMIT_MAX_REQUESTS = CONFIG.server.rate_limit_max_requests
MAX_IDLE_TIME = CONFIG.server.max_idle_time
rate_limit_data: Dict[str, List[float]] = {}  # request timestamps per client


async def check_rate_limit(request: Request) -> None:
    """Reject the request if the client exceeded its request budget."""
    client_ip = request.client.host if request.client else "unknown"
    current_time = time()

    timestamps = [
        t for t in rate_limit_data.get(client_ip, []) if current_time - t < RATE_LIMIT_WINDOW
    ]
    if len(timestamps) >= RATE_LIMIT_MAX_REQUESTS:
        rate_limit_data[client_ip] = timestamps
        raise HTTPException(status_code=429, detail="Too many requests. Please slow down.")

    timestamps.append(current_time)
    rate_limit_data[client_ip] = timestamps


async def get_game_state(game_id: str) -> GameState:
    """Get game state with proper error handling."""
    async with games_lock:
        if game_id not in games:
            raise HTTPException(status_code=404, detail="Game not found")
        game_state = games[game_id]
        game_state.last_access = time()
        return game_state


async def cleanup_old_games():
    """Clean up games that haven't been accessed for a long time."""
    current_time = time()

    async with games_lock:
        to_remove = [
            game_id
            for game_id, state in games.items()
            if current_time - state.last_access > MAX_IDLE_TIME
        ]
        for game_id in to_remove:
            del games[game_id]
    if to_remove:
        logger.info("Removed %d idle games", len(to_remove))


def _new_engine() -> Engine:
    return Engine(config=CONFIG.search, evaluator=Evaluator(CONFIG.eval))


class NewGameRequest(BaseModel):
    """Request model for creating a new game."""

    game_id: str
    mode: GameMode = GameMode.PVP
    difficulty: Difficulty = Difficulty.MEDIUM
    ai_side: Side = Side.BLACK
    custom_setup: Optional[Dict[str, str]] = None  # e.g., {"e9": "rG", "e0": "bG"}
    side_to_move: Side = Side.RED


class MoveRequest(BaseModel):
    """Request model for making a move."""

    game_id: str
    from_square: str  # e.g., "a6"
    to_square: str  # e.g., "a5"


class ImportRequest(BaseModel):
    """Request model for restoring an exported game."""

    game_id: str
    state: Dict[str, Any]


class PieceResponse(BaseModel):
    id: int
    type: str
    side: str
    square: str
    alive: bool


class MoveResponse(BaseModel):
    from_square: str
    to_square: str


class BoardResponse(BaseModel):
    """Response model for board state."""

    pieces: List[PieceResponse]
    side_to_move: str
    in_check: bool
    game_over: bool
    winner: Optional[str]
    status: str
    legal_moves: List[MoveResponse]
    can_undo: bool = False
    is_ai_turn: bool = False
    fen: str


def square_to_position(square: str) -> Position:
    """Convert square notation (e.g., 'a6') to a Position, or fail with 400."""
    try:
        return Position.from_square(square)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid square notation: {e}")


def board_response(game: Game) -> BoardResponse:
    board = game.board
    legal_moves = []
    if game.status == GameStatus.PLAYING:
        legal_moves = [
            MoveResponse(from_square=piece.position.to_square(), to_square=target.to_square())
            for piece, target in rules.all_legal_moves(board)
        ]
    return BoardResponse(
        pieces=[
            PieceResponse(
                id=piece.id,
                type=piece.piece_type.value,
                side=piece.side.value,
                square=piece.position.to_square(),
                alive=piece.alive,
            )
            for piece in board.pieces
        ],
        side_to_move=board.side_to_move.value,
        in_check=board.in_check,
        game_over=game.status == GameStatus.OVER,
        winner=game.winner.value if game.winner else None,
        status=game.status.value,
        legal_moves=legal_moves,
        can_undo=game.can_undo,
        is_ai_turn=game.is_ai_turn(),
        fen=board.to_fen(),
    )


@app.post("/api/new-game")
async def new_game(request: NewGameRequest, req: Request):
    """Create a new game."""
    await check_rate_limit(req)

    try:
        board = Board(custom_setup=request.custom_setup, side_to_move=request.side_to_move)
    except BoardStateError as e:
        raise HTTPException(status_code=400, detail=f"Invalid setup: {e}")

    game = Game(
        mode=request.mode,
        difficulty=request.difficulty,
        ai_side=request.ai_side,
        engine=_new_engine(),
        board=board,
        history_limit=CONFIG.server.history_limit,
    )
    if board.winner is None:
        board.in_check = rules.is_in_check(board.side_to_move, board)
        game.check_game_over()

    async with games_lock:
        games[request.game_id] = GameState(game)

    asyncio.create_task(cleanup_old_games())
    logger.info("Created game %s (%s, %s)", request.game_id, request.mode.value, request.difficulty.value)

    return {"status": "ok", "game_id": request.game_id}


@app.get("/api/board/{game_id}", response_model=BoardResponse)
async def get_board(game_id: str, req: Request):
    """Get current board state."""
    await check_rate_limit(req)
    game_state = await get_game_state(game_id)
    async with game_state.lock:
        return board_response(game_state.game)


@app.get("/api/legal-moves/{game_id}/{square}")
async def get_legal_moves(game_id: str, square: str, req: Request):
    """Legal targets of the piece on a square, for move highlighting."""
    await check_rate_limit(req)
    position = square_to_position(square)
    game_state = await get_game_state(game_id)
    async with game_state.lock:
        targets = game_state.game.legal_moves_for(position)
    return {"square": square, "targets": [target.to_square() for target in targets]}


@app.post("/api/move")
async def make_move(request: MoveRequest, req: Request):
    """Make a move."""
    await check_rate_limit(req)
    origin = square_to_position(request.from_square)
    target = square_to_position(request.to_square)
    game_state = await get_game_state(request.game_id)

    async with game_state.lock:
        if game_state.is_processing:
            raise HTTPException(status_code=409, detail="AI is thinking. Please wait.")
        game = game_state.game
        if not game.make_move(origin, target):
            raise HTTPException(status_code=400, detail="Illegal move")

        return {
            "status": "ok",
            "move": {"from": request.from_square, "to": request.to_square},
            "in_check": game.board.in_check,
            "game_over": game.status == GameStatus.OVER,
            "winner": game.winner.value if game.winner else None,
        }


@app.post("/api/ai-move/{game_id}")
async def ai_move(game_id: str, req: Request):
    """Get AI move."""
    await check_rate_limit(req)
    game_state = await get_game_state(game_id)

    async with game_state.lock:
        if game_state.is_processing:
            raise HTTPException(
                status_code=409, detail="AI is already processing a move. Please wait."
            )
        game = game_state.game
        if game.status != GameStatus.PLAYING:
            raise HTTPException(status_code=400, detail="Game is over")
        game_state.is_processing = True
        side = game.board.side_to_move
        future = game.engine.submit(executor, game.board, side, game.difficulty)

    try:
        # The search runs on a snapshot in the pool; the event loop stays free
        result = await asyncio.wrap_future(future)

        async with game_state.lock:
            if result is None:
                game.check_game_over()
                raise HTTPException(status_code=400, detail="No legal moves available")

            piece_id, target = result
            origin = game.board.get_piece_by_id(piece_id).position
            if not game.apply_engine_move(piece_id, target):
                raise HTTPException(status_code=500, detail="AI generated illegal move")

            return {
                "status": "ok",
                "move": {"from": origin.to_square(), "to": target.to_square()},
                "nodes_searched": game.engine.nodes_searched,
                "depth_reached": game.engine.depth_reached,
                "in_check": game.board.in_check,
                "game_over": game.status == GameStatus.OVER,
                "winner": game.winner.value if game.winner else None,
            }
    finally:
        async with game_state.lock:
            game_state.is_processing = False


@app.post("/api/undo/{game_id}")
async def undo_move(game_id: str, req: Request):
    """Undo the last move (two moves against the computer)."""
    await check_rate_limit(req)
    game_state = await get_game_state(game_id)

    async with game_state.lock:
        if game_state.is_processing:
            raise HTTPException(status_code=409, detail="AI is thinking. Please wait.")
        if not game_state.game.undo():
            raise HTTPException(status_code=400, detail="No moves to undo")

    return {"status": "ok", "message": "Move undone successfully"}


@app.get("/api/export/{game_id}")
async def export_game(game_id: str, req: Request):
    """Export the game as plain structured data for storage."""
    await check_rate_limit(req)
    game_state = await get_game_state(game_id)
    async with game_state.lock:
        return game_state.game.to_dict()


@app.post("/api/import")
async def import_game(request: ImportRequest, req: Request):
    """Restore a game previously produced by /api/export."""
    await check_rate_limit(req)
    try:
        game = Game.from_dict(
            request.state, engine=_new_engine(), history_limit=CONFIG.server.history_limit
        )
    except BoardStateError as e:
        raise HTTPException(status_code=400, detail=f"Invalid game state: {e}")

    async with games_lock:
        games[request.game_id] = GameState(game)
    return {"status": "ok", "game_id": request.game_id}
