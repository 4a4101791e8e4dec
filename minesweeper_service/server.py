"""Flask server for Minesweeper game."""
import asyncio
import logging
import threading
import uuid
from datetime import datetime

from flask import Flask, request, jsonify
from flask_cors import CORS
from temporalio.client import Client, WorkflowUpdateFailedError
from temporalio.service import RPCError

from minesweeper_service.client_provider import ServiceSettings, get_inactivity_timeout, get_task_queue, get_temporal_client
from minesweeper_service.difficulty import list_difficulties
from minesweeper_service.engine import resolve_dimensions
from minesweeper_service.games import available_games
from minesweeper_service.serialization import serialize_game_state, serialize_move_result
from minesweeper_service.types import GameConfig, GameRecord, MoveRequest
from minesweeper_service.workflows import MinesweeperWorkflow

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Global client reference and the event loop it is bound to
temporal_client: Client | None = None
event_loop: asyncio.AbstractEventLoop | None = None

ANONYMOUS_PLAYER = 'anonymous'


class GameNotFound(Exception):
    """The game does not exist or belongs to another player."""


class GameClosed(Exception):
    """The game's workflow no longer accepts moves."""


def run_async(coro):
    """Run a coroutine on the client's event loop and wait for the result."""
    if event_loop is None:
        return asyncio.run(coro)
    return asyncio.run_coroutine_threadsafe(coro, event_loop).result()


def get_player_id() -> str:
    """Identity of the caller, as established by the fronting auth layer."""
    return request.headers.get('X-Player-Id') or ANONYMOUS_PLAYER


def is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


async def query_with_retry(handle, max_retries=5) -> GameRecord:
    """Query with retry logic for workflow initialization."""
    for i in range(max_retries):
        try:
            return await handle.query(MinesweeperWorkflow.get_game_query)
        except Exception as error:
            if i < max_retries - 1:
                logger.info(f"Query not ready yet, retrying in {(i + 1) * 100}ms...")
                await asyncio.sleep((i + 1) * 0.1)
                continue
            raise error


async def load_game(game_id: str, player_id: str):
    """Return the workflow handle and stored game, checking ownership."""
    handle = temporal_client.get_workflow_handle(game_id)
    record = await query_with_retry(handle)
    if record.owner_id != player_id:
        raise GameNotFound(game_id)
    return handle, record


def parse_game_config(data: dict) -> GameConfig:
    """Build a game config from a request body. Raises ValueError when invalid."""
    config = GameConfig(
        difficulty=data.get('difficulty') or 'easy',
        rows=data.get('rows'),
        cols=data.get('cols'),
        mines=data.get('mines'),
    )
    resolve_dimensions(config.difficulty, config.dimensions())
    return config


@app.route('/api/games', methods=['POST'])
def create_game():
    """Create a new game."""
    try:
        data = request.get_json(silent=True) or {}
        try:
            config = parse_game_config(data)
        except ValueError as error:
            return jsonify({'error': str(error)}), 400

        game_id = str(uuid.uuid4())
        player_id = get_player_id()

        async def start_workflow():
            handle = await temporal_client.start_workflow(
                MinesweeperWorkflow.run,
                args=[game_id, player_id, config, get_inactivity_timeout().total_seconds()],
                id=game_id,
                task_queue=get_task_queue(),
            )
            return await query_with_retry(handle)

        record = run_async(start_workflow())
        logger.info(f"Started {record.snapshot.difficulty} game {game_id} for {player_id}")
        return jsonify({'gameId': game_id, 'gameState': serialize_game_state(game_id, record.snapshot)}), 201

    except Exception as error:
        logger.error(f"Error creating game: {error}")
        return jsonify({'error': 'Failed to create game'}), 500


@app.route('/api/games/<game_id>', methods=['GET'])
def get_game_state(game_id):
    """Get game state."""
    try:
        _, record = run_async(load_game(game_id, get_player_id()))
        return jsonify({'gameState': serialize_game_state(game_id, record.snapshot)})

    except Exception as error:
        logger.error(f"Error getting game state: {error}")
        return jsonify({'error': 'Game not found'}), 404


@app.route('/api/games/<game_id>/moves', methods=['POST'])
def make_move(game_id):
    """Make a move."""
    data = request.get_json(silent=True) or {}
    if not is_int(data.get('row')) or not is_int(data.get('col')) or not isinstance(data.get('action'), str):
        return jsonify({'error': 'Invalid move request'}), 400

    move_request = MoveRequest(row=data['row'], col=data['col'], action=data['action'])

    try:
        async def execute_move():
            handle, record = await load_game(game_id, get_player_id())
            if record.closed:
                raise GameClosed(game_id)
            try:
                return await handle.execute_update(MinesweeperWorkflow.make_move_update, move_request)
            except RPCError as error:
                # the workflow completed between the query and the update
                raise GameClosed(game_id) from error

        outcome = run_async(execute_move())

    except GameNotFound:
        return jsonify({'error': 'Game not found'}), 404
    except (GameClosed, WorkflowUpdateFailedError) as error:
        logger.warning(f"Move refused by closed game {game_id}: {error}")
        return jsonify({'error': 'Game is closed'}), 409
    except Exception as error:
        logger.error(f"Error making move: {error}")
        return jsonify({'error': 'Failed to make move'}), 500

    body = {
        'gameState': serialize_game_state(game_id, outcome.snapshot),
        'result': serialize_move_result(outcome.result),
    }
    return jsonify(body), (200 if outcome.result.valid else 400)


@app.route('/api/games/<game_id>/close', methods=['POST'])
def close_game(game_id):
    """Close a game so it accepts no more moves."""
    try:
        async def close():
            handle, _ = await load_game(game_id, get_player_id())
            await handle.signal(MinesweeperWorkflow.close_game_signal)

        run_async(close())
        return jsonify({'gameId': game_id, 'closed': True}), 202

    except Exception as error:
        logger.error(f"Error closing game: {error}")
        return jsonify({'error': 'Game not found'}), 404


@app.route('/api/catalog', methods=['GET'])
def get_catalog():
    """List hosted games and difficulty presets."""
    return jsonify({
        'games': available_games(),
        'difficulties': [
            {
                'name': preset.name,
                'rows': preset.rows,
                'cols': preset.cols,
                'mines': preset.mines,
                'baseScore': preset.base_score,
            }
            for preset in list_difficulties()
        ],
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now().isoformat()
    })


def initialize_client():
    """Connect to Temporal on a background event loop shared by all requests."""
    global temporal_client, event_loop
    event_loop = asyncio.new_event_loop()
    threading.Thread(target=event_loop.run_forever, daemon=True).start()
    temporal_client = asyncio.run_coroutine_threadsafe(get_temporal_client(), event_loop).result()
    logger.info("Connected to Temporal server")


def main():
    """Start the Flask server."""
    logging.basicConfig(level=logging.INFO)
    try:
        initialize_client()

        port = ServiceSettings.from_env().port
        logger.info(f"Minesweeper server running on http://localhost:{port}")
        logger.info("Make sure to start the Temporal worker in another terminal: python -m minesweeper_service.worker")

        app.run(host='0.0.0.0', port=port, debug=False)

    except Exception as error:
        logger.error(f"Failed to start server: {error}")
        exit(1)


if __name__ == "__main__":
    main()
