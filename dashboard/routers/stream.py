"""
Prediction stream.

Pushes every published tick for one game to a WebSocket client:

    {"event": "tick", "data": GamePrediction.to_dict()}

The current prediction is sent on connect when the game is loaded.
A slow client only ever loses the oldest queued ticks.
"""
import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from core.exceptions import EquilibrateException, GameNotLoadedError
from simulation.service import GamePrediction, PredictionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Stream"])

STREAM_QUEUE_SIZE = 32


def _offer(queue: asyncio.Queue, result: GamePrediction) -> None:
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(result)


def _tick_message(result: GamePrediction) -> dict:
    return {"event": "tick", "data": result.to_dict()}


async def _send_ticks(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        result = await queue.get()
        await websocket.send_json(_tick_message(result))


async def _receive(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive_text()
        if message == "ping":
            await websocket.send_json({"event": "pong"})


@router.websocket("/games/{game_id}/stream")
async def stream_game(websocket: WebSocket, game_id: str):
    """
    WebSocket stream of prediction ticks for `game_id`.
    """
    service: PredictionService = websocket.app.state.service
    await websocket.accept()
    logger.info(f"Stream opened for {game_id}")

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)

    def on_tick(result: GamePrediction) -> None:
        if result.game_id == game_id:
            loop.call_soon_threadsafe(_offer, queue, result)

    unsubscribe = service.on_prediction_tick(on_tick)
    try:
        try:
            await websocket.send_json(_tick_message(service.current_prediction(game_id)))
        except GameNotLoadedError:
            await websocket.send_json({"event": "waiting", "data": {"game_id": game_id}})
        except EquilibrateException as e:
            logger.warning(f"Stream initial prediction failed: {e.to_log_format()}")
            await websocket.send_json({"event": "error", "data": e.to_dict()})

        tasks = {
            asyncio.ensure_future(_send_ticks(websocket, queue)),
            asyncio.ensure_future(_receive(websocket)),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Stream for {game_id} failed: {error}")
    except WebSocketDisconnect:
        logger.debug(f"Stream client for {game_id} disconnected early")
    finally:
        unsubscribe()
        logger.info(f"Stream closed for {game_id}")
