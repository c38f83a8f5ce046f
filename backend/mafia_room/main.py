import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Callable, Optional
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from .api.routes import router as api_router
from .api.ws import ConnectionRegistry, WebSocketConnection
from .api.dispatch import Dispatcher
from .core.config import Settings
from .core.game import GameController
from .core.scheduler import PhaseScheduler
from .core.storage import RoomStore

logger = logging.getLogger(__name__)

REAP_INTERVAL_SECONDS = 30

def _frame_text(frame: dict, limit: int) -> Optional[str]:
    """Text of a websocket frame; binary frames are read as UTF-8."""
    text = frame.get("text")
    if text is not None:
        return text if len(text.encode("utf-8")) <= limit else None
    data = frame.get("bytes")
    if data is None or len(data) > limit:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None

async def _reap_empty_rooms(app: FastAPI):
    """Drops rooms that were created but never joined."""
    settings: Settings = app.state.settings
    game: GameController = app.state.game
    while True:
        await asyncio.sleep(REAP_INTERVAL_SECONDS)
        stale = app.state.store.stale_empty_rooms(settings.empty_room_ttl_seconds)
        for room in stale:
            game.discard_room(room)
        if stale:
            game.broadcast_rooms_list()

@asynccontextmanager
async def lifespan(app: FastAPI):
    reaper = asyncio.create_task(_reap_empty_rooms(app))
    try:
        yield
    finally:
        reaper.cancel()
        with suppress(asyncio.CancelledError):
            await reaper
        app.state.scheduler.cancel_all()

def create_app(settings: Optional[Settings] = None, rng: Optional[random.Random] = None,
               clock: Callable[[], float] = time.time) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(title="Mafia Room Server", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = RoomStore()
    registry = ConnectionRegistry()
    scheduler = PhaseScheduler()
    game = GameController(store, registry, scheduler, settings, rng=rng, clock=clock)
    dispatcher = Dispatcher(store, registry, game)

    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.scheduler = scheduler
    app.state.game = game
    app.state.dispatcher = dispatcher

    app.include_router(api_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        connection_id = registry.register(connection)
        writer = asyncio.create_task(connection.pump())
        registry.send(connection_id, "connected", {"wsId": connection_id})
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = _frame_text(frame, settings.max_message_bytes)
                if raw is None:
                    logger.debug(f"Dropping unreadable or oversized frame from {connection_id}")
                    continue
                dispatcher.handle(connection_id, raw)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception(f"Connection {connection_id} failed")
        finally:
            dispatcher.disconnect(connection_id)
            connection.close()
            with suppress(asyncio.CancelledError):
                await writer

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
