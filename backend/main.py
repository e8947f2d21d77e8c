"""
AirShare engine: FastAPI application entry point.

Starts LAN discovery on startup and serves the shared-directory file
endpoints, the command API and the peer event WebSocket.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from api.routes import init_routes
from api.routes import router as api_router
from api.websocket import ConnectionManager
from config import API_HOST, API_PORT, LOG_LEVEL, SHARED_DIR
from discovery.identity import IdentityService
from discovery.service import DiscoveryService
from transfer.server import init_file_server
from transfer.server import router as file_router

# --- Logging ---
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    discovery_service: DiscoveryService | None = None,
    shared_dir: str = SHARED_DIR,
) -> FastAPI:
    """Build the application around a discovery service and shared directory."""
    discovery_service = discovery_service or DiscoveryService(IdentityService())
    ws_manager = ConnectionManager()
    discovery_service.on_peer_change(ws_manager.handle_peer_event)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start/stop background services."""
        logger.info("Starting AirShare services...")
        try:
            await discovery_service.start()
            logger.info(f"AirShare ready, HTTP: {API_HOST}:{API_PORT}")
            yield
        except Exception as e:
            logger.error(f"Startup failed: {e}", exc_info=True)
            raise
        finally:
            logger.info("Shutting down AirShare services...")
            await discovery_service.stop()

    app = FastAPI(title="AirShare", version="1.0.0", lifespan=lifespan)
    app.state.discovery = discovery_service
    app.state.ws_manager = ws_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    init_file_server(shared_dir)
    init_routes(discovery_service)
    app.include_router(file_router)
    app.include_router(api_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await ws_manager.connect(websocket)
        try:
            while True:
                # Keep the connection alive; we don't expect client messages
                await websocket.receive_text()
        except WebSocketDisconnect:
            ws_manager.disconnect(websocket)
        except Exception:
            ws_manager.disconnect(websocket)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(),
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )
