from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from pydantic import ValidationError
from typing import Optional
import os
import constants
from backend import build_user_store
from messaging import (
    ConnectionRegistry,
    DuplicateConnection,
    MessageRouter,
    RoomMembershipTable,
    SessionGateway,
    WebSocketTransport,
)
from routers.auth import auth_router
from schemas.events import parse_inbound_event
from schemas.users import HealthResponse
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)
logger = get_logger(__name__)


def create_app(
    db_file: Optional[str] = None,
    upload_dir: Optional[str] = None,
    public_dir: Optional[str] = None,
    user_store: Optional[str] = None,
    bcrypt_rounds: Optional[int] = None,
    prune_empty_rooms: Optional[bool] = None,
    send_timeout: Optional[float] = None,
) -> FastAPI:
    """Build the application. Keyword arguments override `constants`."""
    db_file = db_file or constants.DB_FILE
    upload_dir = upload_dir or constants.UPLOAD_DIR
    public_dir = public_dir or constants.PUBLIC_DIR
    user_store = user_store or constants.USER_STORE
    bcrypt_rounds = bcrypt_rounds or constants.BCRYPT_ROUNDS
    prune_empty_rooms = constants.PRUNE_EMPTY_ROOMS if prune_empty_rooms is None else prune_empty_rooms
    send_timeout = send_timeout or constants.SEND_TIMEOUT_SECONDS

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # All shared state is owned by app.state for the lifetime of the process
        app.state.user_store = build_user_store(
            user_store,
            db_file,
            redis_host=constants.REDIS_HOST,
            redis_port=constants.REDIS_PORT,
            redis_password=constants.REDIS_PASSWORD,
        )
        app.state.upload_dir = upload_dir
        app.state.public_dir = public_dir
        app.state.bcrypt_rounds = bcrypt_rounds

        registry = ConnectionRegistry()
        membership = RoomMembershipTable(registry, prune_empty_rooms=prune_empty_rooms)
        transport = WebSocketTransport(send_timeout=send_timeout)
        router = MessageRouter(registry, membership, transport)
        app.state.registry = registry
        app.state.membership = membership
        app.state.transport = transport
        app.state.gateway = SessionGateway(registry, membership, router)
        logger.info("Messaging state initialized")

        yield

        for connection in registry.list_connections():
            transport.detach(connection.connection_id)
            registry.deregister(connection.connection_id)
        logger.info("Messaging state torn down")

    app = FastAPI(lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.mount("/static", StaticFiles(directory=public_dir, check_dir=False), name="static")
    app.include_router(auth_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="ok",
            connections=app.state.registry.connection_count,
            rooms=app.state.membership.room_count,
        )

    app.add_api_websocket_route("/ws", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


async def websocket_endpoint(websocket: WebSocket, username: str = None):
    """Real-time messaging endpoint.

    Query parameters:
    - username: Optional name shown to other users alongside the connection id
    """
    state = websocket.app.state
    gateway: SessionGateway = state.gateway
    transport: WebSocketTransport = state.transport
    username = username.strip() if username and username.strip() else None

    await websocket.accept()
    try:
        connection_id = await gateway.on_connect(user_id=username)
    except DuplicateConnection:
        await websocket.close(code=1011, reason="Could not register connection")
        return

    transport.attach(connection_id, websocket)
    try:
        await transport.send(connection_id, "connected", {"connection_id": connection_id, "username": username})

        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")

            try:
                event = parse_inbound_event(data)
            except ValidationError as e:
                logger.warning(f"Invalid event from connection {connection_id}: {e.error_count()} errors")
                await transport.send(connection_id, "error", {"detail": "Invalid event", "errors": e.errors(include_url=False, include_context=False, include_input=False)})
                continue

            await gateway.dispatch(connection_id, event)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        try:
            await websocket.close(code=1011)
        except RuntimeError as close_error:
            logger.debug(f"Error closing WebSocket: {close_error}")
    finally:
        transport.detach(connection_id)
        await gateway.on_disconnect(connection_id)


app = create_app()
