"""Relay server with WebSocket signaling and an HTTP side server.

Main server implementation that:
1. Loads configuration
2. Starts the WebSocket transport
3. Starts the HTTP server (health, metrics, MP3 upload, static assets)
4. Accepts client connections and serves each one until it closes
"""

import argparse
import asyncio
import logging
from pathlib import Path

from aiohttp.web import Application, AppRunner, TCPSite

from src.relay.config import RelayConfig
from src.relay.dispatcher import EventDispatcher
from src.relay.health import setup_health_routes
from src.relay.media import setup_media_routes
from src.relay.session import ConnectionSession
from src.relay.transport.websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)


def create_http_app(config: RelayConfig, dispatcher: EventDispatcher) -> Application:
    """Build the aiohttp application.

    Args:
        config: Relay configuration
        dispatcher: Event dispatcher reported by the health endpoints

    Returns:
        Configured aiohttp Application
    """
    app = Application(client_max_size=config.http.max_upload_bytes + 64 * 1024)
    setup_health_routes(app, dispatcher)
    setup_media_routes(app, config.http, dispatcher.metrics)
    return app


async def serve(config: RelayConfig, dispatcher: EventDispatcher | None = None) -> None:
    """Run the relay until cancelled.

    Args:
        config: Relay configuration
        dispatcher: Optional pre-built dispatcher (tests inspect its state)
    """
    if dispatcher is None:
        dispatcher = EventDispatcher(chat_config=config.chat)

    ws_config = config.transport.websocket
    transport: WebSocketTransport | None = None
    if ws_config.enabled:
        transport = WebSocketTransport(
            host=ws_config.host,
            port=ws_config.port,
            max_connections=ws_config.max_connections,
            queue_size=ws_config.outbound_queue_size,
            max_message_bytes=ws_config.max_message_bytes,
        )
        await transport.start()
        logger.info("WebSocket transport started", extra={"port": transport.port})
    else:
        logger.warning("WebSocket transport disabled in configuration")

    runner: AppRunner | None = None
    if config.http.enabled:
        runner = AppRunner(create_http_app(config, dispatcher))
        await runner.setup()
        site = TCPSite(runner, config.http.host, config.http_port)
        await site.start()
        logger.info("HTTP server started", extra={"port": config.http_port})

    session_tasks: set[asyncio.Task[None]] = set()
    try:
        logger.info("Relay server ready")

        if transport is None:
            # HTTP only; run until cancelled
            await asyncio.Event().wait()

        while transport is not None:
            transport_session = await transport.accept_session()
            session = ConnectionSession(transport_session)
            logger.debug(
                "New WebSocket session accepted",
                extra={"session_id": session.session_id},
            )
            task = asyncio.create_task(dispatcher.handle_session(session))
            session_tasks.add(task)
            task.add_done_callback(session_tasks.discard)

    except asyncio.CancelledError:
        logger.info("Server loop cancelled")
        raise
    finally:
        logger.info("Shutting down relay server")

        if transport is not None:
            await transport.stop()
            logger.info("WebSocket transport stopped")

        if runner is not None:
            await runner.cleanup()
            logger.info("HTTP server stopped")

        if session_tasks:
            logger.info("Waiting for sessions to complete", extra={"count": len(session_tasks)})
            _, pending = await asyncio.wait(
                set(session_tasks), timeout=config.graceful_shutdown_timeout_s
            )
            for task in pending:
                task.cancel()

        logger.info("Relay server stopped")


async def start_server(config_path: Path | None) -> None:
    """Load configuration, configure logging and run the relay.

    Args:
        config_path: Path to YAML configuration (defaults used if missing)
    """
    config = RelayConfig.from_yaml_with_defaults(config_path)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(
        "Loaded configuration",
        extra={"config_path": str(config_path) if config_path else None},
    )

    await serve(config)


def main() -> None:
    """Entry point for the relay server."""
    parser = argparse.ArgumentParser(description="Broadcast room signaling relay")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(__file__).parent.parent.parent / "configs" / "relay.yaml",
        help="Path to relay config YAML file",
    )
    args = parser.parse_args()

    try:
        asyncio.run(start_server(args.config))
    except KeyboardInterrupt:
        logger.info("Relay server interrupted")


if __name__ == "__main__":
    main()
