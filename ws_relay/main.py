"""
WebSocket Relay main application.

Every message a client sends is relayed to every connected client,
the sender included. Connection and message counters are exposed for
Prometheus on /metrics.
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse

from shared.config.settings import Settings, get_settings
from shared.config.logging import setup_logging, relay_logger as logger
from ws_relay import __version__
from ws_relay.components.core.constants import PROMETHEUS_CONTENT_TYPE, RelayConstants
from ws_relay.components.endpoints.base import RelayEndpoint
from ws_relay.components.metrics.prometheus import generate_prometheus_metrics
from ws_relay.core.relay import BroadcastRelay
from ws_relay.server import RelayServer


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the relay application.

    Each application owns its own relay, registry and metrics, so tests can
    build isolated instances.
    """
    settings = settings or get_settings()
    relay = BroadcastRelay(
        batch_size=settings.ws_broadcast_batch_size,
        send_timeout=settings.ws_send_timeout,
    )

    # =========================================================================
    # Lifespan
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        On shutdown every open connection is closed with 1001.
        """
        setup_logging()
        logger.info(
            "Starting WebSocket Relay",
            host=settings.relay_host,
            port=settings.port,
            env=settings.environment,
        )
        for error in settings.validate_config():
            logger.error("Configuration error", error=error)

        yield

        # RelayServer drains the relay before uvicorn closes sockets; other
        # servers (and TestClient) reach this point first
        if not relay.is_shutting_down:
            logger.info("Shutting down WebSocket Relay")
            await relay.shutdown(timeout=settings.ws_shutdown_timeout)

    app = FastAPI(
        title="WebSocket Relay",
        description="Broadcast relay for WebSocket clients",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.state.settings = settings

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health")
    def health_check(request: Request):
        """Basic health check endpoint."""
        stats = request.app.state.relay.get_stats()
        return {
            "status": "healthy",
            "service": "ws-relay",
            "version": app.version,
            "environment": settings.environment,
            "active_connections": stats["active_connections"],
            "metrics": stats["metrics"],
        }

    # =========================================================================
    # Prometheus Metrics Endpoint
    # =========================================================================

    @app.get("/metrics")
    def prometheus_metrics(request: Request):
        """
        Prometheus-compatible metrics endpoint.

        Usage:
            curl http://localhost:8080/metrics

        Configure Prometheus scrape:
            scrape_configs:
              - job_name: 'ws-relay'
                static_configs:
                  - targets: ['localhost:8080']
        """
        metrics_output = generate_prometheus_metrics(request.app.state.relay.metrics)
        return PlainTextResponse(
            content=metrics_output,
            media_type=PROMETHEUS_CONTENT_TYPE,
        )

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket(RelayConstants.WS_PATH)
    async def relay_websocket(websocket: WebSocket):
        """WebSocket endpoint: broadcast every inbound message to all clients."""
        endpoint = RelayEndpoint(
            websocket,
            relay,
            idle_timeout=settings.ws_idle_timeout,
            max_message_size=settings.ws_max_message_size,
        )
        await endpoint.run()

    return app


app = create_app()


def serve() -> None:
    """Run the relay with uvicorn on the configured host and port."""
    settings = get_settings()
    setup_logging()
    errors = settings.validate_config()
    if errors:
        for error in errors:
            logger.error("Configuration error", error=error)
        sys.exit(1)

    RelayServer.for_app(app, settings).run()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    serve()
