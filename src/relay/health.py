"""Health check and metrics endpoints for the relay.

Provides HTTP endpoints for load balancers, monitoring systems and
orchestration tools (Docker healthcheck, Kubernetes liveness probe), plus a
Prometheus scrape endpoint.
"""

import logging
import time

from aiohttp import web

from src.relay.dispatcher import EventDispatcher

logger = logging.getLogger(__name__)


class HealthCheckHandler:
    """Health check handler for the relay.

    Reports service uptime together with live room and connection counts
    taken from the dispatcher.
    """

    def __init__(self, dispatcher: EventDispatcher) -> None:
        """Initialize health check handler.

        Args:
            dispatcher: Event dispatcher whose state is reported
        """
        self.dispatcher = dispatcher
        self.start_time = time.time()

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint.

        Response format:
        {
            "status": "healthy",
            "uptime_seconds": float,
            "rooms": int,
            "connections": int
        }
        """
        response_data = {
            "status": "healthy",
            "uptime_seconds": time.time() - self.start_time,
            "rooms": len(self.dispatcher.registry),
            "connections": self.dispatcher.hub.connection_count,
        }
        return web.json_response(response_data, status=200)

    async def liveness_check(self, request: web.Request) -> web.Response:
        """Liveness check endpoint.

        Returns OK if the process is running.
        """
        return web.json_response(
            {
                "status": "alive",
                "uptime_seconds": time.time() - self.start_time,
            },
            status=200,
        )

    async def metrics_endpoint(self, request: web.Request) -> web.Response:
        """Prometheus metrics endpoint.

        Returns:
            200 OK: Metrics in Prometheus text format
        """
        try:
            metrics_text = self.dispatcher.metrics.export_prometheus()

            return web.Response(
                text=metrics_text,
                content_type="text/plain",
                status=200,
            )

        except Exception as e:
            logger.error(
                "Failed to export metrics",
                extra={"error": str(e)},
                exc_info=True,
            )
            return web.Response(
                text=f"# Error exporting metrics: {e}\n",
                content_type="text/plain",
                status=500,
            )

    async def metrics_summary(self, request: web.Request) -> web.Response:
        """Human-readable metrics summary endpoint."""
        return web.json_response(
            {
                "status": "ok",
                "uptime_seconds": time.time() - self.start_time,
                "metrics": self.dispatcher.metrics.get_summary(),
            },
            status=200,
        )


def setup_health_routes(app: web.Application, dispatcher: EventDispatcher) -> None:
    """Set up health check routes on application.

    Args:
        app: aiohttp Application instance
        dispatcher: Event dispatcher whose state is reported
    """
    handler = HealthCheckHandler(dispatcher)

    app.router.add_get("/health", handler.health_check)
    app.router.add_get("/liveness", handler.liveness_check)
    app.router.add_get("/metrics", handler.metrics_endpoint)
    app.router.add_get("/metrics/summary", handler.metrics_summary)

    logger.info("Health check endpoints configured: /health, /liveness, /metrics, /metrics/summary")
