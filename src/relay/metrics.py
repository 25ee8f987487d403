"""Prometheus-compatible metrics for relay observability.

Counts connections, room membership changes, relayed signaling messages,
chat traffic and dropped events. Metrics are held in memory and exposed via
the /metrics endpoint in Prometheus exposition format.

Thread-safety: all mutation and export happen under a single lock.
"""

import logging
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Counter:
    """Monotonically increasing counter."""

    name: str
    help: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0

    def inc(self, amount: float = 1.0) -> None:
        """Increment counter.

        Args:
            amount: Amount to increment (must be non-negative)
        """
        if amount < 0:
            raise ValueError("Counter increment must be non-negative")
        self.value += amount


@dataclass
class Gauge:
    """Value that can go up or down."""

    name: str
    help: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0

    def set(self, value: float) -> None:
        self.value = value

    def inc(self, amount: float = 1.0) -> None:
        self.value += amount

    def dec(self, amount: float = 1.0) -> None:
        self.value -= amount


class MetricsCollector:
    """In-memory collector for relay metrics.

    One instance is created at startup and handed to every component that
    records activity; tests construct their own.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}

        self._init_connection_metrics()
        self._init_room_metrics()
        self._init_relay_metrics()

    def _init_connection_metrics(self) -> None:
        self._counters["connections_total"] = Counter(
            name="relay_connections_total",
            help="Total WebSocket connections accepted",
        )
        self._gauges["connections_active"] = Gauge(
            name="relay_connections_active",
            help="Currently open WebSocket connections",
        )
        self._counters["outbound_dropped_total"] = Counter(
            name="relay_outbound_dropped_total",
            help="Outbound events dropped because a connection buffer was full or closed",
        )

    def _init_room_metrics(self) -> None:
        self._gauges["rooms_active"] = Gauge(
            name="relay_rooms_active",
            help="Rooms with at least one participant",
        )
        for role in ("host", "listener"):
            self._counters[f"joins_total_{role}"] = Counter(
                name="relay_joins_total",
                help="Room joins by role",
                labels={"role": role},
            )
        self._counters["leaves_total"] = Counter(
            name="relay_leaves_total",
            help="Room leaves (disconnects of joined connections)",
        )

    def _init_relay_metrics(self) -> None:
        self._counters["signals_relayed_total"] = Counter(
            name="relay_signals_relayed_total",
            help="Signaling messages delivered to their target",
        )
        self._counters["signals_dropped_total"] = Counter(
            name="relay_signals_dropped_total",
            help="Signaling messages dropped (unknown or closed target)",
        )
        self._counters["chat_messages_total"] = Counter(
            name="relay_chat_messages_total",
            help="Chat messages broadcast to a room",
        )
        self._counters["chat_dropped_total"] = Counter(
            name="relay_chat_dropped_total",
            help="Chat messages dropped (empty text or missing room)",
        )
        self._counters["uploads_total"] = Counter(
            name="relay_uploads_total",
            help="MP3 files accepted by the upload endpoint",
        )

    # === Recording ===

    def record_connection_open(self) -> None:
        with self._lock:
            self._counters["connections_total"].inc()
            self._gauges["connections_active"].inc()

    def record_connection_close(self) -> None:
        with self._lock:
            self._gauges["connections_active"].dec()

    def record_join(self, role: str) -> None:
        with self._lock:
            self._counters[f"joins_total_{role}"].inc()

    def record_leave(self) -> None:
        with self._lock:
            self._counters["leaves_total"].inc()

    def set_rooms_active(self, count: int) -> None:
        with self._lock:
            self._gauges["rooms_active"].set(count)

    def record_signal(self, delivered: bool) -> None:
        key = "signals_relayed_total" if delivered else "signals_dropped_total"
        with self._lock:
            self._counters[key].inc()

    def record_chat(self, delivered: bool) -> None:
        key = "chat_messages_total" if delivered else "chat_dropped_total"
        with self._lock:
            self._counters[key].inc()

    def record_outbound_dropped(self) -> None:
        with self._lock:
            self._counters["outbound_dropped_total"].inc()

    def record_upload(self) -> None:
        with self._lock:
            self._counters["uploads_total"].inc()

    # === Export ===

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text exposition format.

        Returns:
            Prometheus-formatted metrics text
        """
        lines: list[str] = []
        seen: set[str] = set()

        with self._lock:
            for kind, metrics in (
                ("counter", list(self._counters.values())),
                ("gauge", list(self._gauges.values())),
            ):
                for metric in metrics:
                    # Labelled series share one HELP/TYPE header
                    if metric.name not in seen:
                        lines.append(f"# HELP {metric.name} {metric.help}")
                        lines.append(f"# TYPE {metric.name} {kind}")
                        seen.add(metric.name)
                    labels_str = self._format_labels(metric.labels)
                    lines.append(f"{metric.name}{labels_str} {metric.value}")

        return "\n".join(lines) + "\n"

    def _format_labels(self, labels: dict[str, str]) -> str:
        """Format labels for Prometheus output.

        Args:
            labels: Label dictionary

        Returns:
            Formatted label string (e.g., '{label1="value1",label2="value2"}')
        """
        if not labels:
            return ""

        label_pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(label_pairs) + "}"

    def get_summary(self) -> dict[str, float]:
        """Get summary values for dashboards and debugging."""
        with self._lock:
            return {
                "connections_total": self._counters["connections_total"].value,
                "connections_active": self._gauges["connections_active"].value,
                "rooms_active": self._gauges["rooms_active"].value,
                "host_joins": self._counters["joins_total_host"].value,
                "listener_joins": self._counters["joins_total_listener"].value,
                "leaves": self._counters["leaves_total"].value,
                "signals_relayed": self._counters["signals_relayed_total"].value,
                "signals_dropped": self._counters["signals_dropped_total"].value,
                "chat_messages": self._counters["chat_messages_total"].value,
                "chat_dropped": self._counters["chat_dropped_total"].value,
                "outbound_dropped": self._counters["outbound_dropped_total"].value,
                "uploads": self._counters["uploads_total"].value,
            }
