"""Build orchestrator driving tasks through clean, fetch and build phases."""

__version__ = "0.1.0"
