"""
Connection status for a guidance WebSocket.

Tracked by SessionGateway, separately from the orchestrator state:
a connection can be UP with no guidance session started yet.
"""
from enum import Enum


class ConnectionStatus(Enum):
    """WebSocket lifecycle as seen by the gateway."""
    DOWN = "DOWN"      # Not connected, or torn down
    UP = "UP"          # Accepted and routing messages
