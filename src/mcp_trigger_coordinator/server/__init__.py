"""FastAPI adapter for the trigger coordinator.

Upstream monitors post events over HTTP; downstream services report completion
the same way. Evaluation logic stays in `mcp_trigger_coordinator.coordinator`.
"""

from __future__ import annotations

__all__ = ["create_app"]

from mcp_trigger_coordinator.server.app import create_app
