"""Console script shim for `trigger-coordinator`."""

from __future__ import annotations

from mcp_trigger_coordinator.coordinator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
