"""
HTTP API package.

Serves the microgrid RPC surface (topology, power commands, telemetry
streams) over FastAPI.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
