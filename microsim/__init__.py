"""
Microgrid sandbox server.

Serves a microgrid control and telemetry API whose components, telemetry
and power-command behaviour are defined by a hot-reloadable Python
configuration script.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

__version__ = "0.1.0"
