"""
Exception taxonomy for the microgrid sandbox.

Every failure raised by the configuration bridge, the streaming scheduler or
the interlock derives from :class:`MicrosimError`, so the API layer can map
them to HTTP status codes in one place.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import traceback


class MicrosimError(Exception):
    """Base class for all sandbox errors."""


class ScriptError(MicrosimError):
    """The configuration script failed to evaluate.

    Args:
        desc: Short, single-line description of the failure.
        cause: The exception raised inside the script, if any.
    """

    def __init__(self, desc: str, cause: BaseException | None = None) -> None:
        super().__init__(desc)
        self.desc = desc
        self.cause = cause

    def format(self) -> str:
        """Return the description followed by the script traceback."""
        if self.cause is None:
            return self.desc
        tb = "".join(
            traceback.format_exception(
                type(self.cause), self.cause, self.cause.__traceback__
            )
        )
        return f"{self.desc}\n{tb}"


class ScriptLoadError(ScriptError):
    """The configuration script could not be loaded."""


class ComponentValidationError(MicrosimError):
    """A component record is missing a mandatory field or has a bad value."""

    def __init__(
        self,
        message: str,
        *,
        component_id: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.component_id = component_id
        self.field = field


class ComponentNotFound(MicrosimError):
    """No component with the requested id exists in the current generation."""

    def __init__(self, component_id: int) -> None:
        super().__init__(f"Component id {component_id} not found")
        self.component_id = component_id


class CommandError(MicrosimError):
    """A power command was rejected by the configuration script."""

    def __init__(self, component_id: int, desc: str) -> None:
        super().__init__(desc)
        self.component_id = component_id
        self.desc = desc


class StreamError(MicrosimError):
    """Terminal failure of a telemetry subscription."""

    def __init__(self, component_id: int, cause: MicrosimError) -> None:
        super().__init__(f"Stream for component {component_id} failed: {cause}")
        self.component_id = component_id
        self.cause = cause
