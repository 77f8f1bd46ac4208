"""
Evaluator for the Python configuration script.

The configuration script is plain Python source executed in a private
namespace.  The evaluator exposes the three operations the rest of the
server relies on:

- ``load(path)``: execute the script, replacing any previous namespace.
- ``eval_named(name)``: read a top-level name defined by the script.
- ``call(fn, *args)``: call a script function (by name or reference).

Host callables registered before ``load`` are visible to the script as
globals.  Every failure inside the script is reported as a
:class:`~microsim.errors.ScriptError`; nothing raised by script code leaks
out unwrapped, ``sys.exit()`` included.

An evaluator is never reloaded in place by the bridge: a reload builds a new
evaluator and swaps it in, see :mod:`microsim.bridge`.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Wrap SystemExit raised by script code

TODO:
- None
"""

from __future__ import annotations

import builtins
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from microsim.errors import ScriptError, ScriptLoadError

logger = logging.getLogger(__name__)

SCRIPT_MODULE_NAME = "__microsim_config__"
"""Value of ``__name__`` inside the configuration script."""


class ScriptEvaluator:
    """Executes a configuration script and evaluates names and calls in it.

    Args:
        host_functions: Callables injected as globals into the script.
    """

    def __init__(
        self, host_functions: dict[str, Callable[..., Any]] | None = None
    ) -> None:
        self._host_functions: dict[str, Callable[..., Any]] = dict(
            host_functions or {}
        )
        self._namespace: dict[str, Any] | None = None
        self.path: Path | None = None

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Expose *fn* to the script as the global *name*.

        Must be called before :meth:`load`.
        """
        self._host_functions[name] = fn

    @property
    def loaded(self) -> bool:
        return self._namespace is not None

    def load(self, path: str | Path) -> None:
        """Execute the script at *path* in a fresh namespace.

        Raises:
            ScriptLoadError: If the file cannot be read, does not compile, or
                raises while executing.
        """
        path = Path(path)
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ScriptLoadError(f"Cannot read config script {path}: {exc}", exc) from exc

        namespace: dict[str, Any] = {
            "__name__": SCRIPT_MODULE_NAME,
            "__file__": str(path),
            "__builtins__": builtins,
        }
        namespace.update(self._host_functions)
        try:
            code = compile(source, str(path), "exec")
            exec(code, namespace)  # noqa: S102
        except (Exception, SystemExit) as exc:
            raise ScriptLoadError(
                f"Error evaluating config script {path}: {type(exc).__name__}: {exc}",
                exc,
            ) from exc

        self._namespace = namespace
        self.path = path
        logger.debug("Config script %s evaluated", path)

    def has(self, name: str) -> bool:
        """Return True if the script defines the top-level *name*."""
        return self._require_namespace().get(name) is not None

    def eval_named(self, name: str) -> Any:
        """Return the value of the top-level *name*.

        Raises:
            ScriptError: If the script does not define *name*.
        """
        namespace = self._require_namespace()
        if name not in namespace:
            raise ScriptError(f"Void variable: {name}")
        return namespace[name]

    def call(self, fn: str | Callable[..., Any], *args: Any) -> Any:
        """Call a script function with positional arguments.

        Args:
            fn: The function, or the name of a top-level script function.
            *args: Arguments passed through unchanged.

        Raises:
            ScriptError: If *fn* is not callable or raises.
        """
        if isinstance(fn, str):
            name = fn
            fn = self.eval_named(fn)
        else:
            name = getattr(fn, "__name__", repr(fn))
        if not callable(fn):
            raise ScriptError(f"Invalid function: {name} is not callable")
        try:
            return fn(*args)
        except ScriptError:
            raise
        except (Exception, SystemExit) as exc:
            raise ScriptError(f"{name}: {type(exc).__name__}: {exc}", exc) from exc

    def _require_namespace(self) -> dict[str, Any]:
        if self._namespace is None:
            raise ScriptError("Config script not loaded")
        return self._namespace
