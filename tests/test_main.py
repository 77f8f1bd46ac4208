"""
Unit tests for the server entrypoint.

Tests verify:
- Socket addresses split into host and port, including IPv6 brackets.
- The JSON log formatter emits one object per record.
- async_main exits with status 1 on invalid settings or a broken script.
- async_main serves on the script's socket address, overridable by
  BIND_ADDRESS.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from microsim.main import JsonFormatter, async_main, split_socket_address


class TestSplitSocketAddress:
    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("127.0.0.1:8800", ("127.0.0.1", 8800)),
            ("[::1]:8800", ("::1", 8800)),
            ("localhost:0", ("localhost", 0)),
        ],
    )
    def test_valid(self, address: str, expected: tuple[str, int]) -> None:
        assert split_socket_address(address) == expected

    @pytest.mark.parametrize("address", ["8800", ":8800", "host:port", "host:70000"])
    def test_invalid(self, address: str) -> None:
        with pytest.raises(ValueError):
            split_socket_address(address)


class TestJsonFormatter:
    def test_format(self) -> None:
        record = logging.LogRecord(
            "microsim.test", logging.WARNING, __file__, 1, "value %d", (3,), None
        )
        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "microsim.test"
        assert entry["msg"] == "value 3"
        assert "ts" in entry
        assert "exception" not in entry

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "microsim.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestAsyncMain:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    @pytest.mark.asyncio
    async def test_missing_config_script(self) -> None:
        assert await async_main([]) == 1

    @pytest.mark.asyncio
    async def test_broken_script(self, write_script: Callable[[str], Path]) -> None:
        path = write_script("components = [\n")
        assert await async_main(["--config", str(path)]) == 1

    @pytest.mark.asyncio
    async def test_bad_socket_address(
        self, write_script: Callable[[str], Path]
    ) -> None:
        path = write_script("socket_addr = 'nowhere'\n")
        assert await async_main(["--config", str(path)]) == 1

    @pytest.mark.asyncio
    async def test_serves_on_script_address(self, sample_script: Path) -> None:
        with patch("microsim.main.uvicorn.Server") as server_cls:
            server_cls.return_value.serve = AsyncMock()
            status = await async_main(
                ["--config", str(sample_script), "--log-level", "warning"]
            )

        assert status == 0
        config = server_cls.call_args.args[0]
        assert (config.host, config.port) == ("127.0.0.1", 8800)
        server_cls.return_value.serve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bind_address_overrides_script(
        self, sample_script: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BIND_ADDRESS", "[::]:9100")
        with patch("microsim.main.uvicorn.Server") as server_cls:
            server_cls.return_value.serve = AsyncMock()
            assert await async_main(["--config", str(sample_script)]) == 0

        config = server_cls.call_args.args[0]
        assert (config.host, config.port) == ("::", 9100)
