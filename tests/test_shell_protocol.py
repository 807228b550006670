"""
Shell Protocol Tests — output framing and the shell adapter.

Frame and decoding tests are pure; adapter tests need the sqlite3 binary.
"""

import shutil

import pytest

from shellite.db.backends.base import ResultMode
from shellite.db.backends.shell import Frame, ShellAdapter, Stage
from shellite.faults import DecodeFault, ProcessExitedFault, QueryFault


MARKER = b'[{"_":"feedfacecafebeef"}]\n'

requires_shell = pytest.mark.skipif(shutil.which("sqlite3") is None, reason="sqlite3 binary not installed")


# ============================================================================
# Frame
# ============================================================================


class TestFrame:
    """Test the per-command framing state machine."""

    def test_initial_stage(self):
        frame = Frame(MARKER)
        assert frame.stage is Stage.AWAITING_BOTH
        assert not frame.complete
        assert not frame.stream_done("stdout")
        assert not frame.stream_done("stderr")

    def test_stdout_then_stderr(self):
        frame = Frame(MARKER)
        assert frame.feed("stdout", b'[{"a":1}]\n' + MARKER) is True
        assert frame.stage is Stage.AWAITING_STDERR
        assert frame.stream_done("stdout")
        assert not frame.stream_done("stderr")

        assert frame.feed("stderr", MARKER) is True
        assert frame.complete
        assert frame.payload("stdout") == b'[{"a":1}]\n'
        assert frame.payload("stderr") == b""

    def test_stderr_then_stdout(self):
        frame = Frame(MARKER)
        frame.feed("stderr", b"Parse error: boom\n" + MARKER)
        assert frame.stage is Stage.AWAITING_STDOUT
        frame.feed("stdout", MARKER)
        assert frame.complete
        assert frame.payload("stderr") == b"Parse error: boom\n"

    def test_split_chunks(self):
        frame = Frame(MARKER)
        assert frame.feed("stdout", MARKER[:5]) is False
        assert frame.stage is Stage.AWAITING_BOTH
        assert frame.feed("stdout", MARKER[5:]) is True
        assert frame.stage is Stage.AWAITING_STDERR


class TestDecode:
    """Test result decoding per mode."""

    def test_discard(self):
        assert ShellAdapter._decode(b'[{"a":1}]\n', ResultMode.DISCARD, "q") is None

    def test_bytes(self):
        assert ShellAdapter._decode(b"\xff", ResultMode.BYTES, "q") == b"\xff"

    def test_text(self):
        assert ShellAdapter._decode(b"caf\xc3\xa9", ResultMode.TEXT, "q") == "café"

    def test_parsed_empty(self):
        assert ShellAdapter._decode(b"", ResultMode.PARSED, "q") == []
        assert ShellAdapter._decode(b"\n", ResultMode.PARSED, "q") == []

    def test_parsed(self):
        assert ShellAdapter._decode(b'[{"a":1},\n{"a":2}]\n', ResultMode.PARSED, "q") == [{"a": 1}, {"a": 2}]

    def test_parse_failure(self):
        with pytest.raises(DecodeFault):
            ShellAdapter._decode(b"not json", ResultMode.PARSED, "q")


# ============================================================================
# Adapter
# ============================================================================


@pytest.fixture
def adapter(tmp_path):
    return ShellAdapter(
        shutil.which("sqlite3") or "sqlite3",
        [str(tmp_path / "adapter.db")],
        path=str(tmp_path / "adapter.db"),
    )


@requires_shell
class TestShellAdapter:
    """Test the adapter against a real shell."""

    @pytest.mark.asyncio
    async def test_stderr_becomes_query_fault(self, adapter):
        try:
            with pytest.raises(QueryFault) as exc_info:
                await adapter.exec("SELEC 1")
            assert "syntax error" in exc_info.value.message
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_dot_command(self, adapter):
        try:
            await adapter.exec("CREATE TABLE a (x); CREATE TABLE b (y)", ResultMode.DISCARD)
            tables = await adapter.exec(".tables", ResultMode.TEXT)
            assert tables.split() == ["a", "b"]
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_close_then_reuse(self, adapter):
        await adapter.exec("SELECT 1")
        first = adapter.pid
        await adapter.close()
        assert adapter.pid is None
        assert adapter.is_open is False

        await adapter.exec("SELECT 1")
        assert adapter.pid not in (None, first)
        await adapter.close()

    @pytest.mark.asyncio
    async def test_kill_then_respawn(self, adapter):
        await adapter.exec("SELECT 1")
        adapter.kill()
        # The next command spawns a fresh shell
        assert await adapter.exec("SELECT 2 AS two") == [{"two": 2}]
        await adapter.close()

    @pytest.mark.asyncio
    async def test_process_exit_mid_command(self, adapter):
        try:
            with pytest.raises(ProcessExitedFault):
                await adapter.exec(".exit 3")
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_init_script(self, tmp_path):
        path = str(tmp_path / "init.db")
        adapter = ShellAdapter(
            shutil.which("sqlite3"),
            [path],
            path=path,
            init_sql="PRAGMA user_version=7",
        )
        try:
            assert await adapter.exec("PRAGMA user_version") == [{"user_version": 7}]
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_failing_init_script_is_not_fatal(self, tmp_path):
        path = str(tmp_path / "init.db")
        adapter = ShellAdapter(shutil.which("sqlite3"), [path], path=path, init_sql="NOT SQL")
        try:
            assert await adapter.exec("SELECT 1 AS one") == [{"one": 1}]
        finally:
            await adapter.close()
