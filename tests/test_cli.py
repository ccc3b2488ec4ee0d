"""Tests for nostail.cli module."""

import io
import logging

import pytest

from nostail import cli
from nostail.cli import MonitorConfig, create_parser, main, run_monitor
from nostail.display import Display
from nostail.errors import RelayError, TerminalError
from nostail.relay import NotificationStream, ShutdownNotification, StopNotification

from conftest import FakeKeySource, make_event_notification, output_lines


class FakePool:
    """Relay pool that replays prepared notifications."""

    def __init__(self, notifications=()):
        self.relays = []
        self.filters = None
        self.connected = False
        self.shutdown_calls = 0
        self.stream = None
        self._prepared = list(notifications)

    async def add_relay(self, url):
        if not url.startswith(("ws://", "wss://")):
            raise RelayError(f"invalid relay url {url!r}")
        self.relays.append(url)

    async def subscribe(self, filters):
        self.filters = list(filters)
        return "sub"

    def notifications(self, maxsize=1024):
        self.stream = NotificationStream(maxsize=maxsize)
        for notification in self._prepared:
            self.stream.publish(notification)
        return self.stream

    async def connect(self):
        self.connected = True

    async def shutdown(self):
        self.shutdown_calls += 1
        if self.stream is not None:
            self.stream.close()


class FakeRawTerminal:
    """Records acquisition and release instead of touching the terminal."""

    instances = []

    def __init__(self, fail=False):
        self.acquired = 0
        self.released = 0
        self.fail = fail
        FakeRawTerminal.instances.append(self)

    def __enter__(self):
        if self.fail:
            raise TerminalError("input is not a terminal (use --no-interactive)")
        self.acquired += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.released += 1
        return False


class FakeKeyReader(FakeKeySource):
    """Key source usable where cli expects a KeyReader."""

    keys = ()

    def __init__(self):
        super().__init__(FakeKeyReader.keys)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


@pytest.fixture
def fake_terminal(monkeypatch):
    FakeRawTerminal.instances = []
    FakeKeyReader.keys = ()
    monkeypatch.setattr(cli, "RawTerminal", FakeRawTerminal)
    monkeypatch.setattr(cli, "KeyReader", FakeKeyReader)
    return FakeRawTerminal


def config(**kwargs):
    kwargs.setdefault("relays", ["wss://relay.example.com"])
    kwargs.setdefault("interactive", False)
    return MonitorConfig(**kwargs)


class TestParser:
    """Test argument parsing."""

    def test_defaults(self):
        args = create_parser().parse_args(["-r", "wss://a.example"])
        cfg = MonitorConfig.from_args(args)
        assert cfg.relays == ["wss://a.example"]
        assert cfg.kinds == []
        assert not cfg.show_stats
        assert not cfg.show_content
        assert not cfg.show_tags
        assert cfg.interactive
        assert cfg.output_format == "plain"

    def test_all_options(self):
        args = create_parser().parse_args([
            "-r", "wss://a.example",
            "--relay", "wss://b.example",
            "-k", "1",
            "--kind", "7",
            "-s", "-c", "-t",
            "--format", "json",
            "--no-interactive",
        ])
        cfg = MonitorConfig.from_args(args)
        assert cfg.relays == ["wss://a.example", "wss://b.example"]
        assert cfg.kinds == [1, 7]
        assert cfg.show_stats
        assert cfg.show_content
        assert cfg.show_tags
        assert not cfg.interactive
        assert cfg.output_format == "json"

    @pytest.mark.parametrize("value", ["-1", "one", "1.5"])
    def test_invalid_kind(self, value):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-r", "wss://a.example", "-k", value])

    def test_invalid_format(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-r", "wss://a.example", "-f", "xml"])


class TestMain:
    """Test main() exit codes."""

    def test_no_relay_is_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
        assert "at least one relay" in capsys.readouterr().err

    def test_invalid_relay_url(self, capsys):
        assert main(["-r", "http://relay.example.com", "--no-interactive"]) == 1
        assert "Error: invalid relay url" in capsys.readouterr().err

    def test_terminal_error(self, monkeypatch, capsys):
        async def failing_run(cfg):
            raise TerminalError("input is not a terminal (use --no-interactive)")

        monkeypatch.setattr(cli, "run_monitor", failing_run)
        assert main(["-r", "wss://relay.example.com"]) == 1
        assert "not a terminal" in capsys.readouterr().err

    def test_show_tags_warns(self, monkeypatch, caplog):
        async def quiet_run(cfg):
            return 0

        monkeypatch.setattr(cli, "run_monitor", quiet_run)
        with caplog.at_level(logging.WARNING, logger="nostail.cli"):
            assert main(["-r", "wss://relay.example.com", "-t"]) == 0
        assert "--show-tags" in caplog.text


class TestRunMonitor:
    """Test run_monitor() with a fake relay pool."""

    @pytest.mark.asyncio
    async def test_events_until_shutdown(self, display, out):
        pool = FakePool([
            make_event_notification(kind=1, content="gm"),
            make_event_notification(kind=7, content="+"),
            ShutdownNotification(),
        ])
        code = await run_monitor(config(show_content=True), display=display, pool=pool)
        assert code == 0
        assert pool.connected
        assert pool.relays == ["wss://relay.example.com"]
        assert output_lines(out) == ["Kind 1 => gm", "Kind 7 => +"]
        assert pool.shutdown_calls == 1

    @pytest.mark.asyncio
    async def test_subscription_uses_kinds(self, display):
        pool = FakePool([ShutdownNotification()])
        await run_monitor(config(kinds=[7, 1]), display=display, pool=pool)
        (f,) = pool.filters
        assert f.kinds == frozenset({1, 7})

    @pytest.mark.asyncio
    async def test_stop_prints_notice_and_summary(self, display, out):
        pool = FakePool([
            make_event_notification(kind=3),
            make_event_notification(kind=1),
            make_event_notification(kind=3),
            StopNotification(),
        ])
        await run_monitor(config(show_stats=True), display=display, pool=pool)
        assert output_lines(out) == [
            "Kind 3",
            "Kind 1",
            "Kind 3",
            "stop!",
            "Kind 1 => seen: 1",
            "Kind 3 => seen: 2",
        ]

    @pytest.mark.asyncio
    async def test_invalid_relay_still_shuts_down(self, display):
        pool = FakePool()
        with pytest.raises(RelayError):
            await run_monitor(config(relays=["http://bad"]), display=display, pool=pool)
        assert pool.shutdown_calls == 1
        assert not pool.connected


class TestInteractiveRun:
    """Test run_monitor() with raw mode and keyboard control."""

    @pytest.mark.asyncio
    async def test_raw_mode_released_once(self, fake_terminal, out, err):
        display = Display(out=out, err=err)
        pool = FakePool([make_event_notification(kind=1), ShutdownNotification()])
        await run_monitor(config(interactive=True), display=display, pool=pool)

        (guard,) = fake_terminal.instances
        assert guard.acquired == 1
        assert guard.released == 1
        assert out.getvalue() == "Kind 1\r\n"
        assert display.line_ending == "\n"

    @pytest.mark.asyncio
    async def test_quit_key(self, fake_terminal, out, err):
        FakeKeyReader.keys = ("q",)
        display = Display(out=out, err=err)
        pool = FakePool()
        await run_monitor(config(interactive=True), display=display, pool=pool)

        (guard,) = fake_terminal.instances
        assert guard.released == 1
        assert pool.shutdown_calls == 1

    @pytest.mark.asyncio
    async def test_raw_mode_released_on_error(self, fake_terminal, monkeypatch, display):
        async def failing_run(self):
            raise RuntimeError("render failed")

        monkeypatch.setattr(cli.SessionController, "run", failing_run)
        pool = FakePool()
        with pytest.raises(RuntimeError, match="render failed"):
            await run_monitor(config(interactive=True), display=display, pool=pool)

        (guard,) = fake_terminal.instances
        assert guard.released == 1
        assert display.line_ending == "\n"
        assert pool.shutdown_calls == 1

    @pytest.mark.asyncio
    async def test_acquisition_failure(self, monkeypatch, display):
        monkeypatch.setattr(cli, "RawTerminal", lambda: FakeRawTerminal(fail=True))
        pool = FakePool()
        with pytest.raises(TerminalError):
            await run_monitor(config(interactive=True), display=display, pool=pool)
        assert pool.shutdown_calls == 1

    def test_log_line_ending_restored(self):
        handler = logging.StreamHandler(io.StringIO())
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            with cli._log_line_ending("\r\n"):
                assert handler.terminator == "\r\n"
            assert handler.terminator == "\n"
        finally:
            root.removeHandler(handler)
