"""
Console / OutputSink tests.
Run with: python -m pytest tests/test_sink.py -v
"""

import asyncio
import threading

import pytest

from playbox.errors import SinkClosedError
from playbox.process.sink import STDERR, STDOUT, Console, OutputSink, TerminalConsole


class TestOutputSink:
    def test_tagged_appends_share_console(self):
        console = Console()
        out = OutputSink(console, STDOUT)
        err = OutputSink(console, STDERR)
        out.write_string("$ go build\n")
        err.write(b"error: boom\n")
        out.write(b"done\n")

        lines = console.history()
        assert [(l.tag, l.text) for l in lines] == [
            (STDOUT, "$ go build\n"),
            (STDERR, "error: boom\n"),
            (STDOUT, "done\n"),
        ]
        assert [l.seq for l in lines] == [1, 2, 3]
        assert console.text(STDERR) == "error: boom\n"

    def test_write_returns_byte_count(self):
        sink = OutputSink(Console())
        assert sink.write(b"abc") == 3
        assert sink.write_string("hé") == 2

    def test_split_multibyte_character(self):
        console = Console()
        sink = OutputSink(console)
        encoded = "世界\n".encode("utf-8")
        sink.write(encoded[:2])
        sink.write(encoded[2:])
        assert console.text() == "世界\n"
        assert "�" not in console.text()

    def test_flush_emits_dangling_bytes(self):
        console = Console()
        sink = OutputSink(console)
        sink.write(b"ok\xe4")
        sink.flush()
        assert console.text() == "ok�"

    def test_closed_console_errors(self):
        console = Console()
        console.close()
        with pytest.raises(SinkClosedError):
            OutputSink(console).write_string("late\n")


class TestConsole:
    def test_history_is_bounded(self):
        console = Console(history_lines=3)
        for i in range(5):
            console.append(STDOUT, f"{i}\n")
        assert console.text() == "2\n3\n4\n"

    def test_concurrent_writers_do_not_tear_lines(self):
        console = Console(history_lines=10_000)
        sinks = [OutputSink(console, STDOUT), OutputSink(console, STDERR)]

        def writer(sink, n):
            for i in range(500):
                sink.write_string(f"{sink.tag}-{n}-{i}\n")

        threads = [threading.Thread(target=writer, args=(sinks[n % 2], n)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = console.history()
        assert len(lines) == 2000
        assert all(l.text.startswith(l.tag + "-") and l.text.endswith("\n") for l in lines)
        assert [l.seq for l in lines] == list(range(1, 2001))

    @pytest.mark.asyncio
    async def test_subscriber_receives_lines_and_loading(self):
        console = Console()
        queue = console.subscribe()
        console.set_loading(True)
        console.append(STDOUT, "hi\n")
        console.set_loading(False)

        events = [await asyncio.wait_for(queue.get(), 1) for _ in range(3)]
        assert events[0] == ("loading", True)
        assert events[1][0] == "line" and events[1][1].text == "hi\n"
        assert events[2] == ("loading", False)

    @pytest.mark.asyncio
    async def test_close_signals_subscribers(self):
        console = Console()
        queue = console.subscribe()
        console.close()
        assert await asyncio.wait_for(queue.get(), 1) is None
        late = console.subscribe()
        assert late.get_nowait() is None

    @pytest.mark.asyncio
    async def test_full_subscriber_drops_instead_of_blocking(self):
        console = Console(subscriber_queue_size=2)
        queue = console.subscribe()
        for i in range(5):
            console.append(STDOUT, f"{i}\n")
        await asyncio.sleep(0.01)
        assert queue.qsize() == 2
        assert len(console.history()) == 5

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        console = Console()
        queue = console.subscribe()
        console.unsubscribe(queue)
        console.append(STDOUT, "x\n")
        await asyncio.sleep(0.01)
        assert queue.empty()


class TestTerminalConsole:
    def test_echoes_by_tag(self, capsys):
        console = TerminalConsole()
        OutputSink(console, STDOUT).write_string("to out\n")
        OutputSink(console, STDERR).write_string("to err\n")
        captured = capsys.readouterr()
        assert captured.out == "to out\n"
        assert captured.err == "to err\n"
