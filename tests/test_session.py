import io
import os
import asyncio

import pytest

from mep import ansi
from mep.capabilities import Capabilities
from mep.errors import UserCancelled, WidgetFatalError
from mep.session import (
    Session,
    SessionState,
    Prompt,
    get_active_session,
    get_default_escape_timeout,
)
from mep.term.input_keys import MouseEvent, DEFAULT_ESCAPE_TIMEOUT
from mep.term._context import TerminalContext
from mep.term._input_reader import _ReaderThread


CAPS = Capabilities(columns=80, interactive=True, unicode=True, mouse=True)


class Pipe:
    """A pipe to act as stdin, and a StringIO to act as stdout."""

    def __init__(self):
        r, self._w = os.pipe()
        self.stdin = os.fdopen(r, "rb", buffering=0)
        self.stdout = io.StringIO()

    def send(self, data):
        os.write(self._w, data)

    def close_input(self):
        if self._w is not None:
            os.close(self._w)
            self._w = None

    def close(self):
        self.close_input()
        self.stdin.close()

    def session(self, widget, **kwargs):
        kwargs.setdefault("capabilities", CAPS)
        kwargs.setdefault("escape_timeout", 0.01)
        return Session(widget, stdin=self.stdin, stdout=self.stdout, **kwargs)

    @property
    def output(self):
        return self.stdout.getvalue()


class RecordingPrompt(Prompt):
    """Records the keys it gets, and submits them on the given key."""

    def __init__(self, submit_on="enter"):
        super().__init__("record")
        self.submit_on = submit_on
        self.keys = []
        self.renders = 0
        self.cleanups = 0

    def render(self, first_render):
        self.renders += 1
        self.render_frame(f"keys: {len(self.keys)}")

    def handle_input(self, key, raw):
        self.keys.append((key, raw))
        if key == self.submit_on:
            self.submit([k for k, _ in self.keys])
        else:
            self.render(False)

    def cleanup(self):
        self.cleanups += 1


class MousePrompt(RecordingPrompt):
    def __init__(self, submit_on="enter"):
        super().__init__(submit_on)
        self.mice = []

    def handle_mouse(self, event):
        self.mice.append(event)


class FailingPrompt(RecordingPrompt):
    def __init__(self, fail_on_render=False):
        super().__init__()
        self.fail_on_render = fail_on_render

    def render(self, first_render):
        if self.fail_on_render:
            raise ValueError("oops in render")
        super().render(first_render)

    def handle_input(self, key, raw):
        if key == "x":
            raise ValueError("oops")
        super().handle_input(key, raw)


def run_async(func):
    """Run the coroutine function, and check that no session is left active."""
    asyncio.run(asyncio.wait_for(func(), 5))
    assert get_active_session() is None


def test_submit_resolves():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        assert session.state is SessionState.IDLE

        future = session.run()
        assert session.state is SessionState.ACTIVE
        assert get_active_session() is session
        assert session.terminal.entered
        assert widget.session is session
        assert widget.renders == 1

        pipe.send(b"ab\r")
        result = await future
        assert result == ["a", "b", "enter"]
        assert widget.keys[-1] == ("enter", b"\n")
        assert session.state is SessionState.RESOLVED
        assert widget.cleanups == 1
        assert not session.terminal.entered

        output = pipe.output
        assert output.startswith(ansi.HIDE_CURSOR)
        assert output.endswith(ansi.SHOW_CURSOR)
        assert "keys: 2" in output
        assert ansi.MOUSE_ON not in output  # widget does not handle mouse
        pipe.close()

    run_async(main)


def test_ctrl_c_rejects():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()

        pipe.send(b"a\x03b")
        with pytest.raises(UserCancelled):
            await future

        # The widget never saw the interrupt
        assert widget.keys == [("a", b"a")]
        assert session.state is SessionState.REJECTED
        assert widget.cleanups == 1
        assert not session.terminal.entered
        assert get_active_session() is None
        assert pipe.output.endswith(ansi.SHOW_CURSOR)
        pipe.close()

    run_async(main)



def test_ctrl_c_after_escape_rejects():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget, escape_timeout=1)
        future = session.run()

        pipe.send(b"\x1b\x03")
        with pytest.raises(UserCancelled):
            await future

        assert widget.keys == [("escape", b"\x1b")]
        assert session.state is SessionState.REJECTED
        pipe.close()

    run_async(main)

def test_widget_error_rejects():
    async def main():
        pipe = Pipe()
        widget = FailingPrompt()
        session = pipe.session(widget)
        future = session.run()

        pipe.send(b"ax")
        with pytest.raises(WidgetFatalError) as excinfo:
            await future

        assert isinstance(excinfo.value.error, ValueError)
        assert excinfo.value.__cause__ is excinfo.value.error
        assert "oops" in str(excinfo.value)
        assert session.state is SessionState.REJECTED
        assert widget.cleanups == 1
        assert not session.terminal.entered
        assert pipe.output.endswith(ansi.SHOW_CURSOR)
        pipe.close()

    run_async(main)


def test_widget_error_in_first_render():
    async def main():
        pipe = Pipe()
        widget = FailingPrompt(fail_on_render=True)
        session = pipe.session(widget)
        future = session.run()
        assert future.done()

        with pytest.raises(WidgetFatalError):
            await future
        assert session.state is SessionState.REJECTED
        assert not session.terminal.entered
        assert widget.cleanups == 1
        pipe.close()

    run_async(main)



def test_terminal_setup_error_rejects(monkeypatch):
    def hide_cursor(self):
        raise OSError("cannot write to terminal")

    monkeypatch.setattr(TerminalContext, "hide_cursor", hide_cursor)

    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()
        assert future.done()

        # Not a widget error, so not wrapped
        with pytest.raises(OSError, match="cannot write"):
            await future
        assert not isinstance(future.exception(), WidgetFatalError)
        assert widget.renders == 0
        assert widget.cleanups == 1
        assert session.state is SessionState.REJECTED
        assert not session.terminal.entered
        pipe.close()

    run_async(main)

def test_sequential_sessions():
    async def main():
        pipe = Pipe()

        widget1 = RecordingPrompt(submit_on="a")
        future = pipe.session(widget1).run()
        pipe.send(b"a")
        assert await future == ["a"]

        widget2 = RecordingPrompt(submit_on="b")
        future = pipe.session(widget2).run()
        pipe.send(b"b")
        assert await future == ["b"]

        # Each key went to exactly one widget
        assert widget1.keys == [("a", b"a")]
        assert widget2.keys == [("b", b"b")]
        pipe.close()

    run_async(main)



def test_sequential_sessions_with_reader_thread(monkeypatch):
    # Loops without add_reader (the proactor loop on Windows) use a thread
    def add_reader(*args):
        raise NotImplementedError()

    async def main():
        monkeypatch.setattr(asyncio.get_running_loop(), "add_reader", add_reader)
        pipe = Pipe()

        for key in ["a", "b", "c"]:
            widget = RecordingPrompt(submit_on=key)
            future = pipe.session(widget).run()
            pipe.send(key.encode())
            assert await future == [key]
            assert widget.keys == [(key, key.encode())]

        # Input that arrives in between goes to the next session
        pipe.send(b"x")
        await asyncio.sleep(0.05)
        widget = RecordingPrompt()
        future = pipe.session(widget).run()
        pipe.send(b"\r")
        assert await future == ["x", "enter"]

        # One thread serves all sessions, and ends when the input closes
        thread = _ReaderThread._threads[pipe.stdin.fileno()]
        pipe.close_input()
        thread.join(1)
        assert not thread.is_alive()
        assert pipe.stdin.fileno() not in _ReaderThread._threads
        pipe.close()

    run_async(main)


def test_reader_thread_eof_rejects(monkeypatch):
    def add_reader(*args):
        raise NotImplementedError()

    async def main():
        monkeypatch.setattr(asyncio.get_running_loop(), "add_reader", add_reader)
        pipe = Pipe()
        future = pipe.session(RecordingPrompt()).run()
        pipe.send(b"a")
        pipe.close_input()
        with pytest.raises(UserCancelled):
            await future
        pipe.close()

    run_async(main)

def test_one_session_at_a_time():
    async def main():
        pipe = Pipe()
        session1 = pipe.session(RecordingPrompt())
        future = session1.run()

        session2 = pipe.session(RecordingPrompt())
        with pytest.raises(RuntimeError):
            session2.run()
        assert session2.state is SessionState.IDLE

        # A session cannot be run twice
        with pytest.raises(RuntimeError):
            session1.run()

        pipe.send(b"\r")
        await future
        with pytest.raises(RuntimeError):
            session1.run()
        pipe.close()

    run_async(main)


def test_cleanup_is_idempotent():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()

        pipe.send(b"\r")
        await future
        output = pipe.output

        session.cleanup()
        session.cleanup()
        assert widget.cleanups == 1
        assert pipe.output == output

        # Late calls are ignored
        session.submit(42)
        session.cancel()
        widget.render_frame("late")
        assert session.state is SessionState.RESOLVED
        assert pipe.output == output
        pipe.close()

    run_async(main)


def test_explicit_cancel():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()

        session.cancel()
        with pytest.raises(UserCancelled):
            await future
        assert session.state is SessionState.REJECTED
        assert widget.cleanups == 1
        pipe.close()

    run_async(main)


def test_future_cancelled_by_caller():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()

        future.cancel()
        await asyncio.sleep(0)
        assert session.state is SessionState.REJECTED
        assert widget.cleanups == 1
        assert not session.terminal.entered
        pipe.close()

    run_async(main)


def test_input_closed_rejects():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        future = pipe.session(widget).run()

        pipe.send(b"a")
        pipe.close_input()
        with pytest.raises(UserCancelled) as excinfo:
            await future
        assert "closed" in str(excinfo.value)
        assert widget.keys == [("a", b"a")]
        pipe.close()

    run_async(main)


def test_escape_key():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        future = pipe.session(widget, escape_timeout=0.01).run()

        pipe.send(b"\x1b")
        await asyncio.sleep(0.1)
        assert widget.keys == [("escape", b"\x1b")]

        pipe.send(b"\x1b[A\r")
        assert await future == ["escape", "up", "enter"]
        pipe.close()

    run_async(main)


def test_mouse_dispatch():
    async def main():
        pipe = Pipe()
        widget = MousePrompt()
        future = pipe.session(widget).run()
        assert ansi.MOUSE_ON in pipe.output

        pipe.send(b"\x1b[<0;5;6M\x1b[<65;5;6M")
        await asyncio.sleep(0.05)
        pipe.send(b"\r")
        await future

        assert widget.mice == [
            MouseEvent(5, 6, 0, "press"),
            MouseEvent(5, 6, 0, "scroll", "down"),
        ]
        assert widget.keys == [("enter", b"\n")]
        assert pipe.output.endswith(ansi.MOUSE_OFF)
        pipe.close()

    run_async(main)


def test_mouse_can_be_disabled():
    async def main():
        pipe = Pipe()
        future = pipe.session(MousePrompt(), mouse=False).run()
        pipe.send(b"\r")
        await future
        assert ansi.MOUSE_ON not in pipe.output
        pipe.close()

        pipe = Pipe()
        caps = Capabilities(columns=80, mouse=False)
        future = pipe.session(MousePrompt(), capabilities=caps).run()
        pipe.send(b"\r")
        await future
        assert ansi.MOUSE_ON not in pipe.output
        pipe.close()

    run_async(main)


def test_not_interactive():
    async def main():
        pipe = Pipe()
        caps = Capabilities(columns=80, interactive=False)
        future = pipe.session(RecordingPrompt(), capabilities=caps).run()
        pipe.send(b"\r")
        await future
        assert ansi.HIDE_CURSOR not in pipe.output
        assert ansi.SHOW_CURSOR not in pipe.output
        pipe.close()

    run_async(main)


def test_suspend_and_resume():
    async def main():
        pipe = Pipe()
        outer = RecordingPrompt()
        session = pipe.session(outer)
        outer_future = session.run()

        session.suspend()
        assert session.suspended
        assert session.state is SessionState.ACTIVE
        assert get_active_session() is None
        assert not session.terminal.entered

        # Run a nested prompt
        inner = RecordingPrompt(submit_on="b")
        inner_future = pipe.session(inner).run()
        pipe.send(b"b")
        assert await inner_future == ["b"]

        renders = outer.renders
        session.resume()
        assert not session.suspended
        assert get_active_session() is session
        assert session.terminal.entered
        assert outer.renders == renders + 1

        pipe.send(b"\r")
        assert await outer_future == ["enter"]
        assert outer.keys == [("enter", b"\n")]
        assert inner.keys == [("b", b"b")]
        pipe.close()

    run_async(main)


def test_suspended_context():
    async def main():
        pipe = Pipe()
        widget = RecordingPrompt()
        session = pipe.session(widget)
        future = session.run()

        with session.suspended_context():
            assert session.suspended
            assert get_active_session() is None
        assert not session.suspended
        assert get_active_session() is session

        pipe.send(b"\r")
        await future
        pipe.close()

    run_async(main)


def test_prompt_without_session():
    widget = RecordingPrompt()
    assert widget.session is None
    with pytest.raises(RuntimeError):
        widget.render_frame("hi")
    with pytest.raises(RuntimeError):
        widget.submit(1)


def test_prompt_ask():
    pipe = Pipe()
    pipe.send(b"xy\r")
    widget = RecordingPrompt()
    result = widget.ask(stdin=pipe.stdin, stdout=pipe.stdout, capabilities=CAPS)
    assert result == ["x", "y", "enter"]
    assert get_active_session() is None
    pipe.close()


def test_escape_timeout_from_env(monkeypatch):
    monkeypatch.delenv("MEP_ESCAPE_TIMEOUT", raising=False)
    assert get_default_escape_timeout() == DEFAULT_ESCAPE_TIMEOUT

    monkeypatch.setenv("MEP_ESCAPE_TIMEOUT", "50")
    assert get_default_escape_timeout() == 0.05
    assert Session(RecordingPrompt()).escape_timeout == 0.05

    monkeypatch.setenv("MEP_ESCAPE_TIMEOUT", "fast")
    assert get_default_escape_timeout() == DEFAULT_ESCAPE_TIMEOUT


if __name__ == "__main__":
    test_submit_resolves()
    test_ctrl_c_rejects()
    test_suspend_and_resume()
