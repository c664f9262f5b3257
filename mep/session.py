"""
The session controller and the base class for prompts (widgets).

A session is created for each run of a prompt. It owns the terminal while
it is active: it puts the input in raw mode, decodes key presses and mouse
reports, hands them to the widget, and renders the widget's frames. When
the widget submits a value, or the user presses ctrl+c, the terminal is
restored and the future that ``run()`` returned is settled.
"""

import os
import enum
import asyncio
import logging
import contextlib

from .errors import UserCancelled, WidgetFatalError
from .capabilities import detect_capabilities, get_columns
from .term import TerminalContext, InputReader, InputDecoder, FrameRenderer
from .term.input_keys import DEFAULT_ESCAPE_TIMEOUT


logger = logging.getLogger("mep")

INTERRUPT_SEQUENCE = "\x03"  # ctrl+c

# The session that currently consumes the input stream. There can be only one.
_active_session = None


class SessionState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    RESOLVED = "resolved"
    REJECTED = "rejected"


def get_active_session():
    """Get the session that currently owns the terminal input, or None."""
    return _active_session


def get_default_escape_timeout():
    """Get the escape timeout in seconds.

    Can be set in milliseconds with the MEP_ESCAPE_TIMEOUT environment variable.
    """
    value = os.environ.get("MEP_ESCAPE_TIMEOUT", "")
    if value:
        try:
            return float(value) / 1000
        except ValueError:
            logger.warning(f"Ignoring invalid MEP_ESCAPE_TIMEOUT: {value!r}")
    return DEFAULT_ESCAPE_TIMEOUT


class Session:
    """Manages the terminal for a single run of a widget.

    Parameters:
        widget: the Prompt to run.
        stdin: the input file (default ``sys.__stdin__``).
        stdout: the output file (default ``sys.__stdout__``).
        capabilities: a Capabilities tuple (default detected from the environment).
        escape_timeout: seconds to wait before a lone escape is a key press.
        mouse: whether to enable mouse reporting (default from capabilities).
            Only applies to widgets that implement ``handle_mouse()``.

    Constructing a session has no side effects. Call ``run()`` from
    within a running asyncio loop to start it.
    """

    def __init__(
        self,
        widget,
        stdin=None,
        stdout=None,
        capabilities=None,
        escape_timeout=None,
        mouse=None,
    ):
        self.widget = widget
        self._stdin = stdin
        self._stdout = stdout
        self._capabilities = capabilities
        if escape_timeout is None:
            escape_timeout = get_default_escape_timeout()
        self.escape_timeout = escape_timeout
        self._mouse = mouse

        self._state = SessionState.IDLE
        self._future = None
        self._loop = None
        self._terminal = None
        self._decoder = None
        self._reader = None
        self._subscription = None
        self._renderer = FrameRenderer()
        self._suspended = False
        self._cleaned_up = False

    @property
    def state(self):
        """The SessionState."""
        return self._state

    @property
    def future(self):
        """The future returned by ``run()``, or None if not yet running."""
        return self._future

    @property
    def terminal(self):
        """The TerminalContext, or None if not yet running."""
        return self._terminal

    @property
    def renderer(self):
        return self._renderer

    @property
    def capabilities(self):
        return self._capabilities

    @property
    def suspended(self):
        return self._suspended

    # %% Lifecycle

    def run(self):
        """Start the session. Returns a future that resolves to the submitted value.

        The future is rejected with UserCancelled on ctrl+c, or with
        WidgetFatalError if the widget raises an error. If the terminal
        cannot be set up, it is rejected with that error.
        """
        global _active_session

        if self._state is not SessionState.IDLE:
            raise RuntimeError("A session can only be run once.")
        if _active_session is not None:
            raise RuntimeError("Another session is using the terminal input.")

        self._loop = asyncio.get_running_loop()
        self._capabilities = self._capabilities or detect_capabilities(self._stdout)
        self._terminal = TerminalContext(stdin=self._stdin, stdout=self._stdout)
        if self._terminal.fd_in is None:
            raise ValueError(
                "Cannot read from input without file descriptor: "
                f"{self._terminal.stdin}"
            )

        self._future = self._loop.create_future()
        self._future.add_done_callback(self._on_future_done)
        self._state = SessionState.ACTIVE
        _active_session = self
        logger.info(f"session started for {self.widget.__class__.__name__}")

        if isinstance(self.widget, Prompt):
            self.widget._session = self

        try:
            self._acquire_terminal()
        except Exception as err:
            self._reject_setup(err)
            return self._future
        try:
            self.widget.render(True)
        except Exception as err:
            self._fail(err)
            return self._future

        # The first render may already have submitted
        if self._state is SessionState.ACTIVE:
            self._subscribe()
        return self._future

    def submit(self, value):
        """Restore the terminal and resolve the future with the given value."""
        if self._state is not SessionState.ACTIVE:
            state = self._state.value
            logger.warning(f"Ignoring submit() on a session that is {state}.")
            return
        logger.info("session submitted")
        # Move below the frame, so subsequent output does not overwrite it
        if not self._suspended:
            self._write("\n")
        self.cleanup()
        self._state = SessionState.RESOLVED
        if not self._future.done():
            self._future.set_result(value)

    def cancel(self):
        """Restore the terminal and reject the future with UserCancelled."""
        self._reject(UserCancelled())

    def cleanup(self):
        """Release the input stream and restore the terminal.

        Calls the widget's ``cleanup()`` too. Can safely be called multiple
        times; only the first call has effect.
        """
        global _active_session

        if self._cleaned_up:
            return
        self._cleaned_up = True

        self._unsubscribe()
        if self._terminal is not None and not self._suspended:
            self._release_terminal()
        if _active_session is self:
            _active_session = None

        widget_cleanup = getattr(self.widget, "cleanup", None)
        if callable(widget_cleanup):
            try:
                widget_cleanup()
            except Exception as err:
                name = self.widget.__class__.__name__
                logger.error(f"Error in cleanup of {name}: {err}")
        logger.info("session cleaned up")

    def _reject(self, error):
        if self._state is not SessionState.ACTIVE:
            return
        self.cleanup()
        self._state = SessionState.REJECTED
        if not self._future.done():
            self._future.set_exception(error)

    def _fail(self, err):
        logger.error(f"Error in {self.widget.__class__.__name__}: {err}")
        error = WidgetFatalError(err)
        error.__cause__ = err
        self._reject(error)

    def _reject_setup(self, err):
        # Not a widget error, so the caller gets the error itself
        logger.error(f"Could not set up the terminal: {err}")
        self._reject(err)

    def _on_future_done(self, future):
        # The caller cancelled the await
        if future.cancelled() and self._state is SessionState.ACTIVE:
            logger.info("session future was cancelled")
            self.cleanup()
            self._state = SessionState.REJECTED

    # %% Terminal and input

    def _acquire_terminal(self):
        self._terminal.__enter__()
        if self._capabilities.interactive:
            self._terminal.hide_cursor()
        if self._wants_mouse():
            self._terminal.enable_mouse_support()

    def _release_terminal(self):
        if self._capabilities.interactive:
            self._terminal.show_cursor()
        self._terminal.reset()

    def _wants_mouse(self):
        mouse = self._capabilities.mouse if self._mouse is None else self._mouse
        return bool(mouse) and callable(getattr(self.widget, "handle_mouse", None))

    def _subscribe(self):
        self._decoder = InputDecoder(self.escape_timeout, loop=self._loop)
        self._subscription = self._decoder.subscribe(
            on_key=self._on_key, on_mouse=self._on_mouse
        )
        self._reader = InputReader(
            self._terminal.fd_in, self._decoder, on_eof=self._on_eof, loop=self._loop
        )
        self._reader.start()

    def _unsubscribe(self):
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._reader is not None:
            self._reader.stop()
            self._reader = None
        if self._decoder is not None:
            self._decoder.close()
            self._decoder = None

    def _on_key(self, event):
        if self._state is not SessionState.ACTIVE:
            return
        # Global interrupt, cannot be handled by the widget
        if event.sequence == INTERRUPT_SEQUENCE:
            logger.info("session interrupted")
            self._reject(UserCancelled())
            return
        try:
            self.widget.handle_input(event.key, event.raw)
        except Exception as err:
            self._fail(err)

    def _on_mouse(self, event):
        if self._state is not SessionState.ACTIVE:
            return
        handle_mouse = getattr(self.widget, "handle_mouse", None)
        if handle_mouse is None:
            return
        try:
            handle_mouse(event)
        except Exception as err:
            self._fail(err)

    def _on_eof(self):
        logger.info("input stream closed")
        self._reject(UserCancelled("Input stream closed"))

    # %% Nested use

    def suspend(self):
        """Release the input and restore the terminal, without ending the session.

        Use this to run a nested prompt, or to hand the terminal to another
        process. Call ``resume()`` afterwards.
        """
        global _active_session

        if self._state is not SessionState.ACTIVE or self._suspended:
            return
        logger.info("session suspended")
        self._unsubscribe()
        self._write("\n")
        self._release_terminal()
        self._suspended = True
        if _active_session is self:
            _active_session = None

    def resume(self):
        """Take the terminal back after ``suspend()``, and render the widget again."""
        global _active_session

        if self._state is not SessionState.ACTIVE or not self._suspended:
            return
        if _active_session is not None:
            raise RuntimeError("Another session is using the terminal input.")
        logger.info("session resumed")
        self._suspended = False
        _active_session = self
        # Whatever happened in between is below our frame; start fresh
        self._renderer.forget()
        try:
            self._acquire_terminal()
        except Exception as err:
            self._reject_setup(err)
            return
        try:
            self.widget.render(False)
        except Exception as err:
            self._fail(err)
            return
        if self._state is SessionState.ACTIVE:
            self._subscribe()

    @contextlib.contextmanager
    def suspended_context(self):
        """Context manager to ``suspend()`` and ``resume()``."""
        self.suspend()
        try:
            yield self
        finally:
            self.resume()

    # %% Rendering

    def _write(self, text):
        if text:
            self._terminal.write(text)
            self._terminal.flush()

    def render_frame(self, text):
        """Render the given text as the new frame, rewriting only the changed lines."""
        if self._state is not SessionState.ACTIVE or self._suspended:
            state = self._state.value
            logger.debug(f"Ignoring render_frame() on a session that is {state}.")
            return
        if self._capabilities.columns:
            width = self._capabilities.columns
        else:
            width = self._terminal.get_size().columns or get_columns(None)
        self._write(self._renderer.render(text, width))


class Prompt:
    """Base class for widgets.

    Subclasses must implement ``render(first_render)`` and
    ``handle_input(key, raw)``, and can implement ``handle_mouse(event)``
    to receive mouse events. A widget only changes its own state, and calls
    ``render_frame(text)`` to show it and ``submit(value)`` when done.
    Widgets that hold extra resources can override ``cleanup()``.
    """

    def __init__(self, message="", **options):
        self.message = message
        self.options = options
        self._session = None

    @property
    def session(self):
        """The current (or last) Session running this prompt."""
        return self._session

    def render(self, first_render):
        """Render the widget, by calling ``render_frame()``."""
        raise NotImplementedError()

    def handle_input(self, key, raw):
        """Handle a key press.

        The key is the normalized name ("a", "enter", "up", "alt+x") and
        raw is the received sequence as bytes.
        """
        raise NotImplementedError()

    def submit(self, value):
        self._require_session().submit(value)

    def render_frame(self, text):
        self._require_session().render_frame(text)

    def cleanup(self):
        """Called once when the session ends. Override to release resources."""
        pass

    def _require_session(self):
        if self._session is None:
            raise RuntimeError(f"{self.__class__.__name__} is not running.")
        return self._session

    def run(self, **kwargs):
        """Run this prompt in a new Session. Returns a future.

        Must be called from within a running asyncio loop. The keyword
        arguments are passed to the Session.
        """
        return Session(self, **kwargs).run()

    def ask(self, **kwargs):
        """Run this prompt and block until it's done. Returns the submitted value."""

        async def _ask():
            return await self.run(**kwargs)

        return asyncio.run(_ask())
