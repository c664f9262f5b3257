import io
import os
import sys
import shutil
import logging

from .. import ansi


logger = logging.getLogger("mep")


class TerminalContext:
    """Base class for a simple terminal context.

    Instantiating this class produces a class corresponding with the
    current platform. Entering the context puts the input in raw mode, and
    exiting restores the mode it had before. When the input is not a tty
    (e.g. a pipe) the mode is left alone.
    """

    def __new__(cls, **kwargs):
        # Select terminal class
        if sys.platform.startswith("win"):
            from ._context_windows import WindowsTerminalContext as TerminalContext
        else:
            from ._context_unix import UnixTerminalContext as TerminalContext
        return super().__new__(TerminalContext)

    def __init__(self, stdin=None, stdout=None):

        self._entered = False
        self._mouse_enabled = False

        self.stdin = stdin or sys.__stdin__
        self.stdout = stdout or sys.__stdout__
        self.fd_in = _get_fileno(self.stdin)
        self.fd_out = _get_fileno(self.stdout)

        self.isatty = self.fd_in is not None and os.isatty(self.fd_in)

    @property
    def entered(self):
        """Whether the context is active, i.e. the input is in raw mode."""
        return self._entered

    def __enter__(self):
        if self._entered:
            raise RuntimeError("Can only enter the context state once.")
        # Warn if it looks like this is not a terminal
        if not self.isatty:
            logger.warning(f"Input is not a tty: {self.stdin}")
        self._entered = True
        if self.isatty:
            self._store_terminal_mode()
            self._set_terminal_mode()
        return self

    def __exit__(self, *args):
        self.reset()

    def reset(self):
        """Reset the terminal to the state it was when the context was entered.

        Can safely be called multiple times.
        """
        if self._mouse_enabled:
            self.disable_mouse_support()
        if self._entered:
            self._entered = False
            if self.isatty:
                self._reset_terminal_mode()

    def write(self, text):
        self.stdout.write(text)

    def flush(self):
        self.stdout.flush()

    def get_size(self):
        """Get the (estimate) terminal size."""
        # This should work on both Unix and Windows, but the subclasses
        # can nevertheless override this, e.g. if they keep track of
        # resizes already.
        return shutil.get_terminal_size()

    def hide_cursor(self):
        self.write(ansi.HIDE_CURSOR)
        self.flush()

    def show_cursor(self):
        self.write(ansi.SHOW_CURSOR)
        self.flush()

    def enable_mouse_support(self):
        """Enable reporting of mouse events."""
        self.write(ansi.MOUSE_ON)
        self.flush()
        self._mouse_enabled = True

    def disable_mouse_support(self):
        """Disable reporting of mouse events."""
        self.write(ansi.MOUSE_OFF)
        self.flush()
        self._mouse_enabled = False

    # For subclasses to implement

    def _store_terminal_mode(self):
        raise NotImplementedError()

    def _set_terminal_mode(self):
        raise NotImplementedError()

    def _reset_terminal_mode(self):
        raise NotImplementedError()


def _get_fileno(f):
    try:
        return f.fileno()
    except (AttributeError, ValueError, io.UnsupportedOperation):
        return None
