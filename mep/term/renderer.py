"""
Incremental rendering of a block of lines at the bottom of the terminal.

The renderer remembers the previously rendered frame. On each render it moves
the cursor to the top of that frame and only rewrites the lines that changed.
Lines are truncated to the terminal width, so that one logical line always
occupies exactly one row. Between renders, the cursor rests on the last line
of the frame.
"""

import logging

from .. import ansi
from ..text import truncate


logger = logging.getLogger("mep")


class FrameRenderer:
    """Produce the minimal update to go from the previous frame to a new one."""

    def __init__(self):
        self._lines = []
        self._width = None
        self._full_redraws = 0

    @property
    def lines(self):
        """The lines of the current frame (after truncation)."""
        return list(self._lines)

    @property
    def height(self):
        """The number of lines in the current frame."""
        return len(self._lines)

    @property
    def full_redraws(self):
        """The number of times that a full redraw was performed."""
        return self._full_redraws

    def invalidate(self):
        """Make the next render a full redraw of the current block."""
        self._width = None

    def forget(self):
        """Forget the current frame, e.g. because it was scrolled away.

        The next render starts on the current line.
        """
        self._lines = []
        self._width = None

    def clear(self):
        """Get the output to erase the current frame, and forget it.

        The cursor ends at the start of where the frame was.
        """
        out = ""
        if self._lines:
            out = ansi.cursor_up(len(self._lines) - 1) + "\r" + ansi.ERASE_DOWN
        self.forget()
        return out

    def render(self, text, width):
        """Get the output to update the terminal to show the given text.

        The text can contain multiple lines and style escape codes.
        """
        width = width or 80
        new_lines = [truncate(line, width) for line in text.split("\n")]
        old_lines = self._lines

        out = []

        # Go to the start of the previous frame
        if old_lines:
            out.append(ansi.cursor_up(len(old_lines) - 1))
        out.append("\r")

        # Lines truncated at another width cannot be compared
        full = bool(old_lines) and width != self._width
        if full:
            self._full_redraws += 1
            logger.debug(f"full redraw at width {width}")
            out.append(ansi.ERASE_DOWN)
            old_lines = []

        # Write changed lines, pass over unchanged ones
        for i, line in enumerate(new_lines):
            if i > 0:
                out.append("\n")
            if i >= len(old_lines) or line != old_lines[i]:
                out.append(ansi.ERASE_LINE)
                out.append(line)

        # When the frame shrinks, the cursor is on the last new line, which may
        # have been passed over without writing. Step past it before erasing.
        if len(new_lines) < len(old_lines):
            out.append("\n")
            out.append(ansi.ERASE_DOWN)
            out.append(ansi.cursor_up(1))

        self._lines = new_lines
        self._width = width
        return "".join(out)
