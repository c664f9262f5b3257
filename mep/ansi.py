"""
Escape codes that mep writes to the terminal.

We limit ourselves to a sensible subset of vt100 / xterm, which is supported
by all modern terminals, including the Windows 10+ console and xterm.js.
"""

# Styles
RESET = "\x1b[0m"
BOLD = "\x1b[1m"
DIM = "\x1b[2m"
ITALIC = "\x1b[3m"
UNDERLINE = "\x1b[4m"

# Colors
FG_RED = "\x1b[31m"
FG_GREEN = "\x1b[32m"
FG_YELLOW = "\x1b[33m"
FG_CYAN = "\x1b[36m"
FG_WHITE = "\x1b[37m"
FG_GRAY = "\x1b[90m"

# Cursor & erasing
ERASE_LINE = "\x1b[2K"  # Clear current line
ERASE_DOWN = "\x1b[J"  # Clear from cursor to end of screen
CURSOR_LEFT = "\r"  # Move cursor to start of line
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"

# Mouse reporting, using the SGR extended format
MOUSE_ON = (
    "\x1b[?1000h"  # SET_VT200_MOUSE
    "\x1b[?1003h"  # SET_ANY_EVENT_MOUSE
    "\x1b[?1015h"  # SET_VT200_HIGHLIGHT_MOUSE
    "\x1b[?1006h"  # SET_SGR_EXT_MODE_MOUSE
)
MOUSE_OFF = "\x1b[?1000l\x1b[?1003l\x1b[?1015l\x1b[?1006l"


def cursor_up(n):
    """Move the cursor up n lines (nothing if n is zero)."""
    return f"\x1b[{n}A" if n > 0 else ""


def cursor_down(n):
    """Move the cursor down n lines (nothing if n is zero)."""
    return f"\x1b[{n}B" if n > 0 else ""
