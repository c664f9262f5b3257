import enum
import asyncio
import logging
from collections import namedtuple
from codecs import getincrementaldecoder


logger = logging.getLogger("mep")

ESC = "\x1b"

# The time to wait after a lone escape char, before concluding that it's
# the escape key and not the start of an escape sequence. This is a heuristic:
# on a slow connection a sequence can be split over a longer time.
DEFAULT_ESCAPE_TIMEOUT = 0.020

# Sequences that grow beyond this are considered garbage.
MAX_SEQUENCE_LENGTH = 64

SCROLL_DIRECTIONS = ("up", "down", "left", "right")


# %% Events


class DecoderState(enum.Enum):
    NORMAL = "normal"
    ESCAPE_STARTED = "escape_started"
    CONTROL_SEQUENCE = "control_sequence"
    MOUSE_SEQUENCE = "mouse_sequence"


class KeyEvent(namedtuple("KeyEvent", ["sequence", "key"])):
    """A decoded key press.

    The ``sequence`` is the text as received (with carriage return normalized
    to line feed), and ``key`` is the normalized name, e.g. "a", "enter",
    "up", "alt+x". Sequences that we do not know are their own name.
    """

    __slots__ = ()

    @property
    def raw(self):
        """The sequence as bytes."""
        return self.sequence.encode("utf-8", errors="replace")


MouseEvent = namedtuple(
    "MouseEvent",
    ["x", "y", "button", "action", "scroll", "shift", "ctrl", "meta"],
    defaults=(None, False, False, False),
)
MouseEvent.__doc__ = """A decoded mouse report.

The action is "press", "release", "move" or "scroll". For scroll events the
scroll field is "up", "down", "left" or "right", and button is 0.
"""


# %% Decoder


class Subscription:
    """A handle on the events of an InputDecoder. Close it to stop receiving events."""

    def __init__(self, decoder, on_key=None, on_mouse=None, on_scroll=None):
        self._decoder = decoder
        self.on_key = on_key
        self.on_mouse = on_mouse
        self.on_scroll = on_scroll
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def close(self):
        """Stop receiving events. Can safely be called multiple times."""
        if not self._closed:
            self._closed = True
            self._decoder._remove_subscription(self)

    unsubscribe = close

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class InputDecoder:
    """A streaming decoder for key presses and mouse reports.

    Input can be fed in arbitrary chunks; an escape sequence that is split
    between calls to ``feed()`` resolves the same as when fed as a whole.
    Unknown or malformed sequences are emitted verbatim as a key event. The
    decoder never drops input and never raises on bad input.

    A lone escape char is emitted after ``escape_timeout`` seconds, using a
    timer on the running asyncio loop. Without a loop, it stays pending until
    more input arrives or ``flush()`` is called.

    An escape followed by a control char is emitted as two keys, so that
    ctrl+c always arrives as itself. When an escape is followed by another
    escape sequence, the first is emitted as the escape key.
    """

    def __init__(self, escape_timeout=DEFAULT_ESCAPE_TIMEOUT, loop=None):
        self.escape_timeout = escape_timeout
        self._loop = loop
        self._decode_utf8 = getincrementaldecoder("utf-8")(errors="replace").decode
        self._state = DecoderState.NORMAL
        self._buffer = ""
        self._timer = None
        self._subscriptions = []

    @property
    def state(self):
        """The current DecoderState."""
        return self._state

    def subscribe(self, on_key=None, on_mouse=None, on_scroll=None):
        """Subscribe to the decoded events. Returns a Subscription object.

        * on_key(event) is called with a KeyEvent.
        * on_mouse(event) is called with a MouseEvent.
        * on_scroll(direction) is called for scroll events, in addition to on_mouse.
        """
        subscription = Subscription(self, on_key, on_mouse, on_scroll)
        self._subscriptions.append(subscription)
        return subscription

    def _remove_subscription(self, subscription):
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def feed(self, data):
        """Decode the given bytes (or str)."""
        if isinstance(data, str):
            text = data
        else:
            text = self._decode_utf8(bytes(data))
        for c in text:
            self._process_char(c)

    def flush(self):
        """Resolve any pending input right now.

        A pending lone escape is emitted as the escape key, and an incomplete
        sequence is emitted verbatim.
        """
        self._cancel_timer()
        if self._state is DecoderState.ESCAPE_STARTED:
            self._emit_pending_escape()
        elif self._state is DecoderState.CONTROL_SEQUENCE:
            self._emit_verbatim(self._buffer)
        elif self._state is DecoderState.MOUSE_SEQUENCE:
            self._emit_verbatim(ESC + "[<" + self._buffer)

    def close(self):
        """Cancel the timer and drop all subscriptions."""
        self._cancel_timer()
        for subscription in list(self._subscriptions):
            subscription.close()

    # %% State machine

    def _process_char(self, c):
        state = self._state

        if state is DecoderState.NORMAL:
            if c == ESC:
                self._buffer = c
                self._state = DecoderState.ESCAPE_STARTED
                self._start_timer()
            else:
                self._emit_key(c)

        elif state is DecoderState.ESCAPE_STARTED:
            self._cancel_timer()
            if self._buffer == ESC + ESC:
                # The first escape was a key press of its own, unless
                # nothing follows (Windows sends esc esc for the escape key).
                if c == "[" or c == "O":
                    self._buffer = ESC + c
                    self._state = DecoderState.CONTROL_SEQUENCE
                    self._emit_key(ESC)
                elif c == ESC:
                    self._buffer = ESC
                    self._emit_key(ESC + ESC)
                    self._start_timer()
                else:
                    self._reset()
                    self._emit_key(ESC + ESC)
                    self._process_char(c)
            elif c == ESC:
                self._buffer += c
                self._start_timer()
            elif c == "[" or c == "O":
                self._buffer += c
                self._state = DecoderState.CONTROL_SEQUENCE
            elif c < " " and ESC + c not in KEY_NAMES:
                # Escape, then a control key (ctrl+c must never be swallowed)
                self._reset()
                self._emit_key(ESC)
                self._process_char(c)
            else:
                # Alt + key
                self._reset()
                self._emit_key(ESC + c)

        elif state is DecoderState.CONTROL_SEQUENCE:
            if c == "<" and self._buffer == ESC + "[":
                # SGR mouse report, we only need the parameters
                self._buffer = ""
                self._state = DecoderState.MOUSE_SEQUENCE
            elif c == "[" and self._buffer == ESC + "[":
                # Linux console function keys, e.g. ESC [ [ A
                self._buffer += c
            elif "\x40" <= c <= "\x7e":
                sequence = self._buffer + c
                self._reset()
                self._emit_key(sequence)
            elif c < " ":
                # A control char cannot be part of a sequence (and ctrl+c
                # must never be swallowed).
                self._emit_verbatim(self._buffer)
                self._process_char(c)
            else:
                self._buffer += c
                if len(self._buffer) > MAX_SEQUENCE_LENGTH:
                    self._emit_verbatim(self._buffer)

        elif state is DecoderState.MOUSE_SEQUENCE:
            if c == "M" or c == "m":
                params = self._buffer
                self._reset()
                self._emit_mouse(params, c)
            elif c < " ":
                self._emit_verbatim(ESC + "[<" + self._buffer)
                self._process_char(c)
            else:
                self._buffer += c
                if len(self._buffer) > MAX_SEQUENCE_LENGTH:
                    self._emit_verbatim(ESC + "[<" + self._buffer)

    def _reset(self):
        self._buffer = ""
        self._state = DecoderState.NORMAL

    def _start_timer(self):
        if self.escape_timeout is None:
            return
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return  # Resolved on next input or flush
        self._timer = loop.call_later(self.escape_timeout, self._on_timeout)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self):
        self._timer = None
        if self._state is DecoderState.ESCAPE_STARTED:
            self._emit_pending_escape()

    # %% Emitting

    def _emit_pending_escape(self):
        # A lone escape, or the double escape from a single press on Windows
        sequence = self._buffer
        self._reset()
        self._emit_key(sequence)

    def _emit_verbatim(self, sequence):
        logger.debug(f"Unrecognized input sequence {sequence!r}")
        self._reset()
        self._emit_key(sequence)

    def _emit_key(self, sequence):
        if sequence == "\r":
            sequence = "\n"
        event = KeyEvent(sequence, key_name(sequence))
        for subscription in list(self._subscriptions):
            if not subscription.closed and subscription.on_key is not None:
                subscription.on_key(event)

    def _emit_mouse(self, params, final):
        try:
            code, x, y = (int(p) for p in params.split(";"))
        except ValueError:
            self._emit_verbatim(ESC + "[<" + params + final)
            return

        shift = bool(code & 4)
        meta = bool(code & 8)
        ctrl = bool(code & 16)

        scroll = None
        if code & 64:
            scroll = SCROLL_DIRECTIONS[code & 3]
            event = MouseEvent(x, y, 0, "scroll", scroll, shift, ctrl, meta)
        else:
            if code & 32:
                action = "move"
            elif final == "m":
                action = "release"
            else:
                action = "press"
            event = MouseEvent(x, y, code & 3, action, None, shift, ctrl, meta)

        for subscription in list(self._subscriptions):
            if subscription.closed:
                continue
            if subscription.on_mouse is not None:
                subscription.on_mouse(event)
            if scroll and subscription.on_scroll is not None:
                if not subscription.closed:
                    subscription.on_scroll(scroll)


def key_name(sequence):
    """Get the normalized name for a decoded sequence."""
    name = KEY_NAMES.get(sequence)
    if name is not None:
        return name
    elif len(sequence) == 2 and sequence[0] == ESC:
        return "alt+" + key_name(sequence[1])
    else:
        return sequence


# %% A flat mapping of vt100 escape codes to key names

# This is based on the maps in the Textual and prompt_toolkit projects. Key
# names are plain strings. A meta-modified key is named "alt+<key>".

KEY_NAMES = {
    # Control keys.
    "\n": "enter",  # Carriage return is normalized to line feed
    "\x00": "ctrl+@",  # Control-At (Also for Ctrl-Space)
    "\x01": "ctrl+a",  # Control-A (home)
    "\x02": "ctrl+b",  # Control-B (emacs cursor left)
    "\x03": "ctrl+c",  # Control-C (interrupt)
    "\x04": "ctrl+d",  # Control-D (exit)
    "\x05": "ctrl+e",  # Control-E (end)
    "\x06": "ctrl+f",  # Control-F (cursor forward)
    "\x07": "ctrl+g",  # Control-G
    "\x08": "backspace",  # Control-H (8) (Identical to '\b')
    "\x09": "tab",  # Control-I (9) (Identical to '\t')
    "\x0b": "ctrl+k",  # Control-K (delete until end of line; vertical tab)
    "\x0c": "ctrl+l",  # Control-L (clear; form feed)
    "\x0e": "ctrl+n",  # Control-N (14) (history forward)
    "\x0f": "ctrl+o",  # Control-O (15)
    "\x10": "ctrl+p",  # Control-P (16) (history back)
    "\x11": "ctrl+q",  # Control-Q
    "\x12": "ctrl+r",  # Control-R (18) (reverse search)
    "\x13": "ctrl+s",  # Control-S (19) (forward search)
    "\x14": "ctrl+t",  # Control-T
    "\x15": "ctrl+u",  # Control-U
    "\x16": "ctrl+v",  # Control-V
    "\x17": "ctrl+w",  # Control-W
    "\x18": "ctrl+x",  # Control-X
    "\x19": "ctrl+y",  # Control-Y (25)
    "\x1a": "ctrl+z",  # Control-Z
    "\x1b": "escape",  # Also Control-[
    # Windows issues esc esc for a single press of escape key
    "\x1b\x1b": "escape",
    "\x1c": "ctrl+backslash",  # Both Control-\ (also Ctrl-| )
    "\x1d": "ctrl+right_square_bracket",  # Control-]
    "\x1e": "ctrl+circumflex_accent",  # Control-^
    "\x1f": "ctrl+underscore",  # Control-underscore (Also for Ctrl-hyphen.)
    # ASCII Delete (0x7f). Vt220 (and Linux terminal) send this when pressing
    # backspace. Most other terminals send ControlH.
    "\x7f": "backspace",
    "\x1b\x7f": "ctrl+w",
    # Various
    "\x1b[1~": "home",  # tmux
    "\x1b[2~": "insert",
    "\x1b[3~": "delete",
    "\x1b[4~": "end",  # tmux
    "\x1b[5~": "pageup",
    "\x1b[6~": "pagedown",
    "\x1b[7~": "home",  # xrvt
    "\x1b[8~": "end",  # xrvt
    "\x1b[Z": "shift+tab",  # shift + tab
    "\x1b\x09": "shift+tab",  # Linux console
    "\x1b[~": "shift+tab",  # Windows console
    # Function keys.
    "\x1bOP": "f1",
    "\x1bOQ": "f2",
    "\x1bOR": "f3",
    "\x1bOS": "f4",
    "\x1b[[A": "f1",  # Linux console.
    "\x1b[[B": "f2",  # Linux console.
    "\x1b[[C": "f3",  # Linux console.
    "\x1b[[D": "f4",  # Linux console.
    "\x1b[[E": "f5",  # Linux console.
    "\x1b[11~": "f1",  # rxvt-unicode
    "\x1b[12~": "f2",  # rxvt-unicode
    "\x1b[13~": "f3",  # rxvt-unicode
    "\x1b[14~": "f4",  # rxvt-unicode
    "\x1b[15~": "f5",
    "\x1b[17~": "f6",
    "\x1b[18~": "f7",
    "\x1b[19~": "f8",
    "\x1b[20~": "f9",
    "\x1b[21~": "f10",
    "\x1b[23~": "f11",
    "\x1b[24~": "f12",
    # Modified navigation keys.
    "\x1b[3;2~": "shift+delete",  # xterm, gnome-terminal.
    "\x1b[5;2~": "shift+pageup",
    "\x1b[6;2~": "shift+pagedown",
    "\x1b[3;3~": "alt+delete",
    "\x1b[5;3~": "alt+pageup",
    "\x1b[6;3~": "alt+pagedown",
    "\x1b[3;5~": "ctrl+delete",  # xterm, gnome-terminal.
    "\x1b[5;5~": "ctrl+pageup",
    "\x1b[6;5~": "ctrl+pagedown",
    # Tmux (Win32 subsystem) sends the following scroll events.
    "\x1b[62~": "scroll_up",
    "\x1b[63~": "scroll_down",
    # Arrows.
    # (Normal cursor mode).
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    # (Application cursor mode).
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1bOF": "end",
    "\x1bOH": "home",
    "\x1bOM": "enter",
    # Shift + arrows.
    "\x1b[1;2A": "shift+up",
    "\x1b[1;2B": "shift+down",
    "\x1b[1;2C": "shift+right",
    "\x1b[1;2D": "shift+left",
    "\x1b[1;2F": "shift+end",
    "\x1b[1;2H": "shift+home",
    # Shift+navigation in rxvt
    "\x1b[a": "shift+up",
    "\x1b[b": "shift+down",
    "\x1b[c": "shift+right",
    "\x1b[d": "shift+left",
    # Meta + arrow keys (xterm and gnome-terminal).
    "\x1b[1;3A": "alt+up",
    "\x1b[1;3B": "alt+down",
    "\x1b[1;3C": "alt+right",
    "\x1b[1;3D": "alt+left",
    "\x1b[1;3F": "alt+end",
    "\x1b[1;3H": "alt+home",
    # Meta + arrow on (some?) Macs when using iTerm defaults.
    "\x1b[1;9A": "alt+up",
    "\x1b[1;9B": "alt+down",
    "\x1b[1;9C": "alt+right",
    "\x1b[1;9D": "alt+left",
    # Control + arrows.
    "\x1b[1;5A": "ctrl+up",  # Cursor Mode
    "\x1b[1;5B": "ctrl+down",  # Cursor Mode
    "\x1b[1;5C": "ctrl+right",  # Cursor Mode
    "\x1b[1;5D": "ctrl+left",  # Cursor Mode
    "\x1bf": "ctrl+right",  # iTerm natural editing keys
    "\x1bb": "ctrl+left",  # iTerm natural editing keys
    "\x1b[1;5F": "ctrl+end",
    "\x1b[1;5H": "ctrl+home",
    # Tmux sends following keystrokes when control+arrow is pressed
    "\x1b[5A": "ctrl+up",
    "\x1b[5B": "ctrl+down",
    "\x1b[5C": "ctrl+right",
    "\x1b[5D": "ctrl+left",
    # Control arrow keys in rxvt
    "\x1bOa": "ctrl+up",
    "\x1bOb": "ctrl+down",
    "\x1bOc": "ctrl+right",
    "\x1bOd": "ctrl+left",
    # Control + shift + arrows.
    "\x1b[1;6A": "ctrl+shift+up",
    "\x1b[1;6B": "ctrl+shift+down",
    "\x1b[1;6C": "ctrl+shift+right",
    "\x1b[1;6D": "ctrl+shift+left",
    # CSI 27 modified "other" keys (xterm)
    "\x1b[27;2;13~": "shift+enter",
    "\x1b[27;5;13~": "ctrl+enter",
}
