"""
A few basic prompts, built on the Prompt base class.
"""

from . import ansi
from .session import Prompt
from .text import split_graphemes
from .theme import theme


UNICODE_SYMBOLS = {"tick": "✔", "cross": "✖", "pointer": "❯"}
ASCII_SYMBOLS = {"tick": "+", "cross": "x", "pointer": ">"}


class BasePrompt(Prompt):
    """Prompt with some shared helpers for styling."""

    def symbol(self, name):
        session = self.session
        if session is not None and session.capabilities is not None:
            if not session.capabilities.unicode:
                return ASCII_SYMBOLS[name]
        return UNICODE_SYMBOLS[name]

    def header(self, done=False):
        mark = self.symbol("tick") if done else "?"
        title = f"{theme['title']}{self.message}{ansi.RESET}"
        return f"{theme['success']}{mark}{ansi.RESET} {title} "


class ConfirmPrompt(BasePrompt):
    """Ask a yes/no question."""

    def __init__(self, message="", initial=True, **options):
        super().__init__(message, **options)
        self.value = bool(initial)

    def render(self, first_render, done=False):
        if self.value:
            hint = f"{ansi.BOLD}Yes{ansi.RESET}{theme['muted']}/no"
        else:
            hint = f"yes/{ansi.BOLD}No{ansi.RESET}{theme['muted']}"
        text = self.header(done)
        if done:
            text += f"{theme['main']}{'Yes' if self.value else 'No'}{ansi.RESET}"
        else:
            text += f"{theme['muted']}({hint}){ansi.RESET}"
        self.render_frame(text)

    def handle_input(self, key, raw):
        key = key.lower()
        if key == "enter":
            self.render(False, done=True)
            self.submit(self.value)
            return
        elif key == "y":
            self.value = True
        elif key == "n":
            self.value = False
        elif key in ("left", "right", "tab"):
            self.value = not self.value
        else:
            return  # ignore
        self.render(False)


class TextPrompt(BasePrompt):
    """Ask for a line of text, with history and optional validation.

    The text is stored as the part left of the cursor (in1) and the part
    right of the cursor (in2).
    """

    def __init__(
        self,
        message="",
        initial="",
        placeholder="",
        validate=None,
        password=False,
        history=None,
        **options,
    ):
        super().__init__(message, **options)
        self._in1 = initial
        self._in2 = ""
        self._placeholder = placeholder
        self._validate = validate
        self._password = password
        self._error = ""
        self.history = history if history is not None else HistoryHelper()

    @property
    def value(self):
        return self._in1 + self._in2

    def _mask(self, text):
        if self._password:
            return "*" * len(split_graphemes(text))
        return text

    def render(self, first_render, done=False):
        text = self.header(done)
        if done:
            text += f"{theme['main']}{self._mask(self.value)}{ansi.RESET}"
        elif not self.value and self._placeholder:
            text += f"{ansi.UNDERLINE}{theme['muted']}{self._placeholder}{ansi.RESET}"
        else:
            # Draw our own cursor, the real one is hidden
            in2 = split_graphemes(self._mask(self._in2))
            under_cursor = in2[0] if in2 else " "
            text += self._mask(self._in1)
            text += f"\x1b[7m{under_cursor}{ansi.RESET}"
            text += "".join(in2[1:])
        if self._error and not done:
            error = f"{self.symbol('cross')} {self._error}"
            text += f"\n{theme['error']}{error}{ansi.RESET}"
        self.render_frame(text)

    def handle_input(self, key, raw):

        # Reset helpers, apply if necessary
        if key not in ["up", "down"]:
            self.history.reset()

        if len(key) == 1 and key.isprintable():
            # A regular character
            self._in1 += key
        elif key == "backspace":
            if self._in1:
                self._in1 = "".join(split_graphemes(self._in1)[:-1])
        elif key == "delete":
            if self._in2:
                self._in2 = "".join(split_graphemes(self._in2)[1:])
        elif key == "enter":
            self._try_submit()
            return
        elif key == "left":
            if self._in1:
                clusters = split_graphemes(self._in1)
                self._in2 = clusters[-1] + self._in2
                self._in1 = "".join(clusters[:-1])
        elif key == "right":
            if self._in2:
                clusters = split_graphemes(self._in2)
                self._in1 += clusters[0]
                self._in2 = "".join(clusters[1:])
        elif key in ("home", "ctrl+a"):
            self._in1, self._in2 = "", self._in1 + self._in2
        elif key in ("end", "ctrl+e"):
            self._in1, self._in2 = self._in1 + self._in2, ""
        elif key == "up":
            if not self.history.active:
                self.history.activate(self._in1, self._in2)
                self._in2 = ""
            self._in1 = self.history.up()
        elif key == "down":
            if self.history.active:
                self._in1 = self.history.down()
        else:
            return  # ignore

        self._error = ""
        self.render(False)

    def _try_submit(self):
        value = self.value
        if self._validate is not None:
            result = self._validate(value)
            if result is not True and result is not None:
                self._error = result if isinstance(result, str) else "Invalid input"
                self.render(False)
                return
        self._error = ""
        self.render(False, done=True)
        self.history.add(value)
        self.history.reset()
        self.submit(value)


class SelectPrompt(BasePrompt):
    """Select one of a list of choices, using the arrow keys or the mouse wheel.

    Choices can be strings or (title, value) tuples.
    """

    def __init__(self, message="", choices=(), page_size=7, **options):
        super().__init__(message, **options)
        self._choices = []
        for choice in choices:
            if isinstance(choice, (tuple, list)):
                self._choices.append((str(choice[0]), choice[1]))
            else:
                self._choices.append((str(choice), choice))
        if not self._choices:
            raise ValueError("SelectPrompt needs at least one choice.")
        self._list = ListView(page_size)
        self._list.show([title for title, _ in self._choices])
        self._list.select(0)

    @property
    def index(self):
        return self._list.index

    def render(self, first_render, done=False):
        if done:
            title = self._choices[self._list.index][0]
            self.render_frame(self.header(True) + f"{theme['main']}{title}{ansi.RESET}")
            return
        lines = [self.header()]
        lines += self._list.get_lines(pointer=self.symbol("pointer"))
        self.render_frame("\n".join(lines))

    def handle_input(self, key, raw):
        if key in ("up", "shift+tab", "k"):
            self._list.up()
        elif key in ("down", "tab", "j"):
            self._list.down()
        elif key == "enter":
            self.render(False, done=True)
            self.submit(self._choices[self._list.index][1])
            return
        else:
            return  # ignore
        self.render(False)

    def handle_mouse(self, event):
        if event.action != "scroll":
            return
        if event.scroll == "up":
            self._list.up()
        elif event.scroll == "down":
            self._list.down()
        else:
            return
        self.render(False)


class HistoryHelper:
    """Remembers submitted values, to recall them with the up and down keys.

    While browsing, only entries that start with the text left of the cursor
    are shown. The prefix is compared per grapheme, so that e.g. "e" does not
    match an "é" that is written as "e" plus a combining accent.
    """

    max_size = 100

    def __init__(self):
        self._entries = []
        self.reset()

    @property
    def entries(self):
        """The remembered values, oldest first."""
        return list(self._entries)

    @property
    def active(self):
        return self._prefix is not None

    def reset(self):
        """Stop browsing."""
        self._prefix = None
        self._original = None
        self._position = None  # None means the original input

    def activate(self, in1, in2):
        """Start browsing for entries that start with in1 (left of the cursor)."""
        self._prefix = split_graphemes(in1)
        self._original = in1 + in2
        self._position = None

    def up(self):
        return self._move(-1)

    def down(self):
        return self._move(+1)

    def add(self, value):
        if not value:
            return
        if value in self._entries:
            self._entries.remove(value)
        self._entries.append(value)
        del self._entries[: -self.max_size]

    def _move(self, step):
        # Past either end we're back at the original input
        n = len(self._entries)
        position = (n if self._position is None else self._position) + step
        while 0 <= position < n:
            entry = self._entries[position]
            if split_graphemes(entry)[: len(self._prefix)] == self._prefix:
                self._position = position
                return entry
            position += step
        self._position = None
        return self._original


class ListView:
    """A vertical list of items with a scroll bar.

    The ``index`` is that of the selected item, or None if nothing is
    selected. The list scrolls as little as needed to keep the selected
    item in view.
    """

    scroll_thumb = "\x1b[0m█ \x1b[0m"
    scroll_track = "\x1b[2m█ \x1b[0m"

    def __init__(self, height=7):
        self._height = height
        self._items = []
        self._top = 0
        self.index = None

    def show(self, items):
        self._items = [str(x) for x in items]
        self._top = 0
        self.index = None

    def select(self, index):
        """Select the item at the given index (or None), and scroll it into view."""
        self.index = index
        if index is None:
            return
        if index < self._top:
            self._top = index
        elif index >= self._top + self._height:
            self._top = index - self._height + 1

    def up(self):
        """Select the previous item, or the last one if at the top or unselected."""
        if not self._items:
            return
        if not self.index:
            self.select(len(self._items) - 1)
        else:
            self.select(self.index - 1)

    def down(self):
        """Select the next item, or the first one if at the bottom or unselected."""
        if not self._items:
            return
        if self.index is None or self.index == len(self._items) - 1:
            self.select(0)
        else:
            self.select(self.index + 1)

    def get_lines(self, pointer=">"):
        """Get the visible lines, padded with empty lines to the height."""
        rows = min(self._height, len(self._items))
        lines = []
        if rows:
            thumb_first, thumb_size = self._get_thumb(rows)
            for row in range(rows):
                index = self._top + row
                if thumb_first <= row < thumb_first + thumb_size:
                    line = self.scroll_thumb
                else:
                    line = self.scroll_track
                if index == self.index:
                    line += f"{theme['main']}{pointer} {self._items[index]}"
                else:
                    line += f"{ansi.DIM}  {self._items[index]}"
                lines.append(line + ansi.RESET)
        lines += [""] * (self._height - len(lines))
        return lines

    def _get_thumb(self, rows):
        # The thumb's size shows the visible share, its position the scroll offset
        n = len(self._items)
        if n <= rows:
            return 0, rows
        size = max(1, round(rows * rows / n))
        first = round((rows - size) * self._top / (n - rows))
        return first, size
