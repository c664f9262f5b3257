import re
import random

from mep import ansi
from mep.text import strip_ansi
from mep.term.renderer import FrameRenderer


TOKEN_RE = re.compile(r"\x1b\[(\??\d*)([A-Za-z])|\n|\r|.", re.DOTALL)


class VirtualScreen:
    """A tiny terminal emulator that supports what the renderer emits."""

    def __init__(self):
        self.rows = [[]]
        self.row = 0
        self.col = 0

    def write(self, text):
        for m in TOKEN_RE.finditer(text):
            token = m.group()
            if token == "\n":
                self.row += 1
                self.col = 0
                self._ensure_row()
            elif token == "\r":
                self.col = 0
            elif token.startswith("\x1b["):
                arg, cmd = m.group(1), m.group(2)
                if cmd == "A":
                    self.row = max(0, self.row - int(arg or 1))
                elif cmd == "B":
                    self.row += int(arg or 1)
                    self._ensure_row()
                elif cmd == "K":
                    self.rows[self.row] = []
                elif cmd == "J":
                    del self.rows[self.row + 1 :]
                    del self.rows[self.row][self.col :]
                # Styles are ignored
            else:
                line = self.rows[self.row]
                while len(line) < self.col:
                    line.append(" ")
                if self.col < len(line):
                    line[self.col] = token
                else:
                    line.append(token)
                self.col += 1

    def _ensure_row(self):
        while len(self.rows) <= self.row:
            self.rows.append([])

    @property
    def lines(self):
        return ["".join(row).rstrip() for row in self.rows]


def check_screen(screen, frame_text):
    """Check that the screen shows the frame, and the cursor is on its last line."""
    expected = [strip_ansi(line).rstrip() for line in frame_text.split("\n")]
    lines = screen.lines
    assert lines[: len(expected)] == expected
    assert all(line == "" for line in lines[len(expected) :])
    assert screen.row == len(expected) - 1


def test_first_render():
    r = FrameRenderer()
    out = r.render("a\nb", 80)
    assert out == "\r" + ansi.ERASE_LINE + "a" + "\n" + ansi.ERASE_LINE + "b"
    assert r.lines == ["a", "b"]
    assert r.height == 2


def test_identical_render_writes_nothing():
    r = FrameRenderer()
    r.render("a\nb\nc", 80)
    out = r.render("a\nb\nc", 80)
    assert ansi.ERASE_LINE not in out
    assert out == ansi.cursor_up(2) + "\r\n\n"


def test_changed_line():
    r = FrameRenderer()
    r.render("a\nb\nc", 80)
    out = r.render("a\nX\nc", 80)
    assert out == ansi.cursor_up(2) + "\r\n" + ansi.ERASE_LINE + "X\n"
    assert out.count(ansi.ERASE_LINE) == 1


def test_grow():
    r = FrameRenderer()
    r.render("a", 80)
    out = r.render("a\nb", 80)
    assert out == "\r\n" + ansi.ERASE_LINE + "b"


def test_shrink_with_unchanged_last_line():
    r = FrameRenderer()
    r.render("a\nb\nc", 80)
    out = r.render("a", 80)
    # The kept line is not rewritten, but we must still step past it
    assert out == ansi.cursor_up(2) + "\r\n" + ansi.ERASE_DOWN + ansi.cursor_up(1)
    assert ansi.ERASE_LINE not in out

    screen = VirtualScreen()
    r = FrameRenderer()
    screen.write(r.render("a\nb\nc", 80))
    screen.write(r.render("a", 80))
    check_screen(screen, "a")


def test_shrink_with_changed_last_line():
    screen = VirtualScreen()
    r = FrameRenderer()
    screen.write(r.render("a\nb\nc\nd", 80))
    out = r.render("a\nX", 80)
    assert ansi.ERASE_DOWN in out
    screen.write(out)
    check_screen(screen, "a\nX")


def test_width_change_is_full_redraw():
    r = FrameRenderer()
    r.render("abc\ndef", 80)
    assert r.full_redraws == 0

    out = r.render("abc\ndef", 40)
    assert r.full_redraws == 1
    assert out.startswith(ansi.cursor_up(1) + "\r" + ansi.ERASE_DOWN)
    assert "abc" in out and "def" in out

    # Same width again is incremental
    out = r.render("abc\ndef", 40)
    assert r.full_redraws == 1
    assert "abc" not in out


def test_invalidate_forget_clear():
    r = FrameRenderer()
    r.render("abc\ndef", 80)
    r.invalidate()
    out = r.render("abc\ndef", 80)
    assert r.full_redraws == 1
    assert "abc" in out and "def" in out

    # Forget starts a new block on the current line
    r.forget()
    assert r.height == 0
    out = r.render("x", 80)
    assert out == "\r" + ansi.ERASE_LINE + "x"

    # Clear erases the block
    r.render("x\ny\nz", 80)
    out = r.clear()
    assert out == ansi.cursor_up(2) + "\r" + ansi.ERASE_DOWN
    assert r.height == 0
    assert r.clear() == ""


def test_lines_are_truncated():
    r = FrameRenderer()
    r.render("a" * 100 + "\nb", 10)
    lines = r.lines
    assert lines[0] == "a" * 9 + "…" + ansi.RESET
    assert lines[1] == "b"

    # Styled text
    r = FrameRenderer()
    r.render("\x1b[31m" + "a" * 100, 10)
    assert strip_ansi(r.lines[0]) == "a" * 9 + "…"


def test_screen_always_matches_last_frame():
    alphabet = ["a", "b", "\x1b[1mb\x1b[0m", "", "你好"]
    for _ in range(50):
        screen = VirtualScreen()
        r = FrameRenderer()
        for _ in range(30):
            n = random.randint(1, 6)
            text = "\n".join(random.choice(alphabet) for _ in range(n))
            width = random.choice([80, 80, 80, 40])
            screen.write(r.render(text, width))
            check_screen(screen, text)


if __name__ == "__main__":
    test_shrink_with_unchanged_last_line()
    test_screen_always_matches_last_frame()
