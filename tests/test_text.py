from mep.ansi import RESET
from mep.text import (
    char_width,
    cluster_width,
    combine_surrogates,
    strip_ansi,
    iter_ansi_tokens,
    visible_width,
    graphemes,
    split_graphemes,
    truncate,
)


FAMILY = "\U0001f468\u200d\U0001f469\u200d\U0001f467\u200d\U0001f466"
FLAG = "\U0001f1f3\U0001f1f1"
THUMB = "\U0001f44d\U0001f3fd"


def test_strip_ansi():
    assert strip_ansi("abc") == "abc"
    assert strip_ansi("\x1b[31mred\x1b[0m") == "red"
    assert strip_ansi("\x1b[1;38;2;255;0;0mrgb\x1b[0m") == "rgb"
    assert strip_ansi("a\x1b[2Kb\x1b[Jc") == "abc"
    # OSC hyperlinks, with BEL and ST terminators
    assert strip_ansi("\x1b]8;;http://x.y\x07link\x1b]8;;\x07") == "link"
    assert strip_ansi("\x1b]8;;http://x.y\x1b\\link\x1b]8;;\x1b\\") == "link"


def test_iter_ansi_tokens():
    tokens = list(iter_ansi_tokens("a\x1b[1mb\x1b[0m"))
    assert tokens == [(False, "a"), (True, "\x1b[1m"), (False, "b"), (True, "\x1b[0m")]
    assert list(iter_ansi_tokens("")) == []


def test_char_width():
    assert char_width("a") == 1
    assert char_width(ord("a")) == 1
    assert char_width("\x07") == 0
    assert char_width("\u0301") == 0  # combining acute
    assert char_width("\u200d") == 0  # zero width joiner
    assert char_width("你") == 2
    assert char_width("🚀") == 2
    assert char_width("é") == 1
    assert char_width("─") == 1


def test_cluster_width():
    assert cluster_width("é") == 1
    assert cluster_width(FAMILY) == 2
    assert cluster_width(FLAG) == 2
    assert cluster_width(THUMB) == 2
    # Text-style symbol with emoji presentation selector
    assert cluster_width("\u2764\ufe0f") == 2


def test_visible_width():
    assert visible_width("") == 0
    assert visible_width("abc") == 3
    assert visible_width("\x1b[31mabc\x1b[0m") == 3
    assert visible_width("你好") == 4
    assert visible_width("Hello 你好") == 10
    assert visible_width("🚀") == 2
    assert visible_width("Hello 🚀 你好") == 13
    assert visible_width("é") == 1
    assert visible_width(FAMILY) == 2
    assert visible_width(FLAG) == 2
    assert visible_width(THUMB) == 2
    assert visible_width("\x1b[1m" + FAMILY + "x\x1b[0m") == 3


def test_surrogate_pairs():
    pair = "\ud83d\ude80"  # rocket, as UTF-16 surrogates
    assert combine_surrogates(pair) == "🚀"
    assert combine_surrogates("abc") == "abc"
    assert combine_surrogates("a\ud83db") == "a\ufffdb"
    assert visible_width(pair) == 2
    assert split_graphemes("a" + pair) == ["a", "🚀"]


def test_graphemes():
    assert split_graphemes("abc") == ["a", "b", "c"]
    assert split_graphemes("a🚀b") == ["a", "🚀", "b"]
    assert split_graphemes("éx") == ["é", "x"]
    assert split_graphemes(FAMILY) == [FAMILY]
    assert split_graphemes(FLAG + FLAG) == [FLAG, FLAG]
    assert split_graphemes("x" + THUMB) == ["x", THUMB]
    assert split_graphemes("") == []


def test_graphemes_restartable():
    g = graphemes("ab" + FAMILY)
    assert len(g) == 3
    assert list(g) == ["a", "b", FAMILY]
    assert list(g) == ["a", "b", FAMILY]
    assert g.text == "ab" + FAMILY

    # Partial iteration does not affect a next iteration
    it = iter(g)
    next(it)
    assert list(g) == ["a", "b", FAMILY]


def test_truncate():
    # Fits
    assert truncate("hello", 5) == "hello"
    assert truncate("hello", 10) == "hello"
    assert truncate("\x1b[31mhello\x1b[0m", 5) == "\x1b[31mhello\x1b[0m"

    # Too long
    assert truncate("hello world", 5) == "hell…" + RESET
    assert visible_width(truncate("hello world", 5)) == 5
    assert truncate("hello world", 5, ellipsis="") == "hello" + RESET

    # Nothing fits
    assert truncate("hello", 0) == ""
    assert truncate("hello", -1) == ""


def test_truncate_with_escapes():
    # Styles before the cut are kept, and reset after the ellipsis
    text = "\x1b[31mhello world\x1b[0m"
    assert truncate(text, 5) == "\x1b[31mhell…" + RESET

    # Escape codes are never split
    text = "ab\x1b[31mcdef"
    result = truncate(text, 3)
    assert result == "ab\x1b[31m…" + RESET
    assert strip_ansi(result) == "ab…"


def test_truncate_wide():
    # Wide chars are not cut in half
    result = truncate("你好世界", 5)
    assert result == "你好…" + RESET
    assert visible_width(result) == 5

    result = truncate("你好世界", 4)
    assert result == "你…" + RESET
    assert visible_width(result) <= 4

    # Clusters are not cut
    result = truncate("ab" + FAMILY + FAMILY, 5)
    assert result == "ab" + FAMILY + "…" + RESET
    assert visible_width(result) == 5


if __name__ == "__main__":
    test_visible_width()
    test_graphemes()
    test_truncate()
