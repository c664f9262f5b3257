"""
Measuring and cutting text the way the terminal displays it.

Escape codes take up no space, wide characters (CJK, most emoji) take up two
cells, and combining marks and joiners take up none. Text is walked per
grapheme cluster, so that e.g. a flag or a family emoji is never cut in half.
"""

import re
from bisect import bisect_right

import grapheme

from .ansi import RESET


# CSI sequences, OSC sequences (terminated by BEL or ST), and two-char escapes
ANSI_RE = re.compile(
    r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])"
)

_SURROGATE_RE = re.compile("[\ud800-\udfff]")

VARIATION_SELECTOR_16 = 0xFE0F  # Requests emoji presentation

# Sorted, non-overlapping (start, end) ranges, inclusive.

ZERO_WIDTH_RANGES = [
    (0x0300, 0x036F),  # Combining Diacritical Marks
    (0x0483, 0x0489),  # Combining Cyrillic
    (0x0591, 0x05BD),  # Hebrew points
    (0x0610, 0x061A),  # Arabic marks
    (0x064B, 0x065F),  # Arabic vowel marks
    (0x1AB0, 0x1AFF),  # Combining Diacritical Marks Extended
    (0x1DC0, 0x1DFF),  # Combining Diacritical Marks Supplement
    (0x200B, 0x200F),  # Zero width space, ZWNJ, ZWJ, direction marks
    (0x202A, 0x202E),  # Bidi embedding controls
    (0x2060, 0x2064),  # Word joiner and invisible operators
    (0x20D0, 0x20FF),  # Combining Marks for Symbols
    (0xFE00, 0xFE0F),  # Variation Selectors
    (0xFE20, 0xFE2F),  # Combining Half Marks
    (0xFEFF, 0xFEFF),  # Zero width no-break space (BOM)
    (0x1F3FB, 0x1F3FF),  # Emoji skin tone modifiers
    (0xE0000, 0xE007F),  # Tags (used in subdivision flags)
    (0xE0100, 0xE01EF),  # Variation Selectors Supplement
]

WIDE_RANGES = [
    (0x1100, 0x115F),  # Hangul Jamo initial consonants
    (0x231A, 0x231B),  # Watch, hourglass
    (0x2329, 0x232A),  # Angle brackets
    (0x23E9, 0x23EC),  # Media controls
    (0x23F0, 0x23F0),  # Alarm clock
    (0x23F3, 0x23F3),  # Hourglass with flowing sand
    (0x25FD, 0x25FE),  # Medium small squares
    (0x2614, 0x2615),  # Umbrella, hot beverage
    (0x2648, 0x2653),  # Zodiac
    (0x267F, 0x267F),  # Wheelchair
    (0x2693, 0x2693),  # Anchor
    (0x26A1, 0x26A1),  # High voltage
    (0x26AA, 0x26AB),  # Circles
    (0x26BD, 0x26BE),  # Soccer ball, baseball
    (0x26C4, 0x26C5),  # Snowman, sun behind cloud
    (0x26CE, 0x26CE),  # Ophiuchus
    (0x26D4, 0x26D4),  # No entry
    (0x26EA, 0x26EA),  # Church
    (0x26F2, 0x26F3),  # Fountain, golf
    (0x26F5, 0x26F5),  # Sailboat
    (0x26FA, 0x26FA),  # Tent
    (0x26FD, 0x26FD),  # Fuel pump
    (0x2705, 0x2705),  # White heavy check mark
    (0x270A, 0x270B),  # Raised fist, raised hand
    (0x2728, 0x2728),  # Sparkles
    (0x274C, 0x274C),  # Cross mark
    (0x274E, 0x274E),  # Negative squared cross mark
    (0x2753, 0x2755),  # Question and exclamation ornaments
    (0x2757, 0x2757),  # Heavy exclamation mark
    (0x2795, 0x2797),  # Heavy plus, minus, division
    (0x27B0, 0x27B0),  # Curly loop
    (0x27BF, 0x27BF),  # Double curly loop
    (0x2B1B, 0x2B1C),  # Large squares
    (0x2B50, 0x2B50),  # Star
    (0x2B55, 0x2B55),  # Heavy large circle
    (0x2E80, 0x303E),  # CJK Radicals, Kangxi, CJK Symbols and Punctuation
    (0x3041, 0x33FF),  # Hiragana, Katakana, Bopomofo, Hangul compat, CJK compat
    (0x3400, 0x4DBF),  # CJK Unified Ideographs Extension A
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0xA000, 0xA4CF),  # Yi
    (0xA960, 0xA97F),  # Hangul Jamo Extended-A
    (0xAC00, 0xD7A3),  # Hangul Syllables
    (0xF900, 0xFAFF),  # CJK Compatibility Ideographs
    (0xFE10, 0xFE19),  # Vertical Forms
    (0xFE30, 0xFE6F),  # CJK Compatibility Forms, Small Form Variants
    (0xFF00, 0xFF60),  # Fullwidth ASCII variants
    (0xFFE0, 0xFFE6),  # Fullwidth currency and symbols
    (0x1B000, 0x1B2FF),  # Kana Supplement, Kana Extended
    (0x1F004, 0x1F004),  # Mahjong tile red dragon
    (0x1F0CF, 0x1F0CF),  # Playing card black joker
    (0x1F18E, 0x1F18E),  # Negative squared AB
    (0x1F191, 0x1F19A),  # Squared CL .. squared VS
    (0x1F1E6, 0x1F1FF),  # Regional indicators (flags)
    (0x1F200, 0x1F202),  # Enclosed ideographic supplement
    (0x1F210, 0x1F23B),
    (0x1F240, 0x1F248),
    (0x1F250, 0x1F251),
    (0x1F260, 0x1F265),
    (0x1F300, 0x1F64F),  # Misc Symbols and Pictographs, Emoticons
    (0x1F680, 0x1F6FF),  # Transport and Map Symbols
    (0x1F7E0, 0x1F7EB),  # Colored circles and squares
    (0x1F900, 0x1F9FF),  # Supplemental Symbols and Pictographs
    (0x1FA70, 0x1FAFF),  # Symbols and Pictographs Extended-A
    (0x20000, 0x2FFFD),  # CJK Unified Ideographs Extension B..F
    (0x30000, 0x3FFFD),  # CJK Unified Ideographs Extension G
]

_ZERO_WIDTH_STARTS = [r[0] for r in ZERO_WIDTH_RANGES]
_WIDE_STARTS = [r[0] for r in WIDE_RANGES]


def _in_ranges(cp, starts, ranges):
    i = bisect_right(starts, cp) - 1
    return i >= 0 and cp <= ranges[i][1]


def char_width(cp):
    """Get the number of terminal cells (0, 1 or 2) for a single codepoint.

    Accepts an int or a single-character string.
    """
    if isinstance(cp, str):
        cp = ord(cp)
    # Fast path for printable ASCII
    if 0x20 <= cp < 0x7F:
        return 1
    # Control characters
    if cp < 0x20 or 0x7F <= cp < 0xA0:
        return 0
    if _in_ranges(cp, _ZERO_WIDTH_STARTS, ZERO_WIDTH_RANGES):
        return 0
    if _in_ranges(cp, _WIDE_STARTS, WIDE_RANGES):
        return 2
    return 1


def cluster_width(cluster):
    """Get the number of terminal cells for one grapheme cluster."""
    if len(cluster) == 1:
        return char_width(ord(cluster))
    widths = [char_width(ord(c)) for c in cluster]
    # A cluster is drawn as one glyph: wide if any of its parts is
    if max(widths) == 2 or chr(VARIATION_SELECTOR_16) in cluster:
        return 2
    return max(widths)


def combine_surrogates(text):
    """Combine UTF-16 surrogate pairs (e.g. from JSON) into real codepoints.

    Lone surrogates are replaced with U+FFFD.
    """
    if _SURROGATE_RE.search(text) is None:
        return text
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def strip_ansi(text):
    """Remove all escape sequences, leaving only the visible text."""
    return ANSI_RE.sub("", text)


def iter_ansi_tokens(text):
    """Split text into (is_escape, chunk) tuples."""
    pos = 0
    for m in ANSI_RE.finditer(text):
        if m.start() > pos:
            yield False, text[pos : m.start()]
        yield True, m.group()
        pos = m.end()
    if pos < len(text):
        yield False, text[pos:]


def visible_width(text):
    """Get the number of terminal cells that the given text occupies.

    Escape codes have zero width. Assumes a single line.
    """
    text = combine_surrogates(text)
    if text.isascii() and "\x1b" not in text:
        return sum(1 for c in text if c.isprintable())
    width = 0
    for is_escape, chunk in iter_ansi_tokens(text):
        if not is_escape:
            width += sum(cluster_width(g) for g in grapheme.graphemes(chunk))
    return width


class Graphemes:
    """A lazy, restartable sequence of the user-perceived characters in a string.

    Each iteration starts from the beginning of the text.
    """

    def __init__(self, text):
        self._text = combine_surrogates(text)

    @property
    def text(self):
        return self._text

    def __iter__(self):
        return grapheme.graphemes(self._text)

    def __len__(self):
        return grapheme.length(self._text)

    def __repr__(self):
        return f"<Graphemes {self._text!r}>"


def graphemes(text):
    """Get a lazy, restartable sequence of grapheme clusters."""
    return Graphemes(text)


def split_graphemes(text):
    """Split text into a list of grapheme clusters."""
    return list(Graphemes(text))


def truncate(text, width, ellipsis="…"):
    """Truncate a single line so it fits in the given number of cells.

    Escape codes are kept intact and do not count. When content is cut off,
    the ellipsis and a style reset are appended.
    """
    if width <= 0:
        return ""
    text = combine_surrogates(text)
    if visible_width(text) <= width:
        return text

    limit = width - visible_width(ellipsis)
    if limit < 0:
        ellipsis, limit = "", width

    parts = []
    used = 0
    for is_escape, chunk in iter_ansi_tokens(text):
        if is_escape:
            parts.append(chunk)
            continue
        for g in grapheme.graphemes(chunk):
            w = cluster_width(g)
            if used + w > limit:
                return "".join(parts) + ellipsis + RESET
            parts.append(g)
            used += w
    return "".join(parts) + ellipsis + RESET
