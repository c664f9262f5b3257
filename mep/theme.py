"""
The colors that the prompts use. These are ANSI style codes, so a theme
color can also be e.g. bold or underlined.
"""

from . import ansi


DEFAULT_THEME = {
    "main": ansi.FG_CYAN,  # selected items and submitted values
    "success": ansi.FG_GREEN,  # the question mark and tick
    "error": ansi.FG_RED,  # validation messages
    "muted": ansi.FG_GRAY,  # hints and placeholders
    "title": ansi.BOLD,  # the prompt's message
}

theme = dict(DEFAULT_THEME)


def set_theme(**colors):
    """Set one or more theme colors, e.g. ``set_theme(main=ansi.FG_YELLOW)``.

    Applies to all prompts that render afterwards.
    """
    for name, value in colors.items():
        if name not in DEFAULT_THEME:
            raise ValueError(f"Unknown theme color {name!r}.")
        if not isinstance(value, str):
            raise TypeError(f"Theme color {name!r} must be a str.")
    theme.update(colors)


def reset_theme():
    """Restore the default theme."""
    theme.clear()
    theme.update(DEFAULT_THEME)
