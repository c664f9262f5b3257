"""
Detection of what the terminal we run in can do.

The session only consumes these values. They can be detected from the
environment with ``detect_capabilities()``, or passed in explicitly (e.g. in
tests, or when the application knows better).
"""

import os
import sys
import shutil
from collections import namedtuple


Capabilities = namedtuple(
    "Capabilities",
    ["columns", "true_color", "interactive", "unicode", "mouse", "ci"],
    defaults=(None, False, True, True, False, False),
)
Capabilities.__doc__ = """The capabilities of a terminal.

* columns: fixed column count, or None to query the terminal on each render.
* true_color: whether 24-bit colors are supported.
* interactive: whether this is a real terminal (as opposed to CI or a pipe).
* unicode: whether non-ascii symbols can be displayed.
* mouse: whether mouse reporting can be enabled.
* ci: whether we are running in a CI environment.
"""


def _is_unicode_supported(env, is_windows, is_ci):
    if is_windows:
        # Windows Terminal, VSCode, modern terminals, ConEmu
        if env.get("WT_SESSION") or env.get("TERM_PROGRAM") == "vscode":
            return True
        if env.get("TERM") in ("xterm-256color", "alacritty"):
            return True
        if env.get("ConEmuTask") or is_ci:
            return True
        # Default cmd.exe / old powershell
        return False

    if env.get("TERM_PROGRAM") == "Apple_Terminal":
        return True
    lang = env.get("LANG", "")
    lc_all = env.get("LC_ALL", "")
    return lang.upper().endswith("UTF-8") or lc_all.upper().endswith("UTF-8")


def detect_capabilities(stdout=None, env=None):
    """Detect the terminal capabilities from the environment."""
    stdout = stdout or sys.__stdout__
    env = os.environ if env is None else env

    try:
        is_tty = stdout.isatty()
    except (AttributeError, ValueError):
        is_tty = False

    is_ci = bool(env.get("CI"))
    is_windows = sys.platform.startswith("win")

    return Capabilities(
        columns=None,
        true_color=env.get("COLORTERM") == "truecolor" or bool(env.get("WT_SESSION")),
        interactive=is_tty and not is_ci,
        unicode=is_tty and _is_unicode_supported(env, is_windows, is_ci),
        mouse=is_tty and not is_ci,
        ci=is_ci,
    )


def get_columns(capabilities, fallback=80):
    """Get the column count, from the capabilities or from the terminal."""
    if capabilities is not None and capabilities.columns:
        return capabilities.columns
    return shutil.get_terminal_size((fallback, 24)).columns or fallback
