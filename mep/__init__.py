"""
mep - a toolkit for interactive terminal prompts.
"""

from .errors import MepError, UserCancelled, WidgetFatalError  # noqa
from .capabilities import Capabilities, detect_capabilities  # noqa
from .session import Session, SessionState, Prompt  # noqa
from .prompts import ConfirmPrompt, TextPrompt, SelectPrompt  # noqa
from .theme import set_theme, reset_theme  # noqa
from .text import strip_ansi, visible_width, graphemes, truncate  # noqa
from .term import InputDecoder, KeyEvent, MouseEvent, FrameRenderer  # noqa
from .utils import enable_log_forwarding  # noqa
from ._cli import cli  # noqa

__version__ = "0.1.0"
version_info = tuple(map(int, __version__.split(".")))
