"""
Exceptions raised by mep sessions.
"""


class MepError(Exception):
    """Base class for errors raised by mep."""


class UserCancelled(MepError):
    """The user interrupted the prompt (ctrl+c), or the input was closed."""

    def __init__(self, message="User force closed"):
        super().__init__(message)


class WidgetFatalError(MepError):
    """An exception occurred inside a widget's render or input handling.

    The original exception is available as ``error`` (and as ``__cause__``).
    """

    def __init__(self, error):
        super().__init__(f"{error.__class__.__name__}: {error}")
        self.error = error
