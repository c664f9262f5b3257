import msvcrt
import ctypes
from ctypes import wintypes

from ._context import TerminalContext


KERNEL32 = ctypes.WinDLL("kernel32", use_last_error=True)  # type: ignore

ENABLE_PROCESSED_OUTPUT = 0x0001
ENABLE_VIRTUAL_TERMINAL_PROCESSING = 0x0004
ENABLE_VIRTUAL_TERMINAL_INPUT = 0x0200


def get_console_mode(fd) -> int:
    """Get the console mode for a given file descriptor (for stdout or stdin)"""
    windows_filehandle = msvcrt.get_osfhandle(fd)  # type: ignore
    mode = wintypes.DWORD()
    KERNEL32.GetConsoleMode(windows_filehandle, ctypes.byref(mode))
    return mode.value


def set_console_mode(fd, mode: int) -> bool:
    """Set the console mode for a given file descriptor (for stdout or stdin)."""
    windows_filehandle = msvcrt.get_osfhandle(fd)  # type: ignore
    success = KERNEL32.SetConsoleMode(windows_filehandle, mode)
    return success


class WindowsTerminalContext(TerminalContext):

    def __init__(self, **kwargs):
        self._ori_mode_in = None
        self._ori_mode_out = None
        super().__init__(**kwargs)

    def _store_terminal_mode(self):
        self._ori_mode_in = get_console_mode(self.fd_in)
        if self.fd_out is not None:
            self._ori_mode_out = get_console_mode(self.fd_out)

    def _set_terminal_mode(self):
        # Raw VT input: no line buffering, no echo, ctrl+c arrives as a byte
        set_console_mode(self.fd_in, ENABLE_VIRTUAL_TERMINAL_INPUT)
        if self._ori_mode_out is not None:
            set_console_mode(
                self.fd_out,
                self._ori_mode_out
                | ENABLE_PROCESSED_OUTPUT
                | ENABLE_VIRTUAL_TERMINAL_PROCESSING,
            )

    def _reset_terminal_mode(self):
        if self._ori_mode_in is not None:
            set_console_mode(self.fd_in, self._ori_mode_in)
            self._ori_mode_in = None
        if self._ori_mode_out is not None:
            set_console_mode(self.fd_out, self._ori_mode_out)
            self._ori_mode_out = None
