import os
import tty  # Unix
import signal
import termios  # Unix

from ._context import TerminalContext


def patch_lflag(attrs: int) -> int:
    # Without ISIG, ctrl+c arrives as a byte instead of SIGINT
    return attrs & ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)


def patch_iflag(attrs: int) -> int:
    return attrs & ~(
        # Disable XON/XOFF flow control on output and input.
        # (Don't capture Ctrl-S and Ctrl-Q.)
        # Like executing: "stty -ixon."
        termios.IXON
        | termios.IXOFF
        |
        # Don't translate carriage return into newline on input.
        termios.ICRNL
        | termios.INLCR
        | termios.IGNCR
    )


class UnixTerminalContext(TerminalContext):

    def __init__(self, **kwargs):
        self._ori_term_attr = None
        super().__init__(**kwargs)

    def _is_foreground(self):
        """Check that we are allowed to change the terminal mode.

        When running in the background of a shell, tcsetattr would stop the
        process with SIGTTOU.
        """

        def _stop_again(*_) -> None:
            """Signal handler that will put the application back to sleep."""
            os.kill(os.getpid(), signal.SIGSTOP)

        signal.signal(signal.SIGTTOU, _stop_again)
        signal.signal(signal.SIGTTIN, _stop_again)
        try:
            # Perform a NOP tcsetattr. If we're suspended and the user has
            # performed a `bg`, we'll SIGCONT *but* we won't be allowed to do
            # terminal output; this detects the problem right away.
            termios.tcsetattr(
                self.fd_in, termios.TCSANOW, termios.tcgetattr(self.fd_in)
            )
        except termios.error:
            return False
        finally:
            # We don't need to be hooking SIGTTOU or SIGTTIN any more.
            signal.signal(signal.SIGTTOU, signal.SIG_DFL)
            signal.signal(signal.SIGTTIN, signal.SIG_DFL)
        return True

    def _store_terminal_mode(self):
        try:
            self._ori_term_attr = termios.tcgetattr(self.fd_in)
        except termios.error:
            # Ignore attribute errors.
            self._ori_term_attr = None

    def _set_terminal_mode(self):
        if not self._is_foreground():
            return

        try:
            newattr = termios.tcgetattr(self.fd_in)
        except termios.error:
            pass
        else:
            newattr[tty.LFLAG] = patch_lflag(newattr[tty.LFLAG])
            newattr[tty.IFLAG] = patch_iflag(newattr[tty.IFLAG])

            # VMIN defines the number of characters read at a time in
            # non-canonical mode. It seems to default to 1 on Linux, but on
            # Solaris and derived operating systems it defaults to 4. (This is
            # because the VMIN slot is the same as the VEOF slot, which
            # defaults to ASCII EOT = Ctrl-D = 4.)
            newattr[tty.CC][termios.VMIN] = 1

            termios.tcsetattr(self.fd_in, termios.TCSANOW, newattr)

    def _reset_terminal_mode(self):
        if self._ori_term_attr is not None:
            try:
                termios.tcsetattr(self.fd_in, termios.TCSANOW, self._ori_term_attr)
            except termios.error:
                pass
            self._ori_term_attr = None
