import os
import asyncio
import logging
import threading
from collections import deque


logger = logging.getLogger("mep")


class InputReader:
    """Reads from a file descriptor and feeds the bytes into an InputDecoder.

    Uses ``loop.add_reader()`` so that reading happens in the loop's own
    thread. On loops that do not support that (the proactor loop on Windows)
    a shared daemon thread is used instead, which hands the bytes to the loop.

    The ``on_eof`` callback is called (in the loop) when the input is closed.
    """

    def __init__(self, fd, decoder, on_eof=None, loop=None):
        self._fd = fd
        self._decoder = decoder
        self._on_eof = on_eof
        self._loop = loop
        self._thread = None
        self._running = False

    @property
    def running(self):
        return self._running

    def start(self):
        if self._running:
            return
        self._loop = self._loop or asyncio.get_running_loop()
        self._running = True
        try:
            self._loop.add_reader(self._fd, self._on_readable)
        except NotImplementedError:
            self._thread = _ReaderThread.attach(self)
        logger.debug(f"input reader started on fd {self._fd}")

    def stop(self):
        """Stop reading. Can safely be called multiple times."""
        if not self._running:
            return
        self._running = False
        if self._thread is None:
            self._loop.remove_reader(self._fd)
        else:
            self._thread.detach(self)
            self._thread = None
        logger.debug(f"input reader stopped on fd {self._fd}")

    def _on_readable(self):
        try:
            bb = os.read(self._fd, 1024)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as err:
            logger.error(f"Error reading input: {err}")
            bb = b""
        self._deliver(bb)

    def _deliver(self, bb):
        if not bb:  # input is closed
            self.stop()
            self._decoder.flush()
            if self._on_eof is not None:
                self._on_eof()
        else:
            self._decoder.feed(bb)


class _ReaderThread(threading.Thread):
    """A thread that reads from the fd and hands the bytes to a reader.

    A blocking read cannot be interrupted, so there is one thread per fd,
    which outlives the readers that use it. Readers attach and detach in
    turn. Bytes that arrive while no reader is attached are kept for the
    next one, so that no input is lost between sessions.
    """

    _threads = {}
    _threads_lock = threading.Lock()

    def __init__(self, fd):
        super().__init__()
        self.daemon = True
        self._fd = fd
        self._lock = threading.Lock()
        self._pending = deque()
        self._reader = None

    @classmethod
    def attach(cls, reader):
        """Attach the reader to the thread for its fd, starting it if needed."""
        with cls._threads_lock:
            thread = cls._threads.get(reader._fd)
            if thread is None:
                thread = cls._threads[reader._fd] = cls(reader._fd)
                thread.start()
        with thread._lock:
            thread._reader = reader
        reader._loop.call_soon(thread._drain, reader)
        return thread

    def detach(self, reader):
        with self._lock:
            if self._reader is reader:
                self._reader = None

    def _drain(self, reader):
        # Called in the reader's loop
        while True:
            with self._lock:
                if self._reader is not reader or not self._pending:
                    return
                bb = self._pending.popleft()
            reader._deliver(bb)

    def run(self):
        logger.info(f"input thread started on fd {self._fd}")
        try:
            while True:
                try:
                    bb = os.read(self._fd, 1024)
                except OSError as err:
                    logger.error(f"input thread errored: {str(err)}")
                    bb = b""
                with self._lock:
                    self._pending.append(bb)
                    reader = self._reader
                if reader is not None:
                    try:
                        reader._loop.call_soon_threadsafe(self._drain, reader)
                    except RuntimeError:
                        pass  # Loop is closed, the next reader gets the bytes
                if not bb:
                    break
        finally:
            with self._threads_lock:
                if self._threads.get(self._fd) is self:
                    del self._threads[self._fd]
        logger.info(f"input thread stopped on fd {self._fd}")
