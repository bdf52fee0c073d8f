"""Console output shared by every request handler thread."""
import sys
import threading
from contextlib import contextmanager
from datetime import datetime

from colorama import Fore, Style


def ctext(text, color=None, enabled=True):
    """Apply color to text when coloring is enabled"""
    if enabled and color:
        return color + text + Style.RESET_ALL
    return text


def timestamp():
    return datetime.now().strftime("%H:%M:%S")


class RequestBlock:
    """Lines for one request, written out together when the block closes."""

    def __init__(self, console):
        self._console = console
        self.lines = []

    def line(self, text="", color=None):
        self.lines.append(self._console.colorize(text, color))

    def __len__(self):
        return len(self.lines)


class Console:
    """Thread-safe line writer wrapping a text stream.

    Handlers get a Console injected instead of printing to stdout, so tests
    can capture everything with an io.StringIO.
    """

    def __init__(self, stream=None, color=False):
        self.stream = stream if stream is not None else sys.stdout
        self.color = color
        self._lock = threading.Lock()

    def colorize(self, text, color=None):
        return ctext(text, color, self.color)

    def _write(self, lines):
        with self._lock:
            for line in lines:
                self.stream.write(line + "\n")
            self.stream.flush()

    def plain(self, message="", color=None):
        self._write([self.colorize(message, color)])

    def _stamped(self, message, color):
        self._write([self.colorize(f"[{timestamp()}] {message}", color)])

    def info(self, message):
        self._stamped(message, Fore.BLUE)

    def success(self, message):
        self._stamped(message, Fore.GREEN)

    def warn(self, message):
        self._stamped(message, Fore.YELLOW)

    def error(self, message):
        self._stamped(message, Fore.RED)

    @contextmanager
    def block(self):
        block = RequestBlock(self)
        try:
            yield block
        finally:
            # Partial blocks still get written when the handler bails out
            if block.lines:
                self._write(block.lines)
