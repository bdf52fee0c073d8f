import argparse
import functools
import http.server
import re
import socket
import socketserver
import sys
from http import HTTPStatus

from colorama import Fore, init as colorama_init

from .configure import ConfigError, load_config, resolve_settings
from .console import Console

ACK_BODY = b'{"status": "received", "message": "Request logged successfully"}'
MAX_CHUNK_LINE = 4096
READ_CHUNK = 64 * 1024
LINGER_TIMEOUT = 0.5
LINGER_LIMIT = 256 * 1024
CHUNK_SIZE_PATTERN = re.compile(rb"[0-9A-Fa-f]+")


class BodyReadError(Exception):
    """The request body could not be read in full."""


def format_address(client_address):
    """Render a peer address as host:port, bracketing IPv6 hosts"""
    host, port = client_address[:2]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def is_chunked(headers):
    encodings = ",".join(headers.get_all("Transfer-Encoding") or [])
    return "chunked" in [e.strip().lower() for e in encodings.split(",")]


def declared_content_length(headers):
    """Content length the client announced; -1 if chunked, 0 if absent."""
    if is_chunked(headers):
        return -1
    value = headers.get("Content-Length")
    if value is None:
        return 0
    value = value.strip()
    if not value.isdigit() or int(value) > sys.maxsize:
        raise ValueError(f"Invalid Content-Length: {value!r}")
    return int(value)


def header_lines(headers):
    """Yield (name, value) for every header value, grouped by name."""
    names = []
    seen = set()
    for name in headers.keys():
        if name.lower() not in seen:
            seen.add(name.lower())
            names.append(name)
    for name in names:
        for value in headers.get_all(name):
            yield name, value


class RequestBody:
    """Reads a whole request body from the connection's input stream.

    Use as a context manager; on exit an unconsumed body triggers
    ``on_discard`` so the connection is not reused with bytes left over.
    """

    def __init__(self, rfile, headers, on_discard=None):
        self.rfile = rfile
        self.length = declared_content_length(headers)
        self.chunked = self.length == -1
        self.on_discard = on_discard
        self.consumed = False
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self.closed:
            return
        self.closed = True
        if not self.consumed and self.on_discard is not None:
            self.on_discard()

    def read_all(self):
        if self.closed:
            raise BodyReadError("body already closed")
        try:
            data = self._read_chunked() if self.chunked else self._read_exact(self.length)
        except OSError as e:
            raise BodyReadError(str(e) or e.__class__.__name__) from e
        self.consumed = True
        return data

    def _read_exact(self, size):
        # Read in pieces so a bogus declared size never gets allocated up front
        pieces = []
        remaining = size
        while remaining > 0:
            piece = self.rfile.read(min(remaining, READ_CHUNK))
            if not piece:
                raise BodyReadError(f"unexpected EOF after {size - remaining} of {size} bytes")
            pieces.append(piece)
            remaining -= len(piece)
        return b"".join(pieces)

    def _read_line(self, what):
        line = self.rfile.readline(MAX_CHUNK_LINE + 1)
        if len(line) > MAX_CHUNK_LINE:
            raise BodyReadError(f"{what} line too long")
        if not line.endswith(b"\n"):
            raise BodyReadError(f"unexpected EOF reading {what}")
        return line

    def _read_chunked(self):
        chunks = []
        while True:
            size_field = self._read_line("chunk size").split(b";", 1)[0].strip()
            if not CHUNK_SIZE_PATTERN.fullmatch(size_field):
                raise BodyReadError(f"malformed chunk size {size_field!r}")
            size = int(size_field, 16)
            if size == 0:
                break
            chunks.append(self._read_exact(size))
            if self._read_line("chunk terminator").strip():
                raise BodyReadError("missing CRLF after chunk data")
        # Trailer fields are read and dropped
        while self._read_line("trailer").strip():
            pass
        return b"".join(chunks)


class RequestLogHandler(http.server.BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def __init__(self, *args, console=None, **kwargs):
        self.console = console if console is not None else Console()
        super().__init__(*args, **kwargs)

    def __getattr__(self, name):
        # http.server dispatches on do_<METHOD>; everything but POST is refused
        if name.startswith("do_"):
            return self.reject_method
        raise AttributeError(name)

    def log_message(self, format, *args):
        self.console.info(format % args)

    def log_error(self, format, *args):
        self.console.error(format % args)

    def log_request(self, code="-", size="-"):
        if isinstance(code, HTTPStatus):
            code = code.value
        message = f'"{self.requestline}" {code} {size}'
        if str(code).startswith("2"):
            self.console.success(message)
        elif str(code).startswith("4"):
            self.console.warn(message)
        elif str(code).startswith("5"):
            self.console.error(message)
        else:
            self.console.info(message)

    def send_plain(self, status, message, extra_headers=None):
        """Plain-text error response; the connection is closed afterwards."""
        data = message.encode("utf-8")
        self.close_connection = True
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Connection", "close")
        for key, value in (extra_headers or {}).items():
            self.send_header(key, value)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(data)
        self.linger()

    def linger(self):
        """Half-close, then drain unread input so the reply is not lost to a reset."""
        try:
            self.wfile.flush()
            self.connection.shutdown(socket.SHUT_WR)
            self.connection.settimeout(LINGER_TIMEOUT)
            drained = 0
            while drained < LINGER_LIMIT:
                data = self.rfile.read1(READ_CHUNK)
                if not data:
                    break
                drained += len(data)
        except OSError:
            # peer already gone or stalled; the connection is closing anyway
            return

    def reject_method(self):
        self.send_plain(HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed", {"Allow": "POST"})

    def drop_connection(self):
        self.close_connection = True

    def do_POST(self):
        try:
            body = RequestBody(self.rfile, self.headers, on_discard=self.drop_connection)
        except ValueError as e:
            self.log_error("%s", e)
            self.send_plain(HTTPStatus.BAD_REQUEST, "Invalid Content-Length")
            return

        with self.console.block() as block, body:
            block.line("=== Incoming POST Request ===", Fore.MAGENTA)
            block.line(f"URL: {self.path}")
            block.line(f"Method: {self.command}")
            block.line(f"Remote Address: {format_address(self.client_address)}")
            block.line(f"Content-Length: {body.length}")

            block.line()
            block.line("--- Headers ---", Fore.CYAN)
            for name, value in header_lines(self.headers):
                block.line(f"{name}: {value}")

            block.line()
            block.line("--- Body ---", Fore.CYAN)
            try:
                data = body.read_all()
            except BodyReadError as e:
                block.line(f"Error reading body: {e}", Fore.RED)
                try:
                    self.send_plain(HTTPStatus.INTERNAL_SERVER_ERROR, "Error reading body")
                except OSError as write_error:
                    block.line(f"Could not send error response: {write_error}", Fore.YELLOW)
                return

            if data:
                block.line("Body content:")
                block.line(data.decode("utf-8", errors="replace"))
            else:
                block.line("Body is empty", Fore.YELLOW)

            block.line("=== End of Request ===", Fore.MAGENTA)
            block.line()

        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(ACK_BODY)))
        self.end_headers()
        self.wfile.write(ACK_BODY)


class ReuseAddrThreadingServer(socketserver.ThreadingMixIn, http.server.HTTPServer):
    allow_reuse_address = True
    daemon_threads = True


def make_server(host, port, console):
    handler = functools.partial(RequestLogHandler, console=console)
    return ReuseAddrThreadingServer((host, port), handler)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="hooklog",
        description="Log every incoming POST request to the console",
    )
    parser.add_argument("--host", help="address to listen on (default from config.json)")
    parser.add_argument("--port", type=int, help="port to listen on (default from config.json)")
    parser.add_argument("--config", help="path to an alternative config.json")
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    return parser


def main(argv=None, stream=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if args.config else load_config()
        settings = resolve_settings(args, config)
    except ConfigError as e:
        Console(stream if stream is not None else sys.stderr).error(f"❌ {e}")
        sys.exit(1)

    if settings["color"] and stream is None:
        colorama_init()
    console = Console(stream, color=settings["color"])

    addr = f"{settings['host']}:{settings['port']}"
    console.plain(f"Starting server on {addr}", Fore.GREEN)
    console.plain("Server will log all incoming POST requests...", Fore.CYAN)
    console.plain("Press Ctrl+C to stop the server", Fore.YELLOW)
    console.plain()

    try:
        httpd = make_server(settings["host"], settings["port"], console)
    except OSError as e:
        console.error(f"❌ Failed to start server on {addr}: {e}")
        sys.exit(1)

    with httpd:
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            console.plain("\n🛑 Stopping server...", Fore.YELLOW)


if __name__ == "__main__":
    main()
