import io
import socket
import threading
import time

import pytest

from hooklog.console import Console
from hooklog.run_server import make_server


def wait_for(stream, text, timeout=5):
    """Poll a captured console until text shows up (error paths log after replying)."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if text in stream.getvalue():
            return True
        time.sleep(0.02)
    return False


def recv_all(sock):
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def server(log_stream):
    httpd = make_server("127.0.0.1", 0, Console(log_stream))
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()
    thread.join(timeout=5)


@pytest.fixture
def address(server):
    return server.server_address[:2]


@pytest.fixture
def base_url(address):
    host, port = address
    return f"http://{host}:{port}"


@pytest.fixture
def raw_request(address):
    """Send raw bytes, half-close the socket and return the full reply."""
    def send(payload, shut_write=True):
        with socket.create_connection(address, timeout=5) as sock:
            sock.sendall(payload)
            if shut_write:
                sock.shutdown(socket.SHUT_WR)
            return recv_all(sock)
    return send


@pytest.fixture
def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def wait_log(log_stream):
    return lambda text, timeout=5: wait_for(log_stream, text, timeout)
