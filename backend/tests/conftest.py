import shutil
import struct
import threading
import time
import uuid
import zlib
from pathlib import Path

import numpy as np
import pytest
import zmq

from engine.buffer import PixelBuffer
from imaging.codec import write_image
from zmq_server import ZMQServer

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class SidecarClient:
    """REQ client for one sidecar port. Adds the auth token to every request."""

    def __init__(self, port: int, token: str, timeout_ms: int = 10_000):
        self.port = port
        self.token = token
        self.timeout_ms = timeout_ms
        self._ctx = zmq.Context()
        self._sock = self._connect()

    def _connect(self) -> zmq.Socket:
        sock = self._ctx.socket(zmq.REQ)
        sock.setsockopt(zmq.LINGER, 0)
        sock.setsockopt(zmq.RCVTIMEO, self.timeout_ms)
        sock.connect(f"tcp://127.0.0.1:{self.port}")
        return sock

    def _recv(self) -> dict:
        try:
            return self._sock.recv_json()
        except zmq.Again:
            # A REQ socket that missed its reply cannot send again
            self._sock.close()
            self._sock = self._connect()
            raise

    def request(self, msg: dict, token: str | None = None) -> dict:
        self._sock.send_json({**msg, "_token": self.token if token is None else token})
        return self._recv()

    def request_raw(self, payload: bytes) -> dict:
        self._sock.send(payload)
        return self._recv()

    def close(self):
        self._sock.close()
        self._ctx.term()


def _server_alive(srv: ZMQServer, timeout: float = 2.0) -> bool:
    client = SidecarClient(srv.ping_port, srv.token, timeout_ms=500)
    deadline = time.monotonic() + timeout
    try:
        while time.monotonic() < deadline:
            try:
                if client.request({"cmd": "ping", "id": "health"}).get("status") == "alive":
                    return True
            except zmq.Again:
                time.sleep(0.05)
        return False
    finally:
        client.close()


@pytest.fixture(scope="session")
def _sidecar():
    """One server thread for the whole session."""
    srv = ZMQServer()
    thread = threading.Thread(target=srv.run, daemon=True)
    thread.start()
    if not _server_alive(srv):
        pytest.skip("ZMQ server failed to start within 2s")
    yield srv
    srv.running = False
    thread.join(timeout=2.0)


@pytest.fixture
def zmq_server(_sidecar):
    _sidecar.reset_state()
    return _sidecar


@pytest.fixture
def connect(zmq_server):
    """Factory: SidecarClient for a server port, closed after the test."""
    clients = []

    def _connect(port: int | None = None) -> SidecarClient:
        client = SidecarClient(port or zmq_server.port, zmq_server.token)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        client.close()


@pytest.fixture
def zmq_client(connect):
    return connect()


@pytest.fixture
def home_tmp_path():
    """Scratch dir under ~/, where validate_image_path accepts files."""
    d = Path.home() / ".cache" / "pixelfilter" / "test-tmp" / uuid.uuid4().hex[:8]
    d.mkdir(parents=True)
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def sample_png(home_tmp_path):
    """24x16 PNG with varied RGB and alpha."""
    rng = np.random.default_rng(42)
    buf = PixelBuffer.from_array(rng.integers(0, 256, (16, 24, 4), dtype=np.uint8))
    path = home_tmp_path / "sample.png"
    write_image(buf, path)
    return path


@pytest.fixture
def png_header():
    """Factory: PNG bytes whose IHDR declares width x height, with no pixel data."""

    def _chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data)
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    def _build(width: int, height: int) -> bytes:
        # 8-bit RGBA, no interlace
        ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
        return (
            PNG_SIGNATURE
            + _chunk(b"IHDR", ihdr)
            + _chunk(b"IDAT", b"")
            + _chunk(b"IEND", b"")
        )

    return _build
