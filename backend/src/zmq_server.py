import base64
import collections
import json
import logging
import os
import time
import uuid

import sentry_sdk
import zmq

from engine.buffer import PixelBuffer
from engine.pipeline import (
    Selection,
    apply_explicit,
    apply_named,
    apply_recipe,
    flush_timing,
    get_filter_stats,
)
from filters import registry
from imaging.codec import (
    ImageTooLargeError,
    encode_image,
    read_image,
    read_image_size,
    write_image,
)
from recipe.schema import deserialize as deserialize_recipe
from security import (
    MAX_IMAGE_PIXELS,
    validate_chain_depth,
    validate_image_path,
    validate_output_path,
    validate_pixel_count,
)

logger = logging.getLogger(__name__)

NO_IMAGE_ERROR = "no image"


class ZMQServer:
    def __init__(self):
        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.REP)
        self.socket.setsockopt(zmq.MAXMSGSIZE, 1_048_576)  # 1 MB limit
        self.port = self.socket.bind_to_random_port("tcp://127.0.0.1")
        # Separate ping socket, never blocked by large images
        self.ping_socket = self.context.socket(zmq.REP)
        self.ping_socket.setsockopt(zmq.MAXMSGSIZE, 4096)  # 4 KB limit (pings only)
        self.ping_port = self.ping_socket.bind_to_random_port("tcp://127.0.0.1")
        # Auth token required from every local client
        self.token = str(uuid.uuid4())
        self.start_time = time.time()
        self.running = False
        # Decoded sources, keyed by (path, mtime), LRU eviction
        self._sources: collections.OrderedDict[tuple[str, float], PixelBuffer] = (
            collections.OrderedDict()
        )
        self._max_sources = 8
        self.last_filter_ms = 0.0

    def reset_state(self):
        """Clear accumulated state without closing sockets/context.

        Used by session-scoped test fixtures to reset between tests
        while keeping the server running.
        """
        self._sources.clear()
        self.last_filter_ms = 0.0
        flush_timing()

    def _validate_token(self, message: dict) -> str | None:
        """Validate auth token. Returns error message or None if valid."""
        if message.get("_token") != self.token:
            return "invalid or missing auth token"
        return None

    def _make_ping_response(self, msg_id: str | None) -> dict:
        return {
            "id": msg_id,
            "status": "alive",
            "uptime_s": round(time.time() - self.start_time, 1),
            "last_filter_ms": self.last_filter_ms,
        }

    def handle_message(self, message: dict) -> dict:
        cmd = message.get("cmd")
        msg_id = message.get("id")

        # Auth token required on all commands
        token_err = self._validate_token(message)
        if token_err:
            return {"id": msg_id, "ok": False, "error": token_err}

        if cmd == "ping":
            return self._make_ping_response(msg_id)
        elif cmd == "shutdown":
            self.running = False
            return {"id": msg_id, "ok": True}
        elif cmd == "list_filters":
            return {"id": msg_id, "ok": True, "filters": registry.list_all()}
        elif cmd == "apply_named":
            return self._handle_apply_named(message, msg_id)
        elif cmd == "apply_explicit":
            return self._handle_apply_explicit(message, msg_id)
        elif cmd == "apply_recipe":
            return self._handle_apply_recipe(message, msg_id)
        elif cmd == "filter_stats":
            return {"id": msg_id, "ok": True, "stats": get_filter_stats()}
        elif cmd == "flush_state":
            flush_timing()
            self._sources.clear()
            return {"id": msg_id, "ok": True}
        else:
            return {"id": msg_id, "ok": False, "error": f"unknown: {cmd}"}

    def _check_paths(self, message: dict) -> list[str]:
        path = message.get("path")
        if not path:
            return ["missing path"]
        # SEC-1: Validate input path
        errors = validate_image_path(path)
        if errors:
            return errors
        output_path = message.get("output_path")
        if output_path:
            return validate_output_path(output_path)
        return []

    def _handle_apply_named(self, message: dict, msg_id: str | None) -> dict:
        filters = message.get("filters")
        if not isinstance(filters, list):
            return {"id": msg_id, "ok": False, "error": "missing filters"}

        errors = self._check_paths(message)
        # SEC-3: Validate sequence length
        errors = errors or validate_chain_depth(filters)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        return self._run(
            message, msg_id, lambda source: apply_named(source, filters), "Apply named"
        )

    def _handle_apply_explicit(self, message: dict, msg_id: str | None) -> dict:
        raw = message.get("selections")
        if not isinstance(raw, dict):
            return {"id": msg_id, "ok": False, "error": "missing selections"}

        errors = self._check_paths(message)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            selections = {
                name: Selection(
                    slot.get("selected", False), float(slot.get("strength", 0.0))
                )
                for name, slot in raw.items()
            }
        except (AttributeError, TypeError, ValueError):
            return {"id": msg_id, "ok": False, "error": "invalid selections"}

        return self._run(
            message,
            msg_id,
            lambda source: apply_explicit(source, selections),
            "Apply explicit",
        )

    def _handle_apply_recipe(self, message: dict, msg_id: str | None) -> dict:
        text = message.get("recipe")
        if not isinstance(text, str):
            return {"id": msg_id, "ok": False, "error": "missing recipe"}

        errors = self._check_paths(message)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            recipe = deserialize_recipe(text)
        except ValueError as e:
            return {"id": msg_id, "ok": False, "error": str(e)}
        if recipe["mode"] == "named":
            errors = validate_chain_depth(recipe["filters"])
            if errors:
                return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        return self._run(
            message, msg_id, lambda source: apply_recipe(source, recipe), "Apply recipe"
        )

    def _run(self, message: dict, msg_id: str | None, pipeline, label: str) -> dict:
        """Decode the source, run ``pipeline`` on it and deliver the result."""
        try:
            path = message["path"]
            errors = self._check_source_size(path)
            if errors:
                return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

            source = self._get_source(path)
            if source is None:
                return {"id": msg_id, "ok": False, "error": NO_IMAGE_ERROR}

            t0 = time.time()
            output = pipeline(source)
            self.last_filter_ms = round((time.time() - t0) * 1000, 2)
            if output is None:
                return {"id": msg_id, "ok": False, "error": NO_IMAGE_ERROR}

            response = {
                "id": msg_id,
                "ok": True,
                "width": output.width,
                "height": output.height,
                "elapsed_ms": self.last_filter_ms,
            }
            output_path = message.get("output_path")
            if output_path:
                write_image(output, output_path)
                response["output_path"] = output_path
            else:
                png_bytes = encode_image(output, "PNG")
                response["image_data"] = base64.b64encode(png_bytes).decode("ascii")
            return response
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("%s handler error: %s", label, type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

    def _check_source_size(self, path: str) -> list[str]:
        """SEC-2 on the header dimensions, before any pixel data is decoded."""
        try:
            size = read_image_size(path)
        except ImageTooLargeError:
            return [f"Image exceeds maximum {MAX_IMAGE_PIXELS} pixels (SEC-2)"]
        if size is None:
            return []
        return validate_pixel_count(*size)

    def _get_source(self, path: str) -> PixelBuffer | None:
        key = (path, os.path.getmtime(path))
        if key in self._sources:
            self._sources.move_to_end(key)
            return self._sources[key]
        source = read_image(path)
        if source is None:
            return None
        # Evict oldest source if cache is full
        while len(self._sources) >= self._max_sources:
            self._sources.popitem(last=False)
        self._sources[key] = source
        return source

    def run(self):
        self.running = True
        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self.ping_socket, zmq.POLLIN)
        while self.running:
            events = dict(poller.poll(timeout=500))

            # Handle ping socket first (lightweight, never blocked)
            if self.ping_socket in events:
                try:
                    raw = self.ping_socket.recv()
                    message = json.loads(raw)
                    msg_id = message.get("id")
                    token_err = self._validate_token(message)
                    if token_err:
                        self.ping_socket.send_json(
                            {"id": msg_id, "ok": False, "error": token_err}
                        )
                    else:
                        self.ping_socket.send_json(self._make_ping_response(msg_id))
                except json.JSONDecodeError:
                    self.ping_socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                except zmq.ZMQError:
                    logger.error("ZMQ error on ping socket")
                    break  # socket state is unrecoverable

            # Handle main command socket
            if self.socket in events:
                try:
                    raw = self.socket.recv()
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    # MUST send reply before next recv (REP protocol)
                    self.socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                    continue
                except zmq.ZMQError:
                    logger.error("ZMQ error on main socket")
                    break

                try:
                    response = self.handle_message(message)
                except Exception as e:
                    sentry_sdk.capture_exception(e)
                    logger.error("Unhandled handler error: %s", type(e).__name__)
                    response = {"ok": False, "error": "Internal processing error"}

                self.socket.send_json(response)
        self.close()

    def close(self):
        self._sources.clear()
        self.ping_socket.close()
        self.socket.close()
        self.context.term()
