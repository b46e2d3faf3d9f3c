"""pixelfilter sidecar entry point.

Prints the handshake lines the host process reads from stdout, then serves
until a ``shutdown`` command arrives.
"""

import os
from pathlib import Path

import sentry_sdk

from _version import __version__
from diagnostics import app_dir, init_diagnostics
from security import strip_pii
from zmq_server import ZMQServer

CONSENT_FILENAME = "telemetry_consent"


def telemetry_dsn() -> str:
    """SENTRY_DSN once the user has opted in, otherwise "" (Sentry disabled)."""
    consent: Path = app_dir() / CONSENT_FILENAME
    try:
        opted_in = consent.read_text().strip() == "yes"
    except OSError:
        return ""
    return os.environ.get("SENTRY_DSN", "") if opted_in else ""


def init_sentry():
    sentry_sdk.init(
        dsn=telemetry_dsn(),
        release=f"pixelfilter@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        before_send=strip_pii,
        max_breadcrumbs=50,
    )


def handshake(server: ZMQServer) -> list[str]:
    return [
        f"ZMQ_PORT={server.port}",
        f"ZMQ_PING_PORT={server.ping_port}",
        f"ZMQ_TOKEN={server.token}",
    ]


def main():
    init_sentry()
    init_diagnostics()
    server = ZMQServer()
    for line in handshake(server):
        print(line, flush=True)
    server.run()


if __name__ == "__main__":
    main()
