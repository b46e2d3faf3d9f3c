"""Request gates for the pixelfilter sidecar, plus PII scrubbing.

Each gate returns a list of error strings; an empty list means accepted.
"""

import os
import re
from pathlib import Path

# SEC-1: Source image files
MAX_IMAGE_SIZE = 100 * 1024 * 1024  # 100 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tif", ".tiff", ".webp"}

# SEC-2: Header pixel count cap (~100 megapixels)
MAX_IMAGE_PIXELS = 100_000_000

# SEC-3: Named-sequence length cap
MAX_CHAIN_DEPTH = 32

# Pillow can read GIF but the sidecar never writes it
OUTPUT_EXTENSIONS = ALLOWED_EXTENSIONS - {".gif"}
SYSTEM_DIRS = (
    "/System",
    "/Library",
    "/usr",
    "/bin",
    "/sbin",
    "/etc",
    "/private/var",
    "/private/etc",
)


def _under(path: Path, root: str | Path) -> bool:
    return path.resolve().is_relative_to(Path(root).resolve())


def validate_image_path(path: str) -> list[str]:
    """SEC-1: a regular image file, not a symlink, inside the user's home."""
    if "\x00" in path:
        return ["Path contains a null byte"]
    p = Path(path)
    if not _under(p, Path.home()):
        return ["Path must be within user home directory"]
    if p.is_symlink():
        return ["Symlinks are not allowed"]
    if not p.is_file():
        return [f"File not found: {path}"]

    errors: list[str] = []
    if p.suffix.lower() not in ALLOWED_EXTENSIONS:
        errors.append(
            f"Extension '{p.suffix.lower()}' not allowed. "
            f"Allowed: {sorted(ALLOWED_EXTENSIONS)}"
        )
    size = p.stat().st_size
    if size > MAX_IMAGE_SIZE:
        errors.append(
            f"File too large: {size / (1024 * 1024):.1f} MB "
            f"(max {MAX_IMAGE_SIZE // (1024 * 1024)} MB)"
        )
    return errors


def validate_output_path(path: str) -> list[str]:
    """Where a filtered image may be written: absolute, outside system dirs,
    a writable existing directory, and an extension the encoder handles."""
    if "\x00" in path:
        return ["Path contains a null byte"]
    p = Path(path)
    if not p.is_absolute():
        return ["Output path must be absolute"]
    for system_dir in SYSTEM_DIRS:
        if _under(p, system_dir):
            return [f"Cannot write to system directory: {system_dir}"]

    errors: list[str] = []
    if p.suffix.lower() not in OUTPUT_EXTENSIONS:
        errors.append(f"Output extension '{p.suffix.lower()}' not allowed.")
    if not p.parent.is_dir():
        errors.append(f"Output directory does not exist: {p.parent}")
    elif not os.access(p.parent, os.W_OK):
        errors.append(f"Output directory is not writable: {p.parent}")
    return errors


def validate_pixel_count(width: int, height: int) -> list[str]:
    """SEC-2: header dimensions against MAX_IMAGE_PIXELS."""
    if width * height > MAX_IMAGE_PIXELS:
        return [
            f"Image {width}x{height} exceeds maximum {MAX_IMAGE_PIXELS} pixels (SEC-2)"
        ]
    return []


def validate_chain_depth(chain: list) -> list[str]:
    """SEC-3: named-sequence length against MAX_CHAIN_DEPTH."""
    if len(chain) > MAX_CHAIN_DEPTH:
        return [f"Chain depth {len(chain)} exceeds maximum {MAX_CHAIN_DEPTH} (SEC-3)"]
    return []


# --- PII scrubbing for Sentry events and crash reports ---

_HOME = os.path.expanduser("~")
_USERNAME = os.path.basename(_HOME)
_USER_DIRS = re.compile(r"/Users/[^/\s\"']+|/home/[^/\s\"']+|[A-Za-z]:\\Users\\[^\\\s\"']+")
_USERNAME_WORD = re.compile(rf"\b{re.escape(_USERNAME)}\b") if _USERNAME else None
_SENSITIVE = ("token", "secret", "password", "passwd", "auth", "dsn")
# Only these event sections carry caller-supplied keys
_KEYED_SECTIONS = ("extra", "contexts", "tags")


def _is_sensitive(key: str) -> bool:
    key = key.lower()
    return key == "key" or key.endswith("_key") or any(s in key for s in _SENSITIVE)


def _scrub_text(text: str) -> str:
    text = text.replace(_HOME, "<HOME>")
    text = _USER_DIRS.sub("<REDACTED_PATH>", text)
    if _USERNAME_WORD is not None:
        text = _USERNAME_WORD.sub("<USER>", text)
    return text


def _scrub(value, redact_keys: bool):
    if isinstance(value, dict):
        return {
            k: "<REDACTED>"
            if redact_keys and isinstance(k, str) and _is_sensitive(k)
            else _scrub(v, redact_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(v, redact_keys) for v in value]
    if isinstance(value, str):
        return _scrub_text(value)
    return value


def strip_pii(event: dict, hint: dict) -> dict:
    """Sentry before_send hook; also applied to crash reports.

    Home directories and the username are masked in every string.
    Secret-looking keys are redacted inside extra, contexts and tags.
    """
    return {
        key: _scrub(value, redact_keys=key in _KEYED_SECTIONS)
        for key, value in event.items()
    }
