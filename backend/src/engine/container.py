"""Filter container — wraps a pure filter with output checks and crash reporting."""

import logging
import time

import sentry_sdk

from engine.buffer import PixelBuffer
from filters.registry import Filter

logger = logging.getLogger(__name__)


def _capture_with_context(e: Exception, filter_id: str, extra: dict):
    """Capture exception to Sentry with filter-level context and fingerprint dedup."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("filter_id", filter_id)
        scope.fingerprint = ["filter-crash", filter_id, type(e).__name__]
        scope.set_context("filter", extra)
        sentry_sdk.capture_exception(e, scope=scope)


class FilterContainer:
    """Runs one filter: apply → validate.

    Filters are pure, so any exception here is a defect. It is reported and
    re-raised; the container never substitutes a partial result.
    """

    def __init__(self, filter_: Filter):
        self.filter = filter_
        self.last_elapsed_ms = 0.0

    @property
    def filter_id(self) -> str:
        return self.filter.filter_id

    def process(
        self, buffer: PixelBuffer | None, strength: float
    ) -> PixelBuffer | None:
        # Context for Sentry (no pixel data)
        sentry_ctx = {
            "strength": strength,
            "dimensions": [buffer.width, buffer.height] if buffer is not None else None,
        }

        t0 = time.monotonic()
        try:
            output = self.filter.apply(buffer, strength)
            self._validate(buffer, output)
        except Exception as e:
            _capture_with_context(e, self.filter_id, sentry_ctx)
            logger.error(
                "Filter %s failed at strength %s: %s",
                self.filter_id,
                strength,
                type(e).__name__,
                extra={"filter_id": self.filter_id, **sentry_ctx},
            )
            logger.debug("Filter %s exception detail: %s", self.filter_id, e)
            raise
        finally:
            self.last_elapsed_ms = (time.monotonic() - t0) * 1000

        return output

    def _validate(self, buffer: PixelBuffer | None, output) -> None:
        if buffer is None:
            if output is not None:
                raise TypeError(
                    f"Filter returned {type(output).__name__} for an absent buffer"
                )
            return
        if not isinstance(output, PixelBuffer):
            raise TypeError(
                f"Filter returned {type(output).__name__}, expected PixelBuffer"
            )
        if (output.width, output.height) != (buffer.width, buffer.height):
            raise ValueError(
                f"Filter returned {output.width}x{output.height}, "
                f"expected {buffer.width}x{buffer.height}"
            )
        if output is buffer:
            raise ValueError("Filter returned its input buffer instead of a new one")
