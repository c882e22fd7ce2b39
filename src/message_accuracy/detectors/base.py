"""Common detector protocol and the timeout/fallback runner."""

import asyncio
import time
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, Field

from message_accuracy.models.analysis import DetectorContribution
from message_accuracy.models.errors import ErrorRecord

logger = structlog.get_logger()

FALLBACK_PREFIX = "fallback-"


class DetectorUnavailable(Exception):
    """Raised by a detector whose backend is not configured or not reachable."""


class DetectorResult(BaseModel):
    """Normalized output of an external detector."""

    contribution: DetectorContribution
    errors: list[ErrorRecord] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)


class Detector(Protocol):
    """An external scorer with a local fallback.

    ``name`` identifies the detector in logs and contributions; ``source``
    is the tag of its authoritative backend.
    """

    name: str
    source: str

    async def detect(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        ...

    def fallback(self, text: str, hint: dict[str, Any] | None = None) -> DetectorResult:
        ...


def fallback_source(source: str) -> str:
    return f"{FALLBACK_PREFIX}{source}"


def mark_fallback(result: DetectorResult, source: str, note: str) -> DetectorResult:
    """Relabel a detector result as a fallback with a note."""
    contribution = result.contribution.model_copy(
        update={"source": fallback_source(source), "note": note}
    )
    return result.model_copy(update={"contribution": contribution})


def fallback_result(
    detector: Detector,
    text: str,
    note: str,
    hint: dict[str, Any] | None = None,
) -> DetectorResult:
    """The detector's local fallback, labelled; an empty contribution if that fails too."""
    try:
        result = detector.fallback(text, hint)
    except Exception:
        logger.exception("detector_fallback_failed", detector=detector.name)
        result = DetectorResult(
            contribution=DetectorContribution(detector=detector.name, source=detector.source)
        )
    return mark_fallback(result, detector.source, note)


def skipped_result(detector: Detector, reason: str) -> DetectorResult:
    """Contribution for a detector that was deliberately not called."""
    return DetectorResult(
        contribution=DetectorContribution(
            detector=detector.name,
            source=fallback_source(detector.source),
            note=reason,
        )
    )


async def run_detector(
    detector: Detector,
    text: str,
    timeout: float,
    hint: dict[str, Any] | None = None,
) -> DetectorResult:
    """Call a detector with a timeout; never raise.

    Args:
        detector: Detector to call.
        text: Text to analyze.
        timeout: Seconds before the call is abandoned.
        hint: Optional detector-specific context.

    Returns:
        The detector's result, or its local fallback labelled
        ``fallback-<source>`` on timeout or failure.
    """
    started = time.perf_counter()
    try:
        result = await asyncio.wait_for(detector.detect(text, hint), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("detector_timeout", detector=detector.name, timeout=timeout)
        note = f"timed out after {timeout}s"
    except DetectorUnavailable as e:
        logger.warning("detector_unavailable", detector=detector.name, reason=str(e))
        note = f"unavailable: {e}"
    except Exception as e:
        logger.exception("detector_failed", detector=detector.name)
        note = f"failed: {type(e).__name__}"
    else:
        latency = (time.perf_counter() - started) * 1000
        contribution = result.contribution.model_copy(update={"latency_ms": round(latency, 1)})
        return result.model_copy(update={"contribution": contribution})

    logger.info("detector_fallback", detector=detector.name, reason=note)
    latency = (time.perf_counter() - started) * 1000
    result = fallback_result(detector, text, note, hint)
    contribution = result.contribution.model_copy(update={"latency_ms": round(latency, 1)})
    return result.model_copy(update={"contribution": contribution})
