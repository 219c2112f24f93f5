"""preflight/engine/attempts.py

Ordered fallback ("attempt chain"): try each Attempt in turn until one
produces a plausible output file at `target`.

- the target is removed before each attempt and after a failed one, so a
  partial file from an earlier strategy never survives
- a process-level success with a missing/tiny output still counts as failure
- bounded: each attempt runs once, no backoff
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from preflight.engine.errors import AttemptsExhausted, PreflightError
from preflight.engine.types import Attempt

logger = logging.getLogger("preflight.attempts")


def output_is_plausible(target: Path, min_bytes: int) -> bool:
    try:
        return target.is_file() and target.stat().st_size > min_bytes
    except OSError:
        return False


def _discard(target: Path) -> None:
    try:
        target.unlink(missing_ok=True)
    except OSError:
        logger.warning("attempt.cleanup_failed", extra={"target": str(target)})


def run_attempts(
    attempts: Sequence[Attempt],
    *,
    target: Path,
    purpose: str,
    error_cls: type[AttemptsExhausted] = AttemptsExhausted,
    catch: tuple[type[BaseException], ...] = (PreflightError, OSError, ValueError),
) -> str:
    """Run `attempts` in order; return the name of the first that succeeded."""
    tried: list[str] = []
    last_error: BaseException | None = None

    for attempt in attempts:
        tried.append(attempt.name)
        _discard(target)
        try:
            attempt.invoke(attempt.timeout_s)
        except catch as e:
            last_error = e
            logger.warning(
                f"{purpose}.attempt_failed",
                extra={"strategy": attempt.name, "error": str(e), "error_type": type(e).__name__},
            )
            _discard(target)
            continue

        if attempt.succeeded():
            logger.info(f"{purpose}.attempt_ok", extra={"strategy": attempt.name})
            return attempt.name

        last_error = PreflightError(f"{attempt.name} produced no usable output")
        logger.warning(f"{purpose}.attempt_invalid_output", extra={"strategy": attempt.name})
        _discard(target)

    raise error_cls(
        f"All {purpose} strategies failed ({', '.join(tried) or 'none'})",
        attempts=tried,
        last_error=last_error,
    )


def plausible_output(target: Path, min_bytes: int) -> Callable[[], bool]:
    return lambda: output_is_plausible(target, min_bytes)
