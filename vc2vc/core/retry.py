# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/core/retry.py
"""
Bounded retries for vSphere calls.

Host mutations and session calls go through retry_operation(): a fixed number
of attempts, the delay doubling up to a ceiling, plus up to jitter_s of noise.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_backoff_s: float = 2.0
    max_backoff_s: float = 30.0
    jitter_s: float = 0.5

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "RetryPolicy":
        d = cls()
        return cls(
            max_attempts=max(1, int(cfg.get("retry_attempts") or d.max_attempts)),
            base_backoff_s=float(cfg.get("retry_base_s") if cfg.get("retry_base_s") is not None else d.base_backoff_s),
            max_backoff_s=float(cfg.get("retry_max_s") if cfg.get("retry_max_s") is not None else d.max_backoff_s),
            jitter_s=float(cfg.get("retry_jitter_s") if cfg.get("retry_jitter_s") is not None else d.jitter_s),
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt+1 (attempt is 1-based), without jitter."""
        return min(self.base_backoff_s * (2 ** (attempt - 1)), self.max_backoff_s)


NO_RETRY = RetryPolicy(max_attempts=1, base_backoff_s=0.0, max_backoff_s=0.0, jitter_s=0.0)


def _pause(pol: RetryPolicy, attempt: int) -> float:
    delay = pol.delay_for(attempt)
    return delay + random.uniform(0, pol.jitter_s) if pol.jitter_s > 0 else delay


def retry_operation(
    operation: Callable[[], T],
    *,
    policy: Optional[RetryPolicy] = None,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.WARNING,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call operation() until it returns or policy.max_attempts is used up.

    Only `exceptions` are retried; anything else propagates at once. When the
    attempts run out the last error is re-raised unchanged, so callers see the
    real pyVmomi fault. `sleep` is injectable so tests never wait.

        retry_operation(lambda: ns.UpdateNetworkConfig(config=cfg, changeMode="modify"),
                        policy=RetryPolicy(max_attempts=5), operation_name="update network", logger=log)
    """
    pol = policy or RetryPolicy()
    attempts = max(1, pol.max_attempts)
    attempt = 1
    while True:
        try:
            return operation()
        except exceptions as e:
            if attempt >= attempts:
                if logger:
                    logger.log(logging.ERROR, "%s failed after %d attempts: %s", operation_name, attempts, e)
                raise
            wait = _pause(pol, attempt)
            if logger:
                logger.log(
                    log_level,
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                    operation_name,
                    attempt,
                    attempts,
                    e,
                    wait,
                )
            sleep(wait)
            attempt += 1
