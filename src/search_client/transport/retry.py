"""
Retry policy for the multi-host dispatcher.

The strategy answers two questions for the dispatch loop:

1. **Timeouts**: how long to wait on attempt i. Early attempts fail fast
   against unreachable hosts; later attempts tolerate slow but alive hosts.
   Both the connect and the read timeout grow linearly with the attempt
   index, up to TIMEOUT_CAP.
2. **Retryability**: whether a status code or failure advances to the next
   host or ends the call.

RetryState holds the per-call counter and attempt history. It is created by
the dispatcher for each call and never shared.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from search_client.config import Settings
from search_client.models.enums import AttemptOutcome, CallType
from search_client.models.http_models import RequestAttempt, Timeouts
from search_client.models.request_options import RequestOptions


class RetryStrategy:
    """
    Timeout escalation and retryability rules.

    Attributes:
        connect_timeout: Base connect timeout (seconds)
        read_timeout: Base timeout for read traffic (seconds)
        write_timeout: Base timeout for write traffic (seconds)
        timeout_cap: Upper bound for escalated timeouts (seconds)
        retryable_status_codes: 4xx statuses treated as retryable
    """

    def __init__(
        self,
        connect_timeout: float = 2.0,
        read_timeout: float = 5.0,
        write_timeout: float = 30.0,
        timeout_cap: float = 120.0,
        retryable_status_codes: Iterable[int] = (408,),
    ):
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.timeout_cap = timeout_cap
        self.retryable_status_codes = frozenset(retryable_status_codes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryStrategy":
        return cls(
            connect_timeout=settings.CONNECT_TIMEOUT,
            read_timeout=settings.READ_TIMEOUT,
            write_timeout=settings.WRITE_TIMEOUT,
            timeout_cap=settings.TIMEOUT_CAP,
            retryable_status_codes=settings.RETRYABLE_STATUS_CODES,
        )

    def timeouts_for(
        self,
        attempt_index: int,
        call_type: CallType,
        options: Optional[RequestOptions] = None,
    ) -> Timeouts:
        """
        Timeouts for the attempt at a 0-based index.

        Per-call overrides in options replace the configured base values;
        escalation and the cap still apply.
        """
        connect = self.connect_timeout
        read = self.read_timeout if call_type is CallType.READ else self.write_timeout
        if options is not None:
            connect = options.connect_timeout or connect
            read = options.timeout_for(call_type) or read

        factor = attempt_index + 1
        return Timeouts(
            connect=min(connect * factor, self.timeout_cap),
            read=min(read * factor, self.timeout_cap),
        )

    @staticmethod
    def is_success(status_code: int) -> bool:
        return 200 <= status_code < 300

    def is_retryable_status(self, status_code: int) -> bool:
        """Everything that is neither 2xx nor 4xx, plus the listed 4xx codes."""
        if status_code in self.retryable_status_codes:
            return True
        return status_code // 100 not in (2, 4)


@dataclass
class RetryState:
    """
    Mutable attempt tracking for one dispatch call.

    Attributes:
        call_type: Traffic class of the call
        host_count: Length of the host sequence being walked
        attempts: Attempts made so far, in order
    """

    call_type: CallType
    host_count: int
    attempts: list[RequestAttempt] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def attempt_index(self) -> int:
        """0-based index of the next attempt."""
        return len(self.attempts)

    @property
    def exhausted(self) -> bool:
        return len(self.attempts) >= self.host_count

    def record(
        self,
        host: str,
        timeouts: Timeouts,
        started_at: float,
        outcome: AttemptOutcome,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ) -> RequestAttempt:
        attempt = RequestAttempt(
            host=host,
            timeouts=timeouts,
            started_at=started_at,
            elapsed_ms=int((time.monotonic() - started_at) * 1000),
            outcome=outcome,
            status_code=status_code,
            error=error,
        )
        self.attempts.append(attempt)
        return attempt

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at
