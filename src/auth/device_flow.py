"""
OAuth 2.0 device authorization grant client.

Runs one device flow per call to DeviceFlowClient.run():

    IDLE -> CODE_ISSUED -> POLLING -> SUCCEEDED | EXPIRED | DENIED | CANCELLED | FAILED

Every wait in the polling loop (the tick timer and each in-flight exchange
call) is a single asyncio.wait over three conditions: the work itself, the
caller's cancel event and the device code deadline. Whichever completes
first decides the outcome, so exactly one terminal transition occurs.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from auth.models import DeviceAuthorizationSession, TokenSet
from auth.provider import DEFAULT_POLL_INTERVAL, CredentialProvider
from core.exceptions import (
    AccessDeniedError,
    AuthorizationPendingError,
    DeviceCodeExpiredError,
    FlowCancelledError,
    ProtocolError,
    SlowDownError,
)

logger = logging.getLogger(__name__)

CodeCallback = Callable[[DeviceAuthorizationSession], Union[None, Awaitable[None]]]


class FlowState(Enum):
    """States of a single device flow invocation."""

    IDLE = "idle"
    CODE_ISSUED = "code_issued"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    EXPIRED = "expired"
    DENIED = "denied"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (FlowState.IDLE, FlowState.CODE_ISSUED, FlowState.POLLING)


@dataclass(frozen=True)
class DeviceFlowResult:
    """Outcome of a successful device flow.

    The session is returned alongside the tokens so callers can still log
    the verification URI and user code after success.
    """

    token_set: TokenSet
    session: DeviceAuthorizationSession
    attempts: int


class _Cancelled(Exception):
    pass


class _DeadlineReached(Exception):
    pass


class DeviceFlowClient:
    """Drives the device authorization grant against a CredentialProvider.

    The client holds no per-flow state, so concurrent run() calls (for
    example two users logging in at once) are independent.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        default_interval: float = DEFAULT_POLL_INTERVAL,
        slow_down_factor: float = 2.0,
    ) -> None:
        """Initialize the client.

        Args:
            provider: Authorization server to run the flow against.
            default_interval: Seconds between polls when the server gives no
                usable interval. Must be positive.
            slow_down_factor: Multiplier applied to the interval on slow_down.
                Must be greater than 1.
        """
        if default_interval <= 0:
            raise ValueError("default_interval must be positive")
        if slow_down_factor <= 1:
            raise ValueError("slow_down_factor must be greater than 1")

        self.provider = provider
        self.default_interval = default_interval
        self.slow_down_factor = slow_down_factor

    async def run(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        on_code: Optional[CodeCallback] = None,
    ) -> DeviceFlowResult:
        """Run the device flow to completion.

        Args:
            cancel_event: Set it to abandon the flow. Checked at every wait.
            on_code: Called with the session once the code is issued, so the
                user can be shown where to go and what to enter.

        Returns:
            DeviceFlowResult with the token set and the issued session.

        Raises:
            ProtocolError: Code issuance failed, or the server answered with an
                unexpected error while polling.
            AccessDeniedError: The user declined.
            DeviceCodeExpiredError: The code expired before authorization.
            FlowCancelledError: cancel_event was set.
        """
        state = FlowState.IDLE

        try:
            session = await self.provider.issue_device_code()
        except ProtocolError:
            self._log_transition(state, FlowState.FAILED)
            raise

        state = self._log_transition(state, FlowState.CODE_ISSUED)

        if on_code is not None:
            outcome = on_code(session)
            if inspect.isawaitable(outcome):
                await outcome

        loop = asyncio.get_running_loop()
        deadline = loop.time() + session.seconds_remaining()
        interval = session.interval if session.interval > 0 else self.default_interval
        attempts = 0

        state = self._log_transition(state, FlowState.POLLING, interval=interval)

        try:
            while True:
                await self._race(asyncio.sleep(interval), deadline, cancel_event)

                attempts += 1
                try:
                    token_set = await self._race(
                        self.provider.exchange_device_code(session.device_code),
                        deadline,
                        cancel_event,
                    )
                except AuthorizationPendingError:
                    logger.debug("Authorization pending", extra={"attempts": attempts})
                    continue
                except SlowDownError as e:
                    interval = max(interval * self.slow_down_factor, e.interval or 0.0)
                    logger.info(
                        "Server requested slow_down, increasing poll interval",
                        extra={"interval": interval, "attempts": attempts},
                    )
                    continue

                self._log_transition(state, FlowState.SUCCEEDED, attempts=attempts)
                return DeviceFlowResult(
                    token_set=token_set, session=session, attempts=attempts
                )

        except _Cancelled:
            self._log_transition(state, FlowState.CANCELLED, attempts=attempts)
            raise FlowCancelledError("Device flow cancelled", session=session) from None
        except _DeadlineReached:
            self._log_transition(state, FlowState.EXPIRED, attempts=attempts)
            raise DeviceCodeExpiredError("Device code expired", session=session) from None
        except DeviceCodeExpiredError as e:
            self._log_transition(state, FlowState.EXPIRED, attempts=attempts)
            e.session = session
            raise
        except AccessDeniedError as e:
            self._log_transition(state, FlowState.DENIED, attempts=attempts)
            e.session = session
            raise
        except ProtocolError:
            self._log_transition(state, FlowState.FAILED, attempts=attempts)
            raise
        except asyncio.CancelledError:
            self._log_transition(state, FlowState.CANCELLED, attempts=attempts)
            raise

    @staticmethod
    async def _race(
        work: Awaitable[Any],
        deadline: float,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        """Await ``work`` unless the cancel event or the deadline comes first.

        Cancellation wins over a result that completes at the same time.
        Pending tasks are always cancelled before returning.
        """
        loop = asyncio.get_running_loop()
        work_task = asyncio.ensure_future(work)
        waiters = {work_task}

        cancel_task = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=max(deadline - loop.time(), 0.0),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        if cancel_task is not None and cancel_task in done:
            if work_task in done and not work_task.cancelled():
                # Discard the simultaneous result so it is not reported as unretrieved
                work_task.exception()
            raise _Cancelled()
        if work_task in done:
            return work_task.result()
        raise _DeadlineReached()

    @staticmethod
    def _log_transition(old: FlowState, new: FlowState, **fields: Any) -> FlowState:
        level = logging.WARNING if new in (FlowState.FAILED, FlowState.EXPIRED) else logging.INFO
        logger.log(
            level,
            f"Device flow {old.value} -> {new.value}",
            extra={"flow_state": new.value, **fields},
        )
        return new
