"""
Circuit breaker for calls to remote dependencies.

A breaker counts consecutive failures of the calls it protects. Once the
failure threshold is reached it opens and refuses calls without running them,
then after ``reset_timeout`` lets a limited number of probe calls through
(half-open) to decide whether the dependency has recovered.
"""

import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from ..config import CircuitBreakerSettings
from ..events import EventEmitter, Listener
from ..exceptions import CircuitOpenError, CircuitTimeoutError, ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Fallback = Callable[..., Any]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class BreakerEvent(str, Enum):
    """State-change events, one per state entered."""

    OPEN = "open"
    HALF_OPEN = "half-open"
    CLOSED = "closed"


_STATE_EVENTS = {
    CircuitState.OPEN: BreakerEvent.OPEN,
    CircuitState.HALF_OPEN: BreakerEvent.HALF_OPEN,
    CircuitState.CLOSED: BreakerEvent.CLOSED,
}


@dataclass
class CircuitBreakerConfig:
    """Per-breaker configuration."""

    failure_threshold: int = 5
    reset_timeout: float = 60.0
    half_open_success_threshold: int = 2
    call_timeout: float = 10.0
    half_open_max_calls: int | None = 1
    fallback: Fallback | None = None

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be at least 1")
        if self.half_open_success_threshold < 1:
            raise ConfigurationError("half_open_success_threshold must be at least 1")
        if self.reset_timeout <= 0 or self.call_timeout <= 0:
            raise ConfigurationError("reset_timeout and call_timeout must be positive")
        if self.half_open_max_calls is not None and self.half_open_max_calls < 1:
            raise ConfigurationError("half_open_max_calls must be at least 1 or None")

    @classmethod
    def from_settings(
        cls, settings: CircuitBreakerSettings, **overrides: Any
    ) -> "CircuitBreakerConfig":
        return cls(**{**settings.model_dump(), **overrides})


class CircuitBreakerObserver:
    """Receives breaker activity. Subclass and override what you need."""

    def on_state_change(
        self, breaker: "CircuitBreaker", old: CircuitState, new: CircuitState
    ) -> None:
        pass

    def on_success(self, breaker: "CircuitBreaker", duration: float) -> None:
        pass

    def on_failure(self, breaker: "CircuitBreaker", error: BaseException) -> None:
        pass

    def on_rejected(self, breaker: "CircuitBreaker") -> None:
        pass


class CircuitBreaker:
    """Circuit breaker implementation for handling failures gracefully."""

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        observer: CircuitBreakerObserver | None = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.observer = observer

        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: float | None = None

        self._opened_at: float | None = None
        self._probes_in_flight = 0
        self._reset_handle: asyncio.TimerHandle | None = None
        self._events: EventEmitter[BreakerEvent] = EventEmitter(
            BreakerEvent, f"circuit_breaker:{name}"
        )

        logger.info(
            "Circuit breaker initialized",
            name=self.name,
            failure_threshold=self.config.failure_threshold,
            reset_timeout=self.config.reset_timeout,
        )

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_state(self) -> CircuitState:
        return self._state

    def on(self, event: BreakerEvent | str, listener: Listener) -> None:
        self._events.on(event, listener)

    def off(self, event: BreakerEvent | str, listener: Listener) -> None:
        self._events.off(event, listener)

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot of the breaker's state and counters."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
        }

    async def execute(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run ``fn`` under the breaker's protection."""
        if self._state == CircuitState.OPEN and self._reset_timeout_elapsed():
            self._transition(CircuitState.HALF_OPEN)

        if self._state == CircuitState.OPEN or not self._probe_permitted():
            return await self._reject(args, kwargs)

        is_probe = self._state == CircuitState.HALF_OPEN
        if is_probe:
            self._probes_in_flight += 1

        started = time.monotonic()
        try:
            result = await self._invoke(fn, args, kwargs)
        except Exception as e:
            self._record_failure(e)
            if self.config.fallback is None:
                raise
            return await self._call_fallback(e, args, kwargs)
        else:
            self._record_success(time.monotonic() - started)
            return result
        finally:
            if is_probe:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)

    def protect(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorator running every call of ``func`` through this breaker."""

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.execute(func, *args, **kwargs)

        return wrapper

    def force_open(self) -> None:
        """Open the circuit regardless of counters."""
        if self._state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            self._schedule_reset()
            return
        self._transition(CircuitState.OPEN)

    def force_closed(self) -> None:
        """Close the circuit and reset every counter."""
        self._transition(CircuitState.CLOSED)
        self.failure_count = 0
        self.success_count = 0

    async def _invoke(
        self, fn: Callable[..., Any], args: tuple, kwargs: dict[str, Any]
    ) -> Any:
        timeout = self.config.call_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            if inspect.iscoroutinefunction(fn):
                return await asyncio.wait_for(fn(*args, **kwargs), timeout=timeout)
            # Sync callables run in a thread pool and keep running past the timeout
            result = await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args, **kwargs)),
                timeout=timeout,
            )
            if inspect.isawaitable(result):
                # e.g. execute(lambda: client.get(url))
                result = await asyncio.wait_for(
                    result, timeout=max(deadline - loop.time(), 0)
                )
            return result
        except asyncio.TimeoutError:
            raise CircuitTimeoutError(self.name, timeout) from None

    async def _reject(self, args: tuple, kwargs: dict[str, Any]) -> Any:
        error = CircuitOpenError(self.name)
        logger.warning(
            "Circuit breaker rejected call", name=self.name, state=self._state.value
        )
        self._notify("on_rejected", self)
        if self.config.fallback is None:
            raise error
        return await self._call_fallback(error, args, kwargs)

    async def _call_fallback(
        self, error: Exception, args: tuple, kwargs: dict[str, Any]
    ) -> Any:
        result = self.config.fallback(error, *args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _probe_permitted(self) -> bool:
        if self._state != CircuitState.HALF_OPEN:
            return True
        limit = self.config.half_open_max_calls
        return limit is None or self._probes_in_flight < limit

    def _reset_timeout_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        return time.monotonic() - self._opened_at >= self.config.reset_timeout

    def _record_success(self, duration: float) -> None:
        self._notify("on_success", self, duration)

        if self._state == CircuitState.CLOSED:
            self.failure_count = 0
        elif self._state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.half_open_success_threshold:
                self._transition(CircuitState.CLOSED)

    def _record_failure(self, error: Exception) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        logger.warning(
            "Circuit breaker recorded failure",
            name=self.name,
            error=str(error),
            error_type=type(error).__name__,
            failure_count=self.failure_count,
        )
        self._notify("on_failure", self, error)

        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif (
            self._state == CircuitState.CLOSED
            and self.failure_count >= self.config.failure_threshold
        ):
            self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        self.success_count = 0
        if new_state == CircuitState.OPEN:
            if old_state == CircuitState.HALF_OPEN:
                self.failure_count = 0
            self._opened_at = time.monotonic()
            self._schedule_reset()
        else:
            self._cancel_reset()
            self._opened_at = None
            self.failure_count = 0

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit breaker state changed",
            name=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
        )
        self._notify("on_state_change", self, old_state, new_state)
        self._events.emit(_STATE_EVENTS[new_state], self.get_metrics())

    def _schedule_reset(self) -> None:
        self._cancel_reset()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the next execute() performs the check instead
            return
        self._reset_handle = loop.call_later(
            self.config.reset_timeout, self._on_reset_timer
        )

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _on_reset_timer(self) -> None:
        self._reset_handle = None
        if self._state == CircuitState.OPEN:
            self._transition(CircuitState.HALF_OPEN)

    def _notify(self, hook: str, *args: Any) -> None:
        if self.observer is None:
            return
        try:
            getattr(self.observer, hook)(*args)
        except Exception as e:
            logger.error(
                "Circuit breaker observer failed",
                name=self.name,
                hook=hook,
                error=str(e),
                exc_info=True,
            )

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self._state.value})"
