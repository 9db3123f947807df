"""Push-based streams with replay-latest semantics.

A Stream delivers values to subscribers through callbacks. Subscribing is a
coroutine because a stream may need to load its first value from disk; once
subscribed, delivery is synchronous. Every subscription is explicit and must
be cancelled by its owner.

Example:
    subscription = await backend.get_all().subscribe(on_todos, on_error)
    ...
    subscription.cancel()
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)

OnNext = Callable[[T], None]
OnError = Callable[[BaseException], None]


class Subscription:
    """Handle returned by Stream.subscribe.

    Cancelling is idempotent. Subscriptions can also be used as context
    managers, which cancel on exit.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self._active = on_cancel is not None

    @classmethod
    def closed(cls) -> Subscription:
        """Return a subscription that was never active."""
        return cls(None)

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


class _Failure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


class _Observer(Generic[T]):
    # Compared by identity, so one callback can be subscribed twice
    def __init__(self, on_next: OnNext[T]) -> None:
        self.on_next = on_next


class Stream(ABC, Generic[T]):
    """Base class for push streams."""

    @abstractmethod
    async def subscribe(
        self, on_next: OnNext[T], on_error: OnError | None = None
    ) -> Subscription:
        """Start receiving values.

        Args:
            on_next: Called with every value, starting with the current one.
            on_error: Called once if the stream fails. When omitted, a failure
                while subscribing is raised from this coroutine instead.

        Returns:
            The Subscription controlling delivery.
        """

    def map(self, transform: Callable[[T], R]) -> Stream[R]:
        """Return a stream delivering ``transform(value)`` for each value."""
        return MappedStream(self, transform)

    async def first(self) -> T:
        """Return the current value of the stream."""
        values: list[T] = []
        failures: list[BaseException] = []
        subscription = await self.subscribe(values.append, failures.append)
        subscription.cancel()
        if failures:
            raise failures[0]
        if not values:
            raise LookupError("Stream has no value")
        return values[0]

    async def listen(self) -> AsyncIterator[T]:
        """Iterate over values as they arrive.

        The subscription is cancelled when the consuming loop exits.
        """
        queue: asyncio.Queue[T | _Failure] = asyncio.Queue()
        subscription = await self.subscribe(
            queue.put_nowait, lambda exc: queue.put_nowait(_Failure(exc))
        )
        try:
            while True:
                item = await queue.get()
                if isinstance(item, _Failure):
                    raise item.exc
                yield item
        finally:
            subscription.cancel()


class Subject(Stream[T]):
    """A stream that caches its latest value and replays it on subscribe.

    Values are pushed with publish(), which delivers synchronously to every
    active subscriber in subscription order. A subscriber that raises is
    logged and skipped; the others still receive the value.
    """

    _UNSET = object()

    def __init__(self, initial: object = _UNSET) -> None:
        self._value = initial
        self._observers: list[_Observer[T]] = []

    @property
    def has_value(self) -> bool:
        return self._value is not Subject._UNSET

    @property
    def value(self) -> T:
        if not self.has_value:
            raise LookupError("Subject has no value yet")
        return self._value  # type: ignore[return-value]

    @property
    def subscriber_count(self) -> int:
        return len(self._observers)

    def publish(self, value: T) -> None:
        self._value = value
        for observer in list(self._observers):
            # A callback may have cancelled a later subscriber
            if observer not in self._observers:
                continue
            try:
                observer.on_next(value)
            except Exception:
                logger.exception("Subscriber failed while handling %r", value)

    def attach(self, on_next: OnNext[T]) -> Subscription:
        """Synchronously register a subscriber and replay the latest value."""
        observer = _Observer(on_next)
        self._observers.append(observer)
        subscription = Subscription(lambda: self._detach(observer))
        if self.has_value:
            on_next(self._value)  # type: ignore[arg-type]
        return subscription

    def _detach(self, observer: _Observer[T]) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def subscribe(
        self, on_next: OnNext[T], on_error: OnError | None = None
    ) -> Subscription:
        # A subject never fails, so on_error is never called
        return self.attach(on_next)


class MappedStream(Stream[R]):
    """A stream applying a transform to each value of a source stream.

    If the transform raises, that subscription is cancelled and the error is
    passed to its on_error callback. Without one, a replay failure is raised
    from subscribe and a later failure propagates to the publisher.
    """

    def __init__(self, source: Stream[T], transform: Callable[[T], R]) -> None:
        self._source = source
        self._transform = transform

    async def subscribe(
        self, on_next: OnNext[R], on_error: OnError | None = None
    ) -> Subscription:
        holder: list[Subscription] = []
        pending: list[Exception] = []

        def deliver(value: T) -> None:
            if pending or (holder and not holder[0].active):
                return
            try:
                mapped = self._transform(value)
            except Exception as exc:
                if not holder:
                    # Failed on replay; handled once subscribe returns
                    pending.append(exc)
                    return
                holder[0].cancel()
                if on_error is None:
                    raise
                on_error(exc)
                return
            on_next(mapped)

        subscription = await self._source.subscribe(deliver, on_error)
        holder.append(subscription)
        if pending:
            subscription.cancel()
            if on_error is None:
                raise pending[0]
            on_error(pending[0])
        return subscription
