"""Groups of handlers run as one unit, in sequence or in parallel."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from .errors import IndexerError
from .events import ChainEvent
from .handler import Context, EventFilter, Handler


class _ConditionalHandler(Handler):
    """Forwards events to ``handler`` only where ``predicate`` holds."""

    def __init__(self, handler: Handler, predicate: Callable[[ChainEvent], bool]) -> None:
        self._handler = handler
        self._predicate = predicate

    def event_filter(self) -> EventFilter:
        return self._handler.event_filter()

    async def handle_event(self, event: ChainEvent, ctx: Context) -> None:
        if self._predicate(event):
            await self._handler.handle_event(event, ctx)

    async def handle_block(self, ctx: Context, events: Sequence[ChainEvent]) -> None:
        await self._handler.handle_block(ctx, events)

    async def handle_error(self, error: IndexerError, ctx: Context) -> None:
        await self._handler.handle_error(error, ctx)


class HandlerGroup(Handler):
    """Handlers added as a single unit.

    In tolerant mode (the default) a failing handler's error goes to its
    ``handle_error`` and the rest still run; in strict mode the first error
    is raised after being reported.
    """

    def __init__(self) -> None:
        self._handlers: list[Handler] = []
        self._strict = False
        self._parallel = False

    @classmethod
    def parallel(cls) -> HandlerGroup:
        """Create a group whose handlers run concurrently."""
        group = cls()
        group._parallel = True
        return group

    def add(self, handler: Handler) -> HandlerGroup:
        self._handlers.append(handler)
        return self

    def strict(self) -> HandlerGroup:
        """Abort on the first handler error."""
        self._strict = True
        return self

    def add_conditional(
        self, handler: Handler, predicate: Callable[[ChainEvent], bool]
    ) -> HandlerGroup:
        """Add a handler whose events pass only when ``predicate`` returns true."""
        self._handlers.append(_ConditionalHandler(handler, predicate))
        return self

    def pipe_to(self, handler: Handler) -> HandlerGroup:
        """Append the next stage of a pipeline."""
        return self.add(handler)

    def event_filter(self) -> EventFilter:
        return EventFilter.all()

    async def _report(self, handler: Handler, error: IndexerError, ctx: Context) -> None:
        await handler.handle_error(error, ctx)
        if self._strict:
            raise error

    async def _run(
        self, calls: list[tuple[Handler, Callable[[], Awaitable[None]]]], ctx: Context
    ) -> None:
        if self._parallel:
            results = await asyncio.gather(
                *(call() for _, call in calls), return_exceptions=True
            )
            for (handler, _), result in zip(calls, results):
                if isinstance(result, IndexerError):
                    await self._report(handler, result, ctx)
                elif isinstance(result, BaseException):
                    raise result
            return
        for handler, call in calls:
            try:
                await call()
            except IndexerError as error:
                await self._report(handler, error, ctx)

    async def handle_event(self, event: ChainEvent, ctx: Context) -> None:
        calls = [
            (h, lambda h=h: h.handle_event(event, ctx))
            for h in self._handlers
            if h.event_filter().matches(event.pallet_name, event.variant_name)
        ]
        await self._run(calls, ctx)

    async def handle_block(self, ctx: Context, events: Sequence[ChainEvent]) -> None:
        calls = [(h, lambda h=h: h.handle_block(ctx, events)) for h in self._handlers]
        await self._run(calls, ctx)

    async def handle_error(self, error: IndexerError, ctx: Context) -> None:
        for handler in self._handlers:
            await handler.handle_error(error, ctx)