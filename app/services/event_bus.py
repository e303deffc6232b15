"""
In-process event bus connecting request acceptance to durable functions.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from app.exceptions import EventPublishError
from app.schemas.events import BaseEvent, parse_event

logger = logging.getLogger(__name__)

Handler = Callable[[BaseEvent], Awaitable[Any]]


class EventBus:
    """
    Event bus backed by asyncio.Queue.

    Events are validated on publish. A dispatcher task drains the queue and
    starts one task per subscribed handler, so runs for different events
    execute concurrently. Ordering across events is not guaranteed.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        self._dispatcher: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, event_name: str, handler: Handler):
        """Register a handler invoked once per delivered event."""
        self._handlers[event_name].append(handler)

    async def publish(self, event_name: str, data: Dict[str, Any], event_id: Optional[str] = None) -> BaseEvent:
        """
        Validate and enqueue an event.

        Raises:
            EventValidationError: payload does not match the event schema
            EventPublishError: the bus is not accepting events
        """
        event = parse_event(event_name, data, event_id=event_id)
        if not self._running:
            raise EventPublishError(f'Event bus is not running, cannot publish {event_name}')
        await self._queue.put(event)
        logger.debug('Published %s (%s)', event.name, event.id)
        return event

    async def start(self):
        """Start the dispatcher."""
        self._running = True
        self._dispatcher = asyncio.create_task(self._dispatch_loop())

    async def stop(self):
        """Stop accepting events and let in-flight handlers finish."""
        self._running = False
        if self._dispatcher:
            # Put a sentinel to wake up the queue if waiting
            await self._queue.put(None)
            try:
                await asyncio.wait_for(self._dispatcher, timeout=5.0)
            except asyncio.TimeoutError:
                self._dispatcher.cancel()
                try:
                    await self._dispatcher
                except asyncio.CancelledError:
                    pass
            self._dispatcher = None

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def drain(self):
        """Wait until every queued event and the handlers it started are done."""
        while True:
            await self._queue.join()
            in_flight = [task for task in self._tasks if not task.done()]
            if not in_flight:
                return
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def _dispatch_loop(self):
        """Main dispatch loop - consumes events from queue."""
        while True:
            event = await self._queue.get()
            try:
                # Sentinel from stop()
                if event is None:
                    if not self._running:
                        return
                    continue
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: BaseEvent):
        handlers = self._handlers.get(event.name)
        if not handlers:
            logger.warning('No subscriber for %s (%s), dropping', event.name, event.id)
            return
        for handler in handlers:
            self.submit(handler, event)

    def submit(self, handler: Handler, event: BaseEvent):
        """
        Run one handler for an already validated event, bypassing the queue.

        The task is tracked like a dispatched one, so drain() and stop() wait for it.
        """
        task = asyncio.create_task(self._deliver(handler, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, handler: Handler, event: BaseEvent):
        try:
            await handler(event)
        except Exception:
            # Log but don't crash the bus
            logger.exception('Handler for %s (%s) failed', event.name, event.id)
