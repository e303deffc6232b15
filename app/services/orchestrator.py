"""
Durable function engine.

A durable function reacts to one event name. Its handler is split into named
steps; each step's output is checkpointed, so when an attempt fails and the
run is retried, completed steps are replayed from their checkpoints instead of
being executed again. The unit of retry is the step, not the whole run.
"""
import asyncio
import functools
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.exceptions import EventValidationError, NonRetriableError
from app.models.run import FunctionRun, RunStatus, StepCheckpoint
from app.schemas.events import BaseEvent, parse_event
from app.services.event_bus import EventBus
from app.services.throttle import Throttle

logger = logging.getLogger(__name__)


@dataclass
class DurableFunction:
    """
    Declaration of a durable function.

    Attributes:
        id: Stable function identifier
        event: Event name that triggers a run
        handler: async handler(event, step) returning a JSON-serialisable result
        max_attempts: Attempts per run before the failure hook runs
        throttle_key: Maps an event to the key its runs are throttled by
        on_failure: async hook(event, error), run once when attempts are exhausted
    """
    id: str
    event: str
    handler: Callable[[BaseEvent, 'StepContext'], Awaitable[Any]]
    max_attempts: int = 1
    throttle_key: Optional[Callable[[BaseEvent], Optional[str]]] = None
    on_failure: Optional[Callable[[BaseEvent, BaseException], Awaitable[None]]] = None


def run_id_for(function: DurableFunction, event: BaseEvent) -> str:
    return f'{event.id}:{function.id}'


def _to_json(value: Any) -> Any:
    """Round-trip through JSON so a live result and its replay are identical."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise TypeError(f'Step output is not JSON-serialisable: {e}') from e


class StepContext:
    """
    Runs the steps of one attempt.

    Created per attempt with the checkpoints persisted so far.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        bus: EventBus,
        run_id: str,
        attempt: int,
        checkpoints: Dict[str, Any],
    ):
        self._session_factory = session_factory
        self._bus = bus
        self.run_id = run_id
        self.attempt = attempt
        self._checkpoints = checkpoints
        self._seen = set()

    async def run(self, name: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Execute a step once per run; later attempts get the stored output."""
        if name in self._seen:
            raise ValueError(f'Duplicate step name in run {self.run_id}: {name}')
        self._seen.add(name)

        if name in self._checkpoints:
            logger.debug('Run %s: replaying step %s', self.run_id, name)
            return self._checkpoints[name]

        logger.debug('Run %s: executing step %s', self.run_id, name)
        output = _to_json(await fn())

        async with self._session_factory() as session:
            session.add(StepCheckpoint(
                run_id=self.run_id,
                step_name=name,
                position=len(self._checkpoints),
                output=output,
            ))
            await session.execute(
                update(FunctionRun).where(FunctionRun.id == self.run_id).values(last_step=name)
            )
            await session.commit()

        self._checkpoints[name] = output
        return output

    async def send_event(self, name: str, event_name: str, data: Dict[str, Any]) -> str:
        """Publish an event inside a step, so a retry does not publish it again."""
        async def publish():
            event = await self._bus.publish(event_name, data)
            return event.id

        return await self.run(name, publish)


class Orchestrator:
    """
    Executes durable functions in response to bus events.

    A run is keyed by its event and function: redelivery of a finished event
    is a no-op, and redelivery of an unfinished one resumes after its last
    checkpoint.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        bus: EventBus,
        throttle: Optional[Throttle] = None,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session_factory = session_factory
        self._bus = bus
        self._throttle = throttle
        self._retry_delay = retry_delay
        self._sleep = sleep
        self.functions: Dict[str, DurableFunction] = {}

    def register(self, function: DurableFunction):
        """Subscribe a function to its trigger event."""
        if function.id in self.functions:
            raise ValueError(f'Function already registered: {function.id}')
        self.functions[function.id] = function
        self._bus.subscribe(function.event, functools.partial(self.execute, function))

    async def execute(self, function: DurableFunction, event: BaseEvent) -> FunctionRun:
        """Drive one run to completion or exhaustion and return its record."""
        run = await self._load_or_create_run(function, event)
        if run.status != RunStatus.running.value:
            logger.info('Run %s of %s already %s, skipping', run.id, function.id, run.status)
            return run
        if run.last_step:
            logger.info('Run %s of %s resuming after step %s', run.id, function.id, run.last_step)

        if self._throttle is not None and function.throttle_key is not None:
            key = function.throttle_key(event)
            if key:
                await self._throttle.acquire(f'{function.id}:{key}')

        error: Optional[BaseException] = None
        attempt = run.attempts
        while attempt < function.max_attempts:
            attempt += 1
            await self._update_run(run.id, attempts=attempt)
            step = StepContext(
                self._session_factory,
                self._bus,
                run.id,
                attempt,
                await self._load_checkpoints(run.id),
            )
            try:
                output = _to_json(await function.handler(event, step))
            except NonRetriableError as e:
                logger.error('Run %s of %s failed permanently: %s', run.id, function.id, e)
                error = e
                break
            except Exception as e:
                logger.warning(
                    'Run %s of %s failed on attempt %d/%d: %s',
                    run.id, function.id, attempt, function.max_attempts, e,
                )
                error = e
                if attempt < function.max_attempts:
                    await self._sleep(self._retry_delay * attempt)
                continue

            await self._update_run(run.id, status=RunStatus.completed.value, output=output, error=None)
            logger.info('Run %s of %s completed after %d attempt(s)', run.id, function.id, attempt)
            return await self._get_run(run.id)

        await self._update_run(
            run.id,
            status=RunStatus.failed.value,
            error=str(error) if error else 'Attempts exhausted',
        )
        await self._handle_failure(function, event, run.id, error)
        return await self._get_run(run.id)

    async def resume_incomplete(self) -> int:
        """
        Reschedule runs a previous process left running.

        Each run's event is rebuilt from the stored name, payload and id, so
        execution lands on the same run and replays its checkpoints.
        Returns the number of runs rescheduled.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(FunctionRun)
                .where(FunctionRun.status == RunStatus.running.value)
                .order_by(FunctionRun.created_at)
            )
            runs = list(result.scalars())

        resumed = 0
        for run in runs:
            function = self.functions.get(run.function_id)
            if function is None:
                logger.warning('Run %s belongs to unregistered function %s, leaving it', run.id, run.function_id)
                continue
            try:
                event = parse_event(run.event_name, run.event_data, event_id=run.event_id)
            except EventValidationError as e:
                logger.error('Run %s cannot rebuild its event, marking it failed: %s', run.id, e)
                await self._update_run(run.id, status=RunStatus.failed.value, error=str(e))
                continue

            logger.info(
                'Rescheduling run %s of %s (attempts so far: %d, last step: %s)',
                run.id, function.id, run.attempts, run.last_step or 'none',
            )
            self._bus.submit(functools.partial(self.execute, function), event)
            resumed += 1
        return resumed

    async def _handle_failure(
        self,
        function: DurableFunction,
        event: BaseEvent,
        run_id: str,
        error: Optional[BaseException],
    ):
        """Run the failure hook once per run. Hook errors are logged, not raised."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(FunctionRun)
                .where(FunctionRun.id == run_id, FunctionRun.failure_handled.is_(False))
                .values(failure_handled=True)
            )
            await session.commit()
        if not result.rowcount or function.on_failure is None:
            return

        try:
            await function.on_failure(event, error or RuntimeError('Attempts exhausted'))
        except Exception:
            logger.exception('Failure hook of %s raised for run %s', function.id, run_id)

    async def _load_or_create_run(self, function: DurableFunction, event: BaseEvent) -> FunctionRun:
        run_id = run_id_for(function, event)
        async with self._session_factory() as session:
            run = await session.get(FunctionRun, run_id)
            if run is None:
                run = FunctionRun(
                    id=run_id,
                    function_id=function.id,
                    event_id=event.id,
                    event_name=event.name,
                    event_data=event.payload(),
                    status=RunStatus.running.value,
                    attempts=0,
                )
                session.add(run)
                try:
                    await session.commit()
                except IntegrityError:
                    # Same event delivered twice concurrently
                    await session.rollback()
                    return await self._get_run(run_id)
                await session.refresh(run)
        return run

    async def _get_run(self, run_id: str) -> FunctionRun:
        async with self._session_factory() as session:
            return await session.get(FunctionRun, run_id)

    async def _update_run(self, run_id: str, **values):
        async with self._session_factory() as session:
            await session.execute(update(FunctionRun).where(FunctionRun.id == run_id).values(**values))
            await session.commit()

    async def _load_checkpoints(self, run_id: str) -> Dict[str, Any]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(StepCheckpoint)
                .where(StepCheckpoint.run_id == run_id)
                .order_by(StepCheckpoint.position)
            )
            return {checkpoint.step_name: checkpoint.output for checkpoint in result.scalars()}
