"""
Batch coordinator that folds many logical API calls into one multi-action request.

Callers ``await request(...)``. Each admitted action is signed with its index in
the current batch as identifier. Once ``max_queue`` actions are collected the
batch is flushed as a single HTTP call, the combined response is split by
identifier and every caller's future is settled. Only one flush is in flight at
a time: callers arriving meanwhile wait on the readiness gate and join the next
batch, whose identifiers start again at ``"0"``.
"""

from __future__ import annotations

import asyncio
import typing as t
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from onoffice_batch.config import OnOfficeSettings
from onoffice_batch.exceptions import OnOfficeError, TransportError
from onoffice_batch.models import ActionType, BatchResult, Credentials, Record, SignedAction
from onoffice_batch.signing import create_action_request
from onoffice_batch.transport import ApiContext, call_api
from onoffice_batch.utils.logging import logging_context
from onoffice_batch.validation import assert_successful_action, index_results, parse_envelope

log = structlog.get_logger(__name__)


class BatchState(StrEnum):
    COLLECTING = "collecting"
    FLUSHING = "flushing"
    COMPLETE = "complete"


@dataclass
class _PendingAction:
    """An admitted action waiting for its share of the batch result."""

    identifier: str
    action: SignedAction
    future: asyncio.Future[list[Record]]


@dataclass
class _Batch:
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: BatchState = BatchState.COLLECTING
    actions: list[_PendingAction] = field(default_factory=list)
    result: BatchResult = field(default_factory=dict)


class RequestBatch:
    """
    Coordinate admission, flushing and result delivery for one API context.

    Parameters
    ----------
    context : ApiContext
        Host capabilities used for credentials and HTTP.
    max_queue : int | None, optional
        Flush automatically once this many actions are admitted. Defaults to
        ``settings.max_queue``.
    settings : OnOfficeSettings | None, optional
        Endpoint settings; read from the environment when omitted.
    flush_after_seconds : float | None, optional
        Flush a partially filled batch after this many seconds. ``None``
        leaves partial batches until :meth:`flush` or :meth:`close`.

    Notes
    -----
    Admission, identifier assignment, signing and the threshold check run
    without any suspension point in between, so they are atomic with respect
    to other coroutines on the same event loop.
    """

    def __init__(
        self,
        context: ApiContext,
        max_queue: int | None = None,
        *,
        settings: OnOfficeSettings | None = None,
        flush_after_seconds: float | None = None,
    ) -> None:
        self._settings = settings or OnOfficeSettings.from_env()
        if max_queue is None:
            max_queue = self._settings.max_queue
        if max_queue < 1:
            raise ValueError("max_queue must be at least 1")
        self._context = context
        self._max_queue = max_queue
        self._flush_after_seconds = flush_after_seconds

        self._batch = _Batch()
        # set while no flush is in flight
        self._ready = asyncio.Event()
        self._ready.set()
        self._flush_task: asyncio.Task[None] | None = None
        self._window_task: asyncio.Task[None] | None = None
        self._closed = False

        log.debug(
            event="Initialized RequestBatch",
            max_queue=max_queue,
            flush_after_seconds=flush_after_seconds,
            api_url=self._settings.api_url,
        )

    @property
    def max_queue(self) -> int:
        return self._max_queue

    @property
    def state(self) -> BatchState:
        return self._batch.state

    @property
    def pending_count(self) -> int:
        return len(self._batch.actions)

    async def __aenter__(self) -> "RequestBatch":
        return self

    async def __aexit__(self, *exc_info: t.Any) -> None:
        await self.close()

    async def request(
        self,
        action_type: ActionType | str,
        resource_type: str,
        parameters: t.Mapping[str, t.Any],
        resource_id: str = "",
    ) -> list[Record]:
        """
        Queue one action and wait for its records.

        Parameters
        ----------
        action_type : ActionType | str
            API action.
        resource_type : str
            API resource.
        parameters : typing.Mapping[str, typing.Any]
            Action parameters.
        resource_id : str, optional
            Target resource id.

        Returns
        -------
        list[Record]
            ``data.records`` of this action's result.

        Raises
        ------
        OnOfficeError
            Batch-wide or action-level failure.
        RuntimeError
            If the coordinator was closed.
        """
        if self._closed:
            raise RuntimeError("RequestBatch is closed")
        credentials = await self._context.get_credentials()
        await self._wait_until_ready()
        if self._closed:
            raise RuntimeError("RequestBatch is closed")

        pending = self._admit(
            credentials=credentials,
            action_type=action_type,
            resource_type=resource_type,
            parameters=parameters,
            resource_id=resource_id,
        )
        return await pending.future

    async def flush(self) -> None:
        """
        Send the current batch now, even if it is below ``max_queue``.

        Returns once every caller of the flushed batch has been settled.
        """
        await self._wait_until_ready()
        if not self._batch.actions:
            return
        log.debug(
            event="Explicit flush requested",
            batch_id=self._batch.batch_id,
            pending_count=len(self._batch.actions),
        )
        # cancelling this caller must not cancel the batch shared with others
        await asyncio.shield(self._start_flush(batch=self._batch))

    async def close(self) -> None:
        """
        Flush what is left and refuse further requests.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_window_timer()
        await self.flush()
        log.debug(event="RequestBatch closed")

    async def _wait_until_ready(self) -> None:
        while self._batch.state is not BatchState.COLLECTING:
            await self._ready.wait()

    def _admit(
        self,
        *,
        credentials: Credentials,
        action_type: ActionType | str,
        resource_type: str,
        parameters: t.Mapping[str, t.Any],
        resource_id: str,
    ) -> _PendingAction:
        batch = self._batch
        identifier = str(len(batch.actions))
        action = create_action_request(
            api_secret=credentials.api_secret,
            api_token=credentials.api_token,
            action_type=action_type,
            resource_type=resource_type,
            parameters=parameters,
            resource_id=resource_id,
            identifier=identifier,
        )
        pending = _PendingAction(
            identifier=identifier,
            action=action,
            future=asyncio.get_running_loop().create_future(),
        )
        batch.actions.append(pending)
        pending_count = len(batch.actions)
        log.debug(
            event="Queued action for batch",
            batch_id=batch.batch_id,
            identifier=identifier,
            resourcetype=resource_type,
            pending_count=pending_count,
        )

        if pending_count == 1 and self._flush_after_seconds is not None:
            self._window_task = asyncio.create_task(
                coro=self._window_timer(batch=batch),
                name=f"onoffice_batch_window_{batch.batch_id}",
            )
        if pending_count >= self._max_queue:
            log.debug(
                event="Batch size reached",
                batch_id=batch.batch_id,
                max_queue=self._max_queue,
            )
            self._start_flush(batch=batch)
        return pending

    def _start_flush(self, *, batch: _Batch) -> asyncio.Task[None]:
        batch.state = BatchState.FLUSHING
        self._ready.clear()
        self._cancel_window_timer()
        self._flush_task = asyncio.create_task(
            coro=self._flush_batch(batch=batch),
            name=f"onoffice_batch_flush_{batch.batch_id}",
        )
        return self._flush_task

    def _cancel_window_timer(self) -> None:
        window_task = self._window_task
        if window_task and not window_task.done() and window_task is not asyncio.current_task():
            window_task.cancel()
        self._window_task = None

    async def _window_timer(self, *, batch: _Batch) -> None:
        await asyncio.sleep(delay=t.cast(float, self._flush_after_seconds))
        if batch is self._batch and batch.state is BatchState.COLLECTING and batch.actions:
            log.debug(
                event="Batch window elapsed, flushing batch",
                batch_id=batch.batch_id,
                pending_count=len(batch.actions),
            )
            self._start_flush(batch=batch)

    async def _flush_batch(self, *, batch: _Batch) -> None:
        with logging_context(batch_id=batch.batch_id):
            await self._send_batch(batch=batch)

    async def _send_batch(self, *, batch: _Batch) -> None:
        log.info(
            event="Flushing batch",
            batch_id=batch.batch_id,
            action_count=len(batch.actions),
        )
        try:
            payload = await call_api(
                self._context,
                [pending.action for pending in batch.actions],
                settings=self._settings,
            )
            batch.result = index_results(envelope=parse_envelope(payload=payload))
            batch.state = BatchState.COMPLETE
            self._deliver_results(batch=batch)
        except asyncio.CancelledError:
            self._fail_batch(batch=batch, error=TransportError("Batch flush was cancelled"))
            raise
        except Exception as error:
            log.error(
                event="Batch failed",
                batch_id=batch.batch_id,
                action_count=len(batch.actions),
                error=str(object=error),
            )
            self._fail_batch(batch=batch, error=error)
        finally:
            self._reset(batch=batch)

    def _deliver_results(self, *, batch: _Batch) -> None:
        failed = 0
        for pending in batch.actions:
            if pending.future.done():
                continue
            try:
                response = assert_successful_action(response=batch.result.get(pending.identifier))
            except OnOfficeError as error:
                failed += 1
                pending.future.set_exception(error)
            else:
                pending.future.set_result(response.data.records)
        log.info(
            event="Delivered batch results",
            batch_id=batch.batch_id,
            result_count=len(batch.result),
            action_count=len(batch.actions),
            failed_count=failed,
        )

    def _fail_batch(self, *, batch: _Batch, error: BaseException) -> None:
        for pending in batch.actions:
            if not pending.future.done():
                pending.future.set_exception(error)

    def _reset(self, *, batch: _Batch) -> None:
        batch.state = BatchState.COMPLETE
        batch.actions.clear()
        batch.result.clear()
        if batch is self._batch:
            self._batch = _Batch()
        self._flush_task = None
        self._ready.set()
