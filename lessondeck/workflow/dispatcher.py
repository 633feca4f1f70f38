"""Single-consumer event loop between the outside world and the state machine.

Transport callbacks, the reconnect timer, user input, the host bridge and the
presentation collaborator all post tagged events onto one ``asyncio.Queue``.
One consumer processes each event to completion, including any outbound
send or the whole awaited insertion sequence, before taking the next one.
"""

import asyncio
from typing import Callable, Optional

from ..exceptions import InsertionFailure, MalformedPayload
from ..logger import logger
from ..presentation import PptxCollaborator, PresentationCollaborator, insert_slides
from ..schema import ContentCategory
from ..settings_store import SettingsStore
from ..ws.events import (
    ConnectionClosed,
    ConnectionLostEvent,
    ConnectionOpened,
    DispatcherEvent,
    InsertionFinished,
    MessageReceived,
    TimerFired,
    UserIntent,
    parse_inbound,
)
from ..ws.host import HostBridge
from ..ws.supervisor import ReconnectionSupervisor, SupervisorListener
from .effects import CancelGeneration, Effect, InsertSlides, PersistSettings, SendRequest, Status
from .machine import WorkflowStateMachine

EffectSink = Callable[[Effect], None]


class DispatcherListener(SupervisorListener):
    """Turns supervisor callbacks into queued dispatcher events."""

    def __init__(self, dispatcher: "Dispatcher"):
        self.dispatcher = dispatcher

    def on_open(self) -> None:
        self.dispatcher.post(ConnectionOpened())

    def on_message(self, text: str) -> None:
        self.dispatcher.post(MessageReceived(text))

    def on_close(self, code: int, reason: str) -> None:
        self.dispatcher.post(ConnectionClosed(code, reason))

    def on_reconnect_due(self) -> bool:
        self.dispatcher.post(TimerFired())
        return True

    def on_connection_lost(self, attempts: int) -> None:
        self.dispatcher.post(ConnectionLostEvent(attempts))


class Dispatcher:
    def __init__(
        self,
        machine: WorkflowStateMachine,
        supervisor: Optional[ReconnectionSupervisor] = None,
        *,
        collaborator: Optional[PresentationCollaborator] = None,
        settings_store: Optional[SettingsStore] = None,
        document: Optional[str] = None,
        sink: Optional[EffectSink] = None,
    ):
        self.machine = machine
        self.collaborator = collaborator
        self.settings_store = settings_store
        self.document = document
        self.sink = sink or (lambda effect: None)
        self.queue: asyncio.Queue = asyncio.Queue()
        self.connected = False
        self._running = False
        self.host: Optional[HostBridge] = None

        self.supervisor = supervisor
        if supervisor is not None:
            supervisor.listener = DispatcherListener(self)

    def post(self, event: Optional[DispatcherEvent]) -> None:
        """Enqueue an event; ``None`` stops :meth:`run`."""
        self.queue.put_nowait(event)

    def stop(self) -> None:
        self.post(None)

    def attach_host(self, post: Callable[[str], None]) -> HostBridge:
        """Route generation, insertion and cancellation through a hosting surface.

        Host messages come back through :meth:`post` and take the same
        admission path as transport messages.
        """
        self.host = HostBridge(post, self.post)
        return self.host

    async def run(self) -> None:
        self._running = True
        logger.debug("Dispatcher started")
        try:
            while True:
                event = await self.queue.get()
                try:
                    if event is None:
                        break
                    await self.process(event)
                finally:
                    self.queue.task_done()
        finally:
            self._running = False
            logger.debug("Dispatcher stopped")

    async def drain(self) -> None:
        """Process everything currently queued, without a running consumer."""
        while not self.queue.empty():
            event = self.queue.get_nowait()
            try:
                if event is not None:
                    await self.process(event)
            finally:
                self.queue.task_done()

    async def process(self, event: DispatcherEvent) -> None:
        """Handle one event to completion; errors never escape."""
        try:
            if isinstance(event, UserIntent):
                await self._execute(self.machine.handle_intent(event))
            elif isinstance(event, MessageReceived):
                await self._handle_message(event)
            elif isinstance(event, InsertionFinished):
                await self._execute(self.machine.insertion_finished(event.inserted, event.error))
            elif isinstance(event, ConnectionOpened):
                self.connected = True
                logger.info("Connected to generation backend")
            elif isinstance(event, ConnectionClosed):
                self.connected = False
                logger.info("Connection closed: code=%s reason=%s", event.code, event.reason or "-")
            elif isinstance(event, TimerFired):
                if self.supervisor is not None:
                    await self.supervisor.reconnect()
            elif isinstance(event, ConnectionLostEvent):
                self.connected = False
                await self._execute(self.machine.connection_lost(event.attempts))
            else:
                logger.warning("Unknown dispatcher event: %r", event)
        except Exception:
            logger.exception("Error processing %s", type(event).__name__)

    async def _handle_message(self, event: MessageReceived) -> None:
        try:
            message = parse_inbound(event.raw)
        except MalformedPayload as e:
            logger.warning(f"Dropping {event.source} message: {e.message}")
            await self._execute(self.machine.malformed_payload())
            return

        if not self.machine.correlator.admit(message):
            return
        await self._execute(self.machine.handle_message(message))

    # ==================== Effects ====================

    async def _execute(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, SendRequest):
                await self._send(effect)
            elif isinstance(effect, InsertSlides):
                await self._insert(effect)
            elif isinstance(effect, CancelGeneration):
                if self.host is not None:
                    self.host.send_cancel()
            elif isinstance(effect, PersistSettings):
                self._persist(effect)
            else:
                self.sink(effect)

    async def _send(self, effect: SendRequest) -> None:
        request = effect.request
        sent = False
        if self.host is not None and request.edit is None:
            sent = self.host.send_generate(request.content, ContentCategory.parse(request.type))
        elif self.supervisor is not None:
            sent = await self.supervisor.send(request.to_wire())
        if sent:
            logger.info("Sent %s request", request.type)
            return

        logger.warning("Send failed: transport unavailable")
        await self._execute(self.machine.transport_unavailable())
        if self.supervisor is not None:
            await self.supervisor.connect()

    async def _insert(self, effect: InsertSlides) -> None:
        if self.host is not None:
            # The host inserts and reports back with insertProgress/success/error
            if not self.host.send_insert(effect.slides):
                self.post(InsertionFinished(0, "Host dialog is closed"))
            return
        if self.collaborator is None:
            self.post(InsertionFinished(0, "No presentation is open"))
            return

        def on_progress(index: int, total: int) -> None:
            self.sink(Status(f"Inserting slide {index} of {total}..."))

        error: Optional[str] = None
        try:
            inserted = await insert_slides(self.collaborator, effect.slides, on_progress)
        except InsertionFailure as e:
            inserted, error = e.inserted, e.message
        finally:
            # Slides created before a failure are kept
            if isinstance(self.collaborator, PptxCollaborator):
                try:
                    self.collaborator.save()
                except OSError as e:
                    logger.error(f"Failed to save presentation: {e}")
                    error = error or str(e)
        self.post(InsertionFinished(inserted, error))

    def _persist(self, effect: PersistSettings) -> None:
        if self.settings_store is None:
            return
        try:
            self.settings_store.save(self.document, effect.teaching)
        except OSError as e:
            logger.error(f"Failed to persist settings: {e}")
