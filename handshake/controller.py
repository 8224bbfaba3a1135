from __future__ import annotations
from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Optional

from chat.message_log import MessageLog
from chat.types import Message
from handshake import descriptor
from handshake.errors import (
    ConnectionFailure, DecodeError, GatheringTimeout, MediaAccessError, NegotiationError,
)
from handshake.session import (
    CallPhase, HandshakeState, Role, Session, SessionKind, SessionStatus, INITIAL_STATUS,
    ERR_CALL_FAILED, ERR_INVALID_CODE, ERR_MEDIA_ACCESS,
    MSG_ANSWER_READY, MSG_CHANNEL_CLOSED, MSG_CHANNEL_ERROR, MSG_CHANNEL_READY, MSG_CODE_READY,
    MSG_CONN_FAILED, MSG_FINALIZING, MSG_INVALID_CODE, MSG_PASTE_CODE, MSG_PREPARING,
)
from nat.gathering import GatheringWaiter
from nat.ice_config import build_configuration
from net.channel_binding import ChannelBinding, ChannelState
from net.lifecycle import SessionLifecycle
from net.media_binding import CaptureSource, MediaBinding, MediaStream
from util.config import Settings, load_settings
from util.log import log
from util.metrics import incr


class PeerSessionController:
    """
    Handshake state machine for one side of a manually signalled session.

      start(role) -> local descriptor (initiator) / wait for peer (responder)
      apply_remote_descriptor(text) -> answer (responder) / finalize (initiator)
      reset() -> back to the initial state, from anywhere

    Every await is followed by a "still the current session?" check, so work
    that resumes after reset() or a newer start() is dropped.
    """

    def __init__(
        self,
        kind: SessionKind,
        *,
        settings: Optional[Settings] = None,
        lifecycle: Optional[SessionLifecycle] = None,
        gatherer: Optional[GatheringWaiter] = None,
        capture: Optional[CaptureSource] = None,
    ):
        self.kind = kind
        self.settings = settings or load_settings()
        self._lifecycle = lifecycle or SessionLifecycle()
        self._gatherer = gatherer or GatheringWaiter(self.settings.gather_timeout)
        self._capture = capture
        self._session: Optional[Session] = None
        self._messages = MessageLog()
        self._status: SessionStatus = INITIAL_STATUS
        self._start_seq = 0
        self._on_change: Optional[Callable[[], None]] = None
        self.last_error: Optional[Exception] = None

    # ------------- observables -------------
    def set_on_change(self, cb: Optional[Callable[[], None]]) -> None:
        self._on_change = cb

    @property
    def state(self) -> HandshakeState:
        return self._session.state if self._session else HandshakeState.NEW

    @property
    def role(self) -> Optional[Role]:
        return self._session.role if self._session else None

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def local_descriptor(self) -> str:
        return self._session.local_descriptor if self._session else ""

    @property
    def remote_descriptor(self) -> str:
        return self._session.remote_descriptor if self._session else ""

    @property
    def messages(self) -> List[Message]:
        return self._messages.entries()

    @property
    def channel_ready(self) -> bool:
        binding = self._binding()
        return isinstance(binding, ChannelBinding) and binding.ready and not self._session.failed

    @property
    def local_stream(self) -> Optional[MediaStream]:
        binding = self._binding()
        return binding.local_stream if isinstance(binding, MediaBinding) else None

    @property
    def remote_stream(self) -> Optional[MediaStream]:
        binding = self._binding()
        return binding.remote_stream if isinstance(binding, MediaBinding) else None

    # ------------- operations -------------
    async def start(self, role: Role) -> None:
        # an overlapping start() may have opened a session while we were tearing down
        await self.reset()
        while self._session is not None:
            await self.reset()
        self._start_seq += 1
        ticket = self._start_seq

        media: Optional[MediaBinding] = None
        if self.kind is SessionKind.CALL:
            phase = CallPhase.AWAITING_ANSWER if role is Role.INITIATOR else CallPhase.AWAITING_OFFER
            self._set_status(phase=phase, message=MSG_PREPARING, error=None)
            media = MediaBinding(self._capture, self.settings)
            try:
                await media.acquire_local_media()
            except MediaAccessError as e:
                log("media_access_denied", role=role.value, error=str(e))
                if ticket == self._start_seq:
                    self.last_error = e
                    self._status = INITIAL_STATUS
                    self._set_status(error=ERR_MEDIA_ACCESS)
                raise
            if ticket != self._start_seq:
                media.release()
                return
        else:
            self._set_status(message=MSG_PREPARING, error=None)

        session = self._lifecycle.open(self.kind, role, build_configuration(self.kind, self.settings))
        self._session = session

        def subscribe(event: str, handler: Callable) -> None:
            self._lifecycle.subscribe(session, event, handler)

        subscribe("connectionstatechange", lambda: self._on_connection_state(session))

        if media is not None:
            media.set_on_remote(lambda stream: self._on_remote_stream(session, stream))
            session.binding = media
        else:
            session.binding = ChannelBinding(
                self._messages,
                label=self.settings.channel_label,
                on_state=lambda st: self._on_channel_state(session, st),
                on_message=lambda msg: self._notify(),
            )

        if role is Role.INITIATOR:
            session.binding.attach_outgoing(session.connection, subscribe)
            session.state = HandshakeState.LOCAL_DESCRIBING
            self._notify()
            if not await self._describe_local(session, session.connection.createOffer):
                return
            session.state = HandshakeState.AWAITING_REMOTE
            self._set_status(message=MSG_CODE_READY)
        else:
            session.binding.accept_incoming(session.connection, subscribe)
            session.state = HandshakeState.AWAITING_REMOTE
            self._set_status(message=MSG_PASTE_CODE)

    async def apply_remote_descriptor(self, text: str) -> None:
        session = self._session
        if not self._lifecycle.is_current(session) or session.failed:
            return
        if not text or not text.strip():
            return

        try:
            description = descriptor.decode(text)
        except DecodeError as e:
            incr("decode_errors", 1)
            log("descriptor_invalid", generation=session.generation, error=str(e))
            self._set_status(message=MSG_INVALID_CODE, error=ERR_INVALID_CODE)
            raise

        applied = False
        if not session.remote_applied:
            session.remote_applied = True
            try:
                await session.connection.setRemoteDescription(description)
            except Exception as e:
                if not self._lifecycle.is_current(session):
                    return
                session.remote_applied = False
                log("remote_description_rejected", generation=session.generation, error=str(e))
                self._set_status(message=MSG_INVALID_CODE, error=ERR_INVALID_CODE)
                raise NegotiationError(str(e)) from e
            if not self._lifecycle.is_current(session):
                return
            session.remote_descriptor = text.strip()
            applied = True
            incr("descriptors_applied", 1)
            log("remote_description_applied", generation=session.generation, type=description.type)

        if session.role is Role.RESPONDER and session.remote_descriptor and not session.local_described:
            session.state = HandshakeState.ANSWERING
            self._set_status(error=None)
            if not await self._describe_local(session, session.connection.createAnswer):
                return
            changes = {}
            if not self.channel_ready:
                changes["message"] = MSG_ANSWER_READY
            if session.state is HandshakeState.ANSWERING:
                changes["phase"] = CallPhase.AWAITING_ANSWER
            self._set_status(**changes)
        elif session.role is Role.INITIATOR and applied:
            session.state = HandshakeState.CONNECTED
            self._set_status(phase=CallPhase.CONNECTED, message=MSG_FINALIZING, error=None)

    def send(self, text: str) -> Optional[Message]:
        session = self._session
        if not self._lifecycle.is_current(session) or session.failed:
            return None
        binding = session.binding
        if not isinstance(binding, ChannelBinding):
            return None
        msg = binding.send(text)
        if msg is not None:
            self._notify()
        return msg

    async def reset(self) -> None:
        """Tear everything down and return to the initial state. Never raises."""
        self._start_seq += 1
        ticket = self._start_seq
        session, self._session = self._session, None
        await self._lifecycle.teardown(session)
        if ticket != self._start_seq:
            return
        self._messages.clear()
        self._status = INITIAL_STATUS
        self.last_error = None
        self._notify()

    # ------------- internals -------------
    def _binding(self) -> Any:
        return self._session.binding if self._session else None

    def _notify(self) -> None:
        if self._on_change:
            self._on_change()

    def _set_status(self, **changes: Any) -> None:
        self._status = replace(self._status, **changes)
        self._notify()

    async def _describe_local(self, session: Session, create: Callable[[], Awaitable[Any]]) -> bool:
        """Create and apply the local description, wait for gathering, publish it."""
        if session.local_described:
            return False
        session.local_described = True
        connection = session.connection
        try:
            description = await create()
            if not self._lifecycle.is_current(session):
                return False
            await connection.setLocalDescription(description)
            if not self._lifecycle.is_current(session):
                return False
            await self._gatherer.wait(connection)
        except GatheringTimeout as e:
            if self._lifecycle.is_current(session):
                self._fail(session, e)
            return False
        except Exception as e:
            if not self._lifecycle.is_current(session):
                return False
            failure = NegotiationError(f"could not create local description: {e}")
            self._fail(session, failure)
            raise failure from e
        if not self._lifecycle.is_current(session) or session.failed:
            return False

        session.local_descriptor = descriptor.encode(connection.localDescription)
        incr("descriptors_published", 1)
        log("local_descriptor_ready", generation=session.generation,
            role=session.role.value, type=connection.localDescription.type)
        return True

    def _on_connection_state(self, session: Session) -> None:
        if not self._lifecycle.is_current(session):
            return
        state = session.connection.connectionState
        log("connection_state", generation=session.generation, state=state)
        if session.failed:
            return
        if state == "connected":
            session.state = HandshakeState.CONNECTED
            self._set_status(phase=CallPhase.CONNECTED, error=None)
        elif state == "failed":
            self._fail(session, ConnectionFailure("transport reported failed connection"))

    def _fail(self, session: Session, error: Exception) -> None:
        if session.failed:
            return
        session.state = HandshakeState.FAILED
        self.last_error = error
        incr("connection_failures", 1)
        log("session_failed", generation=session.generation, error=str(error))
        if isinstance(session.binding, ChannelBinding):
            session.binding.disable()
        error_text = ERR_CALL_FAILED if session.kind is SessionKind.CALL else MSG_CONN_FAILED
        self._set_status(phase=CallPhase.ERROR, message=MSG_CONN_FAILED, error=error_text)

    def _on_channel_state(self, session: Session, state: ChannelState) -> None:
        if not self._lifecycle.is_current(session) or session.failed:
            return
        message = {
            ChannelState.READY: MSG_CHANNEL_READY,
            ChannelState.CLOSED: MSG_CHANNEL_CLOSED,
            ChannelState.ERROR: MSG_CHANNEL_ERROR,
        }.get(state)
        if message:
            self._set_status(message=message)

    def _on_remote_stream(self, session: Session, stream: MediaStream) -> None:
        if self._lifecycle.is_current(session):
            self._notify()
