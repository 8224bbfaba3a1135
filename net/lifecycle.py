from typing import Any, Callable, Optional

from aiortc import RTCConfiguration, RTCPeerConnection

from handshake.session import Role, Session, SessionKind
from util.log import log
from util.metrics import incr


class SessionLifecycle:
    """
    Creates and destroys the connection (plus its channel/media binding) for
    a session. Teardown is idempotent and never raises.
    """

    def __init__(self, connection_factory: Optional[Callable[..., Any]] = None) -> None:
        self._factory = connection_factory or RTCPeerConnection
        self._generation = 0

    def open(self, kind: SessionKind, role: Role, configuration: Optional[RTCConfiguration] = None) -> Session:
        self._generation += 1
        connection = self._factory(configuration=configuration)
        session = Session(generation=self._generation, kind=kind, role=role, connection=connection)
        incr("sessions_started", 1)
        log("session_open", generation=session.generation, kind=kind.value, role=role.value)
        return session

    def subscribe(self, session: Session, event: str, handler: Callable) -> None:
        """Register a connection listener that teardown() will remove."""
        session.connection.on(event, handler)
        session.handlers.append((event, handler))

    def is_current(self, session: Optional[Session]) -> bool:
        return session is not None and not session.closed and session.generation == self._generation

    async def teardown(self, session: Optional[Session]) -> None:
        if session is None or session.closed:
            return
        session.closed = True

        # detach listeners first so close() events don't reach the controller
        connection = session.connection
        for event, handler in session.handlers:
            try:
                connection.remove_listener(event, handler)
            except Exception:
                pass
        session.handlers.clear()

        binding = session.binding
        if binding is not None:
            try:
                binding.release(connection)
            except Exception as e:
                log("binding_release_error", generation=session.generation, error=str(e))

        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                log("connection_close_error", generation=session.generation, error=str(e))

        session.connection = None
        session.binding = None
        session.local_descriptor = ""
        session.remote_descriptor = ""
        incr("sessions_reset", 1)
        log("session_closed", generation=session.generation)
