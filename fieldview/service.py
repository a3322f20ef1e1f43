import logging
import threading
import traceback
from collections.abc import Callable
from typing import Any

import msgpack
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect
from websockets.sync.connection import Connection

from fieldview import commands
from fieldview.wire import (
    DataResponse,
    RecordKind,
    deserialize_data_response,
    encode_record,
    make_deserialiser,
    serialise,
    wrap_message_payload,
)

logger = logging.getLogger(__name__)

EVENTS = ('connected', 'closed', 'message', 'camera_offset', 'gps_offset', 'color_correction')


class DataService:
    """Client for the AI module's websocket server.

    Keeps one connection open, re-sends ``command`` every ``polling_interval`` seconds
    and hands every decoded :class:`DataResponse` to the registered listeners.

    Events:
        ``connected`` / ``closed``: connection lifecycle, no arguments.
        ``camera_offset`` / ``gps_offset`` / ``color_correction``: replies to the matching
        get command, called with the requested record.
        ``message``: every other snapshot.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        polling_interval: float = 1.0,
        log_responses: bool = False,
        open_timeout: float = 10.0,
        deserialiser: Callable[[bytes], Any] | None = None,
    ):
        self.uri = f'ws://{host}:{port}'
        self.polling_interval = polling_interval
        self.log_responses = log_responses
        self.command: str | None = None
        self._open_timeout = open_timeout
        self._deserialise = deserialiser or make_deserialiser()
        self._listeners: dict[str, list[Callable[..., None]]] = {event: [] for event in EVENTS}
        self._websocket: Connection | None = None
        self._open = threading.Event()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def on(self, event: str, listener: Callable[..., None]) -> 'DataService':
        if event not in self._listeners:
            raise ValueError(f'Unknown event {event!r}, expected one of {EVENTS}')
        self._listeners[event].append(listener)
        return self

    def _emit(self, event: str, *args) -> None:
        for listener in self._listeners[event]:
            try:
                listener(*args)
            except Exception as e:
                logger.error(f'Listener for {event!r} failed: {e}')
                logger.debug(traceback.format_exc())

    @property
    def connected(self) -> bool:
        return self._open.is_set()

    def start(self) -> None:
        """Connect and start the receive and polling threads.

        Raises:
            OSError, websockets.exceptions.InvalidHandshake: if the server cannot be reached.
        """
        if self._websocket is not None:
            self.stop()

        self._stop.clear()
        self._websocket = connect(self.uri, open_timeout=self._open_timeout)
        self._open.set()
        logger.info(f'Connected to {self.uri}')

        self._threads = [
            threading.Thread(target=self._receive_loop, args=(self._websocket,), daemon=True),
            threading.Thread(target=self._poll_loop, daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        self._emit('connected')

    def stop(self) -> None:
        self._stop.set()
        if self._websocket is not None:
            self._websocket.close()
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join(timeout=self.polling_interval + 1.0)
        self._threads = []
        self._websocket = None

    def restart(self) -> None:
        self.stop()
        self.start()

    def __enter__(self) -> 'DataService':
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.stop()

    def _receive_loop(self, websocket: Connection) -> None:
        try:
            for message in websocket:
                self._handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f'Connection to {self.uri} closed: {e}')
        finally:
            self._open.clear()
            self._stop.set()
            logger.info(f'Disconnected from {self.uri}')
            self._emit('closed')

    def _poll_loop(self) -> None:
        while not self._stop.wait(self.polling_interval):
            if self.command:
                self.send(self.command)

    def _handle_message(self, message: bytes | str) -> None:
        if isinstance(message, str):
            logger.debug(f'Ignoring text frame from {self.uri}')
            return

        try:
            payload = self._deserialise(message)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            logger.warning(f'Dropping undecodable frame from {self.uri}: {e}')
            return

        try:
            response = deserialize_data_response(payload)
        except Exception as e:
            logger.error(f'Failed to decode frame from {self.uri}: {e}')
            logger.debug(traceback.format_exc())
            return
        if response is None:
            return
        if self.log_responses:
            logger.info(f'{response.as_dict()}')
        self._route(response)

    def _route(self, response: DataResponse) -> None:
        if response.command == commands.GET_CAMERA_OFFSET and response.camera_offset is not None:
            self._emit('camera_offset', response.camera_offset)
        elif response.command == commands.GET_GPS_OFFSET and response.gps_offset is not None:
            self._emit('gps_offset', response.gps_offset)
        elif response.command == commands.GET_COLOR_CORRECTION and response.color_correction is not None:
            self._emit('color_correction', response.color_correction)
        else:
            self._emit('message', response)

    def _send(self, payload: Any) -> bool:
        websocket = self._websocket
        if websocket is None or not self.connected:
            return False
        try:
            websocket.send(serialise(wrap_message_payload(payload)))
            return True
        except (ConnectionClosed, OSError) as e:
            logger.error(f'Failed to send message to {self.uri}: {e}')
            return False

    def send(self, command: str) -> bool:
        """Send a command text; returns False when not connected or the send failed."""
        return self._send(command)

    def send_record(self, kind: RecordKind | str, value: Any) -> bool:
        return self._send(encode_record(kind, value))

    def get_camera_offset(self) -> bool:
        return self.send(commands.GET_CAMERA_OFFSET)

    def get_gps_offset(self) -> bool:
        return self.send(commands.GET_GPS_OFFSET)

    def get_color_correction(self) -> bool:
        return self.send(commands.GET_COLOR_CORRECTION)

    def set_camera_offset(self, offset: str) -> bool:
        return self.send(commands.with_argument(commands.SET_CAMERA_OFFSET, offset))

    def set_gps_offset(self, offset: str) -> bool:
        return self.send(commands.with_argument(commands.SET_GPS_OFFSET, offset))

    def set_color_correction(self, correction: str) -> bool:
        return self.send(commands.with_argument(commands.SET_COLOR_CORRECTION, correction))
