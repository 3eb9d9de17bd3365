"""
a module that allows the catalog store to alert listening clients (e.g. caches and search
indexes) about changes made to its contents.  The store's interface into this capability is the
:py:class:`ChangeNotifier`.

Each signal is scoped to a single entity: it names the action, the entity's kind and metaId, and
the groups the changed version belongs to, so that listeners can invalidate only what is affected.
Signals are not needed for the correctness of a write, so they are delivered in the background
(when the notifier has a :py:class:`~mdcat.catalog.dispatch.SideEffectDispatcher`) and each
delivery attempt is bounded by a timeout.
"""
import asyncio
import logging
from logging import Logger
from collections.abc import Mapping

import websockets

from mdcat.base.config import ConfigurationException
from .dispatch import SideEffectDispatcher

DEF_TIMEOUT = 5

deflogger = logging.getLogger(__name__)

class ChangeNotifier:
    """
    A class that provides an interface for sending messages to store listeners in which the store
    plays the role of a message "broadcaster".

    This implementation uses a websocket server.  The server recognizes this client as a broadcaster
    of messages via its use of a broadcast key.
    """
    def __init__(self, uri: str, broadcast_key: str=None, logger: Logger=None,
                 timeout: float=DEF_TIMEOUT, dispatcher: SideEffectDispatcher=None):
        """
        Create the notifier
        :param str uri:  the websocket server address
        :param str broadcast_key: a key that identifies this client to the server as a broadcaster.
        :param float timeout:  the number of seconds to allow for connecting and sending a message
        :param SideEffectDispatcher dispatcher:  the dispatcher to deliver messages with; if None,
                                     messages are delivered before :py:meth:`notify` returns.
        """
        self.uri = uri
        self.api_key = broadcast_key
        if not logger:
            logger = deflogger
        self.log = logger
        self.timeout = timeout
        self.dispatcher = dispatcher

    def notify(self, message):
        """
        send a notification message via WebSocket.  Failures to deliver the message are logged
        but otherwise ignored.
        :param str message: The message to send.
        """
        if self.dispatcher:
            self.dispatcher.dispatch("change signal: "+message, self._deliver, message)
        else:
            self._deliver(message)

    def _deliver(self, message):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            # no running event loop in this thread
            loop = asyncio.new_event_loop()
            try:
                loop.run_until_complete(self._send_notification(message))
            finally:
                loop.close()
        else:
            loop.create_task(self._send_notification(message))
            self.log.debug("Notification coroutine scheduled on the running event loop")

    async def _send_notification(self, message):
        """
        Coroutine to send a notification message via WebSocket.
        :param str message: The message to send.
        """
        self.log.debug("Connecting to WebSocket server at %s...", self.uri)
        try:
            await asyncio.wait_for(self._send(message), self.timeout)
            self.log.debug("WebSocket message sent successfully.")
        except asyncio.TimeoutError:
            self.log.error("Timed out sending WebSocket message to %s", self.uri)
        except Exception as e:
            self.log.error("Error sending WebSocket message: %s", str(e))

    async def _send(self, message):
        async with websockets.connect(self.uri) as websocket:
            if self.api_key:
                message = f"{self.api_key},{message}"
            await websocket.send(message)

    def close(self):
        """
        wait for outstanding messages to be delivered and release the delivery threads
        """
        if self.dispatcher:
            self.dispatcher.shutdown()

def create_notifier(config: Mapping) -> ChangeNotifier:
    """
    create a ChangeNotifier from its configuration, which supports the following parameters:

    ``service_endpoint``
        (*str*) *required*. the URL of the websocket server to broadcast through
    ``broadcast_key``
        (*str*) the key that identifies the store as a broadcaster
    ``timeout``
        (*float*) the number of seconds to allow for delivering a message (default: 5)
    ``asynchronous``
        (*bool*) if True (default), deliver messages on a background thread

    :raises ConfigurationException:  if the required ``service_endpoint`` is missing
    """
    if not config.get("service_endpoint"):
        raise ConfigurationException("client_notifier: missing required service_endpoint parameter")
    # one delivery thread keeps the signals in order
    dispatcher = SideEffectDispatcher({ "asynchronous": config.get("asynchronous", True),
                                        "max_workers": 1 }, deflogger)
    return ChangeNotifier(config["service_endpoint"], config.get("broadcast_key"),
                          timeout=config.get("timeout", DEF_TIMEOUT), dispatcher=dispatcher)
