"""WhatsApp channel backed by the Baileys bridge (WebSocket JSON frames).

The reader task resolves request futures and queues inbound messages; a
single worker drains the queue so commands run one at a time, in arrival
order, while responses keep flowing.
"""

import asyncio
import base64
import contextlib
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from ..buffer import SentMessageCache
from ..config import JarvisSettings
from ..errors import BridgeCommandError, BridgeError, BridgeNotConnected
from ..identity import is_group_jid, mask_private_data
from ..models import InboundMessage, OutboundMessage, Roster
from . import protocol

logger = logging.getLogger("jarvis.channels.whatsapp")

MessageHandler = Callable[[InboundMessage], Awaitable[None]]

MAX_FRAME_BYTES = 16 * 1024 * 1024


class WhatsAppBridge:
    """Client side of the bridge protocol."""

    def __init__(self, settings: JarvisSettings, sent_cache: Optional[SentMessageCache] = None):
        self.url = settings.bridge_url
        self.token = settings.bridge_token
        self.request_timeout = settings.request_timeout
        self.reconnect_initial = max(0.1, settings.reconnect_initial)
        self.reconnect_max = max(self.reconnect_initial, settings.reconnect_max)
        self.debug = settings.debug
        self.sent_cache = sent_cache if sent_cache is not None else SentMessageCache(settings.sent_cache_capacity)

        self.own_id: Optional[str] = None
        self._ws: Any = None
        self._connected = False
        self._running = False
        self._logged_out = False
        self._attempts = 0
        self._handler: Optional[MessageHandler] = None
        self._pending: dict[str, asyncio.Future] = {}
        self._send_lock = asyncio.Lock()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._reader_task: Optional[asyncio.Task] = None
        self._worker_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def logged_out(self) -> bool:
        return self._logged_out

    def set_handler(self, handler: MessageHandler):
        self._handler = handler

    # ── Connection loop ───────────────────────────────────

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before reconnect attempt `attempt` (1-based)."""
        return min(self.reconnect_max, self.reconnect_initial * (2 ** max(0, attempt - 1)))

    async def run(self):
        """Connect and keep reconnecting until stopped or logged out."""
        self._running = True
        if self._worker_task is None:
            self._worker_task = asyncio.create_task(self._worker())

        logger.info(f"Connecting to WhatsApp bridge at {self.url}...")
        try:
            while self._running:
                try:
                    async with websockets.connect(
                        self.url,
                        max_size=MAX_FRAME_BYTES,
                        ping_interval=20,
                        ping_timeout=20,
                    ) as ws:
                        self._ws = ws
                        self._reader_task = asyncio.create_task(self._read_loop())

                        result = await self._send_command(protocol.HEALTH, {})
                        if isinstance(result, dict) and result.get("me"):
                            self.own_id = result["me"]
                        self._connected = True
                        self._attempts = 0
                        logger.info("Connected to WhatsApp bridge")

                        await self._reader_task

                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"WhatsApp bridge connection error: {e}")
                finally:
                    await self._teardown_connection()

                if self._logged_out:
                    logger.error("WhatsApp session logged out. Re-link the gateway, then restart.")
                    break
                if not self._running:
                    break

                self._attempts += 1
                delay = self.backoff_delay(self._attempts)
                logger.info(f"Reconnecting in {delay:.1f}s (attempt {self._attempts})...")
                await asyncio.sleep(delay)
        finally:
            self._running = False
            await self._stop_worker()

    async def stop(self):
        self._running = False
        if self._ws is not None:
            await self._ws.close()
        await self._teardown_connection()
        await self._stop_worker()

    async def _teardown_connection(self):
        self._connected = False
        self._ws = None
        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        self._fail_pending("Bridge connection closed")

    async def _stop_worker(self):
        if self._worker_task:
            self._worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task
            self._worker_task = None

    # ── Inbound ───────────────────────────────────────────

    async def _read_loop(self):
        if not self._ws:
            return
        async for raw in self._ws:
            await self._handle_frame(raw)
            if self._logged_out:
                break

    async def _handle_frame(self, raw):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON from bridge")
            return

        try:
            frame = protocol.Frame.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Malformed bridge frame ({e.error_count()} error(s))")
            return

        if self.debug:
            logger.debug(f"Frame {frame.type}: {mask_private_data(frame.payload)}")

        if frame.type == protocol.RESPONSE:
            if frame.requestId:
                self._resolve_pending(frame.requestId, frame.payload)
            return

        if frame.type == protocol.MESSAGE:
            try:
                message = protocol.MessagePayload.model_validate(frame.payload).to_inbound()
            except ValidationError:
                logger.warning("Dropping malformed inbound message event")
                return
            self._queue.put_nowait(message)
            return

        if frame.type == protocol.CONNECTION:
            await self._on_connection(frame.payload)
            return

        if frame.type == protocol.GET_MESSAGE:
            await self._on_get_message(frame)
            return

        logger.debug(f"Ignoring bridge frame type {frame.type!r}")

    async def _on_connection(self, payload: dict):
        try:
            update = protocol.ConnectionPayload.model_validate(payload)
        except ValidationError:
            logger.warning("Malformed connection update")
            return

        if update.me:
            self.own_id = update.me

        if update.status == "open":
            logger.info("WhatsApp session open")
        elif update.status == "qr":
            logger.info("Scan the QR code shown by the gateway to link this account")
        elif update.status == "close":
            if update.loggedOut:
                logger.error("Disconnected because you logged out")
                self._logged_out = True
                self._running = False
            else:
                logger.warning("WhatsApp session closed, gateway is reconnecting")

    async def _on_get_message(self, frame: protocol.Frame):
        """Gateway retry path: hand back a message we sent earlier."""
        try:
            request = protocol.GetMessagePayload.model_validate(frame.payload)
        except ValidationError:
            logger.warning("Malformed get_message request")
            return
        cached = self.sent_cache.get(request.messageId)
        if cached is None:
            logger.debug(f"get_message miss for {request.messageId}")
        try:
            await self._send_frame({
                "type": protocol.GET_MESSAGE_RESULT,
                "requestId": frame.requestId,
                "payload": {"messageId": request.messageId, "found": cached is not None, "message": cached},
            })
        except BridgeError as e:
            logger.warning(f"get_message reply for {request.messageId} not sent: {e}")

    async def _worker(self):
        while True:
            message = await self._queue.get()
            try:
                if self._handler is not None:
                    await self._handler(message)
            except Exception as e:
                logger.error(f"Handler failed for message {message.message_id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    # ── Request / response ────────────────────────────────

    async def _send_frame(self, envelope: dict):
        if self._ws is None:
            raise BridgeNotConnected("Bridge websocket not connected")
        if self.token:
            envelope["token"] = self.token
        async with self._send_lock:
            try:
                await self._ws.send(json.dumps(envelope))
            except (ConnectionClosed, OSError) as e:
                raise BridgeNotConnected(f"Bridge websocket closed: {e}") from e

    async def _send_command(self, command_type: str, payload: dict, timeout: Optional[float] = None) -> Any:
        if self._ws is None:
            raise BridgeNotConnected("Bridge websocket not connected")

        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send_frame({"type": command_type, "requestId": request_id, "payload": payload})
            return await asyncio.wait_for(future, timeout=timeout or self.request_timeout)
        finally:
            self._pending.pop(request_id, None)

    def _resolve_pending(self, request_id: str, payload: dict):
        future = self._pending.get(request_id)
        if not future or future.done():
            return
        try:
            response = protocol.ResponsePayload.model_validate(payload)
        except ValidationError:
            future.set_exception(BridgeCommandError("ERR_PROTOCOL", "Malformed response payload"))
            return
        if response.ok:
            future.set_result(response.result)
            return
        error = response.error or protocol.ErrorInfo()
        future.set_exception(BridgeCommandError(error.code, error.message))

    def _fail_pending(self, reason: str):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(BridgeNotConnected(reason))
        self._pending.clear()

    # ── Operations used by the bot ────────────────────────

    async def send(self, scope: str, message: OutboundMessage) -> bool:
        """Send a message. Failures are logged and reported as False."""
        payload: dict = {
            "to": scope,
            "text": message.text,
            "mentions": list(message.mentions),
            "quotedMessageId": message.quoted_message_id,
        }
        if message.sticker is not None:
            payload["sticker"] = base64.b64encode(message.sticker).decode("ascii")

        try:
            result = await self._send_command(protocol.SEND_MESSAGE, payload)
        except (BridgeError, asyncio.TimeoutError) as e:
            logger.error(f"Send to {scope} failed: {e}")
            return False

        if isinstance(result, dict) and result.get("messageId"):
            self.sent_cache.put(result["messageId"], result.get("message") or payload)
        return True

    async def get_roster(self, scope: str) -> Optional[Roster]:
        """Fresh participant list of a group, or None on any failure."""
        if not is_group_jid(scope):
            return None
        try:
            result = await self._send_command(protocol.GROUP_METADATA, {"jid": scope})
            return protocol.GroupMetadata.model_validate(result).to_roster()
        except (BridgeError, asyncio.TimeoutError, ValidationError) as e:
            logger.warning(f"Roster fetch for {scope} failed: {e}")
            return None

    async def download_media(self, chat_id: str, message_id: str) -> Optional[bytes]:
        try:
            result = await self._send_command(
                protocol.DOWNLOAD_MEDIA, {"chatJid": chat_id, "messageId": message_id},
            )
        except (BridgeError, asyncio.TimeoutError) as e:
            logger.warning(f"Media download {message_id} failed: {e}")
            return None
        data = result.get("data") if isinstance(result, dict) else None
        if not data:
            return None
        try:
            return base64.b64decode(data)
        except ValueError as e:
            logger.warning(f"Media {message_id} is not valid base64: {e}")
            return None

    async def health(self) -> dict:
        result = await self._send_command(protocol.HEALTH, {})
        return result if isinstance(result, dict) else {}
