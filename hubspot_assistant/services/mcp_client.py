"""MCP client for the HubSpot command executor."""

import asyncio
import json
import logging
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, Optional, Protocol

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult

from ..errors import DispatchFailed
from ..logging_setup import mask_url

logger = logging.getLogger(__name__)

CONNECT_FAILED_MESSAGE = "Impossible de se connecter au serveur MCP."

UrlFactory = Callable[[], Awaitable[str]]
TransportFactory = Callable[[str], AsyncContextManager[Any]]


class CommandExecutor(Protocol):
    """Anything able to run a named CRM command."""

    @property
    def connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def send(self, name: str, payload: Dict[str, Any], retry: bool = False) -> Dict[str, Any]: ...

    async def reconfigure(self, url: str) -> None: ...

    async def close(self) -> None: ...


def result_payload(result: CallToolResult) -> Dict[str, Any]:
    """Turn a tool result into a plain mapping."""
    if result.structuredContent:
        return dict(result.structuredContent)
    text = "\n".join(
        block.text for block in result.content if getattr(block, "type", None) == "text"
    )
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"text": text}
    return parsed if isinstance(parsed, dict) else {"data": parsed}


def result_error(result: CallToolResult) -> str:
    payload = result_payload(result)
    return str(payload.get("text") or payload.get("message") or payload.get("error") or payload)


class McpExecutor:
    """Long-lived MCP session, connected lazily.

    The session lives in a dedicated task so that the transport's task group
    is entered and exited by the same task, whichever request reconnects it.
    """

    def __init__(
        self,
        url_factory: UrlFactory,
        timeout: float = 30.0,
        transport_factory: TransportFactory = streamablehttp_client,
    ):
        self._url_factory = url_factory
        self._url_override: Optional[str] = None
        self.timeout = timeout
        self._transport_factory = transport_factory
        self._session: Optional[ClientSession] = None
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._session is not None and self._task is not None and not self._task.done()

    async def _hold_session(self, url: str, ready: asyncio.Future) -> None:
        try:
            async with self._transport_factory(url) as streams:
                read_stream, write_stream = streams[0], streams[1]
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    self._session = session
                    if not ready.done():
                        ready.set_result(True)
                    await self._stop.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.warning(f"MCP session closed unexpectedly: {e}")
        finally:
            self._session = None

    async def _probe(self) -> None:
        """Log the tools offered by the server. Failure is not fatal."""
        try:
            tools = await asyncio.wait_for(self._session.list_tools(), self.timeout)
            logger.info(f"MCP server exposes {len(tools.tools)} tool(s)")
        except Exception as e:
            logger.warning(f"Failed to list MCP tools: {e}")

    async def connect(self) -> None:
        """Open the session if it is not already open.

        Raises:
            DispatchFailed: the server could not be reached.
        """
        async with self._lock:
            if self.connected:
                return
            await self._teardown()

            try:
                url = self._url_override or await self._url_factory()
            except Exception as e:
                logger.error(f"Failed to build MCP URL: {type(e).__name__}: {e}")
                raise DispatchFailed(CONNECT_FAILED_MESSAGE, transient=True) from e
            logger.info(f"Connecting to MCP server at {mask_url(url)}")

            ready = asyncio.get_running_loop().create_future()
            self._stop = asyncio.Event()
            self._task = asyncio.create_task(self._hold_session(url, ready))
            try:
                await asyncio.wait_for(ready, self.timeout)
            except Exception as e:
                logger.error(f"Failed to connect to MCP: {type(e).__name__}: {e}")
                await self._teardown()
                raise DispatchFailed(CONNECT_FAILED_MESSAGE, transient=True) from e

            logger.info("Connected to MCP server successfully")
            await self._probe()

    async def _teardown(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, self.timeout)
            except Exception as e:
                logger.debug(f"MCP session task ended with {type(e).__name__}: {e}")
        self._task = None
        self._stop = None
        self._session = None

    async def disconnect(self) -> None:
        async with self._lock:
            await self._teardown()

    async def reconfigure(self, url: str) -> None:
        """Point the executor at another server and reconnect."""
        self._url_override = url
        await self.disconnect()
        await self.connect()

    async def send(self, name: str, payload: Dict[str, Any], retry: bool = False) -> Dict[str, Any]:
        """Run tool ``name`` with ``payload`` as arguments.

        Connection failures are retried once when ``retry`` is set; errors
        reported by the server never are.

        Raises:
            DispatchFailed: the command could not be run.
        """
        attempts = 2 if retry else 1
        for attempt in range(1, attempts + 1):
            if not self.connected:
                try:
                    await self.connect()
                except DispatchFailed:
                    if attempt < attempts:
                        continue
                    raise
            session = self._session
            try:
                result = await asyncio.wait_for(session.call_tool(name, payload), self.timeout)
            except McpError as e:
                raise DispatchFailed(str(e)) from e
            except Exception as e:
                logger.error(f"MCP call '{name}' failed: {type(e).__name__}: {e}")
                await self.disconnect()
                if attempt < attempts:
                    continue
                raise DispatchFailed(str(e) or CONNECT_FAILED_MESSAGE, transient=True) from e

            if result.isError:
                raise DispatchFailed(result_error(result))
            return result_payload(result)
        raise DispatchFailed(CONNECT_FAILED_MESSAGE, transient=True)

    async def close(self) -> None:
        await self.disconnect()
