"""
Tool provider client for sidecar

Owns exactly one provider subprocess and its line-delimited JSON-RPC 2.0
session: spawn, handshake, tool discovery, tool invocation, and teardown.
"""

import asyncio
import logging
import os
import shlex
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from .. import __version__
from ..core.errors import (
    ProtocolError,
    ProviderConnectionError,
    ProviderDisconnectedError,
    ProviderNotConnectedError,
    RequestTimeoutError,
    ToolNotFoundError,
)
from ..core.events import EventChannel
from ..core.protocol import (
    ErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    JsonRpcError,
    LineDecoder,
    MessageKind,
    classify_message,
    encode_message,
    parse_response,
)
from ..utils.logging import safe_repr, sanitize_dict
from .models import ConnectionStatus, ProviderDefinition, ProviderSessionState, ProviderToolDefinition

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"


@dataclass
class PendingRequest:
    """Request awaiting a correlated response or its timeout"""
    id: int
    method: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None


class ProviderClient:
    """
    JSON-RPC client for a single tool provider subprocess.

    Status moves disconnected -> connecting -> connected | error, and
    connected | error -> disconnected. Every transition publishes a
    ProviderSessionState snapshot on ``self.states``.
    """

    REQUEST_TIMEOUT = 30.0
    STARTUP_GRACE = 0.5
    SHUTDOWN_TIMEOUT = 5.0
    MAX_DIAGNOSTICS = 64 * 1024
    READ_CHUNK = 64 * 1024

    def __init__(
        self,
        definition: ProviderDefinition,
        request_timeout: Optional[float] = None,
        startup_grace: Optional[float] = None,
        cwd: Optional[str] = None,
        client_info: Optional[Dict[str, str]] = None,
    ):
        self.definition = definition
        self.request_timeout = request_timeout if request_timeout is not None else self.REQUEST_TIMEOUT
        self.startup_grace = startup_grace if startup_grace is not None else self.STARTUP_GRACE
        self.cwd = cwd
        self.client_info = client_info or {"name": "sidecar", "version": __version__}
        self.states: EventChannel[ProviderSessionState] = EventChannel(f"provider:{definition.id}")

        self._status = ConnectionStatus.DISCONNECTED
        self._tools: List[ProviderToolDefinition] = []
        self._error: Optional[str] = None
        self._last_connected: Optional[float] = None

        self._process: Optional[asyncio.subprocess.Process] = None
        self._stdout_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._decoder = LineDecoder(name=definition.name)
        self._diagnostics = ""

        self._request_id = 0
        self._pending: Dict[int, PendingRequest] = {}
        self.request_ids: List[int] = []

        self.server_info: Optional[Dict[str, Any]] = None
        self.server_capabilities: Optional[Dict[str, Any]] = None

    # -----------------------------
    # State
    # -----------------------------

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def tools(self) -> List[ProviderToolDefinition]:
        return list(self._tools)

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def diagnostics(self) -> str:
        return self._diagnostics

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_state(self) -> ProviderSessionState:
        return ProviderSessionState(
            id=self.definition.id,
            status=self._status,
            tools=list(self._tools),
            error=self._error,
            last_connected=self._last_connected,
        )

    def _set_status(self, status: ConnectionStatus, error: Optional[str] = None) -> None:
        self._status = status
        self._error = error
        self.states.publish(self.get_state())

    # -----------------------------
    # Lifecycle
    # -----------------------------

    async def connect(self) -> None:
        """Spawn the provider, run the handshake and discover its tools"""
        if self._status in (ConnectionStatus.CONNECTED, ConnectionStatus.CONNECTING):
            return

        self._set_status(ConnectionStatus.CONNECTING)
        self._diagnostics = ""
        logger.info(f"[ProviderClient] Connecting to provider: {self.name}")
        logger.debug(f"[ProviderClient] Command: {self.definition.command} {' '.join(self.definition.args)}")

        try:
            await self._spawn()
            await self._await_startup_grace()
            await self._initialize()
            await self._list_tools()
        except asyncio.CancelledError:
            await self._teardown("Connection cancelled", ProviderConnectionError)
            self._set_status(ConnectionStatus.ERROR, "Connection cancelled")
            raise
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"[ProviderClient] Failed to connect to {self.name}: {message}")
            diagnostics = self._diagnostics
            await self._teardown(f"Connection failed: {message}", ProviderConnectionError)
            self._set_status(ConnectionStatus.ERROR, message)
            if isinstance(e, ProviderConnectionError):
                raise
            raise ProviderConnectionError(message, diagnostics) from e

        self._last_connected = time.time()
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info(f"[ProviderClient] Connected to provider: {self.name}, tools: {len(self._tools)}")

    async def disconnect(self) -> None:
        """Terminate the subprocess and reject everything still pending"""
        if self._status == ConnectionStatus.DISCONNECTED and self._process is None:
            return
        await self._teardown("Client disconnected", ProviderDisconnectedError)
        self._set_status(ConnectionStatus.DISCONNECTED)
        logger.info(f"[ProviderClient] Disconnected from provider: {self.name}")

    def _build_argv(self) -> List[str]:
        command = self.definition.command.strip()
        args = list(self.definition.args or [])
        if not args and " " in command:
            return shlex.split(command)
        return [command, *args]

    async def _spawn(self) -> None:
        env = os.environ.copy()
        if self.definition.env:
            env.update({key: str(value) for key, value in self.definition.env.items()})
            logger.debug(f"[ProviderClient] Env overrides for {self.name}: {sanitize_dict(self.definition.env)}")

        argv = self._build_argv()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            raise ProviderConnectionError(
                f"Failed to start provider process '{argv[0]}': {e}. "
                "Check if the command is correct and the package is installed."
            ) from e

        self._process = process
        self._decoder.reset()
        self._stdout_task = asyncio.create_task(self._read_stdout(process))
        self._stderr_task = asyncio.create_task(self._read_stderr(process))

    async def _await_startup_grace(self) -> None:
        """Fail fast when the process dies right after launch"""
        process = self._process
        try:
            await asyncio.wait_for(process.wait(), timeout=self.startup_grace)
        except asyncio.TimeoutError:
            return

        await self._collect_diagnostics()
        raise ProviderConnectionError(self._exit_message(process.returncode), self._diagnostics)

    async def _initialize(self) -> None:
        result = await self.send_request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": self.client_info,
        })
        if not isinstance(result, dict):
            raise ProtocolError("Invalid initialize result", code=ErrorCode.INVALID_REQUEST.value)

        self.server_info = result.get("serverInfo")
        self.server_capabilities = result.get("capabilities")
        logger.debug(f"[ProviderClient {self.name}] Initialized: {safe_repr(result)}")

        await self.send_notification("notifications/initialized")

    async def _list_tools(self) -> None:
        result = await self.send_request("tools/list")
        if not isinstance(result, dict):
            raise ProtocolError("Invalid tools/list result", code=ErrorCode.INVALID_REQUEST.value)

        tools: List[ProviderToolDefinition] = []
        for item in result.get("tools") or []:
            if isinstance(item, dict) and item.get("name"):
                tools.append(ProviderToolDefinition.from_dict(item))
            else:
                logger.warning(f"[ProviderClient {self.name}] Skipping malformed tool entry: {safe_repr(item)}")
        self._tools = tools

    def _exit_message(self, code: Optional[int]) -> str:
        stderr = self._diagnostics.strip()
        detail = f"Error: {stderr}" if stderr else "Check if the command is correct and the package is installed."
        return f"Provider process exited with code {code}. {detail}"

    async def _collect_diagnostics(self, timeout: float = 1.0) -> None:
        if self._stderr_task and not self._stderr_task.done():
            await asyncio.wait({self._stderr_task}, timeout=timeout)

    async def _teardown(self, reason: str, error_type: Type[Exception]) -> None:
        process = self._process
        self._process = None

        for pending in list(self._pending.values()):
            if pending.timer:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(error_type(f"{reason} ({pending.method})"))
        self._pending.clear()

        self._tools = []
        self._decoder.reset()

        current = asyncio.current_task()
        for task in (self._stdout_task, self._stderr_task):
            if task is not None and task is not current and not task.done():
                task.cancel()

        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self.SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"[ProviderClient {self.name}] Process did not exit, killing it")
                process.kill()
                await process.wait()

    # -----------------------------
    # Inbound stream handling
    # -----------------------------

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        try:
            while True:
                chunk = await process.stdout.read(self.READ_CHUNK)
                if not chunk:
                    break
                for message in self._decoder.feed(chunk):
                    try:
                        self._handle_message(message)
                    except Exception as e:
                        logger.warning(f"[ProviderClient {self.name}] Skipping message that failed to process: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[ProviderClient {self.name}] Error reading provider output: {e}")
        await self._on_process_exit(process)

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                return
            text = chunk.decode("utf-8", errors="replace")
            self._diagnostics = (self._diagnostics + text)[-self.MAX_DIAGNOSTICS:]
            logger.debug(f"[ProviderClient {self.name}] stderr: {text.rstrip()}")

    async def _on_process_exit(self, process: asyncio.subprocess.Process) -> None:
        if process is not self._process:
            return
        try:
            code = await asyncio.wait_for(process.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            code = process.returncode
        await self._collect_diagnostics()
        if process is not self._process:
            return

        logger.info(f"[ProviderClient {self.name}] Process exited with code: {code}")
        if self._status == ConnectionStatus.CONNECTING:
            # connect() owns the transition; just fail the handshake quickly
            message = self._exit_message(code)
            for pending in list(self._pending.values()):
                if pending.timer:
                    pending.timer.cancel()
                if not pending.future.done():
                    pending.future.set_exception(ProviderConnectionError(message, self._diagnostics))
            self._pending.clear()
            return

        if self._status != ConnectionStatus.DISCONNECTED:
            await self._teardown("Provider process exited", ProviderDisconnectedError)
            self._set_status(ConnectionStatus.DISCONNECTED, f"Provider process exited with code {code}")

    def _handle_message(self, message: Dict[str, Any]) -> None:
        kind = classify_message(message)
        if kind is MessageKind.RESPONSE:
            self._handle_response(message)
        elif kind is MessageKind.NOTIFICATION:
            logger.debug(f"[ProviderClient {self.name}] Notification: {message.get('method')}")
        elif kind is MessageKind.REQUEST:
            self._handle_server_request(message)
        else:
            logger.debug(f"[ProviderClient {self.name}] Ignoring unrecognized message: {safe_repr(message)}")

    def _handle_response(self, message: Dict[str, Any]) -> None:
        pending = self._pending.pop(message["id"], None)
        if pending is None:
            logger.debug(f"[ProviderClient {self.name}] Ignoring response for unknown request id: {message['id']}")
            return
        if pending.timer:
            pending.timer.cancel()
        if pending.future.done():
            return

        try:
            response = parse_response(message)
        except ProtocolError as e:
            pending.future.set_exception(e)
            return

        if response.is_error():
            pending.future.set_exception(response.to_exception())
        else:
            pending.future.set_result(response.result)

    def _handle_server_request(self, message: Dict[str, Any]) -> None:
        method = message.get("method")
        if method == "ping":
            reply = JsonRpcResponse(id=message["id"], result={})
        else:
            logger.debug(f"[ProviderClient {self.name}] Unsupported server request: {method}")
            reply = JsonRpcResponse(
                id=message["id"],
                error=JsonRpcError(code=ErrorCode.METHOD_NOT_FOUND.value, message=f"Method not found: {method}"),
            )
        try:
            self._write(encode_message(reply))
        except (ConnectionError, OSError) as e:
            logger.debug(f"[ProviderClient {self.name}] Failed to answer server request: {e}")

    # -----------------------------
    # Outbound
    # -----------------------------

    def _write(self, data: bytes) -> None:
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise ProviderNotConnectedError(f"Not connected to provider {self.name}")
        process.stdin.write(data)

    def _expire_request(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        if not pending.future.done():
            logger.warning(f"[ProviderClient {self.name}] Request {request_id} ({pending.method}) timed out")
            pending.future.set_exception(RequestTimeoutError(pending.method, self.request_timeout))

    def _discard_pending(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending and pending.timer:
            pending.timer.cancel()

    async def send_request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send a request and wait for its correlated response"""
        if self._process is None or self._process.returncode is not None:
            raise ProviderNotConnectedError(f"Not connected to provider {self.name}")

        self._request_id += 1
        request_id = self._request_id
        request = JsonRpcRequest(id=request_id, method=method, params=params)

        loop = asyncio.get_running_loop()
        pending = PendingRequest(id=request_id, method=method, future=loop.create_future())
        pending.timer = loop.call_later(self.request_timeout, self._expire_request, request_id)
        self._pending[request_id] = pending
        self.request_ids.append(request_id)

        logger.debug(f"[ProviderClient {self.name}] -> {method} (id={request_id})")
        try:
            self._write(encode_message(request))
            await self._process.stdin.drain()
        except (ConnectionError, OSError, AttributeError) as e:
            self._discard_pending(request_id)
            if isinstance(e, ProviderConnectionError):
                raise
            raise ProviderConnectionError(f"Failed to send {method} to provider {self.name}: {e}") from e

        try:
            return await pending.future
        except asyncio.CancelledError:
            self._discard_pending(request_id)
            raise

    async def send_notification(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Fire-and-forget message; no pending entry is created"""
        notification = JsonRpcNotification(method=method, params=params)
        logger.debug(f"[ProviderClient {self.name}] -> notification {method}")
        self._write(encode_message(notification))
        await self._process.stdin.drain()

    async def call_tool(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a discovered tool and return the raw result payload"""
        if self._status != ConnectionStatus.CONNECTED:
            raise ProviderNotConnectedError(f"Provider {self.name} is not connected")
        if not any(tool.name == tool_name for tool in self._tools):
            raise ToolNotFoundError(tool_name, where=f"provider {self.name}")

        logger.debug(f"[ProviderClient {self.name}] Calling tool: {tool_name} {safe_repr(arguments or {})}")
        return await self.send_request("tools/call", {"name": tool_name, "arguments": arguments or {}})
