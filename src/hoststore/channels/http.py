"""Channel talking to a remote file service over HTTP.

Each primitive is a JSON ``POST`` to ``<base_url>/fs/<op>``.  The host
replies ``{"ok": true, "result": ...}`` on success or
``{"ok": false, "error": {"code": ..., "message": ..., "details": ...}}``
on failure, mirroring the error objects the desktop host relays over IPC.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from hoststore._constants import DEFAULT_APP_NAME
from hoststore.exceptions import ChannelFailure

_logger = logging.getLogger(__name__)

USER_AGENT = f"{DEFAULT_APP_NAME}-http-channel"

# Status codes used when the host gives no structured error body.
_STATUS_CODES: dict[int, str] = {
    400: "INVALID_PATH",
    403: "PERMISSION_DENIED",
    404: "FILE_NOT_FOUND",
    408: "TIMEOUT",
    504: "TIMEOUT",
}


class HttpChannel:
    """Channel that forwards every primitive to a remote file service.

    Usage::

        async with HttpChannel("http://127.0.0.1:8765") as channel:
            store = PersistedStore(channel, StoreConfig(root="/store"))
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        token: str | None = None,
        timeout: float | None = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._external_session = session is not None
        self._http: aiohttp.ClientSession | None = session
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    async def __aenter__(self) -> HttpChannel:
        self._require_session()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession(timeout=self._timeout)
            self._external_session = False
        return self._http

    async def _call(self, op: str, payload: dict[str, Any]) -> Any:
        """POST one primitive and unwrap the host's reply envelope."""
        http = self._require_session()
        url = f"{self._base_url}/fs/{op}"
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        if self._token:
            headers["authorization"] = f"Bearer {self._token}"

        _logger.debug("POST %s path=%s", url, payload.get("path", payload.get("src")))

        # aiohttp and timeout errors propagate as-is; the store translates them.
        async with http.post(url, data=json.dumps(payload), headers=headers) as resp:
            text = await resp.text()
            status = resp.status

        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError:
            body = None

        if isinstance(body, dict) and body.get("ok") is False:
            error = body.get("error")
            if not isinstance(error, dict):
                error = {}
            raise ChannelFailure(
                str(error.get("message") or f"{op} failed"),
                code=str(error.get("code") or ""),
                details=error.get("details"),
            )

        if status != 200:
            raise ChannelFailure(
                f"HTTP {status} from {op}: {text[:200]}",
                code=_STATUS_CODES.get(status, "NETWORK_ERROR"),
                details={"status": status, "op": op},
            )

        if not isinstance(body, dict) or "ok" not in body:
            raise ChannelFailure(
                f"Invalid response from {op}: {text[:200]}",
                code="NETWORK_ERROR",
                details={"op": op},
            )
        return body.get("result")

    async def read(self, path: str) -> str:
        result = await self._call("read", {"path": path, "encoding": "utf-8"})
        return str(result if result is not None else "")

    async def write(self, path: str, content: str, *, backup: bool = False) -> None:
        await self._call(
            "write",
            {"path": path, "content": content, "encoding": "utf-8", "backup": backup},
        )

    async def exists(self, path: str) -> bool:
        return bool(await self._call("exists", {"path": path}))

    async def mkdir(self, path: str, recursive: bool = True) -> None:
        await self._call("mkdir", {"path": path, "recursive": recursive})

    async def delete(self, path: str) -> None:
        await self._call("delete", {"path": path})

    async def list_dir(self, path: str, recursive: bool = False) -> list[str]:
        result = await self._call("readDir", {"path": path, "recursive": recursive})
        return [str(item) for item in result or []]

    async def stat(self, path: str) -> dict[str, Any]:
        result = await self._call("stats", {"path": path})
        return result if isinstance(result, dict) else {}

    async def move(self, src: str, dst: str) -> None:
        await self._call("move", {"src": src, "dst": dst})

    async def copy(self, src: str, dst: str) -> None:
        await self._call("copy", {"src": src, "dst": dst})
