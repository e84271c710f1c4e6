"""Executors: turn operation descriptions into live provider calls.

Resource handles never touch the network themselves. Every create/delete/query is
described as an Operation and handed to an Executor, which runs it (an `az` / `aws`
command, or a DigitalOcean REST call) and returns the provider's reply as a dict.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex
import ssl
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Mapping

from pydantic import BaseModel, Field

from stackwright.errors import ProviderAPIError
from stackwright.models import ProviderConfig, ProviderKind, ResourceKind

logger = logging.getLogger(__name__)

DIGITALOCEAN_API = "https://api.digitalocean.com"
_TIMEOUT = 30  # seconds

# CLI flags whose following argument must never reach a log line
_SECRET_FLAGS = frozenset({"--admin-password", "--password", "--querytext", "--token"})
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class Operation(BaseModel):
    """A single provider call, described but not performed."""

    provider: ProviderKind
    kind: ResourceKind
    action: str
    name: str
    scope: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    # CLI form (Azure, Spaces) ...
    command: list[str] = Field(default_factory=list)
    # ... or REST form (DigitalOcean API)
    method: str | None = None
    path: str | None = None

    def describe(self) -> str:
        if self.command:
            masked: list[str] = []
            hide_next = False
            for arg in self.command:
                masked.append("***" if hide_next else arg)
                hide_next = arg in _SECRET_FLAGS
            return shlex.join(masked)
        if self.method:
            return f"{self.method} {self.path}"
        return f"{self.kind.value}.{self.action} {self.name}"


def _parse_reply(text: str) -> dict[str, Any]:
    text = text.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {"value": text}
    if isinstance(parsed, dict):
        return parsed
    return {"value": parsed}


class Executor(ABC):
    """Performs Operations on behalf of resource handles."""

    @abstractmethod
    async def execute(self, op: Operation) -> dict[str, Any]:
        """Run op and return the provider's reply. Raise ProviderAPIError on failure."""


class DryRunExecutor(Executor):
    """Records operations without running them.

    Handles fall back to their deterministic names and hostnames when the reply is empty,
    so a dry run produces the same results a fresh deployment would report. `replies`
    can pre-seed answers keyed by (kind, action).
    """

    def __init__(self, replies: Mapping[tuple[str, str], dict[str, Any]] | None = None):
        self.operations: list[Operation] = []
        self._replies = {(str(k), a): dict(v) for (k, a), v in (replies or {}).items()}

    async def execute(self, op: Operation) -> dict[str, Any]:
        logger.debug("dry-run: %s", op.describe())
        self.operations.append(op)
        return dict(self._replies.get((op.kind.value, op.action), {}))


class CommandExecutor(Executor):
    """Runs CLI operations (`az`, `aws s3api`) as subprocesses and parses JSON stdout."""

    def __init__(self, env: Mapping[str, str] | None = None):
        self._env = {k: v for k, v in (env or {}).items() if v}

    async def execute(self, op: Operation) -> dict[str, Any]:
        if not op.command:
            raise ProviderAPIError(
                f"{op.describe()} has no command form", provider=op.provider.value, operation=op.action
            )
        logger.debug("exec: %s", op.describe())
        env = {**os.environ, **self._env} if self._env else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *op.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError as exc:
            raise ProviderAPIError(
                f"{op.command[0]} not found on PATH", provider=op.provider.value, operation=op.action
            ) from exc
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
            raise ProviderAPIError(
                f"{op.kind.value} {op.action} {op.name!r} failed: {detail}",
                provider=op.provider.value,
                operation=op.action,
                status=proc.returncode,
            )
        return _parse_reply(stdout.decode(errors="replace"))


def urlopen_safe(req: urllib.request.Request, timeout: int = _TIMEOUT) -> bytes:
    ctx = ssl.create_default_context()
    with urllib.request.urlopen(req, timeout=timeout, context=ctx) as resp:
        return resp.read()


def _http_error_detail(exc: urllib.error.HTTPError) -> str:
    try:
        body = json.loads(exc.read() or b"{}")
    except (json.JSONDecodeError, OSError):
        return exc.reason or ""
    if isinstance(body, dict):
        return body.get("message") or body.get("id") or str(exc.reason)
    return str(exc.reason)


class HttpApiExecutor(Executor):
    """Calls the DigitalOcean REST API with a bearer token."""

    def __init__(self, token: str, base_url: str = DIGITALOCEAN_API, timeout: int = _TIMEOUT):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def execute(self, op: Operation) -> dict[str, Any]:
        if not op.method or not op.path:
            raise ProviderAPIError(
                f"{op.describe()} has no REST form", provider=op.provider.value, operation=op.action
            )
        method = op.method.upper()
        url = self._base_url + op.path
        body: bytes | None = None
        if op.params and method in _BODY_METHODS:
            body = json.dumps(op.params).encode()
        elif op.params:
            url = f"{url}?{urllib.parse.urlencode(op.params)}"

        logger.debug("http: %s %s", method, op.path)
        try:
            raw = await asyncio.to_thread(self._request, method, url, body)
        except urllib.error.HTTPError as exc:
            raise ProviderAPIError(
                f"{op.kind.value} {op.action} {op.name!r} failed ({exc.code}): {_http_error_detail(exc)}",
                provider=op.provider.value,
                operation=op.action,
                status=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            raise ProviderAPIError(
                f"{op.kind.value} {op.action} {op.name!r} failed: {exc.reason}",
                provider=op.provider.value,
                operation=op.action,
            ) from exc
        return _parse_reply(raw.decode(errors="replace"))

    def _request(self, method: str, url: str, body: bytes | None) -> bytes:
        req = urllib.request.Request(
            url,
            data=body,
            method=method,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        return urlopen_safe(req, timeout=self._timeout)


class LiveExecutor(Executor):
    """Sends REST operations to an HTTP executor and command operations to a subprocess one."""

    def __init__(self, http: Executor | None = None, cli: Executor | None = None):
        self._http = http
        self._cli = cli or CommandExecutor()

    async def execute(self, op: Operation) -> dict[str, Any]:
        if op.method:
            if self._http is None:
                raise ProviderAPIError(
                    f"No HTTP executor configured for {op.describe()}",
                    provider=op.provider.value,
                    operation=op.action,
                )
            return await self._http.execute(op)
        return await self._cli.execute(op)


def default_executor(config: ProviderConfig) -> Executor:
    """The live executor matching a provider config."""
    if config.provider is ProviderKind.DIGITALOCEAN:
        spaces_env = {
            "AWS_ACCESS_KEY_ID": config.credential("spaces_key"),
            "AWS_SECRET_ACCESS_KEY": config.credential("spaces_secret"),
        }
        return LiveExecutor(
            http=HttpApiExecutor(config.credential("api_token")),
            cli=CommandExecutor(env=spaces_env),
        )
    return CommandExecutor()
