"""
OAuth support for HTTP servers.

Builds an ``mcp`` OAuth client provider that keeps credentials in the
definition's token cache directory and completes the browser consent flow
through a short-lived local callback server.
"""

import asyncio
import json
import os
import socket
import webbrowser
from pathlib import Path
from typing import Optional, Tuple

from aiohttp import web
from mcp.client.auth import OAuthClientProvider
from mcp.shared.auth import OAuthClientInformationFull, OAuthClientMetadata, OAuthToken
from pydantic import AnyUrl, ValidationError

from mcporter.core.exceptions import MCPorterError
from mcporter.core.models import ServerDefinition, default_token_cache_dir
from mcporter.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

CALLBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/callback"

_PAGE = """<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
    <h1>{title}</h1>
    <p>{message}</p>
    <p>You can close this window and return to the terminal.</p>
</body>
</html>"""


class FileTokenStorage:
    """Token storage persisted as JSON files inside a cache directory."""
    
    TOKENS_FILE = "tokens.json"
    CLIENT_FILE = "client.json"
    
    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        
    async def get_tokens(self) -> Optional[OAuthToken]:
        data = await asyncio.to_thread(self._read, self.TOKENS_FILE)
        if data is None:
            return None
        try:
            return OAuthToken.model_validate(data)
        except ValidationError:
            logger.warning(f"Ignoring unreadable OAuth tokens in {self.cache_dir}")
            return None
        
    async def set_tokens(self, tokens: OAuthToken) -> None:
        await asyncio.to_thread(self._write, self.TOKENS_FILE, tokens.model_dump(mode="json"))
        
    async def get_client_info(self) -> Optional[OAuthClientInformationFull]:
        data = await asyncio.to_thread(self._read, self.CLIENT_FILE)
        if data is None:
            return None
        try:
            return OAuthClientInformationFull.model_validate(data)
        except ValidationError:
            logger.warning(f"Ignoring unreadable OAuth client registration in {self.cache_dir}")
            return None
        
    async def set_client_info(self, client_info: OAuthClientInformationFull) -> None:
        await asyncio.to_thread(
            self._write, self.CLIENT_FILE, client_info.model_dump(mode="json", exclude_none=True)
        )
        
    def _read(self, filename: str) -> Optional[dict]:
        path = self.cache_dir / filename
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read {path}: {e}")
            return None
        
    def _write(self, filename: str, data: dict) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / filename
        # Created owner-only; chmod covers files left behind with wider modes.
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(data, indent=2))
        path.chmod(0o600)


def find_free_port(host: str = CALLBACK_HOST) -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class OAuthCallbackServer:
    """Local HTTP server receiving the OAuth redirect."""
    
    def __init__(
        self,
        log: LogContext,
        host: str = CALLBACK_HOST,
        port: Optional[int] = None,
        timeout: float = 300.0,
    ):
        """
        Initialize the callback server.
        
        Args:
            log: Logging context for user-facing messages
            host: Interface to bind
            port: Port to bind; a free one is picked when omitted
            timeout: Seconds to wait for the browser redirect
        """
        self.log = log
        self.host = host
        self.port = port or find_free_port(host)
        self.timeout = timeout
        self.code: Optional[str] = None
        self.state: Optional[str] = None
        self.error: Optional[str] = None
        self._event = asyncio.Event()
        self._runner: Optional[web.AppRunner] = None
        
    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{CALLBACK_PATH}"
    
    async def handle_callback(self, request: web.Request) -> web.Response:
        """Capture code/state (or error) from the authorization redirect."""
        error = request.query.get("error")
        if error:
            description = request.query.get("error_description", "Unknown error")
            self.error = f"{error}: {description}"
            self._event.set()
            return web.Response(
                text=_PAGE.format(title="Authorization Failed", message=self.error),
                content_type="text/html",
                status=400,
            )
        code = request.query.get("code")
        if not code:
            self.error = "No authorization code received"
            self._event.set()
            return web.Response(
                text=_PAGE.format(title="Authorization Failed", message=self.error),
                content_type="text/html",
                status=400,
            )
        self.code = code
        self.state = request.query.get("state")
        self._event.set()
        return web.Response(
            text=_PAGE.format(
                title="Authorization Successful",
                message="mcporter received the authorization code.",
            ),
            content_type="text/html",
        )
    
    async def start(self) -> None:
        if self._runner is not None:
            return
        app = web.Application()
        app.router.add_get(CALLBACK_PATH, self.handle_callback)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        await site.start()
        self._runner = runner
        logger.debug(f"OAuth callback server listening on {self.redirect_uri}")
        
    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
            
    async def open_browser(self, authorization_url: str) -> None:
        """Redirect handler: start listening, then send the user to consent."""
        await self.start()
        self.log.info(f"Opening browser for authorization: {authorization_url}")
        opened = await asyncio.to_thread(webbrowser.open, authorization_url)
        if not opened:
            self.log.warn(f"Could not open a browser. Visit this URL to continue: {authorization_url}")
            
    async def wait_for_callback(self) -> Tuple[str, Optional[str]]:
        """Callback handler: wait for the redirect and return (code, state)."""
        await self.start()
        try:
            async with asyncio.timeout(self.timeout):
                await self._event.wait()
        except TimeoutError as e:
            raise MCPorterError(
                f"Timed out after {self.timeout:.0f}s waiting for OAuth authorization",
                error_code="oauth_timeout",
            ) from e
        finally:
            await self.stop()
        if self.error or not self.code:
            raise MCPorterError(
                self.error or "No authorization code received",
                error_code="oauth_callback",
            )
        return self.code, self.state


def build_oauth_provider(
    definition: ServerDefinition,
    log: LogContext,
    timeout: float = 300.0,
) -> OAuthClientProvider:
    """
    Create the httpx auth provider used for OAuth-protected servers.
    
    Args:
        definition: HTTP or SSE server definition
        log: Logging context
        timeout: Seconds allowed for the interactive consent
    """
    if definition.url is None:
        raise MCPorterError(f"Server '{definition.name}' has no URL to authorize against")
    cache_dir = Path(definition.token_cache_dir or default_token_cache_dir(definition.name)).expanduser()
    callback = OAuthCallbackServer(log, timeout=timeout)
    client_metadata = OAuthClientMetadata(
        client_name=f"mcporter ({definition.name})",
        redirect_uris=[AnyUrl(callback.redirect_uri)],
        grant_types=["authorization_code", "refresh_token"],
        response_types=["code"],
        token_endpoint_auth_method="none",
    )
    return OAuthClientProvider(
        server_url=definition.url,
        client_metadata=client_metadata,
        storage=FileTokenStorage(cache_dir),
        redirect_handler=callback.open_browser,
        callback_handler=callback.wait_for_callback,
        timeout=timeout,
    )
