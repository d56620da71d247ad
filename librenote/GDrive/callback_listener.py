# callback_listener.py
# Description: Short-lived local HTTP listener receiving the OAuth redirect
#
# Imports
import asyncio
from typing import Optional
#
# Third-Party Imports
from aiohttp import web
from loguru import logger
#
# Local Imports
from ..Sync.errors import NotAuthenticatedError
#
#######################################################################################################################
#
# Classes:

logger = logger.bind(module="oauth_callback")

SUCCESS_HTML = (
    '<html><body style="background:#0f0f17;color:#fff;font-family:sans-serif;display:flex;'
    'align-items:center;justify-content:center;height:100vh;margin:0">'
    '<h2>Authenticated! You can close this window.</h2></body></html>'
)


class OAuthCallbackListener:
    """
    Local redirect target for the browser consent flow.

    Use as an async context manager: the server is bound on entry and torn
    down on exit, whether the flow succeeded, failed or timed out.

        async with OAuthCallbackListener(port=8234) as listener:
            open_browser(url)
            code = await listener.wait_for_code(timeout=300)
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8234, expected_state: Optional[str] = None):
        self.host = host
        self.port = port
        self.expected_state = expected_state
        self._runner: Optional[web.AppRunner] = None
        self._code_future: Optional[asyncio.Future] = None

    @property
    def is_open(self) -> bool:
        return self._runner is not None

    @property
    def bound_port(self) -> int:
        """Actual listening port (differs from `port` when 0 was requested)."""
        if self._runner is None or not self._runner.addresses:
            return self.port
        return self._runner.addresses[0][1]

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.bound_port}"

    async def __aenter__(self) -> "OAuthCallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        self._code_future = asyncio.get_running_loop().create_future()
        app = web.Application()
        app.router.add_get("/{tail:.*}", self._handle_redirect)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            await web.TCPSite(runner, self.host, self.port).start()
        except OSError as e:
            await runner.cleanup()
            raise NotAuthenticatedError(f"Could not listen for the OAuth redirect on {self.host}:{self.port}: {e}") from e
        self._runner = runner
        logger.debug(f"OAuth callback listener open on {self.redirect_uri}")

    async def close(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.debug("OAuth callback listener closed")
        if self._code_future is not None and not self._code_future.done():
            self._code_future.cancel()

    def _resolve(self, code: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        if self._code_future is None or self._code_future.done():
            return
        if error is not None:
            self._code_future.set_exception(error)
        else:
            self._code_future.set_result(code)

    async def _handle_redirect(self, request: web.Request) -> web.Response:
        if request.path == "/favicon.ico":
            return web.Response(status=204)

        # Error redirects carry the state too; an unmatched one must not end the flow.
        if self.expected_state is not None and request.query.get("state") != self.expected_state:
            logger.warning("Ignoring OAuth redirect with mismatched state")
            return web.Response(status=400, text="State mismatch")

        error = request.query.get("error")
        if error:
            self._resolve(error=NotAuthenticatedError(f"Authorization was denied: {error}"))
            return web.Response(status=400, text=f"Authorization failed: {error}")

        code = request.query.get("code")
        if not code:
            return web.Response(status=400, text="No code received")

        self._resolve(code=code)
        return web.Response(text=SUCCESS_HTML, content_type="text/html")

    async def wait_for_code(self, timeout: float) -> str:
        """Wait for the redirect carrying the authorization code."""
        if self._code_future is None:
            raise RuntimeError("Listener has not been started")
        try:
            return await asyncio.wait_for(asyncio.shield(self._code_future), timeout)
        except asyncio.TimeoutError:
            raise NotAuthenticatedError(f"Timed out after {timeout:.0f}s waiting for Google sign-in") from None

#
# End of callback_listener.py
#######################################################################################################################
