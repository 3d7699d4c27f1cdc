"""
Module to authenticate with the Photos Library API, through the OAuth2 authorization code
flow for installed applications.

The flow proceeds as follows:

  • a random state value and a PKCE code verifier are generated
  • a redirect listener is started at the configured redirect URL
  • the authorization URL is presented to the user, through a URL handler
  • the user authorizes access; the browser is redirected to the listener, which receives
    the authorization code
  • the listener is shut down, and the code is exchanged for a token
  • an authenticated transport is returned; it refreshes the token when it expires

A redirect whose state does not match is rejected and does not end the flow.
"""

import asyncio
import base64
import hashlib
import httpx
import logging
import secrets
import urllib.parse
import uvicorn

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from photoslibrary.asgi import asgi_app
from photoslibrary.error import AuthError
from photoslibrary.http import Headers, HTTPXTransport, Request, Response
from photoslibrary.stream import BytesStream


_logger = logging.getLogger(__name__)


GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPE_READONLY = "https://www.googleapis.com/auth/photoslibrary.readonly"
SCOPE_APPENDONLY = "https://www.googleapis.com/auth/photoslibrary.appendonly"
SCOPE_SHARING = "https://www.googleapis.com/auth/photoslibrary.sharing"

STATE_SIZE = 10  # bytes of randomness in the state value

EXPIRY_DELTA = timedelta(seconds=10)  # token is refreshed this long before it expires


@dataclass
class Config:
    """
    OAuth2 client configuration.

    Parameters and attributes:
    • client_id: client identifier, issued by the authorization server
    • client_secret: client secret, issued by the authorization server
    • redirect_url: URL the authorization server redirects to, with the authorization code
    • scopes: requested scopes of access
    • auth_url: URL of the authorization endpoint
    • token_url: URL of the token endpoint
    """

    client_id: str
    client_secret: str = ""
    redirect_url: str = "http://localhost:8080"
    scopes: list[str] = field(default_factory=lambda: [SCOPE_READONLY])
    auth_url: str = GOOGLE_AUTH_URL
    token_url: str = GOOGLE_TOKEN_URL

    def auth_code_url(self, state: str, challenge: str) -> str:
        """Return the URL of the authorization dialog, for the given state and challenge."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
        separator = "&" if "?" in self.auth_url else "?"
        return f"{self.auth_url}{separator}{urllib.parse.urlencode(params)}"


@dataclass
class Token:
    """
    OAuth2 token.

    Parameters and attributes:
    • access_token: token that authorizes requests
    • token_type: type of the access token
    • refresh_token: token to obtain a new access token; empty if none was issued
    • expiry: time the access token expires; None if it does not expire
    """

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str = ""
    expiry: datetime | None = None

    @property
    def expired(self) -> bool:
        if self.expiry is None:
            return False
        return datetime.now(tz=timezone.utc) >= self.expiry - EXPIRY_DELTA


def generate_state() -> str:
    """Return a random, URL-safe state value."""
    return base64.urlsafe_b64encode(secrets.token_bytes(STATE_SIZE)).decode()


def generate_verifier() -> str:
    """Return a random PKCE code verifier."""
    return secrets.token_urlsafe(32)


def s256_challenge(verifier: str) -> str:
    """Return the S256 PKCE code challenge of a code verifier."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def _token_request(config: Config, data: dict[str, str]) -> httpx.Request:
    data = {**data, "client_id": config.client_id}
    if config.client_secret:
        data["client_secret"] = config.client_secret
    return httpx.Request(
        "POST", config.token_url, data=data, headers={"Accept": "application/json"}
    )


def _parse_token(response: httpx.Response, previous: Token | None = None) -> Token:
    if response.is_error:
        raise AuthError(f"token request failed with status {response.status_code}: {response.text}")
    try:
        payload = response.json()
    except ValueError as ve:
        raise AuthError("token response is not JSON") from ve
    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise AuthError("token response has no access_token")
    expiry = None
    if expires_in := payload.get("expires_in"):
        expiry = datetime.now(tz=timezone.utc) + timedelta(seconds=int(expires_in))
    refresh_token = payload.get("refresh_token") or (previous.refresh_token if previous else "")
    return Token(
        access_token=payload["access_token"],
        token_type=payload.get("token_type") or "Bearer",
        refresh_token=refresh_token,
        expiry=expiry,
    )


async def exchange(
    client: httpx.AsyncClient, config: Config, code: str, verifier: str
) -> Token:
    """
    Exchange an authorization code for a token.

    Parameters:
    • client: client to execute the token request
    • config: OAuth2 client configuration
    • code: authorization code, received through the redirect
    • verifier: PKCE code verifier, whose challenge was sent with the authorization request

    Raises AuthError if the code could not be exchanged.
    """
    request = _token_request(
        config,
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": config.redirect_url,
            "code_verifier": verifier,
        },
    )
    try:
        response = await client.send(request)
    except httpx.HTTPError as he:
        raise AuthError(f"token exchange failed: {he}") from he
    return _parse_token(response)


async def refresh(client: httpx.AsyncClient, config: Config, token: Token) -> Token:
    """
    Obtain a new access token with the refresh token of a token.

    Raises AuthError if the token could not be refreshed.
    """
    if not token.refresh_token:
        raise AuthError("token expired and has no refresh token")
    request = _token_request(
        config, {"grant_type": "refresh_token", "refresh_token": token.refresh_token}
    )
    try:
        response = await client.send(request)
    except httpx.HTTPError as he:
        raise AuthError(f"token refresh failed: {he}") from he
    return _parse_token(response, token)


class OAuth2Auth(httpx.Auth):
    """
    httpx authentication that attaches an OAuth2 access token to each request, refreshing the
    token first if it has expired. Concurrent requests share a single refresh.

    Parameters and attributes:
    • config: OAuth2 client configuration
    • token: current token
    """

    requires_response_body = True

    def __init__(self, config: Config, token: Token):
        self.config = config
        self.token = token
        self._lock = asyncio.Lock()

    def sync_auth_flow(self, request):
        raise RuntimeError("OAuth2Auth requires an asynchronous client")

    async def async_auth_flow(self, request):
        async with self._lock:
            if self.token.expired:
                if not self.token.refresh_token:
                    raise AuthError("token expired and has no refresh token")
                _logger.debug("refreshing expired access token")
                response = yield _token_request(
                    self.config,
                    {"grant_type": "refresh_token", "refresh_token": self.token.refresh_token},
                )
                self.token = _parse_token(response, self.token)
        request.headers["Authorization"] = f"{self.token.token_type} {self.token.access_token}"
        yield request


def _text_response(status: int, text: str) -> Response:
    response = Response(status=status, headers=Headers({"Content-Type": "text/plain"}))
    response.body = BytesStream(text.encode(), "text/plain")
    return response


class RedirectListener:
    """
    HTTP listener that receives the authorization code, through the redirect from the
    authorization dialog.

    Parameters:
    • redirect_url: URL to listen at; its host and port are bound
    • state: state value a redirect must carry to be accepted

    Must be created with a running event loop.
    """

    def __init__(self, redirect_url: str, state: str):
        parts = urllib.parse.urlsplit(redirect_url)
        if not parts.hostname:
            raise AuthError(f"invalid redirect URL: {redirect_url!r}")
        self.host = parts.hostname
        self.port = parts.port or (443 if parts.scheme == "https" else 80)
        self.state = state
        self._code = asyncio.get_running_loop().create_future()
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    async def handle(self, request: Request) -> Response:
        """Handle a redirect request."""
        if request.query.get("state") != self.state:
            _logger.warning("rejected redirect with invalid state")
            return _text_response(401, "invalid state")
        if self._code.done():
            return _text_response(409, "authorization already received")
        if error := request.query.get("error"):
            self._code.set_exception(AuthError(f"authorization failed: {error}"))
            return _text_response(403, f"Authorization failed: {error}")
        if not (code := request.query.get("code")):
            return _text_response(400, "missing code")
        self._code.set_result(code)
        return _text_response(200, "Authenticated Successfully")

    async def start(self) -> None:
        """Start listening in a background task."""
        config = uvicorn.Config(
            asgi_app(self.handle), host=self.host, port=self.port, log_level="warning"
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        _logger.debug("redirect listener starting on %s:%d", self.host, self.port)

    async def wait(self) -> str:
        """
        Wait for a redirect that delivers the authorization code, and return the code.

        Raises AuthError if authorization failed, or if the listener stopped first.
        """
        if self._task is None:
            return await self._code
        await asyncio.wait((self._code, self._task), return_when=asyncio.FIRST_COMPLETED)
        if not self._code.done():
            exception = None if self._task.cancelled() else self._task.exception()
            _logger.critical("redirect listener stopped: %s", exception)
            raise AuthError("redirect listener stopped before authorization") from exception
        return self._code.result()

    async def shutdown(self) -> None:
        """Stop listening."""
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await asyncio.wait((self._task,))


def print_auth_code_url(url: str) -> None:
    """Present the authorization URL by printing it to standard output."""
    print(f"Visit the URL for the auth dialog: {url}")


_background_tasks: set[asyncio.Task] = set()


def _url_handler_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if not task.cancelled() and (exception := task.exception()) is not None:
        _logger.error("URL handler failed: %s", exception)


async def authenticate(
    config: Config,
    *,
    url_handler: Callable[[str], None] = print_auth_code_url,
    client: httpx.AsyncClient | None = None,
) -> HTTPXTransport:
    """
    Run the authorization code flow and return an authenticated transport.

    Parameters:
    • config: OAuth2 client configuration
    • url_handler: function to present the authorization URL to the user
    • client: client to exchange the code and to execute requests  [new client]

    The URL handler is called in a worker thread, and is not awaited; it may block, for
    example until a browser it launched exits.

    Raises AuthError if authorization failed.
    """
    state = generate_state()
    verifier = generate_verifier()
    listener = RedirectListener(config.redirect_url, state)
    await listener.start()
    try:
        url = config.auth_code_url(state, s256_challenge(verifier))
        task = asyncio.create_task(asyncio.to_thread(url_handler, url))
        _background_tasks.add(task)
        task.add_done_callback(_url_handler_done)
        code = await listener.wait()
    finally:
        await listener.shutdown()
    if client is not None:
        token = await exchange(client, config, code, verifier)
        client.auth = OAuth2Auth(config, token)
        return HTTPXTransport(client)
    async with httpx.AsyncClient() as token_client:
        token = await exchange(token_client, config, code, verifier)
    _logger.debug("authenticated; token expires %s", token.expiry)
    return HTTPXTransport(auth=OAuth2Auth(config, token))
