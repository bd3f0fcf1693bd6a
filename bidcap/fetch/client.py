"""Page fetching: a direct request, then a rendering proxy when that fails."""
import logging
from typing import Optional, Sequence

import httpx

from bidcap.config import config
from bidcap.parse.redact import redact_secrets

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}

ZENROWS_ENDPOINT = "https://api.zenrows.com/v1/"


class FetchError(Exception):
    """Every fetch strategy failed for a URL."""

    def __init__(self, url: str, errors: list[str]):
        self.url = url
        self.errors = errors
        super().__init__(f"Could not fetch {url}: {'; '.join(errors) or 'no strategy configured'}")


class StrategyError(Exception):
    """A single strategy failed; the next one is tried."""


def _check_status(response: httpx.Response, label: str) -> None:
    if not response.is_success:
        raise StrategyError(f"{label}HTTP {response.status_code} {response.reason_phrase}".strip())


class DirectFetch:
    """GET the page as a desktop browser would."""

    name = "direct"

    async def fetch(self, client: httpx.AsyncClient, url: str, timeout: float) -> str:
        try:
            response = await client.get(
                url, headers=BROWSER_HEADERS, follow_redirects=True, timeout=timeout
            )
        except httpx.HTTPError as e:
            raise StrategyError(f"{type(e).__name__}: {e}") from e
        _check_status(response, "")
        return response.text


class RenderingProxyFetch:
    """GET the page through ZenRows with JS rendering and residential proxies."""

    name = "zenrows"

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    async def fetch(self, client: httpx.AsyncClient, url: str, timeout: float) -> str:
        if not self.api_key:
            raise StrategyError("ZENROWS_API_KEY not set")
        params = {
            "url": url,
            "apikey": self.api_key,
            "js_render": "true",
            "premium_proxy": "true",
        }
        try:
            response = await client.get(
                ZENROWS_ENDPOINT,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise StrategyError(f"{type(e).__name__}: {e}") from e
        _check_status(response, "ZenRows ")
        return response.text


def default_strategies(api_key: Optional[str] = None) -> list:
    """Direct first, proxy second."""
    return [DirectFetch(), RenderingProxyFetch(api_key if api_key is not None else config.ZENROWS_API_KEY)]


class PageFetcher:
    """Fetch raw HTML, trying each strategy in order until one succeeds."""

    def __init__(
        self,
        strategies: Optional[Sequence] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.timeout = timeout or config.FETCH_TIMEOUT
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    def _redact(self, message: str) -> str:
        secrets = [getattr(s, "api_key", None) for s in self.strategies]
        return redact_secrets(message, secrets)

    async def fetch(self, url: str) -> str:
        """Return the page HTML or raise FetchError."""
        errors: list[str] = []
        for strategy in self.strategies:
            try:
                html = await strategy.fetch(self.client, url, self.timeout)
            except StrategyError as e:
                message = self._redact(str(e))
                logger.warning(f"{strategy.name} fetch failed for {url}: {message}")
                errors.append(f"{strategy.name}: {message}")
                continue
            logger.debug(f"Fetched {url} via {strategy.name} ({len(html)} chars)")
            return html
        raise FetchError(url, errors)
