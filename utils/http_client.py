"""
HTTP client utilities with connection pooling.
Provides a reusable httpx client for chat completion requests.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages the shared httpx client."""

    _chat_client: httpx.AsyncClient | None = None

    @classmethod
    def get_chat_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for chat completion requests.

        Features:
        - Connection pooling (reuses TCP connections)
        - Long read timeout so slow token streams are not cut off

        Returns:
            Configured httpx.AsyncClient for streamed chat requests
        """
        if cls._chat_client is None:
            limits = httpx.Limits(
                max_connections=Config.MAX_CONNECTIONS,
                max_keepalive_connections=Config.MAX_KEEPALIVE_CONNECTIONS,
                keepalive_expiry=30.0
            )

            timeout = httpx.Timeout(
                connect=Config.CONNECT_TIMEOUT,
                read=Config.READ_TIMEOUT,
                write=Config.WRITE_TIMEOUT,
                pool=Config.POOL_TIMEOUT
            )

            cls._chat_client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                limits=limits,
                trust_env=True,
                http2=True
            )

        return cls._chat_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close the managed client and clean up connections.
        """
        if cls._chat_client is not None:
            await cls._chat_client.aclose()
            cls._chat_client = None
