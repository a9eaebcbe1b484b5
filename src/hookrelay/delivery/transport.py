"""
Module: transport.py
Description: HTTP transport for webhook delivery.

Thin wrapper over httpx.AsyncClient that posts a pre-encoded JSON body
and returns the status code and response body. Network-level failures
(timeouts, DNS, refused connections) surface as TransportError; any
HTTP response, including 4xx/5xx, is returned for the caller to
classify. A URL that can never be sent (bad scheme, unparsable) is a
non-transient TransportError.
"""

from typing import Dict, Optional

import httpx
from pydantic import BaseModel

from hookrelay.errors import TransportError
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)

# Responses are stored in delivery logs; keep them bounded
MAX_RESPONSE_BODY_CHARS = 4000


class TransportResponse(BaseModel):
    status_code: int
    body: str = ""


class HttpTransport:
    """
    Async HTTP transport.

    Attributes:
        client: Shared AsyncClient, or None to open one per request
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client

    async def send(
        self,
        url: str,
        body: str,
        headers: Dict[str, str],
        timeout: float,
        connect_timeout: float
    ) -> TransportResponse:
        """
        POST a JSON body.

        Args:
            url: Endpoint URL
            body: Encoded JSON document
            headers: Request headers
            timeout: Overall request timeout in seconds
            connect_timeout: Connection timeout in seconds

        Returns:
            TransportResponse with status code and (truncated) body

        Raises:
            TransportError: On timeout or network failure, or a URL no retry can fix
        """
        request_timeout = httpx.Timeout(timeout, connect=connect_timeout)

        try:
            if self.client is not None:
                response = await self.client.post(url, content=body, headers=headers, timeout=request_timeout)
            else:
                async with httpx.AsyncClient(timeout=request_timeout) as client:
                    response = await client.post(url, content=body, headers=headers)

        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            logger.warning("Webhook URL rejected", url=url, error=str(e), error_type=type(e).__name__)
            raise TransportError(f"Invalid URL: {e}", transient=False, cause=e) from e

        except httpx.TimeoutException as e:
            logger.warning("Webhook request timed out", url=url, timeout=timeout)
            raise TransportError(f"Request timed out: {e}", transient=True, cause=e) from e

        except httpx.NetworkError as e:
            logger.warning("Webhook network error", url=url, error=str(e))
            raise TransportError(f"Network error: {e}", transient=True, cause=e) from e

        except httpx.HTTPError as e:
            logger.warning("Webhook request failed", url=url, error=str(e), error_type=type(e).__name__)
            raise TransportError(f"HTTP error: {e}", transient=True, cause=e) from e

        return TransportResponse(
            status_code=response.status_code,
            body=response.text[:MAX_RESPONSE_BODY_CHARS]
        )
