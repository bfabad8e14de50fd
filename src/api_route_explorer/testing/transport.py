"""HTTP transports used by the endpoint test executor."""

import httpx
from pydantic import BaseModel

from api_route_explorer.errors import TransportError


class TransportResponse(BaseModel):
    status_code: int
    headers: dict[str, str] = {}
    text: str = ""


class Transport:
    """Sends one request. Network, DNS and timeout failures raise TransportError."""

    def send(self, method: str, url: str, headers: dict[str, str], body: str | None, timeout: float) -> TransportResponse:
        raise NotImplementedError


class HttpxTransport(Transport):
    """Transport backed by an ``httpx.Client``."""

    def __init__(self, verify: bool = True, client: httpx.Client | None = None):
        self._client = client or httpx.Client(verify=verify, follow_redirects=True)

    def send(self, method: str, url: str, headers: dict[str, str], body: str | None, timeout: float) -> TransportResponse:
        try:
            resp = self._client.request(
                method,
                url,
                headers=headers,
                content=body.encode("utf-8") if body else None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {timeout} seconds") from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

        return TransportResponse(
            status_code=resp.status_code,
            headers=dict(resp.headers),
            text=resp.text,
        )

    def close(self) -> None:
        self._client.close()
