import json
import logging
import time
from dataclasses import dataclass, field

import httpx

from restbench.models.request import BodyType, HttpMethod
from restbench.schemas.common import KeyValue

logger = logging.getLogger(__name__)

_METHODS_WITH_BODY = {HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH}

_DEFAULT_CONTENT_TYPES = {
    BodyType.JSON: "application/json",
    BodyType.FORM: "application/x-www-form-urlencoded",
}


@dataclass
class HttpResponseData:
    status: int
    status_text: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    time: float = 0
    size: int = 0


class HttpExecutor:
    """Sends fully resolved requests over one pooled ``httpx.AsyncClient``.

    Transport failures are reported as a status-0 response whose body is a
    JSON error object, never as an exception.
    """

    def __init__(self, timeout: float = 30, transport: httpx.AsyncBaseTransport | None = None):
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                http2=True,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=100,
                    max_keepalive_connections=20,
                    keepalive_expiry=30,
                ),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def execute(
        self,
        method: HttpMethod | str,
        url: str,
        headers: list[KeyValue] | None = None,
        params: list[KeyValue] | None = None,
        body: str | None = None,
        body_type: BodyType | None = None,
    ) -> HttpResponseData:
        method = HttpMethod(method)
        request_headers = {h.key: h.value for h in headers or [] if h.enabled and h.key}
        query = [(p.key, p.value) for p in params or [] if p.enabled and p.key]

        content: str | None = None
        if body is not None and method in _METHODS_WITH_BODY:
            content = body
            default_type = _DEFAULT_CONTENT_TYPES.get(body_type)
            if default_type and not any(k.lower() == "content-type" for k in request_headers):
                request_headers["Content-Type"] = default_type

        start = time.perf_counter()
        try:
            response = await self._get_client().request(
                method.value,
                url,
                headers=request_headers,
                params=query or None,
                content=content,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            message = str(e) or "Request failed"
            logger.warning("%s %s failed: %s", method.value, url, message)
            error_body = json.dumps({"error": message, "type": e.__class__.__name__})
            return HttpResponseData(
                status=0,
                status_text=message,
                body=error_body,
                time=round(elapsed_ms, 2),
                size=len(error_body.encode("utf-8")),
            )
        elapsed_ms = (time.perf_counter() - start) * 1000

        return HttpResponseData(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            body=response.text,
            time=round(elapsed_ms, 2),
            size=len(response.content),
        )
