from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Iterable, Iterator

from .errors import ApiError, ConnectionFailedError, InvalidURLError, ResponseDecodingError

logger = logging.getLogger("novtrans.transport")

JSON_HEADERS = {"Content-Type": "application/json"}


def join_url(base_url: str, path: str) -> str:
    """Join a validated base URL with an endpoint path."""
    base = base_url.strip().rstrip("/")
    parsed = urllib.parse.urlparse(base)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidURLError(base_url)
    return f"{base}/{path.lstrip('/')}"


def _error_body(e: urllib.error.HTTPError) -> str:
    try:
        return e.read().decode("utf-8", errors="replace")
    except (OSError, http.client.HTTPException):
        return ""


def _build_request(url: str, payload: dict[str, Any] | None, headers: dict[str, str], method: str) -> urllib.request.Request:
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    return urllib.request.Request(url=url, data=data, headers={**JSON_HEADERS, **headers}, method=method)


def _open(req: urllib.request.Request, timeout_s: float):
    try:
        resp = urllib.request.urlopen(req, timeout=timeout_s)
    except urllib.error.HTTPError as e:
        raise ApiError(e.code, _error_body(e)) from e
    except (urllib.error.URLError, OSError, http.client.HTTPException) as e:
        raise ConnectionFailedError(f"Request to {req.full_url} failed: {e}") from e

    status = int(getattr(resp, "status", 200) or 200)
    if status != 200:
        try:
            body = resp.read().decode("utf-8", errors="replace")
        finally:
            resp.close()
        raise ApiError(status, body)
    return resp


def request_json(
    url: str,
    payload: dict[str, Any] | None = None,
    *,
    headers: dict[str, str] | None = None,
    timeout_s: float = 60.0,
    method: str | None = None,
) -> Any:
    """Send a JSON request and decode the JSON response body."""
    req = _build_request(url, payload, headers or {}, method or ("POST" if payload is not None else "GET"))
    with _open(req, timeout_s) as resp:
        try:
            raw = resp.read()
        except (OSError, http.client.HTTPException) as e:
            raise ConnectionFailedError(f"Reading response from {url} failed: {e}") from e
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResponseDecodingError(f"Invalid JSON from {url}: {e}") from e


def open_stream(
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str] | None = None,
    timeout_s: float = 60.0,
):
    """POST a request and return the open response for incremental reading. Caller closes it."""
    req = _build_request(url, payload, headers or {}, "POST")
    return _open(req, timeout_s)


def iter_lines(resp: Iterable[bytes]) -> Iterator[str]:
    """Yield decoded lines without their line terminators."""
    it = iter(resp)
    while True:
        try:
            raw = next(it)
        except StopIteration:
            return
        except (OSError, http.client.HTTPException) as e:
            raise ConnectionFailedError(f"Stream connection failed: {e}") from e
        yield raw.decode("utf-8", errors="replace").rstrip("\r\n")


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the payload of each `data:` line of a server-sent-events stream."""
    for line in lines:
        if not line.startswith("data:"):
            # Blank separators, comments (":") and "event:" lines carry no payload.
            continue
        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        if data:
            yield data


def iter_ndjson(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        if line.strip():
            yield line
