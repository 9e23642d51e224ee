"""
HTTP transport for the course API.

One TransportClient wraps one requests.Session bound to a base URL. It:
- attaches the bearer token from the injected SessionContext (if any)
- attaches the tunnelling-proxy bypass header on every request
- sends JSON bodies, or multipart bodies when the payload carries files
- turns every failure into NetworkError / HttpError / DecodeError

It performs no retries and enforces no timeout unless one is configured.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

import requests
from bs4 import BeautifulSoup
from pydantic import ValidationError

from courseadmin.config import BYPASS_HEADER
from courseadmin.errors import DecodeError, HttpError, NetworkError
from courseadmin.session import SessionContext


log = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Payload inspection
# ---------------------------------------------------------------------------


def _is_attachment(value: Any) -> bool:
    """
    True for values that must travel as a multipart file part:
    raw bytes, readable file objects, or (filename, content[, type]) tuples.
    """
    if isinstance(value, (bytes, bytearray)):
        return True
    if hasattr(value, "read"):
        return True
    if isinstance(value, tuple) and len(value) in (2, 3) and isinstance(value[0], str):
        return isinstance(value[1], (bytes, bytearray)) or hasattr(value[1], "read")
    return False


def is_multipart(body: Any) -> bool:
    """
    Decide the encoding of a request body at call time.

    Callers never say which encoding they want; a mapping with at least one
    attachment value is multipart, everything else is JSON.
    """
    return isinstance(body, dict) and any(_is_attachment(v) for v in body.values())


def _form_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def split_multipart(body: dict[str, Any]) -> tuple[list[tuple[str, str]], dict[str, Any]]:
    """
    Split a multipart payload into (form fields, files) for requests.

    List values become repeated "field[]" entries, which the API's form
    parser reads back as arrays.
    """
    fields: list[tuple[str, str]] = []
    files: dict[str, Any] = {}

    for key, value in body.items():
        if _is_attachment(value):
            files[key] = value
        elif isinstance(value, (list, tuple)):
            for item in value:
                fields.append((f"{key}[]", _form_value(item)))
        else:
            fields.append((key, _form_value(value)))

    return fields, files


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


def _looks_like_html(resp: requests.Response) -> bool:
    ctype = resp.headers.get("Content-Type", "")
    return "html" in ctype.lower() or resp.text.lstrip().lower().startswith(("<!doctype html", "<html"))


def _html_summary(text: str) -> str:
    """
    Short description of an HTML page (title or first heading).

    Proxies and misconfigured servers answer with HTML pages; this keeps the
    error message readable instead of dumping markup.
    """
    soup = BeautifulSoup(text, "html.parser")
    for selector in ("title", "h1", "h2"):
        el = soup.select_one(selector)
        if el:
            label = el.get_text(" ", strip=True)
            if label:
                return label
    return "HTML page"


def _error_body(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _decode(resp: requests.Response) -> Any:
    if not resp.content or not resp.content.strip():
        return None
    try:
        return resp.json()
    except ValueError:
        if _looks_like_html(resp):
            raise DecodeError(f"Expected JSON, got HTML: {_html_summary(resp.text)}") from None
        raise DecodeError("Response body is not valid JSON") from None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TransportClient:
    """
    Thin requests-based client. `request()` is the only entry point; the
    repository layer builds paths and parsers on top of it.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionContext | None = None,
        http: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or SessionContext()
        self.http = http or requests.Session()
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def headers_for(self, body: Any = None) -> dict[str, str]:
        headers = {"Accept": "application/json", BYPASS_HEADER[0]: BYPASS_HEADER[1]}
        if not is_multipart(body):
            headers["Content-Type"] = "application/json"

        token = self.session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        parse: Optional[Callable[[Any], T]] = None,
    ) -> Any:
        """
        Send one request and return the parsed body.

        `parse` validates the decoded JSON into a typed value; any
        pydantic.ValidationError (or KeyError/TypeError/ValueError) it raises
        becomes a DecodeError.
        """
        method = method.upper()
        url = self.url_for(path)
        kwargs: dict[str, Any] = {"headers": self.headers_for(body), "timeout": self.timeout}

        if body is not None:
            if is_multipart(body):
                fields, files = split_multipart(body)
                kwargs["data"] = fields
                kwargs["files"] = files
            else:
                kwargs["json"] = body

        log.debug("%s %s", method, url)
        try:
            resp = self.http.request(method, url, **kwargs)
        except requests.RequestException as exc:
            log.warning("%s %s failed without response: %s", method, url, exc)
            raise NetworkError(f"{method} {url}: {exc}") from exc

        if resp.status_code >= 400:
            body_out = _error_body(resp)
            log.warning("%s %s -> HTTP %s", method, url, resp.status_code)
            if isinstance(body_out, str) and _looks_like_html(resp):
                message = f"HTTP {resp.status_code}: {_html_summary(body_out)}"
            elif isinstance(body_out, dict) and body_out.get("message"):
                message = f"HTTP {resp.status_code}: {body_out['message']}"
            else:
                message = None
            raise HttpError(resp.status_code, body_out, message)

        data = _decode(resp)
        if parse is None:
            return data

        try:
            return parse(data)
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            log.warning("%s %s returned an unexpected shape: %s", method, url, exc)
            raise DecodeError(f"Unexpected response shape from {path}: {exc}") from exc

    def get(self, path: str, *, parse: Optional[Callable[[Any], T]] = None) -> Any:
        return self.request("GET", path, parse=parse)

    def post(self, path: str, body: Any = None, *, parse: Optional[Callable[[Any], T]] = None) -> Any:
        return self.request("POST", path, body, parse=parse)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
