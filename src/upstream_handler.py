import time
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import requests
from urllib3.exceptions import ReadTimeoutError

from src.errors import UpstreamResponseTooLarge, UpstreamTimeout, UpstreamTransportError
from src.logger import setup_logger
from src.utils import read_bounded

log = setup_logger(__name__)

MAX_REDIRECTS = 30


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    content_type: str
    body: bytes


def _remaining(deadline):
    """Seconds left before the deadline, None when unbounded."""
    if deadline is None:
        return None
    left = deadline - time.monotonic()
    if left <= 0:
        raise requests.exceptions.Timeout("Upstream did not answer within the timeout.")
    return left


def _is_read_timeout(error):
    # iter_content re-raises urllib3's ReadTimeoutError as a ConnectionError
    if isinstance(error, requests.exceptions.Timeout):
        return True
    causes = list(error.args) + [error.__cause__, error.__context__]
    return any(isinstance(cause, ReadTimeoutError) for cause in causes)


def _read_until(response, deadline):
    for chunk in response.iter_content(chunk_size=64 * 1024):
        _remaining(deadline)
        yield chunk


def _redirect(response, method, headers, body):
    """Builds the next hop the way browsers (and requests) do."""
    target = urljoin(response.url or "", response.headers["Location"])
    if (response.status_code == 303 and method != "HEAD") or (response.status_code in (301, 302) and method == "POST"):
        # Apps Script answers POST /exec with a 302 to a GET-only URL
        headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        return "GET", target, headers, None
    return method, target, headers, body


def _send(method, url, headers, body, deadline):
    """Follows redirects by hand so every hop only gets the budget that is left."""
    for _ in range(MAX_REDIRECTS + 1):
        response = requests.request(
            method,
            url,
            headers=headers,
            data=body,
            timeout=_remaining(deadline),
            allow_redirects=False,
            stream=True,
        )
        if not response.is_redirect:
            return response
        response.close()
        method, url, headers, body = _redirect(response, method, headers, body)
    raise requests.exceptions.TooManyRedirects(f"Exceeded {MAX_REDIRECTS} redirects.")


def forward(method, url, headers=None, body=None, timeout=None, max_bytes=None):
    """
    Sends one request to the Apps Script web app and reads the full reply.

    Redirects are followed; Apps Script answers /exec with a 302 to
    script.googleusercontent.com. The timeout covers all hops and the body.

    Args:
        method: HTTP method to use upstream.
        url: Target URL, query string included.
        headers: Outbound headers.
        body: Outbound body bytes, or None to send nothing.
        timeout: Overall time budget in seconds, None for no bound.
        max_bytes: Largest accepted response body, None for no bound.

    Returns:
        UpstreamResponse with status, content-type and body bytes.

    Raises:
        UpstreamTimeout: the call did not finish within the timeout.
        UpstreamResponseTooLarge: the body exceeded max_bytes.
        UpstreamTransportError: any other network-level failure.
    """
    deadline = time.monotonic() + timeout if timeout is not None else None
    host = urlsplit(url).netloc
    try:
        response = _send(method, url, dict(headers or {}), body, deadline)
        try:
            chunks = _read_until(response, deadline)
            if max_bytes is None:
                content = b"".join(chunks)
            else:
                content = read_bounded(chunks, max_bytes, error_cls=UpstreamResponseTooLarge)
        finally:
            response.close()
    except requests.exceptions.RequestException as e:
        if _is_read_timeout(e):
            log.error(f"Timed out calling upstream {host} after {timeout}s ({type(e).__name__})")
            raise UpstreamTimeout(details=str(e))
        log.error(f"Error calling upstream {method} {host} ({type(e).__name__})")
        raise UpstreamTransportError(details=str(e))

    log.info(f"Upstream answered {response.status_code} ({len(content)} bytes)")
    return UpstreamResponse(
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type", ""),
        body=content,
    )
