import json
from http.client import NO_CONTENT

from src.content_classifier import JsonBody, classify
from src.errors import ConfigError, MethodNotAllowed, ProxyError, UpstreamNonJSON
from src.logger import setup_logger
from src.upstream_handler import forward
from src.utils import iter_stream, merge_query, read_bounded, truncate

log = setup_logger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

STRICT_METHODS = "POST,OPTIONS"
LENIENT_METHODS = "GET,POST,PUT,PATCH,DELETE,OPTIONS"


def _base_headers(strict):
    headers = {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": STRICT_METHODS if strict else LENIENT_METHODS,
        "Access-Control-Allow-Headers": "Content-Type",
    }
    if strict:
        headers["Cache-Control"] = "no-store"
    return headers


def _dump_json(value):
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _read_request_body(request, config):
    return read_bounded(iter_stream(request.stream), config.max_body_bytes)


def _proxy_strict(request, config, config_error):
    """POST-only relay that always answers JSON."""
    if config is None:
        raise config_error or ConfigError()
    if request.method != "POST":
        raise MethodNotAllowed()

    content_type = (request.headers.get("Content-Type") or "").lower()
    body = _read_request_body(request, config) or b"{}"

    upstream = forward(
        "POST",
        config.gas_url,
        headers={"Content-Type": content_type or JSON_CONTENT_TYPE},
        body=body,
        timeout=config.timeout_seconds,
        max_bytes=config.max_response_bytes,
    )

    classification = classify(upstream.body, upstream.content_type)
    if isinstance(classification, JsonBody):
        return _dump_json(classification.value), upstream.status_code, JSON_CONTENT_TYPE

    log.warning(f"Upstream returned non-JSON ({upstream.status_code}, {upstream.content_type or 'no content-type'})")
    raise UpstreamNonJSON(extra={
        "upstream_status": upstream.status_code,
        "upstream_content_type": upstream.content_type,
        "snippet": truncate(classification.text),
    })


def _proxy_lenient(request, config, config_error):
    """Any-method relay; GET carries the query string, other methods the raw body."""
    if config is None:
        raise config_error or ConfigError()

    if request.method == "GET":
        url = merge_query(config.gas_url, request.args.items(multi=True))
        headers = {}
        body = None
    else:
        url = config.gas_url
        headers = {"Content-Type": request.headers.get("Content-Type") or FORM_CONTENT_TYPE}
        body = _read_request_body(request, config)

    upstream = forward(
        request.method,
        url,
        headers=headers,
        body=body,
        timeout=config.timeout_seconds,
        max_bytes=config.max_response_bytes,
    )

    classification = classify(upstream.body, upstream.content_type)
    if isinstance(classification, JsonBody):
        return _dump_json(classification.value), upstream.status_code, JSON_CONTENT_TYPE

    # Raw passthrough
    return upstream.body, upstream.status_code, upstream.content_type or TEXT_CONTENT_TYPE


def handle_request(request, config, strict=True, config_error=None):
    """
    Relays one inbound request to the Apps Script web app.

    Args:
        request: The inbound flask.Request.
        config: ProxyConfig, or None when the deployment is not configured.
        strict: Mode to use when config is None; otherwise config.mode wins.
        config_error: The ConfigError that left config unset, if known.

    Returns:
        A (body, status, headers) tuple accepted by Flask and Cloud Functions.
    """
    if config is not None:
        strict = config.strict
    headers = _base_headers(strict)

    if request.method == "OPTIONS":
        return "", NO_CONTENT, headers

    log.info(f"{request.method} {request.path} ({'strict' if strict else 'lenient'})")
    try:
        if strict:
            body, status, content_type = _proxy_strict(request, config, config_error)
        else:
            body, status, content_type = _proxy_lenient(request, config, config_error)
    except ProxyError as e:
        log.info(f"Answering {e.status}: {e.message}")
        body, status, content_type = _dump_json(e.to_dict()), e.status, JSON_CONTENT_TYPE

    return body, status, {**headers, "Content-Type": content_type}
