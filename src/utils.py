from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from src.errors import PayloadTooLarge

SNIPPET_LENGTH = 600
READ_CHUNK_SIZE = 64 * 1024


def read_bounded(chunks, limit, error_cls=PayloadTooLarge):
    """
    Accumulates an iterable of byte chunks into one buffer.

    Args:
        chunks: Iterable yielding bytes.
        limit: Maximum number of bytes accepted.
        error_cls: ProxyError subclass raised when the limit is exceeded.

    Returns:
        The concatenated bytes.
    """
    buffer = bytearray()
    for chunk in chunks:
        if not chunk:
            continue
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise error_cls(details=f"Limit is {limit} bytes.")
    return bytes(buffer)


def iter_stream(stream, chunk_size=READ_CHUNK_SIZE):
    """Yields chunks from a file-like object until it is exhausted."""
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk


def merge_query(url, params):
    """
    Appends query parameters to a URL, keeping any query it already has.

    Args:
        url: Base URL, e.g. the Apps Script /exec endpoint.
        params: Sequence of (key, value) pairs, repeated keys allowed.

    Returns:
        The URL with the parameters appended.
    """
    params = list(params)
    if not params:
        return url
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True) + params
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def truncate(text, length=SNIPPET_LENGTH):
    return (text or "")[:length]
