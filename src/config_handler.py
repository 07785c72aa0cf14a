import os
from dataclasses import dataclass
from urllib.parse import urlsplit

from dotenv import load_dotenv

from src.errors import ConfigError
from src.logger import setup_logger

log = setup_logger(__name__)

# Pick up a local .env when running outside Cloud Functions
load_dotenv()

STRICT = "strict"
LENIENT = "lenient"
MODES = (STRICT, LENIENT)

DEFAULT_TIMEOUT_MS = 20000
DEFAULT_MAX_BODY_BYTES = 1024 * 1024
DEFAULT_MAX_RESPONSE_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class ProxyConfig:
    """Settings for one deployment of the proxy."""
    gas_url: str
    mode: str = STRICT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES

    @property
    def strict(self):
        return self.mode == STRICT

    @property
    def timeout_seconds(self):
        """Timeout for requests, or None when the lenient mode runs unbounded."""
        if not self.strict:
            return None
        return self.timeout_ms / 1000.0


def _validate_url(raw_url):
    parts = urlsplit(raw_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"Invalid GAS_URL env var: {raw_url!r} is not an absolute http(s) URL.")
    return raw_url


def _positive_int(environ, name, default):
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name} env var: {raw!r} is not an integer.")
    if value <= 0:
        raise ConfigError(f"Invalid {name} env var: must be positive, got {value}.")
    return value


def mode_from_env(environ=None):
    """Returns the normalized GAS_PROXY_MODE value, strict when unset. Not validated."""
    if environ is None:
        environ = os.environ
    return (environ.get("GAS_PROXY_MODE") or "").strip().lower() or STRICT


def load_config(environ=None):
    """
    Builds a ProxyConfig from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        A validated ProxyConfig.

    Raises:
        ConfigError: if GAS_URL/GAS_WEBAPP_URL is missing or any value is invalid.
    """
    if environ is None:
        environ = os.environ

    gas_url = (environ.get("GAS_URL") or environ.get("GAS_WEBAPP_URL") or "").strip()
    if not gas_url:
        raise ConfigError()

    mode = mode_from_env(environ)
    if mode not in MODES:
        raise ConfigError(f"Invalid GAS_PROXY_MODE env var: {mode!r}. Use one of {', '.join(MODES)}.")

    config = ProxyConfig(
        gas_url=_validate_url(gas_url),
        mode=mode,
        timeout_ms=_positive_int(environ, "GAS_PROXY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        max_body_bytes=_positive_int(environ, "GAS_PROXY_MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
        max_response_bytes=_positive_int(environ, "GAS_PROXY_MAX_RESPONSE_BYTES", DEFAULT_MAX_RESPONSE_BYTES),
    )
    log.info(f"Proxy configured in {config.mode} mode for {urlsplit(config.gas_url).netloc}")
    return config
