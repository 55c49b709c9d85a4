"""Process-level settings for the export command and the feed server."""

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
from urllib.parse import urljoin

from icsfeed.config.constants import (
    DEFAULT_BIND_ADDRESS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_PUBLIC_URI,
    DEFAULT_TOKEN_DIR,
    SERVER_CONCURRENCY_LIMIT,
    SERVER_GRACEFUL_SHUTDOWN_SECONDS,
    SERVER_IDLE_TIMEOUT_SECONDS,
)
from icsfeed.exceptions.errors import ConfigurationError
from icsfeed.utils.masking import mask_key


@dataclass(frozen=True)
class OAuthSettings:
    """OAuth2 client registration used by the Token Broker."""

    client_id: str
    client_secret: str

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError("client_id is missing", field="client_id")
        if not self.client_secret:
            raise ConfigurationError("client_secret is missing", field="client_secret")

    def __repr__(self) -> str:
        return f"OAuthSettings(client_id={self.client_id!r}, client_secret={mask_key(self.client_secret)!r})"


@dataclass(frozen=True)
class ServerSettings:
    """Configuration for the multi-tenant feed server."""

    config_file: Path = Path(DEFAULT_CONFIG_FILE)
    bind_address: str = DEFAULT_BIND_ADDRESS
    public_uri: str = DEFAULT_PUBLIC_URI
    token_dir: Path = Path(DEFAULT_TOKEN_DIR)
    idle_timeout: int = SERVER_IDLE_TIMEOUT_SECONDS
    concurrency_limit: int = SERVER_CONCURRENCY_LIMIT
    graceful_shutdown: int = SERVER_GRACEFUL_SHUTDOWN_SECONDS

    @property
    def redirect_url(self) -> str:
        """Authorization callback URL registered with the provider."""
        return urljoin(self.public_uri.rstrip("/") + "/", "auth")

    @property
    def host_port(self) -> Tuple[str, int]:
        return split_address(self.bind_address)


def split_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts; an empty host binds all interfaces.

    Raises:
        ConfigurationError: If the port is missing or not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigurationError(f"invalid bind address `{address}'", field="bind_address")
    return host or "0.0.0.0", int(port)

