"""Configuration for the challenge transport and the default executor."""

import json
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from .errors import ConfigurationError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Server header values Cloudflare uses on challenge pages. Matched exactly.
CHALLENGE_SERVER_SIGNATURES: FrozenSet[str] = frozenset({"cloudflare-nginx", "cloudflare"})

CHALLENGE_PATH = "/cdn-cgi/l/chk_jschl"


@dataclass
class TransportConfig:
    """Configuration for ChallengeTransport behavior."""

    # Sent when the caller did not set a User-Agent
    user_agent: str = DEFAULT_USER_AGENT

    # Cloudflare rejects answers submitted faster than this (seconds)
    challenge_delay: float = 4.0

    # Redirect handling for the answer request
    follow_redirects: bool = True
    max_redirects: int = 10

    # Bound on a whole execute() call, including the delay
    timeout: Optional[float] = None

    server_signatures: FrozenSet[str] = field(default_factory=lambda: CHALLENGE_SERVER_SIGNATURES)

    enable_detailed_logging: bool = False

    def validate(self) -> None:
        """Raise ConfigurationError if any value is out of range."""
        if not self.user_agent:
            raise ConfigurationError("user_agent must not be empty")
        if self.challenge_delay < 0:
            raise ConfigurationError("challenge_delay must be >= 0")
        if self.max_redirects < 0:
            raise ConfigurationError("max_redirects must be >= 0")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if not self.server_signatures:
            raise ConfigurationError("server_signatures must not be empty")


@dataclass
class ExecutorConfig:
    """Configuration for the curl_cffi request executor."""
    impersonate: str = "chrome"  # curl_cffi impersonation target
    timeout: float = 30.0
    verify_ssl: bool = True
    proxy_url: Optional[str] = None

    def validate(self) -> None:
        if not self.impersonate:
            raise ConfigurationError("impersonate must not be empty")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")


def _build(cls, data: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    if "server_signatures" in data:
        data = dict(data, server_signatures=frozenset(data["server_signatures"]))
    try:
        config = cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid {cls.__name__}: {e}") from e
    config.validate()
    return config


def config_from_dict(data: Dict[str, Any]) -> Tuple[TransportConfig, ExecutorConfig]:
    """Build both configs from a mapping with optional "transport"/"executor" keys."""
    unknown = set(data) - {"transport", "executor"}
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

    transport = _build(TransportConfig, data.get("transport") or {})
    executor = _build(ExecutorConfig, data.get("executor") or {})
    return transport, executor


def load_config(path: Union[str, Path]) -> Tuple[TransportConfig, ExecutorConfig]:
    """Load configuration from a JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error loading config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    return config_from_dict(data)


def config_to_dict(transport: TransportConfig, executor: ExecutorConfig) -> Dict[str, Any]:
    """Serialize both configs to a JSON-compatible mapping."""
    transport_data = asdict(transport)
    transport_data["server_signatures"] = sorted(transport.server_signatures)
    return {"transport": transport_data, "executor": asdict(executor)}
