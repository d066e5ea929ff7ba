"""Config loading for the VisaPlex gateway.

Reads ``.visaplex/config.yaml`` (or ``~/.visaplex/config.yaml``).
Raises SystemExit on parse errors or a missing ``version`` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. ``config_path`` argument (testing or explicit override)
  2. VISAPLEX_CONFIG environment variable
  3. ``.visaplex/config.yaml`` (working directory)
  4. ``~/.visaplex/config.yaml`` (home directory)

Environment variable overrides (applied after the file):
  VISAPLEX_PORT          — overrides server.port
  VISAPLEX_DEFAULT_TOPIC — overrides gateway.default_topic

The upstream credential is NOT part of this file. ``upstream.api_key_env`` only
names the environment variable the credential provider reads it from.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from visaplex.constants import (
    DEFAULT_API_KEY_ENV,
    DEFAULT_MAX_TOKENS,
    DEFAULT_RATE_LIMIT,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOPIC,
    DEFAULT_UPSTREAM_MODEL,
    DEFAULT_UPSTREAM_TIMEOUT_S,
    DEFAULT_UPSTREAM_URL,
)
from visaplex.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".visaplex/config.yaml",
    os.path.expanduser("~/.visaplex/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class UpstreamConfig:
    """Upstream chat completions endpoint and fixed generation parameters.

    url:         Full URL of an OpenAI-compatible ``/v1/chat/completions`` endpoint.
    model:       Model identifier sent with every request.
    temperature: Low sampling temperature keeps answers consistent.
    max_tokens:  Bounded output length.
    timeout_s:   Transport timeout for the single attempt.
    api_key_env: Name of the environment variable holding the credential.
    """

    url: str = DEFAULT_UPSTREAM_URL
    model: str = DEFAULT_UPSTREAM_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout_s: float = DEFAULT_UPSTREAM_TIMEOUT_S
    api_key_env: str = DEFAULT_API_KEY_ENV


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class CorsConfig:
    """CORS settings for browser callers. The default matches a public widget."""

    allow_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class GatewayConfig:
    """Request-handling settings.

    default_topic: Topic label used when the request body omits ``topic``.
    rate_limit:    slowapi limit string applied per client address on the chat route.
    policy_path:   Optional path to a policy YAML file (see visaplex.policy.loader).
    """

    default_topic: str = DEFAULT_TOPIC
    rate_limit: str = DEFAULT_RATE_LIMIT
    policy_path: Optional[str] = None


@dataclass
class Config:
    """Root configuration object populated from .visaplex/config.yaml.

    All fields have safe defaults; the gateway can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On out-of-range upstream generation parameters.
        """
        # ── Upstream ──────────────────────────────────────────────────────────
        upstream_raw = raw.get("upstream") or {}
        upstream = UpstreamConfig(
            url=upstream_raw.get("url", DEFAULT_UPSTREAM_URL),
            model=upstream_raw.get("model", DEFAULT_UPSTREAM_MODEL),
            temperature=float(upstream_raw.get("temperature", DEFAULT_TEMPERATURE)),
            max_tokens=int(upstream_raw.get("max_tokens", DEFAULT_MAX_TOKENS)),
            timeout_s=float(upstream_raw.get("timeout_s", DEFAULT_UPSTREAM_TIMEOUT_S)),
            api_key_env=upstream_raw.get("api_key_env", DEFAULT_API_KEY_ENV),
        )
        if not 0.0 <= upstream.temperature <= 2.0:
            _fail(f"Invalid upstream.temperature: {upstream.temperature}. Must be in [0, 2].")
        if upstream.max_tokens <= 0:
            _fail(f"Invalid upstream.max_tokens: {upstream.max_tokens}. Must be positive.")
        if upstream.timeout_s <= 0:
            _fail(f"Invalid upstream.timeout_s: {upstream.timeout_s}. Must be positive.")

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 8000),
        )

        # ── CORS ──────────────────────────────────────────────────────────────
        cors_raw = raw.get("cors") or {}
        cors = CorsConfig(
            allow_origins=list(cors_raw.get("allow_origins", ["*"])),
        )

        # ── Gateway ───────────────────────────────────────────────────────────
        gateway_raw = raw.get("gateway") or {}
        gateway = GatewayConfig(
            default_topic=gateway_raw.get("default_topic", DEFAULT_TOPIC),
            rate_limit=gateway_raw.get("rate_limit", DEFAULT_RATE_LIMIT),
            policy_path=gateway_raw.get("policy_path"),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            upstream=upstream,
            server=server,
            cors=cors,
            gateway=gateway,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate gateway configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises SystemExit(1).

    Raises:
        SystemExit(1): On YAML parse error, missing or unsupported ``version``,
                       invalid upstream parameters, or invalid ``VISAPLEX_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("VISAPLEX_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("config_defaults_used", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    raw = _read_yaml(found_path)

    version = raw.get("version")
    if version is None:
        _fail(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "binding_all_interfaces",
            message="Gateway binds 0.0.0.0; make sure a reverse proxy fronts it.",
        )

    logger.info(
        "config_loaded",
        path=found_path,
        version=config.version,
        upstream_model=config.upstream.model,
        default_topic=config.gateway.default_topic,
    )
    return config


def _read_yaml(path: str) -> dict:
    """Parse ``path`` as a YAML mapping or exit with a readable message."""
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(f"Failed to parse {path}: {exc}\nCheck the YAML syntax and try again.")
    except OSError as exc:
        _fail(f"Could not read {path}: {exc}")

    if raw is None:
        _fail(
            f"{path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if not isinstance(raw, dict):
        _fail(f"{path} is not a valid YAML mapping.")
    return raw


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If VISAPLEX_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("VISAPLEX_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(f"VISAPLEX_PORT environment variable is not a valid integer: '{env_port}'")

    env_topic = os.environ.get("VISAPLEX_DEFAULT_TOPIC")
    if env_topic:
        config.gateway.default_topic = env_topic


def _fail(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)
