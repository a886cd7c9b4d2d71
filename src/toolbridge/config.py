"""Configuration management for toolbridge.

Handles backend routing lists, server binding, debug recording, prompt
template location, cache sizing and extraction switches.  Configuration
is loaded from a TOML file (~/.toolbridge/config.toml, or the path in
``TOOLBRIDGE_CONFIG``) with environment variable overrides.

Routing is given as three parallel lists matched by position: model ids,
backend base URLs and backend keys.  In the environment they are the
comma-separated ``MODELS``, ``OPENAI_BASE_URLS`` and ``OPENAI_KEYS``.

Typical usage::

    from toolbridge.config import load_config

    config = load_config()
    router = config.build_router()
    templates = config.load_templates()
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolbridge.cache import EvictionPolicy, LRUPolicy, ResponseCache, UnboundedPolicy
from toolbridge.errors import ConfigurationError
from toolbridge.ids import IdGenerator
from toolbridge.prompts import PromptTemplates, load_templates
from toolbridge.router import ModelRouter
from toolbridge.tokens import DEFAULT_ENCODING
from toolbridge.types import MessageFormat

APP_DIR = Path.home() / ".toolbridge"
CONFIG_PATH = APP_DIR / "config.toml"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_DEBUG_DIR = Path("errors")

# Env var name → Config field it overrides.
_ENV_VAR_MAP: dict[str, str] = {
    "MODELS": "models",
    "OPENAI_BASE_URLS": "base_urls",
    "OPENAI_KEYS": "keys",
    "DEFAULT_MODEL": "default_model",
    "DEBUG": "debug",
    "HOST": "host",
    "PORT": "port",
    "PROMPTS_DIR": "prompts_dir",
}

_LIST_FIELDS = {"models", "base_urls", "keys"}


@dataclass
class Config:
    """Application configuration.

    Attributes:
        models: Routed model identifiers.
        base_urls: Backend base URLs, positionally matched to ``models``.
        keys: Backend credentials, positionally matched to ``models``.
        default_model: Model used for unknown ids and JSON repair.
            Empty means the first entry of ``models``.
        host: Address the HTTP server binds to.
        port: Port the HTTP server binds to.
        debug: Write failed exchanges to ``debug_dir``.
        debug_dir: Directory for debug dumps.
        prompts_dir: Directory with ``function_call.txt`` and
            ``fix_json.txt``; ``None`` uses the bundled templates.
        cache_max_entries: LRU bound for the response cache; 0 keeps
            every entry for the life of the process.
        cache_ttl: Seconds a cached answer stays valid; ``None`` forever.
        normalize_artifacts: Apply the ``&quot;`` / ``\\_`` fix-ups to
            answer JSON before parsing.
        message_format: How message history fills the template.
        token_encoding: ``tiktoken`` encoding for usage estimates.
        backend_timeout: Backend request timeout in seconds; ``None``
            waits indefinitely.
        env_fields: Fields whose values came from environment variables.
    """

    models: list[str] = field(default_factory=list)
    base_urls: list[str] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    default_model: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    debug: bool = False
    debug_dir: Path = DEFAULT_DEBUG_DIR
    prompts_dir: Path | None = None
    cache_max_entries: int = 0
    cache_ttl: float | None = None
    normalize_artifacts: bool = True
    message_format: MessageFormat = MessageFormat.TEXT
    token_encoding: str = DEFAULT_ENCODING
    backend_timeout: float | None = None
    env_fields: set[str] = field(default_factory=set, repr=False)

    def build_router(self) -> ModelRouter:
        """Build the model router from the routing lists.

        Raises:
            ConfigurationError: If the lists differ in length, are empty,
                or name an unknown default model.
        """
        return ModelRouter.from_lists(
            self.models, self.base_urls, self.keys, self.default_model or None
        )

    def load_templates(self) -> PromptTemplates:
        """Load the prompt templates.

        Raises:
            ConfigurationError: If a template file is missing.
        """
        return load_templates(self.prompts_dir)

    def eviction_policy(self) -> EvictionPolicy:
        if self.cache_max_entries > 0:
            return LRUPolicy(self.cache_max_entries)
        return UnboundedPolicy()

    def build_cache(self, ids: IdGenerator | None = None) -> ResponseCache:
        """Build the response cache.

        Args:
            ids: Generator for replayed response ids.
        """
        return ResponseCache(self.eviction_policy(), ttl=self.cache_ttl, ids=ids)


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",")] if raw else []


def _apply_toml(config: Config, data: dict[str, Any]) -> None:
    """Apply parsed TOML data to a Config instance.

    Args:
        config: Config instance to populate.
        data: Parsed TOML dictionary.

    Raises:
        ConfigurationError: If a value has the wrong type.
    """
    try:
        # --- Routing ---
        routing: dict[str, Any] = data.get("routing", {})
        for name in _LIST_FIELDS:
            if name in routing:
                setattr(config, name, [str(v) for v in routing[name]])
        if "default_model" in routing:
            config.default_model = str(routing["default_model"])

        # --- Server ---
        server: dict[str, Any] = data.get("server", {})
        if "host" in server:
            config.host = str(server["host"])
        if "port" in server:
            config.port = int(server["port"])

        # --- Debug ---
        debug: dict[str, Any] = data.get("debug", {})
        if "enabled" in debug:
            config.debug = bool(debug["enabled"])
        if "log_dir" in debug:
            config.debug_dir = Path(debug["log_dir"]).expanduser()

        # --- Prompts ---
        prompts: dict[str, Any] = data.get("prompts", {})
        if prompts.get("dir"):
            config.prompts_dir = Path(prompts["dir"]).expanduser()

        # --- Cache ---
        cache: dict[str, Any] = data.get("cache", {})
        if "max_entries" in cache:
            config.cache_max_entries = max(int(cache["max_entries"]), 0)
        if "ttl_seconds" in cache:
            ttl = float(cache["ttl_seconds"])
            config.cache_ttl = ttl if ttl > 0 else None

        # --- Extraction ---
        extraction: dict[str, Any] = data.get("extraction", {})
        if "normalize_artifacts" in extraction:
            config.normalize_artifacts = bool(extraction["normalize_artifacts"])
        if "message_format" in extraction:
            config.message_format = MessageFormat(extraction["message_format"])

        # --- Tokens / backend ---
        if "encoding" in data.get("tokens", {}):
            config.token_encoding = str(data["tokens"]["encoding"])
        backend: dict[str, Any] = data.get("backend", {})
        if "timeout" in backend:
            timeout = float(backend["timeout"])
            config.backend_timeout = timeout if timeout > 0 else None
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration value: {exc}") from exc


def _apply_env_overrides(config: Config, environ: dict[str, str] | None = None) -> None:
    """Apply environment variable overrides.

    Args:
        config: Config instance to update.
        environ: Mapping to read instead of ``os.environ``.

    Raises:
        ConfigurationError: If ``PORT`` is not an integer.
    """
    env = os.environ if environ is None else environ
    for env_var, name in _ENV_VAR_MAP.items():
        raw = env.get(env_var, "")
        if not raw:
            continue
        if name in _LIST_FIELDS:
            setattr(config, name, _split_list(raw))
        elif name == "debug":
            config.debug = raw.lower() == "true"
        elif name == "port":
            try:
                config.port = int(raw)
            except ValueError as exc:
                raise ConfigurationError(f"PORT must be an integer, got '{raw}'") from exc
        elif name == "prompts_dir":
            config.prompts_dir = Path(raw).expanduser()
        else:
            setattr(config, name, raw)
        config.env_fields.add(name)


def config_path() -> Path:
    """Effective configuration file path."""
    override = os.environ.get("TOOLBRIDGE_CONFIG", "")
    return Path(override).expanduser() if override else CONFIG_PATH


def load_config(path: Path | None = None, *, environ: dict[str, str] | None = None) -> Config:
    """Load configuration from file and environment.

    Resolution order for every setting:
        1. Environment variable (see ``_ENV_VAR_MAP``)
        2. The TOML file
        3. Built-in default

    Args:
        path: TOML file to read.  Defaults to ``config_path()``.
        environ: Environment mapping, for tests.

    Returns:
        Populated Config instance.

    Raises:
        ConfigurationError: If the file is not valid TOML or holds
            values of the wrong type.
    """
    config = Config()
    target = path or config_path()

    if target.exists():
        try:
            with open(target, "rb") as f:
                _apply_toml(config, tomllib.load(f))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {target}: {exc}") from exc

    _apply_env_overrides(config, environ)

    return config


def write_config(config: Config, path: Path | None = None) -> Path:
    """Serialize a Config to TOML and write to disk.

    Values sourced from environment variables are not written, so keys
    exported in a shell never end up in the file.

    If the file already exists, its permissions are preserved after write.

    Args:
        config: Config instance to serialize.
        path: File path to write.  Defaults to ``config_path()``.

    Returns:
        The path written.
    """
    import tomlkit

    target = path or config_path()
    skip = config.env_fields

    existing_mode: int | None = None
    if target.exists():
        existing_mode = target.stat().st_mode & 0o777

    doc = tomlkit.document()
    doc.add(tomlkit.comment("toolbridge configuration"))

    # --- Routing ---
    routing = tomlkit.table()
    for name in ("models", "base_urls", "keys"):
        if name not in skip:
            routing.add(name, list(getattr(config, name)))
    if "default_model" not in skip and config.default_model:
        routing.add("default_model", config.default_model)
    doc.add("routing", routing)

    # --- Server ---
    server = tomlkit.table()
    if "host" not in skip:
        server.add("host", config.host)
    if "port" not in skip:
        server.add("port", config.port)
    doc.add("server", server)

    # --- Debug ---
    debug = tomlkit.table()
    if "debug" not in skip:
        debug.add("enabled", config.debug)
    debug.add("log_dir", str(config.debug_dir))
    doc.add("debug", debug)

    if config.prompts_dir is not None and "prompts_dir" not in skip:
        prompts = tomlkit.table()
        prompts.add("dir", str(config.prompts_dir))
        doc.add("prompts", prompts)

    # --- Cache ---
    cache = tomlkit.table()
    cache.add("max_entries", config.cache_max_entries)
    cache.add("ttl_seconds", config.cache_ttl or 0)
    doc.add("cache", cache)

    # --- Extraction ---
    extraction = tomlkit.table()
    extraction.add("normalize_artifacts", config.normalize_artifacts)
    extraction.add("message_format", config.message_format.value)
    doc.add("extraction", extraction)

    tokens = tomlkit.table()
    tokens.add("encoding", config.token_encoding)
    doc.add("tokens", tokens)

    backend = tomlkit.table()
    backend.add("timeout", config.backend_timeout or 0)
    doc.add("backend", backend)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(tomlkit.dumps(doc), encoding="utf-8")

    if existing_mode is not None:
        target.chmod(existing_mode)
    return target
