"""
Configuration management for SendBuild.

Handles loading, merging, and discovery of configuration files, overlays
environment variables, and turns the merged result into upload settings.
"""
import os
from typing import Optional

import importlib.resources as importlib_resources
import yaml

from sendbuild import __version__
from sendbuild.upload.errors import ConfigurationError
from sendbuild.upload.models import (
    ApplicationCredential,
    ProxyConfiguration,
    ReleaseType,
    UploadSettings,
)

API_KEY_ENV = "DATA_THEOREM_UPLOAD_API_KEY"

# Environment variable -> (section, key, converter)
ENV_OVERRIDES = {
    "SENDBUILD_INIT_URL": ("upload", "init_url", str),
    "SENDBUILD_MAX_ATTEMPTS": ("upload", "max_attempts", int),
    "SENDBUILD_RELEASE_TYPE": ("build", "release_type", str),
    "SENDBUILD_EXTERNAL_ID": ("build", "external_id", str),
    "SENDBUILD_REMOTE_COMMAND": ("workspace", "remote_command", str),
    "SENDBUILD_PROXY_HOST": ("proxy", "hostname", str),
    "SENDBUILD_PROXY_PORT": ("proxy", "port", int),
    "SENDBUILD_PROXY_USERNAME": ("proxy", "username", str),
    "SENDBUILD_PROXY_PASSWORD": ("proxy", "password", str),
    "SENDBUILD_PROXY_UNSECURE": ("proxy", "unsecure_connection", lambda v: v.strip().lower() in ("1", "true", "yes")),
}

USER_CONFIG_FILENAME = "sendbuild.config.yaml"


class ConfigManager:
    """Manages SendBuild configuration loading and merging operations."""

    def load_config(self, path: str) -> dict:
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            try:
                return yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    def deep_merge(self, default: dict, user: dict) -> dict:
        """Deep merge user config into default config."""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def load_package_default_config(self) -> dict:
        """Load default config from package."""
        config_files = importlib_resources.files("sendbuild.config")
        with (config_files / "default.yaml").open("r") as f:
            return yaml.safe_load(f)

    def discover_and_load_config(self, config_arg: Optional[str]) -> dict:
        """Discover config file with priority order."""
        default_config = self.load_package_default_config()

        # Priority 1: --config argument
        if config_arg:
            if not os.path.exists(config_arg):
                raise ConfigurationError(f"Config file not found: {config_arg}")
            return self.deep_merge(default_config, self.load_config(config_arg))

        # Priority 2: sendbuild.config.yaml in current directory
        if os.path.exists(USER_CONFIG_FILENAME):
            return self.deep_merge(default_config, self.load_config(USER_CONFIG_FILENAME))

        # Priority 3: Package default config
        return default_config

    def apply_environment(self, config: dict, environ: Optional[dict] = None) -> dict:
        """Overlay SENDBUILD_* environment variables onto the config."""
        environ = os.environ if environ is None else environ
        result = self.deep_merge(config, {})
        for var, (section, key, convert) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e
            result.setdefault(section, {})
            result[section] = dict(result[section] or {}, **{key: value})
        return result

    def get_api_key(self, cli_value: Optional[str], environ: Optional[dict] = None) -> Optional[str]:
        """CLI value wins over the environment; None means no key was provided at all."""
        if cli_value is not None:
            return cli_value
        environ = os.environ if environ is None else environ
        return environ.get(API_KEY_ENV)

    def build_settings(self, config: dict) -> UploadSettings:
        """Create upload settings from the merged config."""
        upload = config.get("upload") or {}
        max_attempts = upload.get("max_attempts")
        max_attempts = 3 if max_attempts is None else int(max_attempts)
        if max_attempts < 1:
            raise ConfigurationError("upload.max_attempts must be at least 1")
        chunk_size = upload.get("chunk_size")
        chunk_size = 64 * 1024 if chunk_size is None else int(chunk_size)
        if chunk_size < 1:
            raise ConfigurationError("upload.chunk_size must be positive")
        timeout = upload.get("timeout")
        return UploadSettings(
            init_url=upload.get("init_url") or UploadSettings.init_url,
            user_agent_product=upload.get("user_agent_product") or UploadSettings.user_agent_product,
            version=__version__,
            max_attempts=max_attempts,
            chunk_size=chunk_size,
            timeout=float(timeout) if timeout is not None else None,
        )

    def build_proxy(self, config: dict) -> Optional[ProxyConfiguration]:
        """Proxy from config, or None when no proxy host is configured."""
        proxy = config.get("proxy") or {}
        hostname = proxy.get("hostname")
        if not hostname:
            return None
        port = proxy.get("port")
        if port is None:
            raise ConfigurationError(f"Proxy {hostname} configured without a port")
        try:
            port = int(port)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid proxy port: {port!r}") from e
        return ProxyConfiguration(
            hostname=hostname,
            port=port,
            username=proxy.get("username") or None,
            password=proxy.get("password") or None,
            unsecure_connection=bool(proxy.get("unsecure_connection")),
        )

    def build_application_credential(self, config: dict) -> Optional[ApplicationCredential]:
        """Application credential from config, or None when no username is set."""
        credential = config.get("application_credential") or {}
        username = credential.get("username")
        if not username:
            return None
        return ApplicationCredential(
            username=username,
            password=credential.get("password") or "",
            comments=credential.get("comments") or None,
        )

    def get_release_type(self, config: dict) -> str:
        return ReleaseType.normalize((config.get("build") or {}).get("release_type"))
