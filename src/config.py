"""Configuration management for the chat core."""

from __future__ import annotations

import logging
import os
from typing import Any, cast

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from src.chat.models import ProviderKind, ProviderSettings, parse_provider_kind
from src.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable naming an override YAML file
CONFIG_PATH_ENV = "LLM_CHAT_CONFIG"


class Configuration:
    """Configuration manager: YAML defaults, optional override file and .env secrets."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: Optional YAML file deep-merged over the packaged
                defaults. Falls back to the ``LLM_CHAT_CONFIG`` variable.
        """
        self.load_env()  # Load .env for API keys
        self._default_config = self._load_yaml_config(
            os.path.join(os.path.dirname(__file__), "config.yaml")
        )

        override_path = config_path or os.getenv(CONFIG_PATH_ENV)
        if override_path:
            override = self._load_yaml_config(override_path)
            self._current_config = self._deep_merge(self._default_config, override)
            logger.info("Loaded configuration overrides from %s", override_path)
        else:
            self._current_config = self._default_config.copy()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(config_path) as file:
                config = yaml.safe_load(file)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration file must contain a dictionary")
        return cast(dict[str, Any], config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(cast(dict[str, Any], result[key]), cast(dict[str, Any], value))
            else:
                result[key] = value

        return result

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._current_config

    def get_llm_config(self) -> dict[str, Any]:
        """Get the LLM provider section."""
        return self._current_config.get("llm", {}) or {}

    def get_chat_config(self) -> dict[str, Any]:
        """Get chat configuration (system prompt and friends)."""
        return self._current_config.get("chat", {}) or {}

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._current_config.get("logging", {}) or {}

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the configured provider.

        ``llm.api_key`` wins, then the provider-specific environment
        variable, then ``LLM_API_KEY``. Returns an empty string when none is
        set; the client factory rejects it.
        """
        llm_config = self.get_llm_config()
        if llm_config.get("api_key"):
            return str(llm_config["api_key"])

        provider = self._provider_kind(llm_config)
        provider_key_map = {
            ProviderKind.MANAGED_DEPLOYMENT: "AZURE_OPENAI_API_KEY",
            ProviderKind.GENERIC_COMPATIBLE: "OPENAI_API_KEY",
        }
        env_key = provider_key_map.get(provider) if provider else None
        return (env_key and os.getenv(env_key)) or os.getenv("LLM_API_KEY", "")

    @property
    def llm_endpoint(self) -> str | None:
        llm_config = self.get_llm_config()
        if llm_config.get("endpoint"):
            return str(llm_config["endpoint"])

        provider = self._provider_kind(llm_config)
        endpoint_env_map = {
            ProviderKind.MANAGED_DEPLOYMENT: "AZURE_OPENAI_ENDPOINT",
            ProviderKind.GENERIC_COMPATIBLE: "OPENAI_BASE_URL",
        }
        env_key = endpoint_env_map.get(provider) if provider else None
        return (env_key and os.getenv(env_key)) or None

    @staticmethod
    def _provider_kind(llm_config: dict[str, Any]) -> ProviderKind | None:
        provider = llm_config.get("provider", ProviderKind.MANAGED_DEPLOYMENT)
        if isinstance(provider, ProviderKind):
            return provider
        try:
            return parse_provider_kind(str(provider))
        except ValueError:
            return None

    def get_provider_settings(self) -> ProviderSettings:
        """Validate the LLM section into ProviderSettings.

        Raises:
            ConfigurationError: a value fails validation
        """
        llm_config = dict(self.get_llm_config())
        llm_config["api_key"] = self.llm_api_key
        llm_config["endpoint"] = self.llm_endpoint

        try:
            return ProviderSettings.model_validate(llm_config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid llm configuration: {e}") from e

    def get_system_prompt(self) -> str | None:
        prompt = self.get_chat_config().get("system_prompt")
        return str(prompt) if prompt else None
