"""Configuration management for the chat relay."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from relaychat.llm.exceptions import ConfigurationError
from relaychat.llm.models import ModelOption, ProviderConfig, ProviderType

CONFIG_ENV_VAR = "RELAYCHAT_CONFIG"
LINE_MODES = ("buffered", "lenient")


class Configuration:
    """Manages configuration and environment variables for the relay."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        path = (
            config_path
            or os.getenv(CONFIG_ENV_VAR)
            or os.path.join(os.path.dirname(__file__), "config.yaml")
        )
        with open(path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Configuration":
        """Build a configuration from an in-memory dictionary."""
        instance = cls.__new__(cls)
        instance._config = config
        return instance

    @property
    def active_provider(self) -> str:
        return self._config.get("llm", {}).get("active", "openrouter")

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the active LLM provider.

        Returns:
            The API key as a string.

        Raises:
            ConfigurationError: If the API key is not found in environment
                variables.
        """
        active_provider = self.active_provider

        # Map provider names to environment variable names
        provider_key_map = {
            "openai": "OPENAI_API_KEY",
            "groq": "GROQ_API_KEY",
            "openrouter": "OPENROUTER_API_KEY",
        }

        env_key = provider_key_map.get(active_provider)
        if not env_key:
            raise ConfigurationError(
                f"Unknown provider '{active_provider}' - no API key mapping found",
                provider=active_provider,
            )

        api_key = os.getenv(env_key)
        if not api_key:
            raise ConfigurationError(
                f"API key '{env_key}' not found in environment variables "
                f"for provider '{active_provider}'",
                provider=active_provider,
            )

        return api_key

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration from YAML.

        Returns:
            Active LLM provider configuration dictionary.

        Raises:
            ValueError: If the active provider or a required key is missing.
        """
        providers = self._config.get("llm", {}).get("providers", {})
        active_provider = self.active_provider

        if active_provider not in providers:
            raise ValueError(
                f"Active provider '{active_provider}' not found in providers config"
            )

        llm_config = providers[active_provider]
        required_keys = [
            "base_url", "default_model", "temperature", "max_tokens", "top_p"
        ]
        for key in required_keys:
            if key not in llm_config:
                raise ValueError(
                    f"llm.providers.{active_provider}.{key} must be explicitly "
                    "configured in config.yaml"
                )

        return llm_config

    def get_model_options(self) -> list[ModelOption]:
        """Get the selectable model catalog for the active provider.

        The default model is always part of the catalog, even when the
        ``models`` list omits it.
        """
        llm_config = self.get_llm_config()
        options = [
            ModelOption(
                id=entry["id"],
                name=entry.get("name", entry["id"]),
                description=entry.get("description", ""),
            )
            for entry in llm_config.get("models", [])
        ]
        default_model = llm_config["default_model"]
        if not any(option.id == default_model for option in options):
            options.insert(0, ModelOption(id=default_model, name=default_model))
        return options

    def get_provider_config(self) -> ProviderConfig:
        """Build the immutable upstream settings handed to the relay.

        ``APP_URL`` in the environment overrides the configured referer.
        """
        llm_config = self.get_llm_config()
        try:
            provider = ProviderType(self.active_provider)
        except ValueError as e:
            raise ConfigurationError(
                f"Unsupported provider '{self.active_provider}'",
                provider=self.active_provider,
            ) from e

        return ProviderConfig(
            provider=provider,
            base_url=llm_config["base_url"],
            default_model=llm_config["default_model"],
            api_key=self.llm_api_key,
            temperature=float(llm_config["temperature"]),
            max_tokens=int(llm_config["max_tokens"]),
            top_p=float(llm_config["top_p"]),
            app_url=os.getenv("APP_URL") or llm_config.get(
                "app_url", "http://localhost:3000"
            ),
            app_title=llm_config.get("app_title", "Advanced Chatbot App"),
            models=tuple(self.get_model_options()),
        )

    def get_relay_config(self) -> dict[str, Any]:
        """Get relay server configuration from YAML.

        Returns:
            Relay configuration dictionary with validated values.

        Raises:
            ValueError: If required relay parameters are missing or invalid.
        """
        relay_config = self._config.get("relay", {})

        for key in ["host", "port"]:
            if key not in relay_config:
                raise ValueError(
                    f"relay.{key} must be explicitly configured in config.yaml"
                )

        port = relay_config["port"]
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError("relay.port must be an integer between 1 and 65535")

        return {
            "host": relay_config["host"],
            "port": port,
            "uvicorn": relay_config.get("uvicorn", {}),
        }

    def get_chat_config(self) -> dict[str, Any]:
        """Get chat front end configuration from YAML.

        Returns:
            Chat configuration dictionary.

        Raises:
            ValueError: If relay_url is missing.
        """
        chat_config = self._config.get("chat", {})
        if "relay_url" not in chat_config:
            raise ValueError(
                "chat.relay_url must be explicitly configured in config.yaml"
            )
        return chat_config

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration from YAML.

        Returns:
            Streaming configuration dictionary.

        Raises:
            ValueError: If line_mode is not a known mode.
        """
        streaming_config = self._config.get("chat", {}).get("streaming", {})
        line_mode = streaming_config.get("line_mode", "buffered")
        if line_mode not in LINE_MODES:
            raise ValueError(
                f"chat.streaming.line_mode must be one of: {list(LINE_MODES)}"
            )
        return {**streaming_config, "line_mode": line_mode}

    def get_fallback_messages(self) -> dict[str, str]:
        """Get the fixed user-visible texts used when a response fails."""
        defaults = {
            "empty_response": "Sorry, I could not generate a response.",
            "send_error": (
                "Sorry, I encountered an error while processing your request. "
                "Please try again."
            ),
            "regenerate_error": (
                "Sorry, I encountered an error while regenerating the response. "
                "Please try again."
            ),
        }
        configured = self._config.get("chat", {}).get("messages", {})
        return {**defaults, **configured}

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
