"""Simple YAML configuration loader for talk2text."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..models.audio import CaptureParameters
from ..models.session import SessionConfig, Transport

logger = logging.getLogger(__name__)

DEEPGRAM_API_KEY_ENV = "DEEPGRAM_API_KEY"


class Talk2TextConfig:
    """talk2text configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (('google_cloud', 'credentials_path'), ('logging', 'file_path')):
            path = (config.get(section) or {}).get(key)
            if path and not os.path.isabs(path):
                config[section][key] = str(config_dir / path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'deepgram.model').

        Args:
            key_path: Dot-separated key path (e.g., 'google_cloud.credentials_path')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'transcription.transport')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_deepgram_api_key(self) -> Optional[str]:
        """Get the Deepgram key; the DEEPGRAM_API_KEY environment variable wins."""
        env_key = os.environ.get(DEEPGRAM_API_KEY_ENV)
        if env_key and env_key.strip():
            return env_key.strip()
        key = self.get('deepgram.api_key')
        return str(key).strip() if key else None

    def get_google_credentials_path(self) -> Optional[str]:
        """Get Google credentials path, or None when not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            return None

        creds_file = Path(creds_path)
        if not creds_file.exists():
            logger.warning(f"Google credentials file not found: {creds_path}")
            return None

        return str(creds_file.absolute())

    def session_config(self, transport_override: Optional[str] = None) -> SessionConfig:
        """Build the SessionConfig for one session.

        Args:
            transport_override: Transport name that replaces transcription.transport

        Raises:
            ValueError: If the transport name is unknown
        """
        transport_name = transport_override or self.get('transcription.transport', 'auto')
        try:
            transport = Transport(str(transport_name).lower())
        except ValueError:
            choices = ", ".join(t.value for t in Transport)
            raise ValueError(f"Unknown transport '{transport_name}' (expected one of: {choices})")

        capture = CaptureParameters(
            sample_rate=self.get('audio.sample_rate', 16000),
            channels=self.get('audio.channels', 1),
            echo_cancellation=self.get('audio.echo_cancellation', True),
            noise_suppression=self.get('audio.noise_suppression', True),
            chunk_interval_ms=self.get('audio.chunk_interval_ms', 100),
        )

        defaults = SessionConfig()
        return SessionConfig(
            deepgram_api_key=self.get_deepgram_api_key(),
            google_credentials_path=self.get_google_credentials_path(),
            language=self.get('transcription.language', defaults.language),
            transport=transport,
            capture=capture,
            streaming_url=self.get('deepgram.streaming_url', defaults.streaming_url),
            prerecorded_url=self.get('deepgram.prerecorded_url', defaults.prerecorded_url),
            auth_scheme=self.get('deepgram.auth_scheme', defaults.auth_scheme),
            model=self.get('deepgram.model', defaults.model),
            connect_timeout=float(self.get('transcription.connect_timeout', defaults.connect_timeout)),
            close_timeout=float(self.get('transcription.close_timeout', defaults.close_timeout)),
            finalize_on_stop=self.get('transcription.finalize_on_stop', defaults.finalize_on_stop),
            finalize_model=self.get('deepgram.finalize_model', defaults.finalize_model),
            finalize_timeout=float(self.get('transcription.finalize_timeout', defaults.finalize_timeout)),
            max_buffer_seconds=float(self.get('transcription.max_buffer_seconds', defaults.max_buffer_seconds)),
            restart_delay=float(self.get('google_cloud.restart_delay', defaults.restart_delay)),
        )
