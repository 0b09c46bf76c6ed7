"""Unit tests for Talk2TextConfig."""

import pytest
from pathlib import Path

from talk2text.config import Talk2TextConfig
from talk2text.models.session import Transport


API_KEY = "0123456789abcdef0123456789abcdef"

CONFIG_YAML = """
audio:
  sample_rate: 16000
  channels: 1
  noise_suppression: false

transcription:
  transport: auto
  language: en-GB
  connect_timeout: 5
  finalize_timeout: 8

deepgram:
  api_key: "{api_key}"
  model: nova-2

google_cloud:
  credentials_path: creds/google.json

logging:
  level: DEBUG
  file_path: logs/talk2text.log
"""


@pytest.fixture
def config_file(tmp_path):
    def write(api_key=API_KEY, text=None):
        path = tmp_path / "talk2text.yaml"
        path.write_text(text if text is not None else CONFIG_YAML.format(api_key=api_key))
        return path
    return write


@pytest.fixture(autouse=True)
def clear_api_key_env(monkeypatch):
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)


@pytest.mark.unit
class TestTalk2TextConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Talk2TextConfig(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, config_file):
        with pytest.raises(ValueError):
            Talk2TextConfig(str(config_file(text="")))

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ValueError):
            Talk2TextConfig(str(config_file(text="audio: [unclosed")))

    def test_get_and_set(self, config_file):
        config = Talk2TextConfig(str(config_file()))

        assert config.get('transcription.language') == "en-GB"
        assert config.get('transcription.missing', 'fallback') == 'fallback'
        assert config.get('audio.sample_rate.nested') is None

        config.set('transcription.transport', 'continuous')
        config.set('events.topic_root', 'custom')
        assert config.get('transcription.transport') == 'continuous'
        assert config.get('events.topic_root') == 'custom'

    def test_relative_paths_are_resolved(self, config_file, tmp_path):
        config = Talk2TextConfig(str(config_file()))

        assert config.get('google_cloud.credentials_path') == str(tmp_path / "creds/google.json")
        assert config.get('logging.file_path') == str(tmp_path / "logs/talk2text.log")

    def test_api_key_from_file(self, config_file):
        assert Talk2TextConfig(str(config_file())).get_deepgram_api_key() == API_KEY

    def test_api_key_from_environment_wins(self, config_file, monkeypatch):
        monkeypatch.setenv("DEEPGRAM_API_KEY", "env-key-0123456789abcdef")

        assert Talk2TextConfig(str(config_file())).get_deepgram_api_key() == "env-key-0123456789abcdef"

    def test_no_api_key(self, config_file):
        assert Talk2TextConfig(str(config_file(api_key=""))).get_deepgram_api_key() is None

    def test_google_credentials_path(self, config_file, tmp_path):
        config = Talk2TextConfig(str(config_file()))
        assert config.get_google_credentials_path() is None

        creds = tmp_path / "creds" / "google.json"
        creds.parent.mkdir()
        creds.write_text("{}")
        assert config.get_google_credentials_path() == str(creds.absolute())

    def test_session_config(self, config_file):
        session_config = Talk2TextConfig(str(config_file())).session_config()

        assert session_config.deepgram_api_key == API_KEY
        assert session_config.transport is Transport.AUTO
        assert session_config.language == "en-GB"
        assert session_config.model == "nova-2"
        assert session_config.connect_timeout == 5.0
        assert session_config.finalize_timeout == 8.0
        assert session_config.close_timeout == 2.0
        assert session_config.capture.sample_rate == 16000
        assert session_config.capture.noise_suppression is False
        assert session_config.capture.echo_cancellation is True

    def test_transport_override(self, config_file):
        config = Talk2TextConfig(str(config_file()))

        assert config.session_config("streaming").transport is Transport.STREAMING
        with pytest.raises(ValueError):
            config.session_config("carrier-pigeon")
