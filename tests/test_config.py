import pytest

from toasttalk.config import Config, load_config
from toasttalk.errors import ConfigError


def test_defaults():
    config = Config()
    assert config.get("llm.model") == "gpt-4o"
    assert config.get("conversation.max_iterations") == 8
    assert config.get("code_execution.interpreters.bash") == "/bin/bash"


def test_missing_and_none_values_fall_back_to_default():
    config = Config()
    assert config.get("llm.nope", "fallback") == "fallback"
    assert config.get("location.current", (0, 0)) == (0, 0)
    assert config.get("llm.model.deeper", 1) == 1


def test_overrides_are_deep_merged():
    config = Config({"code_execution": {"timeout": 5}})
    assert config.get("code_execution.timeout") == 5
    assert config.get("code_execution.kill_grace") == 2


def test_set_creates_sections():
    config = Config()
    config.set("plugins.weather.enabled", True)
    assert config.get("plugins.weather.enabled") is True


def test_defaults_are_not_shared():
    first = Config()
    first.set("llm.model", "changed")
    assert Config().get("llm.model") == "gpt-4o"


def test_api_key_comes_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    assert Config().api_key == "sk-from-env"
    monkeypatch.delenv("OPENAI_API_KEY")
    assert Config().api_key == ""


class TestLoadConfig:

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  model: local-llama\nconversation:\n  max_iterations: 4\n")
        config = load_config(str(path))
        assert config.get("llm.model") == "local-llama"
        assert config.get("conversation.max_iterations") == 4
        assert config.get("llm.temperature") == 0.7
        assert config.source == path

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text("assistant:\n  user_name: Ada\n")
        monkeypatch.setenv("TOASTTALK_CONFIG", str(path))
        assert load_config().get("assistant.user_name") == "Ada"

    def test_missing_default_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TOASTTALK_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.source is None
        assert config.get("llm.model") == "gpt-4o"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)).get("llm.model") == "gpt-4o"
