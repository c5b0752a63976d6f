import pytest

from retail_nlq.utils.config_loader import EngineConfig, load_config, load_yaml


@pytest.fixture
def cfg_file(tmp_path):
    path = tmp_path / "model_config.yaml"
    path.write_text(
        "llm:\n"
        "  provider: gemini\n"
        "  model: gemini-2.5-pro\n"
        "  temperature: 0.3\n"
        "  max_output_tokens:\n"
        "    sql: 1500\n"
        "database:\n"
        "  max_rows: 200\n"
        "engine:\n"
        "  history_turns: 4\n",
        encoding="utf-8",
    )
    return str(path)


def test_missing_file_gives_defaults(tmp_path):
    assert load_yaml(str(tmp_path / "nope.yaml")) == {}
    assert load_config(str(tmp_path / "nope.yaml"), env={}) == EngineConfig()


def test_yaml_values_are_used(cfg_file):
    cfg = load_config(cfg_file, env={})
    assert cfg.model == "gemini-2.5-pro"
    assert cfg.temperature == 0.3
    assert cfg.sql_max_tokens == 1500
    assert cfg.insight_max_tokens == 900
    assert cfg.max_rows == 200
    assert cfg.history_turns == 4
    assert cfg.api_key is None


def test_environment_overrides_yaml(cfg_file):
    env = {
        "GEMINI_MODEL": "gemini-2.5-flash",
        "GEMINI_API_KEY": "g-key",
        "TEMPERATURE": "0",
        "MAX_SQL_ROWS": "50",
        "DATABASE_URL": "postgresql://u:p@db/bi",
    }
    cfg = load_config(cfg_file, env=env)
    assert cfg.model == "gemini-2.5-flash"
    assert cfg.api_key == "g-key"
    assert cfg.temperature == 0.0
    assert cfg.max_rows == 50
    assert cfg.database_url == "postgresql://u:p@db/bi"


def test_openrouter_provider(cfg_file):
    cfg = load_config(cfg_file, env={"LLM_PROVIDER": "OpenRouter", "LLM_API_KEY": "sk"})
    assert cfg.provider == "openrouter"
    assert cfg.api_key == "sk"
    assert load_config(cfg_file, env={"LLM_PROVIDER": "openrouter", "LLM_MODEL": "x/y"}).model == "x/y"


def test_unknown_provider_rejected(cfg_file):
    with pytest.raises(ValueError):
        load_config(cfg_file, env={"LLM_PROVIDER": "mystery"})
