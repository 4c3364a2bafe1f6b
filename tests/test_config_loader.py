import json

from recallgate.config.loader import convert_keys, convert_to_camel, load_config, save_config
from recallgate.config.schema import EngineConfig


def test_convert_keys_nested() -> None:
    data = {"retrieval": {"topK": 8, "maxResults": 12}, "scan": {"maxMessages": 50}}

    converted = convert_keys(data)

    assert converted == {"retrieval": {"top_k": 8, "max_results": 12}, "scan": {"max_messages": 50}}


def test_convert_round_trip() -> None:
    snake = {"data_dir": "/tmp/x", "patterns": {"max_regex_length": 200, "check_redos": False}}

    assert convert_keys(convert_to_camel(snake)) == snake


def test_load_config_camel_case_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"dataDir": str(tmp_path), "retrieval": {"topK": 9}, "patterns": {"checkRedos": False}}))

    config = load_config(path)

    assert config.retrieval.top_k == 9
    assert config.patterns.check_redos is False
    assert config.policy_store_path == tmp_path / "policies.json"


def test_load_config_missing_file_gives_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "absent.json")

    assert config.retrieval.top_k == 5
    assert config.retrieval.threshold == 0.25
    assert config.retrieval.max_results == 20
    assert config.scan.max_messages == 200
    assert config.patterns.max_regex_length == 1000


def test_load_config_malformed_file_gives_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{broken")
    assert load_config(path).retrieval.top_k == 5

    path.write_text(json.dumps({"retrieval": {"topK": 0}}))
    assert load_config(path).retrieval.top_k == 5


def test_save_then_load(tmp_path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = EngineConfig(log_level="DEBUG", retrieval={"top_k": 4})

    save_config(config, path)

    assert json.loads(path.read_text())["retrieval"]["topK"] == 4
    assert load_config(path).log_level == "DEBUG"


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RECALLGATE_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("RECALLGATE_RETRIEVAL__TOP_K", "7")

    config = EngineConfig()

    assert config.log_level == "WARNING"
    assert config.retrieval.top_k == 7
