import json

import pytest

from Relational_Web.config import Config, load_config


def test_load_from_file_merges_param_groups(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(
        json.dumps(
            {
                "topology": {"max_hops": 5},
                "scheduler": {"base_step": 0.02},
                "thread_count": 4,
            }
        )
    )
    Config.load_from_file(str(cfg))
    assert Config.topology["max_hops"] == 5
    # untouched keys in the group survive the merge
    assert Config.topology["edge_creation_cost"] == 0.1
    assert Config.scheduler["base_step"] == 0.02
    assert Config.thread_count == 4


def test_load_from_file_ignores_unknown_keys(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"not_a_setting": 1}))
    Config.load_from_file(str(cfg))
    assert not hasattr(Config, "not_a_setting")


def test_load_from_file_resolves_output_dir(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"output_dir": "runs"}))
    Config.load_from_file(str(cfg))
    assert Config.output_dir == str(tmp_path / "runs")


def test_load_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load_from_file(str(tmp_path / "missing.json"))


def test_load_config_returns_data(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"gauge": {"tolerance": 0.2}}))
    data = load_config(str(cfg))
    assert data == {"gauge": {"tolerance": 0.2}}
    assert Config.gauge["tolerance"] == 0.2


def test_logging_mode_filters_categories():
    Config.logging_mode = ["tick"]
    assert Config.is_log_enabled("tick", "sweep")
    assert not Config.is_log_enabled("event", "topology_change")


def test_log_files_toggle_label():
    Config.log_files["event"]["topology_change"] = False
    assert not Config.is_log_enabled("event", "topology_change")
    assert Config.is_log_enabled("event", "ledger_refusal")


def test_snapshot_restore_round_trip():
    saved = Config.snapshot()
    Config.topology["temperature"] = 42.0
    Config.restore(saved)
    assert Config.topology["temperature"] == 1.0


def test_load_from_yaml(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("topology:\n  temperature: 0.25\nbackend: cpu\n")
    Config.load_from_file(str(cfg))
    assert Config.topology["temperature"] == 0.25
    assert Config.topology["max_hops"] == 3


def test_non_mapping_config_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        Config.load_from_file(str(cfg))


def test_bundled_default_config_loads():
    data = load_config()
    assert data["gauge"]["tolerance"] == Config.gauge["tolerance"]
    assert Config.thread_count == 4
