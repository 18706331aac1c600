import importlib

from budget_planner import config


def test_defaults_expose_thresholds():
    thresholds = config.get_thresholds()

    assert thresholds['variance'] == {'warning': 0.8, 'critical': 0.95, 'exceeded': 1.0}
    assert thresholds['heatmap']['excellent'] == 110
    assert thresholds['trend']['significant_change'] == 10
    assert thresholds['installments']['max'] == 120


def test_get_config_value_falls_back_to_default():
    assert config.get_config_value('defaults', 'trend', 'min_points') == 2
    assert config.get_config_value('defaults', 'missing', 'key', default='x') == 'x'
    assert config.get_config_value('no_such_file', 'a', default=3) == 3


def test_environment_overrides_database_path(monkeypatch, tmp_path):
    db_file = tmp_path / "custom" / "planner.db"
    monkeypatch.setenv("BUDGET_PLANNER_DB_PATH", str(db_file))
    monkeypatch.setenv("BUDGET_PLANNER_DATA_DIR", str(tmp_path / "data"))
    try:
        reloaded = importlib.reload(config)
        assert reloaded.get_db_path() == str(db_file.resolve())
        reloaded.ensure_data_directories()
        assert (tmp_path / "data").is_dir()
        assert db_file.parent.is_dir()
    finally:
        monkeypatch.delenv("BUDGET_PLANNER_DB_PATH")
        monkeypatch.delenv("BUDGET_PLANNER_DATA_DIR")
        importlib.reload(config)
