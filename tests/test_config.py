from app.core.config import Settings


def test_settings_read_environment_and_ignore_unknown_keys(monkeypatch) -> None:
    monkeypatch.setenv("FEE_DUE_DAYS", "14")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = Settings(_env_file=None, UNRELATED_SETTING="x")

    assert settings.fee_due_days == 14
    assert settings.log_level == "DEBUG"
    assert settings.jwt_algorithm == "HS256"
    assert not hasattr(settings, "UNRELATED_SETTING")
