import pytest

from dispatch.config import initial_settings_from_env, load_runtime_config
from dispatch.dispatcher import build_dispatcher_from_env
from dispatch.persistence import save_state_file
from dispatch.settings import default_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PALTAXI_TARIFF_PER_KM",
        "PALTAXI_REPUTATION_THRESHOLD",
        "PALTAXI_STATE_FILE",
        "PALTAXI_PHONE_REGION",
        "PALTAXI_AVERAGE_SPEED_KMH",
        "PALTAXI_CURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_without_environment(clean_env):
    config = load_runtime_config()

    assert config.state_file is None
    assert config.phone_region == "CU"
    assert config.average_speed_kmh == 35.0
    assert initial_settings_from_env() == default_settings()


def test_environment_overrides(clean_env):
    clean_env.setenv("PALTAXI_TARIFF_PER_KM", "75")
    clean_env.setenv("PALTAXI_REPUTATION_THRESHOLD", "60")
    clean_env.setenv("PALTAXI_AVERAGE_SPEED_KMH", "28.5")

    settings = initial_settings_from_env()

    assert settings.tariff_per_km == 75.0
    assert settings.reputation_threshold == 60
    assert load_runtime_config().average_speed_kmh == 28.5


def test_bad_number_in_environment(clean_env):
    clean_env.setenv("PALTAXI_TARIFF_PER_KM", "sesenta")
    with pytest.raises(ValueError):
        initial_settings_from_env()


def test_dispatcher_restores_state_file(clean_env, tmp_path, dispatcher):
    path = tmp_path / "state.json"
    save_state_file(str(path), dispatcher.snapshot)
    clean_env.setenv("PALTAXI_STATE_FILE", str(path))

    restored = build_dispatcher_from_env()

    assert restored.snapshot.find_user_by_username("carlos") is not None
