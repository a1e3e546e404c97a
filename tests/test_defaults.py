import pytest

from flag_engine.services.defaults import default_flags
from flag_engine.services.engine import FlagEngine
from flag_engine.settings import FeatureToggles, Settings

from tests.doubles import InMemorySnapshotStore


def _by_key(settings: Settings) -> dict:
    return {definition.key: definition for definition in default_flags(settings)}


def test_default_keys() -> None:
    assert sorted(_by_key(Settings(environment="prod"))) == [
        "enableABTesting",
        "enableAdminDebugTools",
        "enableAdvancedAnalytics",
        "enableBiometrics",
        "enableNewMatchUI",
        "enableOfflineMode",
        "enablePerformanceMonitoring",
        "enablePushNotifications",
    ]


def test_feature_toggles_drive_default_values() -> None:
    flags = _by_key(
        Settings(
            environment="prod",
            features=FeatureToggles(push_notifications=True, biometrics=False),
        )
    )

    assert flags["enablePushNotifications"].payload is True
    assert flags["enableBiometrics"].payload is False
    assert flags["enableOfflineMode"].payload is True
    assert flags["enablePerformanceMonitoring"].payload is False


def test_admin_tools_follow_environment() -> None:
    assert _by_key(Settings(environment="dev"))["enableAdminDebugTools"].enabled is True
    assert _by_key(Settings(environment="prod"))["enableAdminDebugTools"].enabled is False


def test_experimental_defaults_are_off() -> None:
    flags = _by_key(Settings(environment="prod"))
    assert flags["enableABTesting"].rollout_percentage == 10
    assert flags["enableNewMatchUI"].rollout_percentage == 25
    assert flags["enableAdvancedAnalytics"].user_groups == frozenset({"beta", "internal"})
    assert not any(flags[key].enabled for key in ("enableABTesting", "enableNewMatchUI", "enableAdvancedAnalytics"))


@pytest.mark.anyio
async def test_engine_seeds_builtin_defaults() -> None:
    dev = Settings(environment="dev")
    engine = FlagEngine(InMemorySnapshotStore(), defaults=lambda: default_flags(dev))
    await engine.initialize("admin-1", ["super_admin"])

    assert engine.is_enabled("enableOfflineMode") is True
    assert engine.is_enabled("enableAdminDebugTools") is True
    assert engine.is_enabled("enableNewMatchUI") is False

    engine.set_user_context("user-1", ["beta"])
    assert engine.is_enabled("enableAdminDebugTools") is False
