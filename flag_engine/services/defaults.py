"""Built-in flag definitions seeded when absent from the persisted snapshot."""

from __future__ import annotations

from flag_engine.core.models import FlagDefinition
from flag_engine.settings import Settings, settings as default_settings

SMALL_ROLLOUT = 10
MEDIUM_ROLLOUT = 25


def default_flags(settings: Settings | None = None) -> list[FlagDefinition]:
    """Return the default definitions for the given settings."""

    settings = settings or default_settings
    features = settings.features
    development = settings.is_development

    return [
        # Performance
        FlagDefinition(key="enableOfflineMode", value=features.offline_mode, enabled=True),
        FlagDefinition(
            key="enablePerformanceMonitoring",
            value=features.performance_monitoring,
            enabled=True,
        ),
        # Security
        FlagDefinition(key="enableBiometrics", value=features.biometrics, enabled=True),
        # Communication
        FlagDefinition(key="enablePushNotifications", value=features.push_notifications, enabled=True),
        # Experimental, off until enabled remotely or by an operator
        FlagDefinition(
            key="enableABTesting",
            value=False,
            enabled=False,
            rollout_percentage=SMALL_ROLLOUT,
        ),
        FlagDefinition(
            key="enableAdvancedAnalytics",
            value=False,
            enabled=False,
            user_groups=frozenset({"beta", "internal"}),
        ),
        FlagDefinition(
            key="enableNewMatchUI",
            value=False,
            enabled=False,
            rollout_percentage=MEDIUM_ROLLOUT,
        ),
        # Admin
        FlagDefinition(
            key="enableAdminDebugTools",
            value=development,
            enabled=development,
            user_groups=frozenset({"super_admin"}),
        ),
    ]
