from datetime import timedelta

import pytest

from flag_engine.core.bucketing import bucket
from flag_engine.core.models import FlagDefinition
from flag_engine.services.engine import EvaluationReason, FlagEngine

from tests.doubles import FIXED_NOW


def _define(engine: FlagEngine, key: str = "feature", **fields: object) -> FlagDefinition:
    fields.setdefault("value", True)
    fields.setdefault("enabled", True)
    definition = FlagDefinition(key=key, **fields)
    engine.set_flag(definition)
    return definition


@pytest.mark.anyio
async def test_unknown_flag_is_disabled_and_logged(engine: FlagEngine, log_messages: list[str]) -> None:
    evaluation = engine.evaluate("missing")

    assert evaluation.enabled is False
    assert evaluation.reason is EvaluationReason.NOT_FOUND
    assert "WARNING:Feature flag not found: missing" in log_messages


@pytest.mark.anyio
async def test_master_switch_short_circuits(engine: FlagEngine) -> None:
    _define(engine, enabled=False, user_ids=["u1"])
    engine.set_user_context("u1")

    assert engine.evaluate("feature").reason is EvaluationReason.DISABLED
    assert engine.is_enabled("feature") is False


@pytest.mark.anyio
async def test_expired_flag_is_disabled_regardless_of_targeting(
    engine: FlagEngine,
    log_messages: list[str],
) -> None:
    _define(
        engine,
        user_ids=["u1"],
        rollout_percentage=100,
        expires_at=FIXED_NOW - timedelta(seconds=1),
    )
    engine.set_user_context("u1", ["beta"])

    evaluation = engine.evaluate("feature")
    assert evaluation.enabled is False
    assert evaluation.reason is EvaluationReason.EXPIRED
    assert "DEBUG:Feature flag expired: feature" in log_messages


@pytest.mark.anyio
async def test_flag_expiring_now_is_still_active(engine: FlagEngine) -> None:
    _define(engine, expires_at=FIXED_NOW)
    assert engine.is_enabled("feature") is True


@pytest.mark.anyio
async def test_explicit_id_overrides_zero_rollout(engine: FlagEngine) -> None:
    _define(engine, user_ids=["u1"], rollout_percentage=0)
    engine.set_user_context("u1")

    evaluation = engine.evaluate("feature")
    assert evaluation.enabled is True
    assert evaluation.reason is EvaluationReason.USER_TARGETED


@pytest.mark.anyio
async def test_explicit_id_miss_is_final(engine: FlagEngine) -> None:
    _define(engine, user_ids=["u1"], rollout_percentage=100)
    engine.set_user_context("u2", ["beta"])

    evaluation = engine.evaluate("feature")
    assert evaluation.enabled is False
    assert evaluation.reason is EvaluationReason.USER_NOT_TARGETED


@pytest.mark.anyio
async def test_id_list_is_skipped_without_subject(engine: FlagEngine) -> None:
    _define(engine, user_ids=["u1"])
    assert engine.evaluate("feature").reason is EvaluationReason.VALUE
    assert engine.is_enabled("feature") is True


@pytest.mark.anyio
async def test_group_mismatch_blocks(engine: FlagEngine) -> None:
    _define(engine, user_groups=["beta"])
    engine.set_user_context(None, ["public"])

    evaluation = engine.evaluate("feature")
    assert evaluation.enabled is False
    assert evaluation.reason is EvaluationReason.GROUP_MISMATCH


@pytest.mark.anyio
async def test_group_match_is_a_gate_not_a_grant(engine: FlagEngine) -> None:
    _define(engine, "gated-off", value=False, user_groups=["beta"])
    _define(engine, "gated-rollout", user_groups=["beta"], rollout_percentage=0)
    engine.set_user_context("u1", ["beta", "staff"])

    assert engine.is_enabled("gated-off") is False
    assert engine.evaluate("gated-rollout").reason is EvaluationReason.ROLLOUT
    assert engine.is_enabled("gated-rollout") is False


@pytest.mark.anyio
async def test_group_rule_is_skipped_without_groups(engine: FlagEngine) -> None:
    _define(engine, user_groups=["beta"])
    engine.set_user_context("u1")
    assert engine.is_enabled("feature") is True


@pytest.mark.anyio
async def test_rollout_requires_subject(engine: FlagEngine) -> None:
    _define(engine, rollout_percentage=0)
    assert engine.evaluate("feature").reason is EvaluationReason.VALUE
    assert engine.is_enabled("feature") is True


@pytest.mark.anyio
async def test_new_match_ui_scenario_is_stable(engine: FlagEngine) -> None:
    _define(engine, "newMatchUI", rollout_percentage=25)
    engine.set_user_context("user-42")

    expected = bucket("user-42") < 25
    results = {engine.is_enabled("newMatchUI") for _ in range(1000)}

    assert results == {expected}
    assert expected is False


@pytest.mark.anyio
async def test_rollout_sets_are_nested(engine: FlagEngine) -> None:
    for percentage in range(101):
        _define(engine, f"rollout-{percentage}", rollout_percentage=percentage)

    for index in range(200):
        engine.set_user_context(f"subject-{index}")
        outcomes = [engine.is_enabled(f"rollout-{percentage}") for percentage in range(101)]
        first_enabled = outcomes.index(True)
        assert outcomes[:first_enabled] == [False] * first_enabled
        assert all(outcomes[first_enabled:])
        assert first_enabled == bucket(f"subject-{index}") + 1


@pytest.mark.anyio
async def test_fallback_uses_boolean_value_or_enabled(engine: FlagEngine) -> None:
    _define(engine, "off-value", value=False)
    _define(engine, "string-value", value="v2")

    assert engine.evaluate("off-value").reason is EvaluationReason.VALUE
    assert engine.is_enabled("off-value") is False
    assert engine.evaluate("string-value").reason is EvaluationReason.DEFAULT
    assert engine.is_enabled("string-value") is True


@pytest.mark.anyio
async def test_context_changes_apply_to_next_evaluation(engine: FlagEngine) -> None:
    _define(engine, user_ids=["u1"], value=False)

    engine.set_user_context("u1")
    assert engine.is_enabled("feature") is True

    engine.set_user_context("u2")
    assert engine.is_enabled("feature") is False

    engine.clear_user_context()
    assert engine.context.subject_id is None
    assert engine.is_enabled("feature") is False


@pytest.mark.anyio
async def test_get_value(engine: FlagEngine) -> None:
    _define(engine, "theme", value="dark")
    _define(engine, "empty", value="")
    _define(engine, "limits", value={"max": 5})
    _define(engine, "off", value="hidden", enabled=False)
    _define(engine, "no-limits", value={})
    _define(engine, "no-items", value=[])

    assert engine.get_value("theme", "light") == "dark"
    assert engine.get_value("empty", "fallback") == "fallback"
    assert engine.get_value("limits", {}) == {"max": 5}
    assert engine.get_value("off", "light") == "light"
    assert engine.get_value("missing", 3) == 3
    assert engine.get_value("no-limits", {"max": 1}) == {}
    assert engine.get_value("no-items", ["fallback"]) == []


@pytest.mark.anyio
async def test_get_typed_value_checks_variant(engine: FlagEngine) -> None:
    _define(engine, "retries", value=0, user_ids=["u1"])
    _define(engine, "label", value="beta")
    engine.set_user_context("u1")

    assert engine.get_typed_value("retries", 3) == 0
    assert engine.get_typed_value("label", 7) == 7
    assert engine.get_typed_value("label", "stable") == "beta"


@pytest.mark.anyio
async def test_enabled_flags_and_stats(engine: FlagEngine) -> None:
    _define(engine, "on")
    _define(engine, "off", enabled=False)
    _define(engine, "beta-only", user_groups=["beta"])
    engine.set_user_context("u1", ["public"])

    assert engine.get_enabled_flags() == ["on"]
    stats = engine.get_stats()
    assert stats.total_flags == 3
    assert stats.enabled_flags == 1
    assert stats.subject_id == "u1"
    assert stats.groups == ["public"]


@pytest.mark.anyio
async def test_zero_expiry_never_expires(engine: FlagEngine) -> None:
    _define(engine, "legacy", expires_at=0)

    assert engine.is_enabled("legacy") is True
