"""Flag definitions and their tagged payload values."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Iterable, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)

from flag_engine.core.bucketing import ROLLOUT_BUCKETS


class BoolValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["bool"] = "bool"
    value: StrictBool

    def unwrap(self) -> bool:
        return self.value


class StringValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["string"] = "string"
    value: StrictStr

    def unwrap(self) -> str:
        return self.value


class NumberValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: Union[StrictInt, StrictFloat]

    def unwrap(self) -> int | float:
        return self.value


class StructValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["struct"] = "struct"
    value: Union[dict[str, Any], list[Any]]

    def unwrap(self) -> dict[str, Any] | list[Any]:
        return self.value


FlagValue = Annotated[
    Union[BoolValue, StringValue, NumberValue, StructValue],
    Field(discriminator="kind"),
]

_VALUE_TYPES = (BoolValue, StringValue, NumberValue, StructValue)


def coerce_value(raw: Any) -> BoolValue | StringValue | NumberValue | StructValue:
    """Wrap a plain payload into its tagged variant."""

    if isinstance(raw, _VALUE_TYPES):
        return raw
    # bool is a subclass of int, so it has to be matched first.
    if isinstance(raw, bool):
        return BoolValue(value=raw)
    if isinstance(raw, str):
        return StringValue(value=raw)
    if isinstance(raw, (int, float)):
        return NumberValue(value=raw)
    if isinstance(raw, (dict, list, tuple)):
        return StructValue(value=list(raw) if isinstance(raw, tuple) else raw)
    raise TypeError(f"unsupported flag value type: {type(raw).__name__}")


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def clamp_percentage(value: int) -> int:
    return max(0, min(ROLLOUT_BUCKETS, value))


class FlagDefinition(BaseModel):
    """One controllable capability and its targeting rules.

    ``value`` accepts plain Python payloads and stores them as a tagged
    ``FlagValue``. ``rollout_percentage`` is clamped into ``[0, 100]`` on
    construction so a registry never holds an out-of-range threshold.
    Field aliases match the camelCase keys used in the persisted snapshot.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(min_length=1)
    value: FlagValue
    enabled: bool
    rollout_percentage: int | None = Field(default=None, alias="rolloutPercentage")
    user_groups: frozenset[str] | None = Field(default=None, alias="userGroups")
    user_ids: frozenset[str] | None = Field(default=None, alias="userIds")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")

    @field_validator("value", mode="before")
    @classmethod
    def _wrap_value(cls, raw: Any) -> Any:
        try:
            return coerce_value(raw)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("rollout_percentage")
    @classmethod
    def _clamp_rollout(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return clamp_percentage(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def _parse_epoch_ms(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            # 0 is the unset marker in stored snapshots.
            return from_epoch_ms(value) if value else None
        return value

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def payload(self) -> Any:
        return self.value.unwrap()

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def to_storage(self) -> dict[str, Any]:
        """Serialize into the compact snapshot form, omitting unset fields."""

        data: dict[str, Any] = {
            "key": self.key,
            "value": self.value.unwrap(),
            "enabled": self.enabled,
        }
        if self.rollout_percentage is not None:
            data["rolloutPercentage"] = self.rollout_percentage
        if self.user_groups is not None:
            data["userGroups"] = sorted(self.user_groups)
        if self.user_ids is not None:
            data["userIds"] = sorted(self.user_ids)
        if self.expires_at is not None:
            data["expiresAt"] = to_epoch_ms(self.expires_at)
        return data

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> "FlagDefinition":
        return cls.model_validate(data)


def rollout_flag(key: str, percentage: int, value: Any = True) -> FlagDefinition:
    """Build an enabled flag served to ``percentage`` percent of subjects."""

    return FlagDefinition(key=key, value=value, enabled=True, rollout_percentage=percentage)


def group_flag(key: str, groups: Iterable[str], value: Any = True) -> FlagDefinition:
    """Build an enabled flag gated on membership of one of ``groups``."""

    return FlagDefinition(key=key, value=value, enabled=True, user_groups=frozenset(groups))


def time_limited_flag(
    key: str,
    expires_in_days: float,
    value: Any = True,
    now: datetime | None = None,
) -> FlagDefinition:
    """Build an enabled flag that expires ``expires_in_days`` days from ``now``."""

    start = now or datetime.now(timezone.utc)
    return FlagDefinition(
        key=key,
        value=value,
        enabled=True,
        expires_at=start + timedelta(days=expires_in_days),
    )
