"""Schemas for feature flag management."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from flag_engine.core.models import FlagDefinition


class FlagDefinitionPayload(BaseModel):
    """Flag definition as accepted over HTTP, in snapshot (camelCase) form."""

    model_config = ConfigDict(populate_by_name=True)

    key: Optional[str] = None
    value: Any = True
    enabled: bool = True
    rollout_percentage: Optional[int] = Field(default=None, alias="rolloutPercentage")
    user_groups: Optional[List[str]] = Field(default=None, alias="userGroups")
    user_ids: Optional[List[str]] = Field(default=None, alias="userIds")
    expires_at: Optional[int] = Field(default=None, alias="expiresAt")

    def to_definition(self, key: str | None = None) -> FlagDefinition:
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["key"] = key or self.key or ""
        data["value"] = self.value
        return FlagDefinition.from_storage(data)


class FeatureFlagsResponse(BaseModel):
    flags: List[Dict[str, Any]]


class FeatureFlagsUpdateRequest(BaseModel):
    flags: List[FlagDefinitionPayload]


class FlagEvaluationResponse(BaseModel):
    key: str
    enabled: bool
    reason: str
    value: Any = None


class EnabledFlagsResponse(BaseModel):
    keys: List[str]


class UserContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: Optional[str] = Field(default=None, alias="subjectId")
    groups: List[str] = Field(default_factory=list)


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_flags: int = Field(alias="totalFlags")
    enabled_flags: int = Field(alias="enabledFlags")
    subject_id: Optional[str] = Field(default=None, alias="subjectId")
    groups: List[str] = Field(default_factory=list)
