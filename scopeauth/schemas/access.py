from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class AllowedCitiesOut(BaseModel):
    all: bool
    cities: list[CityOut]


class ActorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str | None


class ScopeOut(BaseModel):
    all: bool
    ids: list[int]


class PermissionsOut(BaseModel):
    user_id: int
    all: bool = False
    permissions: dict[str, ScopeOut] = Field(default_factory=dict)


class CityAccessSyncIn(BaseModel):
    # Lenient on purpose: junk ids are dropped during normalization.
    city_ids: list[int | str | None] = Field(default_factory=list)


class CityAccessSyncOut(BaseModel):
    user_id: int
    city_ids: list[int]


class PermissionGrantIn(BaseModel):
    module: str
    action: str
    city_id: int | None = None


class PermissionGrantOut(BaseModel):
    user_id: int
    permission: str
    city_id: int | None
    changed: bool
