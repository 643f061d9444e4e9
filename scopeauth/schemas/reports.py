from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    body: str | None
    city_id: int
    zone_id: int | None
    created_by: int | None
    created_at: datetime


class ReportIn(BaseModel):
    title: str
    body: str | None = None
    city_id: int
    zone_id: int | None = None
