from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from agenda.services.store import RuleScope


class RuleWindow(BaseModel):
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_time: str
    end_time: str


class RuleCreateRequest(RuleWindow):
    tenant_id: str
    scope: RuleScope
    scope_id: str


class RuleUpdateRequest(BaseModel):
    tenant_id: str
    rule_id: str
    day_of_week: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    active: Optional[bool] = None


class RuleDeleteRequest(BaseModel):
    tenant_id: str
    rule_id: str


class RuleListRequest(BaseModel):
    tenant_id: str
    scope: RuleScope
    scope_id: str


class RuleReplaceRequest(BaseModel):
    tenant_id: str
    scope: RuleScope
    scope_id: str
    rules: List[RuleWindow] = Field(default_factory=list)


class RuleView(BaseModel):
    rule_id: str
    scope: RuleScope
    scope_id: str
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str
    active: bool


class RuleListResponse(BaseModel):
    total: int
    items: List[RuleView]


class TimeWindow(BaseModel):
    start_time: str
    end_time: str


class DaySchedule(BaseModel):
    day_of_week: int
    day_name: str
    is_working: bool
    windows: List[TimeWindow] = Field(default_factory=list)


class WeeklySchedule(BaseModel):
    scope: RuleScope
    scope_id: str
    days: List[DaySchedule]
