from typing import Any

from pydantic import BaseModel, Field


# ---------- rules ----------

class ConditionIn(BaseModel):
    type: str = Field("where", pattern="^(where|and|or)$")
    column: str = Field(..., min_length=1)
    operator: str = Field(..., min_length=1)
    value: Any = None
    value2: Any = None


class RuleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    conditions: list[ConditionIn] = Field(default_factory=list)
    is_active: bool = True


class RuleUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1)
    conditions: list[ConditionIn] | None = None
    is_active: bool | None = None


class RuleEvaluateRequest(BaseModel):
    row: dict[str, Any]
    conditions: list[ConditionIn] = Field(default_factory=list)


# ---------- search ----------

class FilterConditionIn(BaseModel):
    column: str = ""
    operator: str = ""
    values: Any = None
    value2: Any = None
    logicalOperator: str = Field("AND", pattern="^(AND|OR|and|or)$")


class FilterSubgroupIn(BaseModel):
    logicalOperator: str = Field("AND", pattern="^(AND|OR|and|or)$")
    conditions: list[FilterConditionIn] = Field(default_factory=list)


class FilterDialogRequest(BaseModel):
    conditions: list[FilterConditionIn] = Field(default_factory=list)
    subgroups: list[FilterSubgroupIn] = Field(default_factory=list)


class PredicateIn(BaseModel):
    field: str = Field(..., min_length=1)
    operator: str = Field(..., min_length=1)
    value: Any = None
    value2: Any = None
    type: str = Field("where", pattern="^(where|and|or)$")


class SearchRequest(BaseModel):
    filters: list[PredicateIn] = Field(default_factory=list)
    skip: int = Field(0, ge=0)
    limit: int = Field(500, ge=1, le=5000)
    sort_by: str | None = None
    sort_order: str = Field("desc", pattern="^(asc|desc)$")


# ---------- grid sessions ----------

class SessionCreateRequest(BaseModel):
    profile: str = "manual_color"
    page_size: int | None = Field(None, ge=1, le=500)
    rows: list[dict[str, Any]] = Field(default_factory=list)


class RowIdsRequest(BaseModel):
    row_ids: list[str] = Field(default_factory=list)


class RowRequest(BaseModel):
    row_id: str = Field(..., min_length=1)


class PageRequest(BaseModel):
    page: int = Field(..., ge=1)


class EditStartRequest(BaseModel):
    row_id: str = Field(..., min_length=1)
    field: str = Field(..., min_length=1)


class EditKeyRequest(BaseModel):
    key: str = Field(..., min_length=1)
    value: Any = None


class AddRowRequest(BaseModel):
    fields: dict[str, Any] = Field(default_factory=dict)


class ApplyRulesRequest(BaseModel):
    # empty means every active rule in the catalog
    rule_ids: list[int] = Field(default_factory=list)
