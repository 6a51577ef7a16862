from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class Mode(str, Enum):
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    RANGE = "range"
    BEFORE = "before"
    AFTER = "after"


class DataType(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    DATE = "date"
    TIME = "time"


class Logic(str, Enum):
    AND = "and"
    OR = "or"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class RangeValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: Any = Field(default=None, alias="from")
    to: Any = None


class FilterClause(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field: str
    value: Any = None
    mode: Mode
    data_type: DataType = Field(alias="dataType")


class SortClause(BaseModel):
    field: str
    order: SortOrder = SortOrder.ASC


class FilterSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filters: List[FilterClause] = []
    sort_fields: List[SortClause] = Field(default=[], alias="sortFields")
    logic: Logic = Logic.AND


class Page(BaseModel):
    """0-based page window."""

    index: int = 0
    size: int = 30

