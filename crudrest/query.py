"""
Query options

The list parameters of a request (limit, offset, order_by, desc, filter_by,
filter_value, preload) are converted to QueryOption instances which are applied
to a sqlalchemy Query. Options are applied per phase (filter, order, preload,
paginate) so the order in which they're given doesn't matter.
"""
from dataclasses import dataclass
from typing import Any, Iterable, List, Tuple
import sqlalchemy
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.orm import Query, selectinload
import crudrest
from .attr_parse import parse_attr
from .config import get_config
from .errors import ProcessFailedError
from .fields import resolve_field

PHASE_FILTER = 0
PHASE_ORDER = 1
PHASE_PRELOAD = 2
PHASE_PAGINATE = 3


class RequestParameters(BaseModel):
    """
    The query string parameters of the list and nested fetch requests,
    e.g. /todos?limit=10&offset=20&order_by=title&desc=true&filter_by=done&filter_value=false&preload=projects
    """

    model_config = ConfigDict(extra="ignore")

    limit: int = 0
    offset: int = 0
    order_by: str = ""
    desc: bool = False
    filter_by: str = ""
    filter_value: str = ""
    preload: List[str] = Field(default_factory=list)
    total: bool = False

    @field_validator("preload", mode="before")
    @classmethod
    def split_preload(cls, value: Any) -> List[str]:
        """
        preload may be repeated and/or comma separated: ?preload=a,b&preload=c.d
        """
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [path.strip() for item in value for path in str(item).split(",") if path.strip()]


def column_expression(model: Any, name: str) -> Any:
    """
    :param model: mapped class
    :param name: user supplied field name
    :return: the mapped column attribute, or a plain `sqlalchemy.column` when the name
             doesn't resolve to a column, so the database rejects it
    """
    attr_name = resolve_field(name, model)
    if attr_name in sqla_inspect(model).column_attrs:
        return getattr(model, attr_name)
    crudrest.log.debug(f"{model.__name__} has no column {attr_name}")
    return sqlalchemy.column(attr_name)


def column_value(column: Any, value: Any) -> Any:
    """
    Convert query string values (always strings) to the column python type
    """
    if hasattr(column, "property"):
        column = column.property.columns[0]
    return parse_attr(column, value)


@dataclass(frozen=True)
class QueryOption:
    """
    Base class of the query options, `apply` returns the modified query
    """

    phase = PHASE_FILTER

    def apply(self, query: Query, model: Any) -> Query:  # pragma: no cover
        raise NotImplementedError


@dataclass(frozen=True)
class Paginate(QueryOption):
    """
    LIMIT `limit` OFFSET `offset`
    """

    limit: int
    offset: int = 0

    phase = PHASE_PAGINATE

    def apply(self, query: Query, model: Any) -> Query:
        return query.limit(self.limit).offset(self.offset)


@dataclass(frozen=True)
class Order(QueryOption):
    """
    ORDER BY `field` [DESC]
    """

    field: str
    descending: bool = False

    phase = PHASE_ORDER

    @property
    def clause(self) -> str:
        """
        :return: textual form of the ordering, e.g. "title desc"
        """
        return f"{self.field} desc" if self.descending else self.field

    def apply(self, query: Query, model: Any) -> Query:
        column = column_expression(model, self.field)
        return query.order_by(column.desc() if self.descending else column)


@dataclass(frozen=True)
class Filter(QueryOption):
    """
    WHERE `field` = `value`
    """

    field: str
    value: Any

    def criterion(self, model: Any) -> Any:
        column = column_expression(model, self.field)
        return column == column_value(column, self.value)

    def apply(self, query: Query, model: Any) -> Query:
        return query.filter(self.criterion(model))


@dataclass(frozen=True, eq=False, init=False)
class Where(QueryOption):
    """
    Arbitrary sqlalchemy criteria, e.g. Where(Todo.done.is_(False))
    """

    criteria: Tuple[Any, ...]

    def __init__(self, *criteria: Any) -> None:
        object.__setattr__(self, "criteria", tuple(criteria))

    def apply(self, query: Query, model: Any) -> Query:
        return query.filter(*self.criteria)


@dataclass(frozen=True)
class Preload(QueryOption):
    """
    Eager load the relationship `path` ("orders.product"), the `options`
    (Filter and Where instances) restrict the rows loaded at the end of the path
    """

    path: str
    options: Tuple[QueryOption, ...] = ()

    phase = PHASE_PRELOAD

    def loader(self, model: Any) -> Any:
        """
        :return: sqlalchemy selectinload option chain for the path
        :raises ProcessFailedError: when a path segment is not a relationship
        """
        current_cls = model
        attributes = []
        for segment in self.path.split("."):
            rel_name = resolve_field(segment, current_cls)
            relationship = sqla_inspect(current_cls).relationships.get(rel_name)
            if relationship is None:
                raise ProcessFailedError(f"Invalid relationship: {current_cls.__name__}.{segment}")
            attributes.append(getattr(current_cls, rel_name))
            current_cls = relationship.mapper.class_

        criteria = []
        for option in self.options:
            if isinstance(option, Filter):
                criteria.append(option.criterion(current_cls))
            elif isinstance(option, Where):
                criteria.extend(option.criteria)
            else:
                crudrest.log.warning(f"{type(option).__name__} is not supported for preload {self.path}")
        if criteria:
            attributes[-1] = attributes[-1].and_(*criteria)

        options = None
        for attribute in attributes:
            options = options.selectinload(attribute) if options else selectinload(attribute)
        return options

    def apply(self, query: Query, model: Any) -> Query:
        return query.options(self.loader(model))


def apply_options(query: Query, model: Any, options: Iterable[QueryOption] = ()) -> Query:
    """
    Apply the options to the query, ordered by phase
    :param query: sqlalchemy query for `model`
    :param model: mapped class
    :param options: QueryOption instances
    :return: query
    """
    for option in sorted(options, key=lambda opt: opt.phase):
        query = option.apply(query, model)
    return query


def _page_limit(limit: int) -> int:
    max_limit = int(get_config("MAX_PAGE_LIMIT") or 0)
    if max_limit > 0 and limit > max_limit:
        crudrest.log.debug(f"limit {limit} exceeds MAX_PAGE_LIMIT {max_limit}")
        return max_limit
    return limit


def build_count_options(params: RequestParameters) -> List[QueryOption]:
    """
    The options for the "total" count: only the filter
    """
    if params.filter_by and params.filter_value:
        return [Filter(params.filter_by, params.filter_value)]
    return []


def build_query_options(params: RequestParameters) -> List[QueryOption]:
    """
    - limit > 0: Paginate(limit, offset)
    - order_by: Order(order_by, desc)
    - filter_by and filter_value: Filter(filter_by, filter_value)
    - a Preload per preload path
    """
    options = []
    if params.limit > 0:
        options.append(Paginate(_page_limit(params.limit), max(params.offset, 0)))
    if params.order_by:
        options.append(Order(params.order_by, params.desc))
    options.extend(build_count_options(params))
    options.extend(Preload(path) for path in params.preload)
    return options
