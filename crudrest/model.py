"""
CrudModel : mixin for SQLAlchemy declarative classes that will be exposed by the CrudApi
BasicModel : CrudModel with an integer id, timestamps and soft delete
"""
import datetime
from functools import lru_cache
from typing import Any, Dict, FrozenSet, List, Tuple
from sqlalchemy import Column, DateTime, Integer, event
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.orm import Session, with_loader_criteria
import crudrest
from .attr_parse import parse_attr
from .errors import BindFailedError, IdentityMismatchError, SystemValidationError
from .fields import resolve_field
from .util import classproperty


class CrudModel:
    """
    Mixin for the SQLAlchemy models that can be exposed with CrudApi.expose_object
    """

    # the attribute used as identity, defaults to the (single column) primary key
    identity_field = None
    # the url collection name, defaults to the lowercase class name + "s"
    collection_name = None
    # when False, the identity in a create payload is dropped
    allow_client_generated_ids = False
    # attributes that will not be serialized
    exclude_attrs = ()
    # attributes that will not be set from a request payload
    read_only_attrs = ()

    @classproperty
    @lru_cache(maxsize=256)
    def _s_identity_field(cls) -> str:
        """
        :return: name of the attribute holding the identity, e.g. "id"
        """
        if cls.identity_field:
            return cls.identity_field
        mapper = sqla_inspect(cls)
        primary_keys = mapper.primary_key
        if len(primary_keys) != 1:
            raise SystemValidationError(f"{cls.__name__} has no single column primary key, set {cls.__name__}.identity_field")
        return mapper.get_property_by_column(primary_keys[0]).key

    @classproperty
    def _s_object_id(cls) -> str:
        """
        :return: the url parameter name of the identity: class name + identity attribute, e.g. "Todoid"
        """
        return cls.__name__ + cls._s_identity_field

    @classproperty
    def _s_collection_name(cls) -> str:
        """
        :return: the url path segment, e.g. "todos"
        """
        return cls.collection_name or cls.__name__.lower() + "s"

    @classproperty
    @lru_cache(maxsize=256)
    def _s_column_dict(cls) -> Dict[str, Column]:
        """
        :return: attribute name => column
        """
        return {prop.key: prop.columns[0] for prop in sqla_inspect(cls).column_attrs}

    @classproperty
    def _s_columns(cls) -> List[str]:
        return list(cls._s_column_dict)

    @classproperty
    @lru_cache(maxsize=256)
    def _s_relationships(cls) -> Dict[str, Any]:
        """
        :return: relationship name => sqlalchemy RelationshipProperty
        """
        return {rel.key: rel for rel in sqla_inspect(cls).relationships}

    def identity(self) -> Tuple[str, Any]:
        """
        :return: (identity attribute name, current identity value)
        """
        field = self._s_identity_field
        return field, getattr(self, field, None)

    @classmethod
    def _s_parse_attr_value(cls, attr_name: str, attr_val: Any) -> Any:
        """
        Parse the given request attribute value so it can be stored in the db
        :param attr_name: attribute name
        :param attr_val: attribute value
        :return: parsed value
        """
        return parse_attr(cls._s_column_dict[attr_name], attr_val)

    @classmethod
    def _s_parse_rel_value(cls, rel_name: str, rel_val: Any) -> Any:
        """
        Bind the nested payload of a relationship to new instances of the related class
        """
        relationship = cls._s_relationships[rel_name]
        target = relationship.mapper.class_
        if rel_val is None:
            return [] if relationship.uselist else None
        if relationship.uselist:
            if not isinstance(rel_val, list):
                raise BindFailedError(f"{cls.__name__}.{rel_name} should be a list")
            return [target._s_bind(item) for item in rel_val]
        return target._s_bind(rel_val)

    @classmethod
    def _s_parse_payload(cls, payload: Any, with_relationships: bool = True) -> Dict[str, Any]:
        """
        Resolve the payload keys to attribute names and parse the values,
        unknown and read-only keys are ignored
        :param payload: request json body
        :param with_relationships: also bind relationship keys
        :return: attribute name => parsed value
        """
        if not isinstance(payload, dict):
            raise BindFailedError(f"Invalid {cls.__name__} payload, expected a json object")

        attributes = {}
        for key, value in payload.items():
            attr_name = resolve_field(key, cls)
            if attr_name in cls.read_only_attrs:
                crudrest.log.debug(f"Ignoring read-only attribute {cls.__name__}.{attr_name}")
            elif attr_name in cls._s_column_dict:
                attributes[attr_name] = cls._s_parse_attr_value(attr_name, value)
            elif attr_name in cls._s_relationships and with_relationships:
                attributes[attr_name] = cls._s_parse_rel_value(attr_name, value)
            else:
                crudrest.log.debug(f"Ignoring attribute {cls.__name__}.{key}")
        return attributes

    @classmethod
    def _s_payload_identity(cls, payload: Any) -> Any:
        """
        :return: the parsed identity value in the payload, None if absent
        """
        if not isinstance(payload, dict):
            raise BindFailedError(f"Invalid {cls.__name__} payload, expected a json object")
        for key, value in payload.items():
            if resolve_field(key, cls) == cls._s_identity_field:
                return cls._s_parse_attr_value(cls._s_identity_field, value)
        return None

    @classmethod
    def _s_bind(cls, payload: Any) -> "CrudModel":
        """
        Create a new (transient) instance from a request payload
        :param payload: request json body
        :return: new instance
        """
        attributes = cls._s_parse_payload(payload)
        identity_field = cls._s_identity_field
        if not cls.allow_client_generated_ids and attributes.pop(identity_field, None) is not None:
            crudrest.log.warning(f"Ignoring client generated {cls.__name__}.{identity_field}")
        return cls(**attributes)

    def _s_patch(self, payload: Any) -> None:
        """
        Update the attributes of this instance from a request payload,
        relationships in the payload are ignored
        :param payload: request json body
        :raises IdentityMismatchError: when the payload holds another identity
        """
        attributes = self._s_parse_payload(payload, with_relationships=False)
        field, current = self.identity()
        new = attributes.pop(field, None)
        if new is not None and new != current:
            raise IdentityMismatchError(f"{type(self).__name__}.{field} {current} != {new}")
        for attr_name, attr_val in attributes.items():
            setattr(self, attr_name, attr_val)

    def to_dict(self, _ancestors: FrozenSet[int] = frozenset()) -> Dict[str, Any]:
        """
        Serialize the columns and the already loaded relationships.
        Relationships pointing back to an object that is being serialized are skipped.
        :return: dict
        """
        ancestors = _ancestors | {id(self)}
        unloaded = sqla_inspect(self).unloaded
        result = {}
        for attr_name in self._s_columns:
            if attr_name not in self.exclude_attrs:
                result[attr_name] = getattr(self, attr_name)

        for rel_name, relationship in self._s_relationships.items():
            if rel_name in unloaded or rel_name in self.exclude_attrs:
                continue
            value = getattr(self, rel_name)
            if relationship.uselist:
                result[rel_name] = [item.to_dict(ancestors) for item in value if id(item) not in ancestors]
            elif value is None:
                result[rel_name] = None
            elif id(value) not in ancestors:
                result[rel_name] = value.to_dict(ancestors)
        return result

    def __repr__(self) -> str:
        field, value = self.identity()
        return f"<{type(self).__name__} {field}={value}>"


def is_zero_identity(value: Any) -> bool:
    """
    The zero identity means "no identity": None, 0 or an empty string
    """
    return value is None or value == 0 or value == ""


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class BasicModel(CrudModel):
    """
    CrudModel with an autoincrement id, creation/update timestamps and soft delete:
    deleting an instance sets `deleted_at`, soft deleted rows are excluded from
    all queries unless the "include_deleted" execution option is set
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    read_only_attrs = ("created_at", "updated_at", "deleted_at")

    def soft_delete(self) -> None:
        self.deleted_at = _utcnow()


def is_soft_delete_model(model: Any) -> bool:
    model_class = model if isinstance(model, type) else type(model)
    return issubclass(model_class, BasicModel)


@event.listens_for(Session, "do_orm_execute")
def _exclude_soft_deleted(execute_state):
    """
    Add the `deleted_at IS NULL` criteria to every select of BasicModel rows,
    also to the relationship loaders started from that select
    """
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
        and not execute_state.execution_options.get("include_deleted", False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(BasicModel, lambda cls: cls.deleted_at.is_(None), include_aliases=True)
        )
