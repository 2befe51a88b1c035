"""
Persistence : the database operations used by the request handlers
SQLAlchemyPersistence : implementation on top of a flask_sqlalchemy session
"""
from contextlib import contextmanager
from typing import Any, Iterable, List, Optional
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import MANYTOONE, Query, with_parent
import crudrest
from .errors import MissingIdentifierError, NotFoundError, ProcessFailedError
from .model import is_soft_delete_model
from .query import Filter, QueryOption, apply_options


class Persistence:
    """
    The persistence capability: reads take QueryOption lists,
    failures are raised as ProcessFailedError
    """

    def execute_read(self, model: Any, options: Iterable[QueryOption] = ()) -> List[Any]:
        raise NotImplementedError

    def execute_read_one(self, model: Any, options: Iterable[QueryOption] = ()) -> Optional[Any]:
        raise NotImplementedError

    def execute_count(self, model: Any, options: Iterable[QueryOption] = ()) -> int:
        raise NotImplementedError

    def execute_write(self, instance: Any) -> Any:
        raise NotImplementedError

    def execute_delete(self, instance: Any) -> None:
        raise NotImplementedError

    def execute_association_read(self, parent: Any, field: str, options: Iterable[QueryOption] = ()) -> Any:
        raise NotImplementedError

    def execute_association_count(self, parent: Any, field: str, options: Iterable[QueryOption] = ()) -> int:
        raise NotImplementedError

    def execute_association_append(self, parent: Any, field: str, child: Any) -> None:
        raise NotImplementedError

    def execute_association_remove(self, parent: Any, field: str, child: Any) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError

    def remove(self) -> None:
        """
        Release the resources held for the current request
        """

    def get_by_identity(self, model: Any, identity: Any, options: Iterable[QueryOption] = ()) -> Any:
        """
        :param model: CrudModel subclass
        :param identity: identity value (path parameter or parsed payload value)
        :param options: additional query options (e.g. preloads)
        :return: the instance
        :raises NotFoundError: when no (non-deleted) row has this identity
        """
        if identity is None or identity == "":
            raise MissingIdentifierError()
        field = model._s_identity_field
        instance = self.execute_read_one(model, [*options, Filter(field, identity)])
        if instance is None:
            raise NotFoundError(f'Invalid "{model.__name__}" {field} "{identity}"')
        return instance


def _local_values(instance, relationship):
    """
    :return: the values of the instance columns on the local side of `relationship`
    """
    mapper = sqla_inspect(type(instance))
    return [getattr(instance, mapper.get_property_by_column(column).key) for column in relationship.local_columns]


class SQLAlchemyPersistence(Persistence):
    """
    Persistence using the (scoped) session of a flask_sqlalchemy.SQLAlchemy instance
    """

    def __init__(self, db: Any) -> None:
        self.db = db

    @property
    def session(self) -> Any:
        return self.db.session

    @contextmanager
    def _process(self, action: str, target: Any):
        try:
            yield
        except SQLAlchemyError as exc:
            crudrest.log.warning(f"{action} {target} failed: {exc}")
            raise ProcessFailedError(exc)

    def query(self, model: Any) -> Query:
        """
        :return: query for model, without the soft deleted rows
        """
        query = self.session.query(model)
        if is_soft_delete_model(model):
            query = query.filter(model.deleted_at.is_(None))
        return query

    def execute_read(self, model, options=()):
        with self._process("read", model.__name__):
            return apply_options(self.query(model), model, options).all()

    def execute_read_one(self, model, options=()):
        with self._process("read", model.__name__):
            return apply_options(self.query(model), model, options).first()

    def execute_count(self, model, options=()):
        with self._process("count", model.__name__):
            return apply_options(self.query(model), model, options).order_by(None).count()

    def execute_write(self, instance):
        with self._process("write", instance):
            self.session.add(instance)
            self.session.flush()
        return instance

    def execute_delete(self, instance):
        with self._process("delete", instance):
            if is_soft_delete_model(instance):
                instance.soft_delete()
            else:
                self.session.delete(instance)
            self.session.flush()

    def association_query(self, parent: Any, field: str, options: Iterable[QueryOption] = ()) -> Query:
        """
        :return: query for the rows related to `parent` through the relationship `field`
        """
        relationship = sqla_inspect(type(parent)).relationships[field]
        target = relationship.mapper.class_
        query = self.query(target).filter(with_parent(parent, getattr(type(parent), field)))
        return apply_options(query, target, options)

    def execute_association_read(self, parent, field, options=()):
        relationship = sqla_inspect(type(parent)).relationships[field]
        if relationship.direction is MANYTOONE and all(value is None for value in _local_values(parent, relationship)):
            # unset foreign key, with_parent can't compare against NULL
            return None
        with self._process("read", f"{type(parent).__name__}.{field}"):
            query = self.association_query(parent, field, options)
            if relationship.uselist:
                return query.all()
            return query.first()

    def execute_association_count(self, parent, field, options=()):
        with self._process("count", f"{type(parent).__name__}.{field}"):
            return self.association_query(parent, field, options).order_by(None).count()

    def execute_association_append(self, parent, field, child):
        with self._process("append", f"{type(parent).__name__}.{field}"):
            if sqla_inspect(type(parent)).relationships[field].uselist:
                collection = getattr(parent, field)
                if child not in collection:
                    collection.append(child)
            else:
                setattr(parent, field, child)
            self.session.add(parent)
            self.session.flush()

    def execute_association_remove(self, parent, field, child):
        with self._process("remove", f"{type(parent).__name__}.{field}"):
            if sqla_inspect(type(parent)).relationships[field].uselist:
                collection = getattr(parent, field)
                if child in collection:
                    collection.remove(child)
                else:
                    crudrest.log.warning(f"{child} is not in {parent}.{field}")
            elif getattr(parent, field) is child:
                setattr(parent, field, None)
            else:
                crudrest.log.warning(f"{child} is not {parent}.{field}")
            self.session.flush()

    def commit(self):
        with self._process("commit", "session"):
            self.session.commit()

    def rollback(self):
        self.session.rollback()

    def remove(self):
        self.session.remove()
