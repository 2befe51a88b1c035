"""
Parent/child relationship operations of the nested routes
(/projects/<Projectid>/todos and /projects/<Projectid>/todos/<Todoid>)
"""
from typing import Any, Iterable
import crudrest
from .errors import ProcessFailedError
from .fields import resolve_field
from .model import is_zero_identity
from .persistence import Persistence
from .query import QueryOption


class AssociationEngine:
    """
    Fetch, count, create/link and unlink the children of a parent instance
    """

    def __init__(self, persistence: Persistence) -> None:
        self.persistence = persistence

    def resolve_parent(self, parent_model: Any, parent_id: Any) -> Any:
        """
        :raises NotFoundError: when the parent doesn't exist
        """
        return self.persistence.get_by_identity(parent_model, parent_id)

    @staticmethod
    def is_association(parent_model: Any, field: str) -> bool:
        """
        :return: True if `field` is a relationship of `parent_model`
        """
        return resolve_field(field, parent_model) in parent_model._s_relationships

    def fetch_field(self, parent: Any, field: str, options: Iterable[QueryOption] = ()) -> Any:
        """
        Fetch the related rows of a relationship field, or the raw value of a column field
        :param parent: parent instance
        :param field: field name
        :param options: query options applied to the related rows
        :return: list of children, a single child (or None), or the column value
        """
        parent_model = type(parent)
        attr_name = resolve_field(field, parent_model)
        if attr_name in parent_model._s_relationships:
            return self.persistence.execute_association_read(parent, attr_name, options)
        if attr_name in parent_model._s_column_dict:
            return getattr(parent, attr_name)
        raise ProcessFailedError(f'"{parent_model.__name__}" has no field "{field}"')

    def count_field(self, parent: Any, field: str, options: Iterable[QueryOption] = ()) -> int:
        """
        :return: number of rows related to `parent` through the relationship `field`
        """
        attr_name = resolve_field(field, type(parent))
        return self.persistence.execute_association_count(parent, attr_name, options)

    def fetch(self, parent_model: Any, parent_id: Any, field: str, options: Iterable[QueryOption] = ()) -> Any:
        parent = self.resolve_parent(parent_model, parent_id)
        return self.fetch_field(parent, field, options)

    def create(self, parent_model: Any, parent_id: Any, field: str, child_model: Any, payload: Any) -> Any:
        """
        Create a child and append it to the parent relationship.
        When the payload has a non-zero identity, the existing child is linked
        and the other payload values are ignored.

        :return: the parent instance
        :raises NotFoundError: when the parent or the child to link doesn't exist
        """
        attr_name = resolve_field(field, parent_model)
        identity = child_model._s_payload_identity(payload)
        parent = self.resolve_parent(parent_model, parent_id)
        if is_zero_identity(identity):
            child = child_model._s_bind(payload)
            self.persistence.execute_write(child)
            crudrest.log.debug(f"Created {child} for {parent}.{attr_name}")
        else:
            child = self.persistence.get_by_identity(child_model, identity)
            crudrest.log.debug(f"Linking {child} to {parent}.{attr_name}")
        self.persistence.execute_association_append(parent, attr_name, child)
        return parent

    def unlink(self, parent_model: Any, parent_id: Any, field: str, child_model: Any, child_id: Any) -> None:
        """
        Remove the child from the parent relationship, the child itself is not deleted
        :raises NotFoundError: when the parent or the child doesn't exist
        """
        attr_name = resolve_field(field, parent_model)
        parent = self.resolve_parent(parent_model, parent_id)
        child = self.persistence.get_by_identity(child_model, child_id)
        self.persistence.execute_association_remove(parent, attr_name, child)
