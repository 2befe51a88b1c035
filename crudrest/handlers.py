"""
Request handlers: transport independent CRUD operations.
Every handler returns a (result, additions) tuple, the additions are merged into the response body
"""
from typing import Any, Callable, Dict, List, Tuple
import crudrest
from .association import AssociationEngine
from .errors import CrudError, MissingIdentifierError, MissingParentIdentifierError
from .persistence import Persistence
from .query import RequestParameters, build_count_options, build_query_options

HandlerResult = Tuple[Any, List[Dict[str, Any]]]

DELETED = {"deleted": True}


def _require(identity: Any, error: type) -> None:
    if identity is None or identity == "":
        raise error()


def total_addition(count: Callable[[], int], target: str) -> Dict[str, Any]:
    """
    Count failures don't fail the request, the error is returned as "totalError"
    """
    try:
        return {"total": count()}
    except CrudError as exc:
        crudrest.log.warning(f"Counting {target} failed: {exc.message}")
        return {"totalError": exc.message}


def list_models(persistence: Persistence, model: Any, params: RequestParameters) -> HandlerResult:
    options = build_query_options(params)
    crudrest.log.debug(f"list {model.__name__} {options}")
    result = persistence.execute_read(model, options)
    additions = []
    if params.total:
        count_options = build_count_options(params)
        additions.append(total_addition(lambda: persistence.execute_count(model, count_options), model.__name__))
    return result, additions


def get_model(persistence: Persistence, model: Any, identity: Any, params: RequestParameters) -> HandlerResult:
    _require(identity, MissingIdentifierError)
    return persistence.get_by_identity(model, identity, build_query_options(params)), []


def create_model(persistence: Persistence, model: Any, payload: Any) -> HandlerResult:
    instance = model._s_bind(payload)
    persistence.execute_write(instance)
    crudrest.log.debug(f"Created {instance}")
    return instance, []


def update_model(persistence: Persistence, model: Any, identity: Any, payload: Any) -> HandlerResult:
    _require(identity, MissingIdentifierError)
    instance = persistence.get_by_identity(model, identity)
    instance._s_patch(payload)
    persistence.execute_write(instance)
    return instance, []


def delete_model(persistence: Persistence, model: Any, identity: Any) -> HandlerResult:
    _require(identity, MissingIdentifierError)
    instance = persistence.get_by_identity(model, identity)
    persistence.execute_delete(instance)
    crudrest.log.debug(f"Deleted {instance}")
    return None, [dict(DELETED)]


def get_nested(persistence: Persistence, parent_model: Any, parent_id: Any, field: str, params: RequestParameters) -> HandlerResult:
    _require(parent_id, MissingParentIdentifierError)
    engine = AssociationEngine(persistence)
    parent = engine.resolve_parent(parent_model, parent_id)
    result = engine.fetch_field(parent, field, build_query_options(params))
    additions = []
    if params.total and engine.is_association(parent_model, field):
        count_options = build_count_options(params)
        additions.append(total_addition(lambda: engine.count_field(parent, field, count_options), f"{parent}.{field}"))
    return result, additions


def create_nested(persistence: Persistence, parent_model: Any, parent_id: Any, field: str, child_model: Any, payload: Any) -> HandlerResult:
    _require(parent_id, MissingParentIdentifierError)
    parent = AssociationEngine(persistence).create(parent_model, parent_id, field, child_model, payload)
    return parent, []


def delete_nested(
    persistence: Persistence, parent_model: Any, parent_id: Any, field: str, child_model: Any, child_id: Any
) -> HandlerResult:
    _require(parent_id, MissingParentIdentifierError)
    _require(child_id, MissingIdentifierError)
    AssociationEngine(persistence).unlink(parent_model, parent_id, field, child_model, child_id)
    return None, [dict(DELETED)]
