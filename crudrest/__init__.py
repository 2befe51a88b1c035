# flake8: noqa: F401
#
# crudrest: automatic REST CRUD endpoints for SQLAlchemy models
#
# pylint: disable=wrong-import-position
from .__about__ import __version__, __description__
from .crud_init import CRUD, log
from .errors import (
    CrudError,
    BindFailedError,
    MissingIdentifierError,
    MissingParentIdentifierError,
    IdentityMismatchError,
    NotFoundError,
    ProcessFailedError,
    SystemValidationError,
)
from .config import get_config, load_config
from .fields import normalize_name, resolve_field
from .model import CrudModel, BasicModel, is_zero_identity
from .query import RequestParameters, Paginate, Order, Filter, Where, Preload, apply_options, build_query_options, build_count_options
from .persistence import Persistence, SQLAlchemyPersistence
from .association import AssociationEngine
from .response import response_key, success_body, error_body
from .json_encoder import CrudJSONEncoder, CrudJSONProvider
from .api import CrudApi

__all__ = (
    "__version__",
    "__description__",
    "CRUD",
    "log",
    # errors
    "CrudError",
    "BindFailedError",
    "MissingIdentifierError",
    "MissingParentIdentifierError",
    "IdentityMismatchError",
    "NotFoundError",
    "ProcessFailedError",
    "SystemValidationError",
    # config
    "get_config",
    "load_config",
    # models
    "normalize_name",
    "resolve_field",
    "CrudModel",
    "BasicModel",
    "is_zero_identity",
    # query options
    "RequestParameters",
    "Paginate",
    "Order",
    "Filter",
    "Where",
    "Preload",
    "apply_options",
    "build_query_options",
    "build_count_options",
    # persistence
    "Persistence",
    "SQLAlchemyPersistence",
    "AssociationEngine",
    # response
    "response_key",
    "success_body",
    "error_body",
    "CrudJSONEncoder",
    "CrudJSONProvider",
    "CrudApi",
)
