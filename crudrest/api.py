"""
flask_restful Api subclass where we add the expose_object and expose_nested methods,
these methods create the Resource classes and url rules for CrudModel subclasses
"""
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional
import werkzeug
from flask_restful import Api as FRApi, abort
from flask_restful.utils import cors
import crudrest
from .config import get_config, is_debug
from .crud_init import CRUD
from .errors import CrudError, SystemValidationError
from .fields import resolve_field
from .resources import CrudNestedAPI, CrudRestAPI
from .response import error_body

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE")
NESTED_HTTP_METHODS = ("GET", "POST", "DELETE")
COLLECTION_METHODS = ("GET", "POST")
INSTANCE_METHODS = ("GET", "PUT", "DELETE")

API_CLASSNAME_FMT = "{}_API"
NESTED_CLASSNAME_FMT = "{}_X_{}_API"


# pylint: disable=protected-access,invalid-name,logging-format-interpolation
class CrudApi(FRApi):
    """
    Subclass of the flask_restful Api class where we add the expose_object and expose_nested methods

    api = CrudApi(app)
    api.expose_object(Todo)
    api.expose_object(Project)
    api.expose_nested(Project, "todos", Todo)
    """

    def __init__(self, app, persistence=None, prefix="", **kwargs):
        """
        :param app: Flask app, the flask_sqlalchemy extension must have been initialized when no persistence is given
        :param persistence: Persistence implementation
        :param prefix: url prefix, e.g. "/api"
        :param kwargs: CRUD configuration attributes, e.g. cors_domain="*"
        """
        self.crud = CRUD(app, persistence=persistence, **kwargs)
        self.persistence = self.crud.persistence
        self._collections = {}
        super().__init__(app, prefix=prefix)

    def _methods(self, methods: Iterable[str], allowed: Iterable[str]):
        methods = [method.upper() for method in methods]
        return [method for method in allowed if method in methods]

    def expose_object(self, model: Any, path: Optional[str] = None, methods: Iterable[str] = HTTP_METHODS, **properties) -> Any:
        """This methods creates the API url endpoints for a CrudModel subclass

        creates a class of the form

        @api_decorator
        class Todo_API(CrudRestAPI):
            Model = Todo

        and adds it as an api resource to /todos (GET, POST) and /todos/<Todoid> (GET, PUT, DELETE)

        :param model: CrudModel subclass
        :param path: collection path, defaults to model._s_collection_name
        :param methods: the HTTP methods to expose
        :param properties: additional class attributes of the Resource
        :return: the Resource class
        """
        model._s_identity_field  # raises SystemValidationError when the model has no usable identity
        collection = (path or model._s_collection_name).strip("/")
        api_class_name = API_CLASSNAME_FMT.format(model.__name__)
        properties["Model"] = model
        properties["persistence"] = self.persistence
        api_class = api_decorator(type(api_class_name, (CrudRestAPI,), properties))

        url = f"/{collection}"
        endpoint = f"api.{collection}"
        collection_methods = self._methods(methods, COLLECTION_METHODS)
        if collection_methods:
            crudrest.log.info(f"Exposing {model.__name__} on {url}, endpoint: {endpoint}, methods: {collection_methods}")
            self.add_resource(api_class, url, endpoint=endpoint, methods=collection_methods)

        url = f"/{collection}/<string:{model._s_object_id}>"
        endpoint = f"api.{collection}Id"
        instance_methods = self._methods(methods, INSTANCE_METHODS)
        if instance_methods:
            crudrest.log.info(f"Exposing {model.__name__} instances on {url}, endpoint: {endpoint}, methods: {instance_methods}")
            self.add_resource(api_class, url, endpoint=endpoint, methods=instance_methods)

        self._collections[model] = collection
        return api_class

    def expose_nested(self, parent: Any, field: str, child: Any, methods: Iterable[str] = NESTED_HTTP_METHODS, **properties) -> Any:
        """
        Expose a parent/child relationship to the REST API,
        creates a class of the form

        @api_decorator
        class Project_X_todos_API(CrudNestedAPI):
            Model = Project
            Child = Todo
            field = "todos"

        and adds it as an api resource to /projects/<Projectid>/todos (GET, POST)
        and /projects/<Projectid>/todos/<Todoid> (DELETE)
        Only relationships can be exposed, nested routes never serve plain column values.

        :param parent: parent CrudModel subclass
        :param field: relationship name of the parent
        :param child: CrudModel subclass, the relationship target
        :param methods: the HTTP methods to expose
        :return: the Resource class
        :raises SystemValidationError: when `field` isn't a relationship of `parent` targeting `child`
        """
        rel_name = resolve_field(field, parent)
        relationship = parent._s_relationships.get(rel_name, None)
        if relationship is None:
            raise SystemValidationError(f'"{parent.__name__}" has no relationship "{field}"')
        target = relationship.mapper.class_
        if not (isinstance(child, type) and issubclass(child, target)):
            raise SystemValidationError(f'"{parent.__name__}.{rel_name}" targets {target.__name__}, not {child}')

        parent_object_id = parent._s_object_id
        child_object_id = child._s_object_id
        if parent_object_id == child_object_id:
            # self-referencing relationship: the url parameters need different names
            child_object_id += "2"

        properties["Model"] = parent
        properties["Child"] = child
        properties["field"] = rel_name
        properties["parent_object_id"] = parent_object_id
        properties["child_object_id"] = child_object_id
        properties["persistence"] = self.persistence
        api_class_name = NESTED_CLASSNAME_FMT.format(parent.__name__, rel_name)
        api_class = api_decorator(type(api_class_name, (CrudNestedAPI,), properties))

        collection = self._collections.get(parent, parent._s_collection_name)
        url = f"/{collection}/<string:{parent_object_id}>/{field.strip('/')}"
        endpoint = f"api.{collection}.{rel_name}"
        nested_methods = self._methods(methods, COLLECTION_METHODS)
        if nested_methods:
            crudrest.log.info(f"Exposing relationship {rel_name} on {url}, endpoint: {endpoint}, methods: {nested_methods}")
            self.add_resource(api_class, url, endpoint=endpoint, methods=nested_methods)

        url = f"{url}/<string:{child_object_id}>"
        endpoint = f"{endpoint}Id"
        if "DELETE" in self._methods(methods, ("DELETE",)):
            crudrest.log.info(f"Exposing {rel_name} instances on {url}, endpoint: {endpoint}")
            self.add_resource(api_class, url, endpoint=endpoint, methods=["DELETE"])

        return api_class


def api_decorator(cls: type) -> type:
    """Decorator for the API views:
        - add cors
        - add generic exception handling

    :param cls: The class that will be decorated (e.g. CrudRestAPI, CrudNestedAPI)
    :return: decorated class
    """
    cors_domain = get_config("cors_domain")
    for method_name in ["get", "post", "put", "delete"]:
        method = getattr(cls, method_name, None)
        if not method:
            continue

        decorated_method = method
        # Add cors
        if cors_domain is not None:
            decorated_method = cors.crossdomain(origin=cors_domain)(decorated_method)
        # Add exception handling
        decorated_method = http_method_decorator(decorated_method)

        setattr(cls, method_name, decorated_method)

    return cls


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the supported HTTP methods (get, post, put, delete)
    - commit the database
    - convert the exceptions to a {"error": message} response

    :param fun: resource method
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(self, *args, **kwargs):
        """Wrap the method and perform error handling
        :return: result of the wrapped method
        """
        status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
        try:
            result = fun(self, *args, **kwargs)
            self.persistence.commit()
            return result

        except CrudError as exc:
            status_code = exc.status_code
            body = error_body(exc)

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            body = {"error": exc.description}

        except Exception as exc:
            crudrest.log.exception(exc)
            body = {"error": str(exc) if is_debug() else "Logging Disabled"}

        self.persistence.rollback()
        crudrest.log.debug(f"{fun.__name__} failed ({status_code}): {body['error']}")
        abort(status_code, **body)

    return method_wrapper
