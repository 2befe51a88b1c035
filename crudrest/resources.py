#  This file contains the flask-restful "Resource" classes:
#  - CrudRestAPI for exposed collections and instances (/todos, /todos/<Todoid>)
#  - CrudNestedAPI for exposed parent/child relationships (/projects/<Projectid>/todos[/<Todoid>])
#
#  CrudApi.expose_object and CrudApi.expose_nested create subclasses with the class attributes set
#
from flask import jsonify, request
from flask_restful import Resource as FRResource
from .handlers import create_model, create_nested, delete_model, delete_nested, get_model, get_nested, list_models, update_model
from .request import get_payload, parse_request_parameters
from .response import success_body


class Resource(FRResource):
    """
    Superclass for the exposed endpoints
    """

    # Model: the CrudModel subclass that will be returned when a http method is invoked
    Model = None
    # persistence used by the handlers, set by the CrudApi
    persistence = None


class CrudRestAPI(Resource):
    """
    Route handler for the collection and instance endpoints
    """

    def _object_id(self, kwargs):
        return kwargs.get(self.Model._s_object_id, None)

    def get(self, **kwargs):
        """
        GET /todos : list, GET /todos/<Todoid> : single instance
        """
        params = parse_request_parameters(request.args)
        object_id = self._object_id(kwargs)
        if object_id is None:
            result, additions = list_models(self.persistence, self.Model, params)
        else:
            result, additions = get_model(self.persistence, self.Model, object_id, params)
        return jsonify(success_body(result, *additions, element_type=self.Model))

    def post(self, **kwargs):
        """
        POST /todos : create
        """
        payload = get_payload(request)
        result, additions = create_model(self.persistence, self.Model, payload)
        return jsonify(success_body(result, *additions))

    def put(self, **kwargs):
        """
        PUT /todos/<Todoid> : update
        """
        object_id = self._object_id(kwargs)
        payload = get_payload(request)
        result, additions = update_model(self.persistence, self.Model, object_id, payload)
        return jsonify(success_body(result, *additions))

    def delete(self, **kwargs):
        """
        DELETE /todos/<Todoid>
        """
        result, additions = delete_model(self.persistence, self.Model, self._object_id(kwargs))
        return jsonify(success_body(result, *additions))


class CrudNestedAPI(Resource):
    """
    Route handler for the parent/child endpoints, `Model` is the parent class, `Child` the child class
    """

    Child = None
    field = None
    parent_object_id = None
    child_object_id = None

    def get(self, **kwargs):
        """
        GET /projects/<Projectid>/todos
        """
        params = parse_request_parameters(request.args)
        parent_id = kwargs.get(self.parent_object_id, None)
        result, additions = get_nested(self.persistence, self.Model, parent_id, self.field, params)
        return jsonify(success_body(result, *additions, element_type=self.Child))

    def post(self, **kwargs):
        """
        POST /projects/<Projectid>/todos : create or link a child, returns the parent
        """
        parent_id = kwargs.get(self.parent_object_id, None)
        payload = get_payload(request)
        result, additions = create_nested(self.persistence, self.Model, parent_id, self.field, self.Child, payload)
        return jsonify(success_body(result, *additions))

    def delete(self, **kwargs):
        """
        DELETE /projects/<Projectid>/todos/<Todoid> : unlink the child
        """
        parent_id = kwargs.get(self.parent_object_id, None)
        child_id = kwargs.get(self.child_object_id, None)
        result, additions = delete_nested(self.persistence, self.Model, parent_id, self.field, self.Child, child_id)
        return jsonify(success_body(result, *additions))
