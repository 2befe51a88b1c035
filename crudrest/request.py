"""
Binding of the flask request to RequestParameters and json payloads
"""
from typing import Any
from pydantic import ValidationError
from werkzeug.datastructures import MultiDict
from .errors import BindFailedError
from .query import RequestParameters

SCALAR_PARAMETERS = ("limit", "offset", "order_by", "desc", "filter_by", "filter_value", "total")


def parse_request_parameters(args: MultiDict) -> RequestParameters:
    """
    :param args: request.args
    :return: RequestParameters, empty values are ignored
    :raises BindFailedError: for values that can't be parsed, e.g. limit=abc
    """
    values = {}
    for name in SCALAR_PARAMETERS:
        value = args.get(name)
        if value not in (None, ""):
            values[name] = value
    values["preload"] = args.getlist("preload")
    try:
        return RequestParameters.model_validate(values)
    except ValidationError as exc:
        errors = ", ".join(f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise BindFailedError(errors)


def get_payload(request: Any) -> Any:
    """
    :param request: flask request
    :return: the parsed json body, the content type is not checked
    :raises BindFailedError: when the body isn't valid json
    """
    payload = request.get_json(force=True, silent=True)
    if payload is None:
        raise BindFailedError("Invalid json body")
    return payload
