"""
Response body shaping: {<key>: <result>, <additions>...} and {"error": <message>}
"""
from typing import Any, Dict, Optional
from .model import CrudModel

DEFAULT_KEY = "data"


def response_key(value: Any, element_type: Optional[type] = None) -> str:
    """
    - a model instance: its class name, e.g. "Todo"
    - a list of model instances: the element class name + "s", e.g. "Todos"
    - an empty list: `element_type` name + "s" when given
    - anything else: "data"
    """
    if isinstance(value, CrudModel):
        return type(value).__name__
    if isinstance(value, (list, tuple)):
        if value and isinstance(value[0], CrudModel):
            return type(value[0]).__name__ + "s"
        if not value and element_type is not None:
            return element_type.__name__ + "s"
    return DEFAULT_KEY


def success_body(value: Any, *additions: Dict[str, Any], element_type: Optional[type] = None) -> Dict[str, Any]:
    """
    :param value: handler result, omitted from the body when None
    :param additions: dicts merged into the body, e.g. {"total": 5}
    :param element_type: model class used to name an empty list
    :return: response body
    """
    body = {}
    if value is not None:
        body[response_key(value, element_type)] = value
    for addition in additions:
        body.update(addition)
    return body


def error_body(error: Any) -> Dict[str, str]:
    return {"error": getattr(error, "message", None) or str(error)}
