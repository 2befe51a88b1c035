# crudrest to json encoding

import datetime
import decimal
import enum
import json
from flask.json.provider import DefaultJSONProvider
from uuid import UUID
import crudrest
from .model import CrudModel
from typing import Any


class _CrudJSONEncoder:
    """
    JSON encoding for CrudModel instances and common types
    """

    # pylint: disable=too-many-return-statements,arguments-differ,method-hidden
    def default(self, obj: Any, **kwargs: Any) -> Any:
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if obj is None:
            return None
        if isinstance(obj, CrudModel):
            return obj.to_dict()
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        if isinstance(obj, enum.Enum):
            return obj.value
        if isinstance(obj, UUID):  # pragma: no cover
            return str(obj)
        if isinstance(obj, decimal.Decimal):  # pragma: no cover
            return float(obj)
        if isinstance(obj, bytes):  # pragma: no cover
            if obj == b"":
                return ""
            crudrest.log.debug("CrudJSONEncoder: serializing bytes obj")
            return obj.hex()

        crudrest.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class CrudJSONProvider(_CrudJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding, set as `app.json`
    """

    pass


class CrudJSONEncoder(_CrudJSONEncoder, json.JSONEncoder):
    """
    Common JSON encoding, e.g. json.dumps(todo, cls=CrudJSONEncoder)
    """

    pass
