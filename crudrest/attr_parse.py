import datetime
import crudrest
import sqlalchemy
from .errors import BindFailedError

TRUE_VALUES = {"1", "t", "true", "y", "yes", "on"}
FALSE_VALUES = {"0", "f", "false", "n", "no", "off"}


def _parse_bool(attr_val):
    if isinstance(attr_val, bool):
        return attr_val
    if isinstance(attr_val, (int, float)) and attr_val in (0, 1):
        return bool(attr_val)
    lowered = str(attr_val).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {attr_val}")


def parse_attr(column, attr_val):
    """
    Parse the supplied `attr_val` so it can be saved in (or compared with) the SQLAlchemy `column`

    :param column: SQLAlchemy column
    :param attr_val: request value (json body value or query string)
    :return: processed value
    :raises BindFailedError: when the value can't be converted
    """
    if attr_val is None:
        return attr_val

    if getattr(column, "python_type", None):
        # It's possible for a column to specify a custom python_type to use for deserialization
        return column.python_type(attr_val)

    try:
        python_type = column.type.python_type
    except NotImplementedError as exc:
        """
        This happens when a custom type has been implemented (or for sqlalchemy.column() clauses
        without type), in which case the value is passed as is
        """
        crudrest.log.debug(exc)
        return attr_val

    # skip type coercion on JSON columns, since they could be anything
    if isinstance(column.type, sqlalchemy.types.JSON):
        return attr_val

    try:
        if python_type is bool:
            return _parse_bool(attr_val)
        if isinstance(attr_val, bool):
            raise ValueError("booleans are only accepted for boolean columns")
        if python_type is int and isinstance(attr_val, float) and not attr_val.is_integer():
            raise ValueError("not an integer")
        if isinstance(attr_val, python_type):
            return attr_val
        if python_type is datetime.datetime:
            # str(datetime.datetime.now()) and isoformat() representations
            return datetime.datetime.fromisoformat(str(attr_val))
        if python_type is datetime.date:
            return datetime.date.fromisoformat(str(attr_val))
        if python_type is datetime.time:
            return datetime.time.fromisoformat(str(attr_val))
        return python_type(attr_val)
    except (TypeError, ValueError) as exc:
        raise BindFailedError(f'Invalid value "{attr_val}" for {column.name}: {exc}')
