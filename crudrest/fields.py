"""
Field name resolution

User supplied field names ("FilterBy", "filter_by", "filter-by", "Title") are
resolved to the attribute names of a mapped class by comparing their normalized
form: lowercase with the separators " -_/" removed.
"""
from functools import lru_cache
from typing import Any, Dict, Optional
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.exc import NoInspectionAvailable

_SEPARATORS = str.maketrans("", "", " -_/")


def normalize_name(name: str) -> str:
    """
    :param name: user supplied field name
    :return: lowercase name without separators, e.g. "Filter_By" => "filterby"
    """
    return str(name).lower().translate(_SEPARATORS)


@lru_cache(maxsize=256)
def field_table(model: type) -> Optional[Dict[str, str]]:
    """
    Lookup table normalized name => attribute name for the mapped `model`.
    When two attributes normalize to the same name, the first declared one wins.

    :param model: mapped class
    :return: lookup dict, None if `model` isn't mapped
    """
    try:
        mapper = sqla_inspect(model)
    except NoInspectionAvailable:
        return None

    table = {}
    for attr in mapper.attrs:
        table.setdefault(normalize_name(attr.key), attr.key)
    return table


def resolve_field(name: str, model: Any) -> str:
    """Resolve a user supplied field name to the attribute name of `model`

    - `model` may be a mapped class or an instance of one
    - for a non-mapped type the name is returned unchanged
    - when nothing matches, the normalized name is returned so the database
      can reject it later

    resolve_field(resolve_field(n, m), m) == resolve_field(n, m)

    :param name: field name
    :param model: mapped class or instance
    :return: attribute name
    """
    model_class = model if isinstance(model, type) else type(model)
    table = field_table(model_class)
    if table is None:
        return name
    normalized = normalize_name(name)
    return table.get(normalized, normalized)
