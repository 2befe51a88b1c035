# Configuration settings should be set in app.config
# The get_config function falls back to the CRUD class attributes and the environment
# load_config reads a yaml (or json) file and prefixed environment variables into app.config
import os
import logging
from flask import current_app
import yaml
import crudrest
from typing import Any, Dict, Optional


def get_config(option: str) -> Optional[Any]:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        #
        result = getattr(crudrest.CRUD, option, os.environ.get(option, None))
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return crudrest.log.getEffectiveLevel() < logging.INFO


def _flatten(values: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    {"db": {"uri": "sqlite://"}} => {"DB_URI": "sqlite://"}
    """
    result = {}
    for key, value in values.items():
        name = f"{prefix}{str(key).upper()}"
        if isinstance(value, dict):
            result.update(_flatten(value, f"{name}_"))
        else:
            result[name] = value
    return result


def read_config_file(path: str) -> Dict[str, Any]:
    """
    Read a yaml or json configuration file (yaml is a superset of json)
    :param path: file path
    :return: flattened, upper case configuration keys
    """
    from .errors import SystemValidationError

    with open(path) as config_file:
        values = yaml.safe_load(config_file) or {}

    if not isinstance(values, dict):
        raise SystemValidationError(f'Invalid configuration file "{path}": expected a mapping')

    return _flatten(values)


def load_config(app, path: Optional[str] = None, env_prefix: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration into app.config

    Values are read from the `path` file first, environment variables
    named <env_prefix>_<KEY> override them. Environment values are parsed
    as yaml scalars, so "5" becomes 5 and "true" becomes True.

    DB_URI is used as SQLALCHEMY_DATABASE_URI unless the latter is loaded as well
    and LOGLEVEL (a logging level name or number) is applied to the crudrest logger.

    :param app: Flask app
    :param path: yaml or json configuration file
    :param env_prefix: environment variable prefix, e.g. "TODO"
    :return: the loaded values
    """
    values = read_config_file(path) if path else {}

    if env_prefix:
        prefix = f"{env_prefix.upper()}_"
        for env_name, env_value in os.environ.items():
            if env_name.startswith(prefix) and len(env_name) > len(prefix):
                values[env_name[len(prefix) :]] = yaml.safe_load(env_value) if env_value else env_value

    if "DB_URI" in values:
        values.setdefault("SQLALCHEMY_DATABASE_URI", values["DB_URI"])

    loglevel = values.get("LOGLEVEL")
    if loglevel is not None:
        if isinstance(loglevel, str):
            loglevel = logging.getLevelName(loglevel.upper())
        if isinstance(loglevel, int):
            crudrest.log.setLevel(loglevel)
        else:
            crudrest.log.warning(f'Invalid LOGLEVEL "{values["LOGLEVEL"]}"')

    app.config.update(values)
    crudrest.log.debug(f"Loaded configuration keys: {sorted(values)}")
    return values
