import logging
import os
import sys
import time
from flask import Flask, g, request
from .persistence import SQLAlchemyPersistence
from .json_encoder import CrudJSONProvider
import flask.app
from typing import Any


class CRUD:
    """This class configures the Flask application to serve CrudModel instances
    :param app: a Flask application.
    :param persistence: Persistence implementation, defaults to a SQLAlchemyPersistence wrapping the app's flask_sqlalchemy db
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables, app.config takes precedence
    MAX_PAGE_LIMIT = 0
    LOGLEVEL = logging.WARNING
    LOG_REQUESTS = False
    cors_domain = None
    #
    config = {}

    def __init__(self, app: flask.app.Flask, *args: Any, **kwargs: Any) -> None:
        """
        Constructor
        """
        self.app = app
        self.persistence = None
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(self, app: flask.app.Flask, persistence: Any = None, **kwargs: Any) -> None:
        """
        Application initialization: json provider, logging and session teardown
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if persistence is None:
            persistence = SQLAlchemyPersistence(app.extensions["sqlalchemy"])

        self.persistence = persistence

        app.json = CrudJSONProvider(app)
        app.url_map.strict_slashes = False
        # flask_restful would add a "did you mean" message to our 404 bodies
        app.config.setdefault("ERROR_404_HELP", False)

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        for conf_name, conf_val in kwargs.items():
            setattr(CRUD, conf_name, conf_val)

        @app.before_request
        def start_timer():
            g.crud_request_start = time.perf_counter()

        @app.after_request
        def log_request(response):
            if app.config.get("LOG_REQUESTS", CRUD.LOG_REQUESTS):
                start = g.get("crud_request_start", None)
                duration = (time.perf_counter() - start) * 1000 if start is not None else 0
                log.info(f"{request.method} {request.full_path.rstrip('?')} {response.status_code} ({duration:.1f} ms) {request.remote_addr}")
            return response

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. https://flask.palletsprojects.com/en/latest/patterns/sqlalchemy/"""
            persistence.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        """
        log = logging.getLogger(__name__.split(".")[0])
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# logging initialization
#
try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = CRUD.init_logging(LOGLEVEL)
