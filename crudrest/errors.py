# Exception Handlers
#
# The exceptions will be caught in http_method_decorator and formatted as
# {
#      "error": "not found: Invalid Todo id 7"
# }
#
# Database errors are only shown in detail when the loglevel is debug,
# otherwise sensitive info might be shown !
#
import traceback
from http import HTTPStatus
from sqlalchemy.exc import DontWrapMixin
import crudrest
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class CrudError(Exception, DontWrapMixin):
    """
    Base class of the errors returned to the client,
    `status_code` is the HTTP status and `message` the body "error" string
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __init__(self, message="", status_code=None):
        """
        :param message: Message to be returned in the (json) body
        :param status_code: HTTP Status code
        """
        self.message = self.message + str(message) if message else self.message.rstrip(": ")
        Exception.__init__(self, self.message)
        if status_code is not None:
            self.status_code = status_code


class BindFailedError(CrudError):
    """
    This exception is raised when the request parameters or body can't be parsed
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "bind failed: "

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        crudrest.log.warning("BindFailed: %s", message)


class MissingIdentifierError(CrudError):
    """
    Raised when the identifier path parameter is absent or empty
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "missing id"


class MissingParentIdentifierError(CrudError):
    """
    Raised when the parent identifier path parameter of a nested route is absent or empty
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "missing parent id"


class IdentityMismatchError(CrudError):
    """
    Raised when an update payload tries to change the identity of the record
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "id can not be updated: "

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        crudrest.log.warning("IdentityMismatch: %s", message)


class NotFoundError(CrudError):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "not found: "

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        crudrest.log.info("Not found: %s", message)


class ProcessFailedError(CrudError):
    """
    This exception is raised when the persistence layer rejected an operation
    (constraint violation, unknown column, invalid relationship, ...)
    """

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY.value
    message = "process failed: "

    def __init__(self, message="", status_code=None):
        crudrest.log.error("ProcessFailed: %s", message)
        if is_debug():
            crudrest.log.debug(traceback.format_exc(120))
        else:
            message = HIDDEN_LOG
        super().__init__(message, status_code)


class SystemValidationError(CrudError):
    """
    This exception is raised when invalid server side input has been detected,
    e.g. when a route is registered for a model without identity
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Validation Error: "

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        crudrest.log.error("SystemValidationError: %s", message)
