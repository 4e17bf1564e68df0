import functools
from typing import Any, Optional, Protocol, TypedDict, Union

from werkzeug import Request, Response

from localqueue import config


class ServiceRequest(TypedDict):
    pass


ServiceResponse = Any


class ServiceException(Exception):
    """
    An exception that indicates that a service error occurred.
    These exceptions, when raised during the execution of a service function, will be serialized and sent to the client.
    Do not use this exception directly (use the subclasses or CommonServiceException instead).
    """

    code: str = "ServiceException"
    sender_fault: bool = False
    status_code: int = 400
    message: str = ""

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class CommonServiceException(ServiceException):
    """
    An exception which can be raised within a service during its execution, even if it is not specified (i.e. it's not
    part of the generated service interface).
    In the AWS API references, this kind of errors are usually referred to as "Common Errors", f.e.:
    https://docs.aws.amazon.com/AWSSimpleQueueService/latest/APIReference/CommonErrors.html
    """

    def __init__(self, code: str, message: str, status_code: int = 400, sender_fault: bool = False):
        self.code = code
        self.status_code = status_code
        self.sender_fault = sender_fault
        self.message = message
        super().__init__(self.message)


class RequestContext:
    """
    Holds the information of a single service invocation. The host is used to build queue URLs, it is taken from the
    HTTP request if there is one.
    """

    request: Optional[Request]
    operation: Optional[str]
    service_request: Optional[ServiceRequest]

    def __init__(self, request: Request = None, host: str = None) -> None:
        super().__init__()
        self.request = request
        self.operation = None
        self.service_request = None
        self._host = host

    @property
    def host(self) -> str:
        if self._host:
            return self._host
        if self.request is not None and self.request.host:
            return self.request.host
        return f"{config.LQ_HOST}:{config.LQ_PORT}"


class ServiceRequestHandler(Protocol):
    def __call__(
        self, context: RequestContext, request: ServiceRequest
    ) -> Optional[Union[ServiceResponse, Response]]:
        raise NotImplementedError


def handler(operation: str = None, context: bool = True, expand: bool = True):
    """
    Decorator that indicates that the given function is a handler
    """

    def wrapper(fn):
        @functools.wraps(fn)
        def operation_marker(*args, **kwargs):
            return fn(*args, **kwargs)

        operation_marker.operation = operation
        operation_marker.expand_parameters = expand
        operation_marker.pass_context = context

        return operation_marker

    return wrapper
