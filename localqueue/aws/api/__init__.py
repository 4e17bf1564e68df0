from .core import (
    CommonServiceException,
    RequestContext,
    ServiceException,
    ServiceRequest,
    ServiceResponse,
    handler,
)

__all__ = [
    "CommonServiceException",
    "RequestContext",
    "ServiceException",
    "ServiceRequest",
    "ServiceResponse",
    "handler",
]
