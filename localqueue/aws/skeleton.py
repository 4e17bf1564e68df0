import inspect
import logging
from typing import Callable, Dict, NamedTuple, Optional

from localqueue.aws.api.core import (
    RequestContext,
    ServiceRequest,
    ServiceRequestHandler,
    ServiceResponse,
)
from localqueue.utils.strings import camel_to_snake_case

LOG = logging.getLogger(__name__)

DispatchTable = Dict[str, ServiceRequestHandler]


class HandlerAttributes(NamedTuple):
    """
    Holder object of the attributes added to a function by the @handler decorator.
    """

    function_name: str
    operation: str
    pass_context: bool
    expand_parameters: bool


def create_dispatch_table(delegate: object) -> DispatchTable:
    """
    Creates a dispatch table for a given object. First, the entire class tree of the object is scanned to find any
    functions that are decorated with @handler. It then resolves those functions on the delegate.
    """
    # reverse class tree so that inherited functions overwrite parent functions
    cls_tree = reversed(list(inspect.getmro(delegate.__class__)))
    handlers: Dict[str, HandlerAttributes] = {}
    for cls in cls_tree:
        if cls == object:
            continue

        for name, fn in inspect.getmembers(cls, inspect.isfunction):
            try:
                # attributes come from operation_marker in @handler wrapper
                handlers[fn.operation] = HandlerAttributes(
                    fn.__name__, fn.operation, fn.pass_context, fn.expand_parameters
                )
            except AttributeError:
                pass

    # resolve the bound functions on the delegate
    dispatch_table: DispatchTable = {}
    for handler in handlers.values():
        bound_function = getattr(delegate, handler.function_name)
        dispatch_table[handler.operation] = ServiceRequestDispatcher(
            bound_function,
            operation=handler.operation,
            pass_context=handler.pass_context,
            expand_parameters=handler.expand_parameters,
        )

    LOG.debug("created dispatch table with %d operations for %s", len(dispatch_table), delegate)
    return dispatch_table


class ServiceRequestDispatcher:
    fn: Callable
    operation: str
    expand_parameters: bool = True
    pass_context: bool = True

    def __init__(
        self,
        fn: Callable,
        operation: str,
        pass_context: bool = True,
        expand_parameters: bool = True,
    ):
        self.fn = fn
        self.operation = operation
        self.pass_context = pass_context
        self.expand_parameters = expand_parameters

    def __call__(
        self, context: RequestContext, request: ServiceRequest
    ) -> Optional[ServiceResponse]:
        args = []
        kwargs = {}

        if not self.expand_parameters:
            if self.pass_context:
                args.append(context)
            args.append(request)
        else:
            if request is not None:
                kwargs = {camel_to_snake_case(k): v for k, v in request.items()}
            kwargs["context"] = context

        return self.fn(*args, **kwargs)
