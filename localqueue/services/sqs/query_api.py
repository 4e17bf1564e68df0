"""The SQS Query API: requests are form-urlencoded (POST) or passed as query string (GET), the operation is selected by
the ``Action`` parameter, and responses are XML documents. See:
https://docs.aws.amazon.com/AWSSimpleQueueService/latest/SQSDeveloperGuide/sqs-making-api-requests.html. Requests are
parsed into service requests, dispatched to the provider through the dispatch table, and the results (or errors) are
serialized with xmltodict."""

import logging
from typing import Any, Callable, Dict, List, Optional

import xmltodict
from werkzeug import Request, Response
from werkzeug.datastructures import MultiDict

from localqueue.aws.api import CommonServiceException, RequestContext, ServiceException
from localqueue.aws.api.sqs import SqsApi
from localqueue.aws.skeleton import DispatchTable, create_dispatch_table
from localqueue.constants import APPLICATION_XML, TEXT_PLAIN
from localqueue.services.sqs import constants as sqs_constants
from localqueue.services.sqs.exceptions import InvalidParameterValue, MissingParameter
from localqueue.utils.strings import base64_decode, base64_encode

LOG = logging.getLogger(__name__)

# maximum number of members of a list or map parameter
MAX_MEMBERS = 1000

Values = MultiDict


def _parse_string(values: Values, name: str) -> Optional[str]:
    return values.get(name)


def _parse_integer(values: Values, name: str) -> Optional[int]:
    value = values.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidParameterValue(f"Value {value} for parameter {name.split('.')[-1]} is invalid.")


def _parse_list(values: Values, prefix: str) -> Optional[List[str]]:
    result = []
    for i in range(1, MAX_MEMBERS + 1):
        key = f"{prefix}.{i}"
        if key not in values:
            break
        result.append(values[key])
    return result or None


def _parse_map(values: Values, prefix: str, key: str, value: str) -> Optional[Dict[str, str]]:
    result = {}
    for i in range(1, MAX_MEMBERS + 1):
        key_name = f"{prefix}.{i}.{key}"
        if key_name not in values:
            break
        result[values[key_name]] = values.get(f"{prefix}.{i}.{value}") or ""
    return result or None


def _parse_message_attributes(values: Values, prefix: str) -> Optional[Dict[str, Dict]]:
    """
    Parses message attributes, f.e. ``MessageAttribute.1.Name=City``, ``MessageAttribute.1.Value.DataType=String``
    and ``MessageAttribute.1.Value.StringValue=Any City``. Binary values are base64 encoded.
    """
    result = {}
    for i in range(1, MAX_MEMBERS + 1):
        name = values.get(f"{prefix}.{i}.Name")
        if name is None:
            break
        attribute = {}
        data_type = values.get(f"{prefix}.{i}.Value.DataType")
        if data_type is not None:
            attribute["DataType"] = data_type
        string_value = values.get(f"{prefix}.{i}.Value.StringValue")
        if string_value is not None:
            attribute["StringValue"] = string_value
        binary_value = values.get(f"{prefix}.{i}.Value.BinaryValue")
        if binary_value is not None:
            try:
                attribute["BinaryValue"] = base64_decode(binary_value)
            except ValueError:
                raise InvalidParameterValue(
                    f"Value {binary_value} for parameter {prefix}.{i}.Value.BinaryValue is invalid. "
                    f"Reason: Binary values must be base64 encoded."
                )
        result[name] = attribute
    return result or None


def _scalar(parse: Callable[[Values, str], Any]) -> Callable[[Values, str, str], Any]:
    return lambda values, prefix, name: parse(values, f"{prefix}{name}")


def _member(parse: Callable, *args) -> Callable[[Values, str, str], Any]:
    return lambda values, prefix, name: parse(values, prefix + args[0], *args[1:])


def _entries(entry_name: str, fields: List[str]) -> Callable[[Values, str, str], Any]:
    def _parse(values: Values, prefix: str, name: str) -> List[Dict]:
        entries = []
        for i in range(1, MAX_MEMBERS + 1):
            entry_prefix = f"{prefix}{entry_name}.{i}."
            if not any(key.startswith(entry_prefix) for key in values.keys()):
                break
            entry = {}
            for field in fields:
                value = PARAMETER_PARSERS[field](values, entry_prefix, field)
                if value is not None:
                    entry[field] = value
            entries.append(entry)
        return entries

    return _parse


# parsers of all parameters, by their name in the service request
PARAMETER_PARSERS: Dict[str, Callable[[Values, str, str], Any]] = {
    "Id": _scalar(_parse_string),
    "QueueUrl": _scalar(_parse_string),
    "QueueName": _scalar(_parse_string),
    "QueueNamePrefix": _scalar(_parse_string),
    "ReceiptHandle": _scalar(_parse_string),
    "MessageBody": _scalar(_parse_string),
    "MessageGroupId": _scalar(_parse_string),
    "MessageDeduplicationId": _scalar(_parse_string),
    "ReceiveRequestAttemptId": _scalar(_parse_string),
    "DelaySeconds": _scalar(_parse_integer),
    "MaxNumberOfMessages": _scalar(_parse_integer),
    "VisibilityTimeout": _scalar(_parse_integer),
    "WaitTimeSeconds": _scalar(_parse_integer),
    "Attributes": _member(_parse_map, "Attribute", "Name", "Value"),
    "AttributeNames": _member(_parse_list, "AttributeName"),
    "MessageAttributeNames": _member(_parse_list, "MessageAttributeName"),
    "Tags": _member(_parse_map, "Tag", "Key", "Value"),
    "TagKeys": _member(_parse_list, "TagKey"),
    "MessageAttributes": _member(_parse_message_attributes, "MessageAttribute"),
    "MessageSystemAttributes": _member(_parse_message_attributes, "MessageSystemAttribute"),
}

# batch entries are parsed per operation
ENTRY_PARSERS: Dict[str, Callable[[Values, str, str], Any]] = {
    "SendMessageBatch": _entries(
        "SendMessageBatchRequestEntry",
        [
            "Id",
            "MessageBody",
            "DelaySeconds",
            "MessageAttributes",
            "MessageSystemAttributes",
            "MessageDeduplicationId",
            "MessageGroupId",
        ],
    ),
    "DeleteMessageBatch": _entries("DeleteMessageBatchRequestEntry", ["Id", "ReceiptHandle"]),
    "ChangeMessageVisibilityBatch": _entries(
        "ChangeMessageVisibilityBatchRequestEntry", ["Id", "ReceiptHandle", "VisibilityTimeout"]
    ),
}

# the parameters of each operation, required parameters first
OPERATION_PARAMETERS: Dict[str, List[str]] = {
    "ChangeMessageVisibility": ["QueueUrl", "ReceiptHandle", "VisibilityTimeout"],
    "ChangeMessageVisibilityBatch": ["QueueUrl", "Entries"],
    "CreateQueue": ["QueueName", "Attributes", "Tags"],
    "DeleteMessage": ["QueueUrl", "ReceiptHandle"],
    "DeleteMessageBatch": ["QueueUrl", "Entries"],
    "DeleteQueue": ["QueueUrl"],
    "GetQueueAttributes": ["QueueUrl", "AttributeNames"],
    "GetQueueUrl": ["QueueName"],
    "ListDeadLetterSourceQueues": ["QueueUrl"],
    "ListQueueTags": ["QueueUrl"],
    "ListQueues": ["QueueNamePrefix"],
    "PurgeQueue": ["QueueUrl"],
    "ReceiveMessage": [
        "QueueUrl",
        "AttributeNames",
        "MessageAttributeNames",
        "MaxNumberOfMessages",
        "VisibilityTimeout",
        "WaitTimeSeconds",
        "ReceiveRequestAttemptId",
    ],
    "SendMessage": [
        "QueueUrl",
        "MessageBody",
        "DelaySeconds",
        "MessageAttributes",
        "MessageSystemAttributes",
        "MessageDeduplicationId",
        "MessageGroupId",
    ],
    "SendMessageBatch": ["QueueUrl", "Entries"],
    "SetQueueAttributes": ["QueueUrl", "Attributes"],
    "TagQueue": ["QueueUrl", "Tags"],
    "UntagQueue": ["QueueUrl", "TagKeys"],
}

REQUIRED_PARAMETERS = {
    "QueueUrl",
    "QueueName",
    "ReceiptHandle",
    "MessageBody",
}


def parse_service_request(action: str, values: Values) -> Dict[str, Any]:
    """
    Creates the service request for the given operation from the query parameters.

    :param action: the operation name
    :param values: the (form or query string) parameters of the request
    :return: the service request
    :raises MissingParameter: if a required parameter is missing
    """
    service_request = {}
    for name in OPERATION_PARAMETERS[action]:
        if name == "Entries":
            value = ENTRY_PARSERS[action](values, "", name)
        else:
            value = PARAMETER_PARSERS[name](values, "", name)

        if value is None:
            if name in REQUIRED_PARAMETERS or (
                action == "ChangeMessageVisibility" and name == "VisibilityTimeout"
            ):
                raise MissingParameter(f"The request must contain the parameter {name}.")
            continue
        service_request[name] = value

    if action == "CreateQueue" and "Tags" in service_request:
        # the CreateQueue operation names its tags parameter in lower case
        service_request["tags"] = service_request.pop("Tags")

    return service_request


# list shapes, which are serialized as repeated (flattened) elements
FLATTENED_MEMBERS = {
    "QueueUrls": "QueueUrl",
    "queueUrls": "QueueUrl",
    "Messages": "Message",
    "Failed": "BatchResultErrorEntry",
}


def _serialize_scalar(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return base64_encode(value)
    return str(value)


def _serialize_message_attribute(value: Dict) -> Dict:
    result = {}
    for key in ("StringValue", "BinaryValue", "DataType"):
        if value.get(key) is not None:
            result[key] = _serialize_scalar(value[key])
    return result


def _serialize_members(action: str, result: Dict) -> Dict:
    doc = {}
    for key, value in result.items():
        if value is None:
            continue
        if key == "Attributes":
            doc["Attribute"] = [{"Name": k, "Value": _serialize_scalar(v)} for k, v in value.items()]
        elif key == "Tags":
            doc["Tag"] = [{"Key": k, "Value": _serialize_scalar(v)} for k, v in value.items()]
        elif key == "MessageAttributes":
            doc["MessageAttribute"] = [
                {"Name": k, "Value": _serialize_message_attribute(v)} for k, v in value.items()
            ]
        elif key == "Successful":
            doc[f"{action}ResultEntry"] = [_serialize_members(action, entry) for entry in value]
        elif key in FLATTENED_MEMBERS:
            doc[FLATTENED_MEMBERS[key]] = [
                _serialize_members(action, member) if isinstance(member, dict) else member
                for member in value
            ]
        elif isinstance(value, dict):
            doc[key] = _serialize_members(action, value)
        else:
            doc[key] = _serialize_scalar(value)
    return doc


def serialize_response(action: str, result: Optional[Dict]) -> str:
    response = {"@xmlns": sqs_constants.XMLNS_SQS}
    if result is not None:
        response[f"{action}Result"] = _serialize_members(action, result) or None
    response["ResponseMetadata"] = {"RequestId": sqs_constants.DEFAULT_REQUEST_ID}
    return xmltodict.unparse({f"{action}Response": response})


def serialize_error(error: ServiceException) -> str:
    code = getattr(error, "error_code", None) or error.code
    message = getattr(error, "error_message", None) or error.message
    doc = {
        "ErrorResponse": {
            "@xmlns": sqs_constants.XMLNS_SQS,
            "Error": {
                "Type": "Receiver" if error.status_code >= 500 else "Sender",
                "Code": code,
                "Message": message,
                "Detail": None,
            },
            "RequestId": sqs_constants.DEFAULT_REQUEST_ID,
        }
    }
    return xmltodict.unparse(doc)


class SqsQueryApi:
    """
    WSGI application that serves the SQS Query API on top of a provider.
    """

    provider: SqsApi
    dispatch_table: DispatchTable

    def __init__(self, provider: SqsApi) -> None:
        self.provider = provider
        self.dispatch_table = create_dispatch_table(provider)

    def __call__(self, environ, start_response):
        request = Request(environ)
        response = self.handle(request)
        return response(environ, start_response)

    def handle(self, request: Request) -> Response:
        values = MultiDict(request.values)
        action = values.get("Action")

        if action not in self.dispatch_table or action not in OPERATION_PARAMETERS:
            LOG.debug("unknown action %s requested", action)
            return Response(f"Action: {action} is not implemented", 400, mimetype=TEXT_PLAIN)

        # the queue URL can be used as endpoint of operations on that queue
        if "QueueUrl" not in values and request.path.startswith(f"/{sqs_constants.QUEUE_URL_PATH}/"):
            values["QueueUrl"] = request.base_url

        context = RequestContext(request)
        context.operation = action

        try:
            context.service_request = parse_service_request(action, values)
            result = self.dispatch_table[action](context, context.service_request)
            return Response(serialize_response(action, result), 200, mimetype=APPLICATION_XML)
        except ServiceException as e:
            LOG.debug("error while handling %s: %s %s", action, e.code, e.message)
            return Response(serialize_error(e), e.status_code, mimetype=APPLICATION_XML)
        except Exception as e:
            LOG.exception("exception while handling %s", action)
            error = CommonServiceException(
                "InternalError", f"An internal error occurred: {e}", status_code=500
            )
            return Response(serialize_error(error), error.status_code, mimetype=APPLICATION_XML)
