import itertools
import time
from typing import List, Optional
from urllib.parse import urlparse

from localqueue.aws.api.sqs import (
    AttributeNameList,
    Message,
    MessageAttributeNameList,
    QueueAttributeName,
)
from localqueue.services.sqs import constants as sqs_constants
from localqueue.utils.objects import singleton_factory
from localqueue.utils.strings import base64_encode, long_uid

# filters that select all attributes of a message
ALL_ATTRIBUTES_FILTERS = (QueueAttributeName.All, ".*", "*")


def queue_url(host: str, queue_name: str) -> str:
    return f"http://{host}/{sqs_constants.QUEUE_URL_PATH}/{queue_name}"


def queue_arn(queue_name: str) -> str:
    return f"{sqs_constants.QUEUE_ARN_PREFIX}{queue_name}"


def parse_queue_name(queue_url_or_name: str) -> Optional[str]:
    """
    Returns the queue name addressed by the given queue URL (``http://<host>/queues/<name>``). Bare queue names are
    returned as they are.

    :param queue_url_or_name: a queue URL or a queue name
    :return: the queue name, or None if the value does not contain one
    """
    if not queue_url_or_name:
        return None
    if "/" not in queue_url_or_name:
        return queue_url_or_name

    path = urlparse(queue_url_or_name.rstrip("/")).path
    path_parts = [part for part in path.split("/") if part]
    if not path_parts:
        return None
    return path_parts[-1]


def queue_name_from_arn(arn: str) -> Optional[str]:
    if not arn or not arn.startswith(sqs_constants.QUEUE_ARN_PREFIX):
        return None
    return arn[len(sqs_constants.QUEUE_ARN_PREFIX) :] or None


def encode_receipt_handle(queue_arn: str, message_id: str, last_received: int) -> str:
    # encode the queue arn in the receipt handle, but also add some randomness s.t. every delivery gets its own handle
    handle = f"{long_uid()} {queue_arn} {message_id} {last_received}"
    return base64_encode(handle)


@singleton_factory
def global_message_sequence():
    # creates a 20-digit number used as the start for the global sequence
    start = int(time.time()) << 33
    # itertools.count is thread safe over the GIL since its getAndIncrement operation is a single python bytecode op
    return itertools.count(start)


def next_sequence_number() -> str:
    return str(next(global_message_sequence())).zfill(20)


def generate_message_id() -> str:
    return long_uid()


def _select_names(available: List[str], names: List[str]) -> List[str]:
    keys = [name for name in names if not name.endswith(".*")]
    prefixes = [name[: -len(".*")] for name in names if name.endswith(".*")]

    selected = []
    for key in available:
        if key in keys or any(key.startswith(prefix) for prefix in prefixes):
            selected.append(key)
    return selected


def message_filter_attributes(message: Message, names: Optional[AttributeNameList]):
    """
    Utility function filter from the given message (in-place) the system attributes from the given list. An empty
    list removes all attributes, ``All`` keeps all of them.

    :param message: The message to filter (it will be modified)
    :param names: the attributes names/filters
    """
    if "Attributes" not in message:
        return

    if not names:
        del message["Attributes"]
        return

    if any(name in ALL_ATTRIBUTES_FILTERS for name in names):
        return

    attributes = message["Attributes"]
    selected = _select_names(list(attributes.keys()), names)
    if selected:
        message["Attributes"] = {k: attributes[k] for k in selected}
    else:
        del message["Attributes"]


def message_filter_message_attributes(message: Message, names: Optional[MessageAttributeNameList]):
    """
    Utility function filter from the given message (in-place) the message attributes from the given list. The
    selected attributes keep the order in which they were sent.

    :param message: The message to filter (it will be modified)
    :param names: the attributes names/filters (can be 'All', '.*', '*' or prefix filters like 'Foo.*')
    """
    if not message.get("MessageAttributes"):
        message.pop("MessageAttributes", None)
        return

    if not names:
        del message["MessageAttributes"]
        return

    if any(name in ALL_ATTRIBUTES_FILTERS for name in names):
        return

    attributes = message["MessageAttributes"]
    selected = _select_names(list(attributes.keys()), names)
    if selected:
        message["MessageAttributes"] = {k: attributes[k] for k in selected}
    else:
        del message["MessageAttributes"]
