"""
Validation and normalization of queue attributes. Attributes arrive as a loosely typed mapping (values may be strings,
numbers, booleans, or for the redrive policy a JSON document or a dict) and are turned into a ``QueueAttributes``
object. Every recognized attribute has its own parser; unknown attribute names are rejected.
"""
import dataclasses
import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from localqueue.aws.api.sqs import InvalidAttributeName, QueueAttributeMap, QueueAttributeName
from localqueue.services.sqs import constants as sqs_constants
from localqueue.services.sqs.exceptions import InvalidAttributeValue, InvalidParameterValue
from localqueue.utils.strings import escape_html

LOG = logging.getLogger(__name__)

DEFAULT_KMS_MASTER_KEY_ID = "alias/aws/sqs"

QUEUE_NAME_ERROR = "Can only include alphanumeric characters, hyphens, or underscores. 1 to 80 in length"
FIFO_QUEUE_NAME_ERROR = (
    "The name of a FIFO queue can only include alphanumeric characters, hyphens, or underscores, "
    "must end with .fifo suffix and be 1 to 80 in length."
)


@dataclasses.dataclass(frozen=True)
class RedrivePolicy:
    dead_letter_target_arn: str
    max_receive_count: int
    # the supplied value, html escaped, as echoed in error messages
    echo: str = dataclasses.field(default=None, compare=False, repr=False)

    def error_message(self, reason: str) -> str:
        echo = self.echo if self.echo is not None else escape_html(self.to_json())
        return f"Value {echo} for parameter RedrivePolicy is invalid. Reason: {reason}"

    def to_json(self) -> str:
        return json.dumps(
            {"deadLetterTargetArn": self.dead_letter_target_arn, "maxReceiveCount": self.max_receive_count},
            separators=(",", ":"),
        )


@dataclasses.dataclass(frozen=True)
class QueueAttributes:
    """The effective, typed configuration of a queue."""

    delay_seconds: int = 0
    maximum_message_size: int = sqs_constants.DEFAULT_MAXIMUM_MESSAGE_SIZE
    message_retention_period: int = 345600
    receive_message_wait_time_seconds: int = 0
    visibility_timeout: int = 30
    fifo_queue: bool = False
    content_based_deduplication: bool = False
    kms_master_key_id: str = DEFAULT_KMS_MASTER_KEY_ID
    kms_data_key_reuse_period_seconds: int = 300
    redrive_policy: Optional[RedrivePolicy] = None
    created_timestamp: Optional[int] = None

    def to_attribute_map(self) -> QueueAttributeMap:
        """
        Renders the attributes the way they are returned by ``GetQueueAttributes``: every value is a string, and the
        FIFO-only attribute and the redrive policy are only present where they apply.
        """
        result = {}
        for spec in ATTRIBUTE_SPECS:
            value = getattr(self, spec.field)
            if value is None:
                continue
            if spec.name == QueueAttributeName.ContentBasedDeduplication and not self.fifo_queue:
                continue
            result[spec.name] = spec.render(value)
        if self.created_timestamp is not None:
            result[QueueAttributeName.CreatedTimestamp] = str(self.created_timestamp)
        return result


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, RedrivePolicy):
        return value.to_json()
    return str(value)


def _parse_integer(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidAttributeValue(f"Invalid value for the parameter {name}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.match(r"^\s*-?\d+\s*$", value):
        return int(value)
    raise InvalidAttributeValue(f"Invalid value for the parameter {name}.")


def integer_range(minimum: int, maximum: int) -> Callable[[str, Any], int]:
    def _parse(name: str, value: Any) -> int:
        number = _parse_integer(name, value)
        if not minimum <= number <= maximum:
            raise InvalidAttributeValue(f"Invalid value for the parameter {name}.")
        return number

    return _parse


def boolean(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise InvalidAttributeValue(f"Invalid value for the parameter {name}.")


def string(name: str, value: Any) -> str:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    raise InvalidAttributeValue(f"Invalid value for the parameter {name}.")


def redrive_policy(name: str, value: Any) -> Optional[RedrivePolicy]:
    """
    Parses a redrive policy given either as JSON document or as dict. An empty value removes the policy. The error
    messages echo the supplied value with HTML entities escaped.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        echo = escape_html(value)
        try:
            document = json.loads(value)
        except ValueError:
            document = None
    else:
        document = value
        echo = escape_html(json.dumps(value, separators=(",", ":"), default=str))

    def _invalid(reason: str) -> InvalidParameterValue:
        return InvalidParameterValue(f"Value {echo} for parameter {name} is invalid. Reason: {reason}")

    if not isinstance(document, dict):
        raise _invalid("Redrive policy is not a valid JSON map.")

    for attribute in ("deadLetterTargetArn", "maxReceiveCount"):
        if document.get(attribute) in (None, ""):
            raise _invalid(f"Redrive policy does not contain mandatory attribute: {attribute}.")

    max_receive_count = document["maxReceiveCount"]
    try:
        count = _parse_integer(name, max_receive_count)
    except InvalidAttributeValue:
        count = None
    if count is None or not 1 <= count <= 1000:
        raise _invalid(
            f"Invalid value for maxReceiveCount: {max_receive_count}, valid values are from 1 to 1000 both inclusive."
        )

    return RedrivePolicy(str(document["deadLetterTargetArn"]), count, echo)


@dataclasses.dataclass(frozen=True)
class AttributeSpec:
    name: str
    field: str
    parse: Callable[[str, Any], Any]

    def render(self, value: Any) -> str:
        return _render_value(value)


# the order of this list is the order in which attributes are compared and rendered
ATTRIBUTE_SPECS: List[AttributeSpec] = [
    AttributeSpec(QueueAttributeName.DelaySeconds, "delay_seconds", integer_range(0, 900)),
    AttributeSpec(
        QueueAttributeName.MaximumMessageSize, "maximum_message_size", integer_range(1024, 262144)
    ),
    AttributeSpec(
        QueueAttributeName.MessageRetentionPeriod,
        "message_retention_period",
        integer_range(60, 1209600),
    ),
    AttributeSpec(
        QueueAttributeName.ReceiveMessageWaitTimeSeconds,
        "receive_message_wait_time_seconds",
        integer_range(0, 20),
    ),
    AttributeSpec(QueueAttributeName.VisibilityTimeout, "visibility_timeout", integer_range(0, 43200)),
    AttributeSpec(QueueAttributeName.FifoQueue, "fifo_queue", boolean),
    AttributeSpec(
        QueueAttributeName.ContentBasedDeduplication, "content_based_deduplication", boolean
    ),
    AttributeSpec(QueueAttributeName.KmsMasterKeyId, "kms_master_key_id", string),
    AttributeSpec(
        QueueAttributeName.KmsDataKeyReusePeriodSeconds,
        "kms_data_key_reuse_period_seconds",
        integer_range(60, 86400),
    ),
    AttributeSpec(QueueAttributeName.RedrivePolicy, "redrive_policy", redrive_policy),
]

ATTRIBUTE_SPECS_BY_NAME: Dict[str, AttributeSpec] = {spec.name: spec for spec in ATTRIBUTE_SPECS}

# attributes that are computed by the queue and can be requested, but never set
READ_ONLY_ATTRIBUTES = [
    QueueAttributeName.ApproximateNumberOfMessages,
    QueueAttributeName.ApproximateNumberOfMessagesNotVisible,
    QueueAttributeName.ApproximateNumberOfMessagesDelayed,
    QueueAttributeName.CreatedTimestamp,
    QueueAttributeName.LastModifiedTimestamp,
    QueueAttributeName.QueueArn,
]


def is_fifo_queue_name(queue_name: str) -> bool:
    return queue_name.endswith(sqs_constants.FIFO_SUFFIX)


def validate_queue_name(queue_name: str, fifo: bool) -> None:
    """
    Validates the queue name, first the allowed characters and length, then the consistency between the ``.fifo``
    suffix and the ``FifoQueue`` attribute.

    :param queue_name: the queue name
    :param fifo: the value of the FifoQueue attribute
    :raises InvalidParameterValue: if the name is invalid
    """
    name = queue_name or ""
    if is_fifo_queue_name(name):
        # the .fifo suffix counts towards the 80-character queue name quota
        name = name[: -len(sqs_constants.FIFO_SUFFIX)] + "_fifo"
    if not re.match(sqs_constants.QUEUE_NAME_REGEX, name):
        raise InvalidParameterValue(QUEUE_NAME_ERROR)

    if fifo != is_fifo_queue_name(queue_name):
        raise InvalidParameterValue(FIFO_QUEUE_NAME_ERROR)


def _assert_known_attributes(attributes: Mapping[str, Any]) -> None:
    for name in attributes.keys():
        if name not in ATTRIBUTE_SPECS_BY_NAME:
            raise InvalidAttributeName(f"Unknown Attribute {name}.")


def _assert_fifo_only_attributes(attributes: Mapping[str, Any], fifo: bool) -> None:
    if fifo:
        return
    name = QueueAttributeName.ContentBasedDeduplication
    if name in attributes and boolean(name, attributes[name]):
        raise InvalidAttributeName(f"Unknown Attribute {name}.")


def _parse_fields(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    changes = {}
    for name, value in attributes.items():
        spec = ATTRIBUTE_SPECS_BY_NAME[name]
        changes[spec.field] = spec.parse(name, value)
    return changes


def parse_queue_attributes(
    queue_name: str, attributes: Optional[Mapping[str, Any]], created_timestamp: int = None
) -> QueueAttributes:
    """
    Validates the name and attributes of a queue that is about to be created, and returns the effective attributes
    (defaults overridden by the given values). Referential checks of the redrive policy need the queue registry and
    are done by the caller.

    :param queue_name: the name of the new queue
    :param attributes: the raw attributes
    :param created_timestamp: the creation time (epoch seconds)
    :return: the effective queue attributes
    """
    attributes = attributes or {}

    fifo = False
    if QueueAttributeName.FifoQueue in attributes:
        fifo = boolean(QueueAttributeName.FifoQueue, attributes[QueueAttributeName.FifoQueue])

    validate_queue_name(queue_name, fifo)
    _assert_known_attributes(attributes)
    _assert_fifo_only_attributes(attributes, fifo)

    return dataclasses.replace(
        QueueAttributes(created_timestamp=created_timestamp), **_parse_fields(attributes)
    )


def update_queue_attributes(
    current: QueueAttributes, attributes: Optional[Mapping[str, Any]]
) -> QueueAttributes:
    """
    Validates the given attributes against an existing queue and returns the new effective attributes. Only the given
    attributes are replaced, the queue type cannot be changed.

    :param current: the current attributes of the queue
    :param attributes: the raw attributes to set
    :return: the new effective queue attributes
    """
    if not attributes:
        return current

    _assert_known_attributes(attributes)
    _assert_fifo_only_attributes(attributes, current.fifo_queue)

    changes = _parse_fields(attributes)
    if changes.get("fifo_queue", current.fifo_queue) != current.fifo_queue:
        raise InvalidAttributeValue(
            "Invalid value for the parameter FifoQueue. Reason: Modifying queue type is not supported."
        )

    return dataclasses.replace(current, **changes)


def find_differing_attribute(first: QueueAttributes, second: QueueAttributes) -> Optional[str]:
    """
    Compares two attribute sets in the canonical attribute order, ignoring the creation timestamp.

    :return: the name of the first attribute that differs, or None if the attribute sets are equal
    """
    for spec in ATTRIBUTE_SPECS:
        if getattr(first, spec.field) != getattr(second, spec.field):
            LOG.debug(
                "queue attribute %s differs: %s != %s",
                spec.name,
                getattr(first, spec.field),
                getattr(second, spec.field),
            )
            return spec.name
    return None
