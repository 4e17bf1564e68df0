import logging
import re
from typing import Dict, List, Optional

from localqueue import config
from localqueue.aws.api import RequestContext, ServiceException
from localqueue.aws.api.sqs import (
    AttributeNameList,
    BatchEntryIdsNotDistinct,
    BatchResultErrorEntry,
    ChangeMessageVisibilityBatchRequestEntryList,
    ChangeMessageVisibilityBatchResult,
    ChangeMessageVisibilityBatchResultEntry,
    CreateQueueResult,
    DeleteMessageBatchRequestEntryList,
    DeleteMessageBatchResult,
    DeleteMessageBatchResultEntry,
    EmptyBatchRequest,
    GetQueueAttributesResult,
    GetQueueUrlResult,
    Integer,
    InvalidAttributeName,
    InvalidBatchEntryId,
    InvalidMessageContents,
    ListDeadLetterSourceQueuesResult,
    ListQueuesResult,
    ListQueueTagsResult,
    MessageAttributeNameList,
    MessageBodyAttributeMap,
    MessageBodySystemAttributeMap,
    MessageSystemAttributeNameForSends,
    QueueAttributeMap,
    QueueAttributeName,
    ReceiveMessageResult,
    SendMessageBatchRequestEntryList,
    SendMessageBatchResult,
    SendMessageBatchResultEntry,
    SendMessageResult,
    SqsApi,
    String,
    TagKeyList,
    TagMap,
    TooManyEntriesInBatchRequest,
)
from localqueue.services.sqs import checksums
from localqueue.services.sqs import constants as sqs_constants
from localqueue.services.sqs import utils as sqs_utils
from localqueue.services.sqs.attributes import (
    ATTRIBUTE_SPECS_BY_NAME,
    READ_ONLY_ATTRIBUTES,
    parse_queue_attributes,
    update_queue_attributes,
)
from localqueue.services.sqs.exceptions import (
    InvalidParameterValue,
    InvalidParameterValueClientError,
    MissingParameter,
)
from localqueue.services.sqs.models import SqsMessage, SqsQueue, SqsStore
from localqueue.services.sqs.utils import (
    message_filter_attributes,
    message_filter_message_attributes,
    parse_queue_name,
)
from localqueue.utils.time import Clock

LOG = logging.getLogger(__name__)

MAX_VISIBILITY_TIMEOUT = 43200
MAX_DELAY_SECONDS = 900
MAX_WAIT_TIME_SECONDS = 20


def check_message_size(
    message_body: str, message_attributes: MessageBodyAttributeMap, max_message_size: int
):
    error = "One or more parameters are invalid. "
    error += f"Reason: Message must be shorter than {max_message_size} bytes."

    if (
        _message_body_size(message_body) + _message_attributes_size(message_attributes)
        > max_message_size
    ):
        raise InvalidParameterValue(error)


def _message_body_size(body: str):
    return _bytesize(body)


def _message_attributes_size(attributes: MessageBodyAttributeMap):
    if not attributes:
        return 0
    message_attributes_keys_size = sum(_bytesize(k) for k in attributes.keys())
    message_attributes_values_size = sum(
        sum(_bytesize(v) for v in attr.values() if v is not None) for attr in attributes.values()
    )
    return message_attributes_keys_size + message_attributes_values_size


def _bytesize(value):
    # must encode as utf8 to get correct bytes with len
    return len(value.encode("utf8")) if isinstance(value, str) else len(value)


def check_message_content(message_body: str):
    error = (
        "Invalid characters found. Valid unicode characters are #x9 | #xA | #xD | #x20 to #xD7FF | "
        "#xE000 to #xFFFD | #x10000 to #x10FFFF"
    )

    if not re.match(sqs_constants.MSG_CONTENT_REGEX, message_body):
        raise InvalidMessageContents(error)


def check_attributes(message_attributes: MessageBodyAttributeMap):
    if not message_attributes:
        return
    for attribute_name in message_attributes:
        if len(attribute_name) >= 256:
            raise InvalidParameterValue("Message (user) attribute names must be shorter than 256 Bytes")
        if not re.match(sqs_constants.ATTR_NAME_CHAR_REGEX, attribute_name.lower()):
            raise InvalidParameterValue(
                "Message (user) attributes name can only contain upper and lower score characters, digits, "
                "periods, hyphens and underscores. "
            )
        if not re.match(sqs_constants.ATTR_NAME_PREFIX_SUFFIX_REGEX, attribute_name.lower()):
            raise InvalidParameterValue(
                "You can't use message attribute names beginning with 'AWS.' or 'Amazon.'. "
                "These strings are reserved for internal use. Additionally, they cannot start or end with '.'."
            )

        attribute = message_attributes[attribute_name]
        attribute_type = attribute.get("DataType")
        if not attribute_type:
            raise InvalidParameterValue("Missing required parameter DataType")
        if not re.match(sqs_constants.ATTR_TYPE_REGEX, attribute_type):
            raise InvalidParameterValue(
                f"Type for parameter MessageAttributes.Attribute_name.DataType must be prefixed "
                f'with "String", "Binary", or "Number", but was: {attribute_type}'
            )
        if len(attribute_type) >= 256:
            raise InvalidParameterValue("Message (user) attribute types must be shorter than 256 Bytes")

        if attribute_type.startswith("Binary"):
            if not attribute.get("BinaryValue"):
                raise InvalidParameterValue(
                    f"Message (user) attribute '{attribute_name}' must contain a non-empty value of type 'Binary'."
                )
            continue

        base_type = "Number" if attribute_type.startswith("Number") else "String"
        attribute_value = attribute.get("StringValue")
        if not attribute_value:
            raise InvalidParameterValue(
                f"Message (user) attribute '{attribute_name}' must contain a non-empty value of type '{base_type}'."
            )
        if base_type == "Number":
            try:
                float(attribute_value)
            except ValueError:
                raise InvalidParameterValue(
                    f"Can't cast the value of message (user) attribute '{attribute_name}' to a number."
                )
        try:
            check_message_content(attribute_value)
        except InvalidMessageContents as e:
            # a different error is reported for attribute values
            raise InvalidParameterValue(e.message)


def check_system_attributes(message_system_attributes: MessageBodySystemAttributeMap):
    if not message_system_attributes:
        return
    for name in message_system_attributes:
        if name != MessageSystemAttributeNameForSends.AWSTraceHeader:
            raise InvalidParameterValue(f"Message system attribute name '{name}' is invalid.")
    check_attributes(message_system_attributes)


def check_fifo_id(fifo_id, parameter: str):
    if fifo_id is None:
        return
    if not fifo_id or len(fifo_id) > 128:
        raise InvalidParameterValue(
            f"Value {fifo_id} for parameter {parameter} is invalid. "
            f"Reason: {parameter} must be between 1 and 128 characters long."
        )
    if not re.match(sqs_constants.FIFO_MSG_REGEX, fifo_id):
        raise InvalidParameterValue(
            f"Value {fifo_id} for parameter {parameter} is invalid. "
            f"Reason: {parameter} can only include alphanumeric and punctuation characters."
        )


def check_delay_seconds(delay_seconds: Optional[int]):
    if delay_seconds is None:
        return
    if not 0 <= delay_seconds <= MAX_DELAY_SECONDS:
        raise InvalidParameterValue(
            f"Value {delay_seconds} for parameter DelaySeconds is invalid. "
            f"Reason: DelaySeconds must be >= 0 and <= {MAX_DELAY_SECONDS}."
        )


def _error_entry(entry_id: str, error: ServiceException) -> BatchResultErrorEntry:
    return BatchResultErrorEntry(
        Id=entry_id,
        SenderFault=error.sender_fault,
        Code=error.code,
        Message=error.message,
    )


class SqsProvider(SqsApi):
    """
    In-memory SQS engine. All queues live in an ``SqsStore``, every queue guards its messages with its own lock.
    Time is read from an injectable millisecond clock.

    LIMITATIONS:
        - Receive calls never wait for messages (long polling)
        - Messages exceeding maxReceiveCount are not moved to the dead-letter queue
        - Pagination of results (NextToken)
    """

    store: SqsStore

    def __init__(self, store: SqsStore = None, clock: Clock = None) -> None:
        super().__init__()
        self.store = store or SqsStore(clock=clock)
        self.clock = clock or self.store.clock

    def _require_queue(self, queue_url_or_name: str) -> SqsQueue:
        """
        Returns the queue addressed by the given queue URL or name.

        :param queue_url_or_name: the queue URL (or the queue name)
        :returns: the queue
        :raises QueueDoesNotExist: if the queue does not exist
        """
        return self.store.get_queue(parse_queue_name(queue_url_or_name))

    def create_queue(
        self,
        context: RequestContext,
        queue_name: String,
        attributes: QueueAttributeMap = None,
        tags: TagMap = None,
    ) -> CreateQueueResult:
        queue_attributes = parse_queue_attributes(
            queue_name, attributes, created_timestamp=self.clock() // 1000
        )
        LOG.debug("creating queue key=%s attributes=%s tags=%s", queue_name, attributes, tags)
        queue = self.store.create_queue(queue_name, queue_attributes, tags)
        return CreateQueueResult(QueueUrl=sqs_utils.queue_url(context.host, queue.name))

    def get_queue_url(self, context: RequestContext, queue_name: String) -> GetQueueUrlResult:
        queue = self.store.get_queue(queue_name)
        return GetQueueUrlResult(QueueUrl=sqs_utils.queue_url(context.host, queue.name))

    def list_queues(
        self, context: RequestContext, queue_name_prefix: String = None
    ) -> ListQueuesResult:
        names = self.store.list_queue_names(queue_name_prefix)
        return ListQueuesResult(QueueUrls=[sqs_utils.queue_url(context.host, name) for name in names])

    def delete_queue(self, context: RequestContext, queue_url: String) -> None:
        self.store.delete_queue(parse_queue_name(queue_url))

    def tag_queue(self, context: RequestContext, queue_url: String, tags: TagMap) -> None:
        queue = self._require_queue(queue_url)

        if not tags:
            return

        with queue.mutex:
            for k, v in tags.items():
                queue.tags[k] = v

    def list_queue_tags(self, context: RequestContext, queue_url: String) -> ListQueueTagsResult:
        queue = self._require_queue(queue_url)
        with queue.mutex:
            return ListQueueTagsResult(Tags=dict(queue.tags))

    def untag_queue(self, context: RequestContext, queue_url: String, tag_keys: TagKeyList) -> None:
        queue = self._require_queue(queue_url)

        with queue.mutex:
            for k in tag_keys or []:
                queue.tags.pop(k, None)

    def set_queue_attributes(
        self, context: RequestContext, queue_url: String, attributes: QueueAttributeMap
    ) -> None:
        queue = self._require_queue(queue_url)

        if not attributes:
            return

        with queue.mutex:
            queue_attributes = update_queue_attributes(queue.attributes, attributes)
            if QueueAttributeName.RedrivePolicy in attributes:
                self.store.check_redrive_policy(queue_attributes.redrive_policy, queue.fifo)
            queue.update_attributes(queue_attributes)
            LOG.debug("updated attributes of queue %s: %s", queue.arn, attributes)

    def get_queue_attributes(
        self, context: RequestContext, queue_url: String, attribute_names: AttributeNameList = None
    ) -> GetQueueAttributesResult:
        queue = self._require_queue(queue_url)

        if not attribute_names:
            return GetQueueAttributesResult(Attributes={})

        for name in attribute_names:
            if (
                name != QueueAttributeName.All
                and name not in ATTRIBUTE_SPECS_BY_NAME
                and name not in READ_ONLY_ATTRIBUTES
            ):
                raise InvalidAttributeName(f"Unknown Attribute {name}.")

        attributes = self._queue_attribute_map(queue)
        if QueueAttributeName.All in attribute_names:
            return GetQueueAttributesResult(Attributes=attributes)

        return GetQueueAttributesResult(
            Attributes={name: attributes[name] for name in attribute_names if name in attributes}
        )

    def _queue_attribute_map(self, queue: SqsQueue) -> QueueAttributeMap:
        with queue.mutex:
            result = queue.attributes.to_attribute_map()
            result[QueueAttributeName.LastModifiedTimestamp] = str(queue.last_modified_timestamp)
            result[QueueAttributeName.QueueArn] = queue.arn
            result[QueueAttributeName.ApproximateNumberOfMessages] = str(queue.approx_number_of_messages)
            result[QueueAttributeName.ApproximateNumberOfMessagesNotVisible] = str(
                queue.approx_number_of_messages_not_visible
            )
            result[QueueAttributeName.ApproximateNumberOfMessagesDelayed] = str(
                queue.approx_number_of_messages_delayed
            )
            return result

    def send_message(
        self,
        context: RequestContext,
        queue_url: String,
        message_body: String,
        delay_seconds: Integer = None,
        message_attributes: MessageBodyAttributeMap = None,
        message_system_attributes: MessageBodySystemAttributeMap = None,
        message_deduplication_id: String = None,
        message_group_id: String = None,
    ) -> SendMessageResult:
        queue = self._require_queue(queue_url)

        message = self._put_message(
            queue,
            message_body,
            delay_seconds,
            message_attributes,
            message_system_attributes,
            message_deduplication_id,
            message_group_id,
        )

        result = SendMessageResult(
            MessageId=message.message_id,
            MD5OfMessageBody=message.md5_of_body,
        )
        if message.md5_of_message_attributes:
            result["MD5OfMessageAttributes"] = message.md5_of_message_attributes
        if message_system_attributes:
            result["MD5OfMessageSystemAttributes"] = checksums.message_attributes_md5(
                message_system_attributes
            )
        if delay_seconds is not None:
            result["DelaySeconds"] = delay_seconds
        if queue.fifo:
            result["SequenceNumber"] = message.sequence_number
            if message.message_deduplication_id is not None:
                result["MessageDeduplicationId"] = message.message_deduplication_id
        return result

    def send_message_batch(
        self, context: RequestContext, queue_url: String, entries: SendMessageBatchRequestEntryList
    ) -> SendMessageBatchResult:
        queue = self._require_queue(queue_url)

        self._assert_batch(entries)

        successful = []
        failed = []

        with queue.mutex:
            for entry in entries:
                try:
                    message = self._put_message(
                        queue,
                        message_body=entry.get("MessageBody"),
                        delay_seconds=entry.get("DelaySeconds"),
                        message_attributes=entry.get("MessageAttributes"),
                        message_system_attributes=entry.get("MessageSystemAttributes"),
                        message_deduplication_id=entry.get("MessageDeduplicationId"),
                        message_group_id=entry.get("MessageGroupId"),
                    )
                except ServiceException as e:
                    LOG.debug("failed to send batch entry %s: %s", entry["Id"], e)
                    failed.append(_error_entry(entry["Id"], e))
                    continue

                result_entry = SendMessageBatchResultEntry(
                    Id=entry["Id"],
                    MessageId=message.message_id,
                    MD5OfMessageBody=message.md5_of_body,
                )
                if message.md5_of_message_attributes:
                    result_entry["MD5OfMessageAttributes"] = message.md5_of_message_attributes
                if entry.get("MessageSystemAttributes"):
                    result_entry["MD5OfMessageSystemAttributes"] = checksums.message_attributes_md5(
                        entry["MessageSystemAttributes"]
                    )
                if entry.get("DelaySeconds") is not None:
                    result_entry["DelaySeconds"] = entry["DelaySeconds"]
                if queue.fifo:
                    result_entry["SequenceNumber"] = message.sequence_number
                successful.append(result_entry)

        return SendMessageBatchResult(
            Successful=successful,
            Failed=failed,
        )

    def _put_message(
        self,
        queue: SqsQueue,
        message_body: String,
        delay_seconds: Integer = None,
        message_attributes: MessageBodyAttributeMap = None,
        message_system_attributes: MessageBodySystemAttributeMap = None,
        message_deduplication_id: String = None,
        message_group_id: String = None,
    ) -> SqsMessage:
        if message_body is None:
            raise MissingParameter("The request must contain the parameter MessageBody.")

        check_message_content(message_body)
        check_message_size(message_body, message_attributes, queue.attributes.maximum_message_size)
        check_attributes(message_attributes)
        check_system_attributes(message_system_attributes)
        check_fifo_id(message_deduplication_id, "MessageDeduplicationId")
        check_fifo_id(message_group_id, "MessageGroupId")
        check_delay_seconds(delay_seconds)

        if queue.fifo:
            if not message_group_id:
                raise MissingParameter("The request must contain the parameter MessageGroupId.")
            if message_deduplication_id is None and queue.attributes.content_based_deduplication:
                message_deduplication_id = checksums.content_deduplication_id(message_body)

        return queue.put(
            message_body,
            message_attributes=message_attributes,
            system_attributes=message_system_attributes,
            delay_seconds=delay_seconds,
            message_group_id=message_group_id,
            message_deduplication_id=message_deduplication_id,
        )

    def receive_message(
        self,
        context: RequestContext,
        queue_url: String,
        attribute_names: AttributeNameList = None,
        message_attribute_names: MessageAttributeNameList = None,
        max_number_of_messages: Integer = None,
        visibility_timeout: Integer = None,
        wait_time_seconds: Integer = None,
        receive_request_attempt_id: String = None,
    ) -> ReceiveMessageResult:
        queue = self._require_queue(queue_url)

        num = 1 if max_number_of_messages is None else max_number_of_messages
        if (
            num < 1 or num > sqs_constants.MAX_NUMBER_OF_MESSAGES
        ) and not config.SQS_DISABLE_MAX_NUMBER_OF_MESSAGE_LIMIT:
            raise InvalidParameterValue(
                f"Value {num} for parameter MaxNumberOfMessages is invalid. "
                f"Reason: Must be between 1 and 10, if provided."
            )
        if visibility_timeout is not None and not 0 <= visibility_timeout <= MAX_VISIBILITY_TIMEOUT:
            raise InvalidParameterValue(
                f"Value {visibility_timeout} for parameter VisibilityTimeout is invalid. "
                f"Reason: Must be between 0 and {MAX_VISIBILITY_TIMEOUT}, if provided."
            )
        # receive calls never block, the wait time is only validated
        if wait_time_seconds is not None and not 0 <= wait_time_seconds <= MAX_WAIT_TIME_SECONDS:
            raise InvalidParameterValue(
                f"Value {wait_time_seconds} for parameter WaitTimeSeconds is invalid. "
                f"Reason: Must be >= 0 and <= {MAX_WAIT_TIME_SECONDS}, if provided."
            )

        with queue.mutex:
            received = queue.receive(num, visibility_timeout)
            messages = [message.to_message() for message in received]

        for message in messages:
            message_filter_attributes(message, attribute_names)
            message_filter_message_attributes(message, message_attribute_names)
            if message.get("MessageAttributes"):
                message["MD5OfMessageAttributes"] = checksums.message_attributes_md5(
                    message["MessageAttributes"]
                )

        return ReceiveMessageResult(Messages=messages)

    def change_message_visibility(
        self,
        context: RequestContext,
        queue_url: String,
        receipt_handle: String,
        visibility_timeout: Integer,
    ) -> None:
        queue = self._require_queue(queue_url)
        self._change_visibility(queue, receipt_handle, visibility_timeout)

    def _change_visibility(self, queue: SqsQueue, receipt_handle: str, visibility_timeout: int):
        if visibility_timeout is None or not 0 <= visibility_timeout <= MAX_VISIBILITY_TIMEOUT:
            raise InvalidParameterValueClientError(
                "ChangeMessageVisibility",
                f"Value {visibility_timeout} for parameter VisibilityTimeout is invalid. "
                f"Reason: VisibilityTimeout must be an integer between 0 and {MAX_VISIBILITY_TIMEOUT}",
            )
        queue.update_visibility_timeout(receipt_handle, visibility_timeout)

    def change_message_visibility_batch(
        self,
        context: RequestContext,
        queue_url: String,
        entries: ChangeMessageVisibilityBatchRequestEntryList,
    ) -> ChangeMessageVisibilityBatchResult:
        queue = self._require_queue(queue_url)

        self._assert_batch(entries)

        successful = []
        failed = []

        with queue.mutex:
            for entry in entries:
                try:
                    self._change_visibility(
                        queue, entry.get("ReceiptHandle"), entry.get("VisibilityTimeout")
                    )
                except ServiceException as e:
                    failed.append(_error_entry(entry["Id"], e))
                    continue
                successful.append(ChangeMessageVisibilityBatchResultEntry(Id=entry["Id"]))

        return ChangeMessageVisibilityBatchResult(
            Successful=successful,
            Failed=failed,
        )

    def delete_message(
        self, context: RequestContext, queue_url: String, receipt_handle: String
    ) -> None:
        queue = self._require_queue(queue_url)
        queue.remove(receipt_handle)

    def delete_message_batch(
        self,
        context: RequestContext,
        queue_url: String,
        entries: DeleteMessageBatchRequestEntryList,
    ) -> DeleteMessageBatchResult:
        queue = self._require_queue(queue_url)
        self._assert_batch(entries)

        successful = []
        failed = []

        with queue.mutex:
            for entry in entries:
                receipt_handle = entry.get("ReceiptHandle")
                if not receipt_handle:
                    failed.append(
                        _error_entry(
                            entry["Id"],
                            MissingParameter("The request must contain the parameter ReceiptHandle."),
                        )
                    )
                    continue
                queue.remove(receipt_handle)
                successful.append(DeleteMessageBatchResultEntry(Id=entry["Id"]))

        return DeleteMessageBatchResult(
            Successful=successful,
            Failed=failed,
        )

    def purge_queue(self, context: RequestContext, queue_url: String) -> None:
        queue = self._require_queue(queue_url)
        queue.clear()

    def list_dead_letter_source_queues(
        self, context: RequestContext, queue_url: String
    ) -> ListDeadLetterSourceQueuesResult:
        dead_letter_queue = self._require_queue(queue_url)
        urls = [
            sqs_utils.queue_url(context.host, queue.name)
            for queue in self.store.dead_letter_source_queues(dead_letter_queue.arn)
        ]
        return ListDeadLetterSourceQueuesResult(queueUrls=urls)

    def get_queue_state(self, queue_url: str, host: str = None) -> Dict:
        """
        Returns a snapshot of the queue and all its messages, including their delivery state. Intended for tests and
        debugging.

        :param queue_url: the queue URL (or the queue name)
        :param host: the host used to build the queue URL in the snapshot
        :return: a dict with the queue name, url, arn, attributes, tags and messages
        """
        queue = self._require_queue(queue_url)
        state = queue.snapshot()
        state["QueueUrl"] = sqs_utils.queue_url(RequestContext(host=host).host, queue.name)
        return state

    def clear_queues(self):
        """Removes all queues."""
        LOG.debug("removing all queues")
        self.store.reset()

    def _assert_batch(self, batch: List) -> None:
        if not batch:
            raise EmptyBatchRequest()
        if batch and (no_entries := len(batch)) > sqs_constants.MAX_NUMBER_OF_MESSAGES:
            raise TooManyEntriesInBatchRequest(
                f"Maximum number of entries per request are {sqs_constants.MAX_NUMBER_OF_MESSAGES}. "
                f"You have sent {no_entries}."
            )
        visited = set()
        for entry in batch:
            entry_id = entry.get("Id") or ""
            if not re.match(sqs_constants.BATCH_ENTRY_ID_REGEX, entry_id):
                raise InvalidBatchEntryId(
                    "A batch entry id can only contain alphanumeric characters, hyphens and underscores. "
                    "It can be at most 80 letters long."
                )
            if entry_id in visited:
                raise BatchEntryIdsNotDistinct()
            visited.add(entry_id)
