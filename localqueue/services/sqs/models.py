import copy
import logging
import threading
from typing import Dict, List, NamedTuple, Optional

from localqueue.aws.api.sqs import (
    Message,
    MessageBodyAttributeMap,
    MessageBodySystemAttributeMap,
    MessageSystemAttributeName,
    QueueDoesNotExist,
    QueueNameExists,
    TagMap,
)
from localqueue.services.sqs import checksums
from localqueue.services.sqs import constants as sqs_constants
from localqueue.services.sqs.attributes import (
    QueueAttributes,
    RedrivePolicy,
    find_differing_attribute,
)
from localqueue.services.sqs.exceptions import InvalidParameterValue
from localqueue.services.sqs.utils import (
    encode_receipt_handle,
    generate_message_id,
    next_sequence_number,
    queue_arn,
    queue_name_from_arn,
)
from localqueue.utils.time import Clock, now_millis

LOG = logging.getLogger(__name__)

ReceiptHandle = str


class SqsMessage:
    """
    A message stored in a queue, together with its delivery state. All timestamps are epoch milliseconds.
    """

    message_id: str
    body: str
    message_attributes: MessageBodyAttributeMap
    system_attributes: MessageBodySystemAttributeMap
    message_group_id: Optional[str]
    message_deduplication_id: Optional[str]
    sequence_number: Optional[str]

    sent_timestamp: int
    available_since: int
    receive_count: int
    first_received: Optional[int]
    last_received: Optional[int]
    is_read: bool
    receipt_handle: Optional[ReceiptHandle]
    visibility_timeout_override: Optional[int]

    def __init__(
        self,
        body: str,
        sent_timestamp: int,
        message_attributes: MessageBodyAttributeMap = None,
        system_attributes: MessageBodySystemAttributeMap = None,
        message_group_id: str = None,
        message_deduplication_id: str = None,
        sequence_number: str = None,
        delay_seconds: int = 0,
    ) -> None:
        self.message_id = generate_message_id()
        self.body = body
        self.message_attributes = message_attributes or {}
        self.system_attributes = system_attributes or {}
        self.message_group_id = message_group_id
        self.message_deduplication_id = message_deduplication_id
        self.sequence_number = sequence_number

        self.sent_timestamp = sent_timestamp
        self.available_since = sent_timestamp + delay_seconds * 1000
        self.receive_count = 0
        self.first_received = None
        self.last_received = None
        self.is_read = False
        self.receipt_handle = None
        self.visibility_timeout_override = None

        self.md5_of_body = checksums.body_md5(body)
        self.md5_of_message_attributes = checksums.message_attributes_md5(self.message_attributes)

    def visibility_deadline(self, default_visibility_timeout: int) -> Optional[int]:
        if not self.is_read or self.last_received is None:
            return None
        timeout = self.visibility_timeout_override
        if timeout is None:
            timeout = default_visibility_timeout
        return self.last_received + timeout * 1000

    def is_inflight(self, now: int, default_visibility_timeout: int) -> bool:
        """
        Whether the message has been delivered and its visibility window has not yet elapsed.

        :param now: the current time
        :param default_visibility_timeout: the visibility timeout of the queue (seconds)
        """
        deadline = self.visibility_deadline(default_visibility_timeout)
        return deadline is not None and now < deadline

    def is_delayed(self, now: int) -> bool:
        return now < self.available_since

    def is_eligible(self, now: int, default_visibility_timeout: int) -> bool:
        return not self.is_inflight(now, default_visibility_timeout) and not self.is_delayed(now)

    def release(self):
        """Makes an in-flight message available again, the receipt handle of the last delivery becomes invalid."""
        self.is_read = False
        self.receipt_handle = None
        self.visibility_timeout_override = None

    def to_message(self) -> Message:
        """Creates the message as it is handed out by a receive call, with all system attributes."""
        attributes = {
            MessageSystemAttributeName.SenderId: sqs_constants.DEFAULT_SENDER_ID,
            MessageSystemAttributeName.SentTimestamp: str(self.sent_timestamp),
            MessageSystemAttributeName.ApproximateReceiveCount: str(self.receive_count),
            MessageSystemAttributeName.ApproximateFirstReceiveTimestamp: str(self.first_received or ""),
        }
        if self.message_group_id is not None:
            attributes[MessageSystemAttributeName.MessageGroupId] = self.message_group_id
        if self.message_deduplication_id is not None:
            attributes[MessageSystemAttributeName.MessageDeduplicationId] = self.message_deduplication_id
        if self.sequence_number is not None:
            attributes[MessageSystemAttributeName.SequenceNumber] = self.sequence_number
        trace_header = self.system_attributes.get(MessageSystemAttributeName.AWSTraceHeader)
        if trace_header and trace_header.get("StringValue") is not None:
            attributes[MessageSystemAttributeName.AWSTraceHeader] = trace_header["StringValue"]

        message = Message(
            MessageId=self.message_id,
            ReceiptHandle=self.receipt_handle,
            MD5OfBody=self.md5_of_body,
            Body=self.body,
            Attributes=attributes,
        )
        if self.message_attributes:
            message["MessageAttributes"] = copy.deepcopy(self.message_attributes)
        return message

    def snapshot(self) -> Dict:
        return {
            "MessageId": self.message_id,
            "MessageBody": self.body,
            "MessageAttributes": copy.deepcopy(self.message_attributes),
            "MessageSystemAttributes": copy.deepcopy(self.system_attributes),
            "MessageGroupId": self.message_group_id,
            "MessageDeduplicationId": self.message_deduplication_id,
            "SequenceNumber": self.sequence_number,
            "SentTimestamp": self.sent_timestamp,
            "AvailableSince": self.available_since,
            "ApproximateReceiveCount": self.receive_count,
            "ApproximateFirstReceiveTimestamp": self.first_received,
            "LastReceivedTimestamp": self.last_received,
            "VisibilityTimeout": self.visibility_timeout_override,
            "ReceiptHandle": self.receipt_handle,
            "IsRead": self.is_read,
        }

    def __repr__(self):
        return f"SqsMessage(id={self.message_id},group={self.message_group_id})"


class DeduplicationEntry(NamedTuple):
    message_id: str
    sent_timestamp: int


class DeduplicationIndex:
    """
    Maps deduplication ids of a FIFO queue to the most recent message that was sent with that id. An entry is only
    considered within the deduplication interval after the message was sent; expired entries are evicted lazily.
    """

    entries: Dict[str, DeduplicationEntry]

    def __init__(self, interval: int = sqs_constants.DEDUPLICATION_INTERVAL_IN_MILLIS) -> None:
        self.interval = interval
        self.entries = {}

    def is_duplicate(self, deduplication_id: str, now: int) -> bool:
        entry = self.entries.get(deduplication_id)
        if entry is None:
            return False
        if now - entry.sent_timestamp >= self.interval:
            del self.entries[deduplication_id]
            return False
        return True

    def record(self, deduplication_id: str, message: SqsMessage):
        self.entries[deduplication_id] = DeduplicationEntry(message.message_id, message.sent_timestamp)

    def evict(self, now: int):
        for deduplication_id, entry in list(self.entries.items()):
            if now - entry.sent_timestamp >= self.interval:
                del self.entries[deduplication_id]

    def clear(self):
        self.entries.clear()

    def __len__(self):
        return len(self.entries)


class SqsQueue:
    """
    A queue and the ordered collection of its messages. Messages are kept in send order, all state transitions
    (delivery, visibility expiry, retention) are computed from timestamps at the time a queue is accessed.
    """

    name: str
    attributes: QueueAttributes
    tags: TagMap
    messages: List[SqsMessage]
    deduplication: DeduplicationIndex
    last_modified_timestamp: int

    def __init__(
        self, name: str, attributes: QueueAttributes = None, tags: TagMap = None, clock: Clock = None
    ) -> None:
        self.name = name
        self.clock = clock or now_millis
        self.attributes = attributes or QueueAttributes()
        self.tags = dict(tags or {})
        self.messages = []
        self.deduplication = DeduplicationIndex()
        self.last_modified_timestamp = self.attributes.created_timestamp or self.clock() // 1000
        self.mutex = threading.RLock()

    @property
    def arn(self) -> str:
        return queue_arn(self.name)

    @property
    def fifo(self) -> bool:
        return self.attributes.fifo_queue

    def update_attributes(self, attributes: QueueAttributes):
        with self.mutex:
            self.attributes = attributes
            self.last_modified_timestamp = self.clock() // 1000

    def _drop_expired(self, now: int):
        retention = self.attributes.message_retention_period * 1000
        expired = [m for m in self.messages if now >= m.sent_timestamp + retention]
        for message in expired:
            LOG.debug("message %s in queue %s exceeded the retention period", message.message_id, self.arn)
            self.messages.remove(message)

    def _release_expired(self, now: int):
        for message in self.messages:
            if message.is_read and not message.is_inflight(now, self.attributes.visibility_timeout):
                LOG.debug(
                    "visibility timeout of message %s in queue %s expired", message.message_id, self.arn
                )
                message.release()

    def put(
        self,
        body: str,
        message_attributes: MessageBodyAttributeMap = None,
        system_attributes: MessageBodySystemAttributeMap = None,
        delay_seconds: int = None,
        message_group_id: str = None,
        message_deduplication_id: str = None,
    ) -> SqsMessage:
        """
        Stores a new message at the end of the queue. On FIFO queues, a message whose deduplication id was already
        used within the deduplication interval is stored as well, but only becomes available after the interval.

        :param body: the message body
        :param message_attributes: the message attributes
        :param system_attributes: the message system attributes
        :param delay_seconds: the delay of the message, defaults to the delay of the queue
        :param message_group_id: the message group (FIFO queues)
        :param message_deduplication_id: the deduplication id (FIFO queues)
        :return: the stored message
        """
        if not self.fifo:
            # standard queues accept both ids but never use them
            message_group_id = None
            message_deduplication_id = None

        with self.mutex:
            now = self.clock()
            if delay_seconds is None:
                delay_seconds = self.attributes.delay_seconds

            message = SqsMessage(
                body,
                sent_timestamp=now,
                message_attributes=message_attributes,
                system_attributes=system_attributes,
                message_group_id=message_group_id,
                message_deduplication_id=message_deduplication_id,
                sequence_number=next_sequence_number() if self.fifo else None,
                delay_seconds=delay_seconds,
            )

            self.deduplication.evict(now)
            if self.fifo and message_deduplication_id is not None:
                if self.deduplication.is_duplicate(message_deduplication_id, now):
                    message.available_since = max(
                        message.available_since, now + self.deduplication.interval
                    )
                    LOG.debug(
                        "message %s in queue %s is a duplicate of deduplication id %s, deferred until %s",
                        message.message_id,
                        self.arn,
                        message_deduplication_id,
                        message.available_since,
                    )
                self.deduplication.record(message_deduplication_id, message)

            self.messages.append(message)
            LOG.debug("put message %s into queue %s", message.message_id, self.arn)
            return message

    def receive(self, num_messages: int = 1, visibility_timeout: int = None) -> List[SqsMessage]:
        """
        Delivers up to ``num_messages`` eligible messages in send order. Every delivered message becomes in-flight
        with a new receipt handle.

        :param num_messages: the maximum number of messages to deliver
        :param visibility_timeout: overrides the visibility timeout of the queue for the delivered messages
        :return: the delivered messages
        """
        with self.mutex:
            now = self.clock()
            self._drop_expired(now)
            self._release_expired(now)

            result = []
            for message in self.messages:
                if len(result) >= num_messages:
                    break
                if not message.is_eligible(now, self.attributes.visibility_timeout):
                    continue

                message.is_read = True
                message.receive_count += 1
                if message.first_received is None:
                    message.first_received = now
                message.last_received = now
                message.visibility_timeout_override = visibility_timeout
                message.receipt_handle = encode_receipt_handle(self.arn, message.message_id, now)
                LOG.debug("de-queued message %s from queue %s", message.message_id, self.arn)
                result.append(message)

            return result

    def _find_inflight(self, receipt_handle: str) -> Optional[SqsMessage]:
        for message in self.messages:
            if message.is_read and message.receipt_handle == receipt_handle:
                return message
        return None

    def update_visibility_timeout(self, receipt_handle: str, visibility_timeout: int) -> bool:
        """
        Changes the visibility timeout of an in-flight message, counting from now. Unknown receipt handles are
        ignored.

        :return: whether a message was found for the receipt handle
        """
        with self.mutex:
            message = self._find_inflight(receipt_handle)
            if message is None:
                LOG.debug(
                    "no in-flight message found for receipt handle %s in queue %s", receipt_handle, self.arn
                )
                return False

            message.visibility_timeout_override = visibility_timeout
            message.last_received = self.clock()
            LOG.debug(
                "changed visibility timeout of message %s to %s", message.message_id, visibility_timeout
            )
            return True

    def remove(self, receipt_handle: str) -> bool:
        """
        Deletes the message that was last delivered with the given receipt handle. Unknown receipt handles are
        ignored.

        :return: whether a message was deleted
        """
        with self.mutex:
            message = self._find_inflight(receipt_handle)
            if message is None:
                LOG.debug(
                    "no in-flight message found for receipt handle %s in queue %s", receipt_handle, self.arn
                )
                return False

            self.messages.remove(message)
            LOG.debug("deleting message %s from queue %s", message.message_id, self.arn)
            return True

    def clear(self):
        with self.mutex:
            LOG.debug("purging %d messages from queue %s", len(self.messages), self.arn)
            self.messages.clear()
            self.deduplication.clear()

    @property
    def approx_number_of_messages(self) -> int:
        with self.mutex:
            now = self.clock()
            self._drop_expired(now)
            timeout = self.attributes.visibility_timeout
            return len([m for m in self.messages if m.is_eligible(now, timeout)])

    @property
    def approx_number_of_messages_not_visible(self) -> int:
        with self.mutex:
            now = self.clock()
            self._drop_expired(now)
            timeout = self.attributes.visibility_timeout
            return len([m for m in self.messages if m.is_inflight(now, timeout)])

    @property
    def approx_number_of_messages_delayed(self) -> int:
        with self.mutex:
            now = self.clock()
            self._drop_expired(now)
            timeout = self.attributes.visibility_timeout
            return len(
                [m for m in self.messages if m.is_delayed(now) and not m.is_inflight(now, timeout)]
            )

    def snapshot(self) -> Dict:
        with self.mutex:
            self._drop_expired(self.clock())
            return {
                "QueueName": self.name,
                "QueueArn": self.arn,
                "Attributes": self.attributes,
                "LastModifiedTimestamp": self.last_modified_timestamp,
                "tags": dict(self.tags),
                "messages": [message.snapshot() for message in self.messages],
            }

    def __repr__(self):
        return f"SqsQueue(name={self.name},fifo={self.fifo})"


class SqsStore:
    """
    Registry of all queues of an engine instance, by name and in creation order.
    """

    queues: Dict[str, SqsQueue]

    def __init__(self, clock: Clock = None) -> None:
        self.clock = clock or now_millis
        self.queues = {}
        self.mutex = threading.RLock()

    def check_redrive_policy(self, redrive_policy: Optional[RedrivePolicy], fifo: bool):
        """
        Checks that the dead-letter target of the given redrive policy exists and is of the same type (FIFO or
        standard) as the source queue.

        :raises InvalidParameterValue: if the target does not exist or the queue types do not match
        """
        if redrive_policy is None:
            return

        target = self.find_queue_by_arn(redrive_policy.dead_letter_target_arn)
        if target is None:
            raise InvalidParameterValue(redrive_policy.error_message("Dead letter target does not exist."))
        if target.fifo != fifo:
            raise InvalidParameterValue(
                redrive_policy.error_message("Dead-letter target owner should be same as the source.")
            )

    def create_queue(self, name: str, attributes: QueueAttributes, tags: TagMap = None) -> SqsQueue:
        """
        Creates a new queue, or returns the existing queue with the same name if its attributes are identical.

        :param name: the queue name (already validated)
        :param attributes: the effective attributes of the new queue
        :param tags: the tags of the new queue
        :return: the new or existing queue
        :raises QueueNameExists: if a queue with the name but different attributes exists
        """
        with self.mutex:
            self.check_redrive_policy(attributes.redrive_policy, attributes.fifo_queue)

            if existing := self.queues.get(name):
                if differing := find_differing_attribute(existing.attributes, attributes):
                    raise QueueNameExists(
                        f"A queue already exists with the same name and a different value for attribute {differing}"
                    )
                return existing

            queue = SqsQueue(name, attributes, tags, clock=self.clock)
            self.queues[name] = queue
            LOG.debug("created queue %s", queue.arn)
            return queue

    def get_queue(self, name: Optional[str]) -> SqsQueue:
        with self.mutex:
            queue = self.queues.get(name) if name else None
            if queue is None:
                raise QueueDoesNotExist()
            return queue

    def find_queue_by_arn(self, arn: str) -> Optional[SqsQueue]:
        name = queue_name_from_arn(arn)
        if name is None:
            return None
        with self.mutex:
            return self.queues.get(name)

    def delete_queue(self, name: str) -> SqsQueue:
        with self.mutex:
            queue = self.get_queue(name)
            del self.queues[name]
            LOG.debug("deleted queue %s", queue.arn)
            return queue

    def list_queue_names(self, prefix: str = None) -> List[str]:
        with self.mutex:
            return [name for name in self.queues if not prefix or name.startswith(prefix)]

    def dead_letter_source_queues(self, arn: str) -> List[SqsQueue]:
        with self.mutex:
            return [
                queue
                for queue in self.queues.values()
                if queue.attributes.redrive_policy
                and queue.attributes.redrive_policy.dead_letter_target_arn == arn
            ]

    def reset(self):
        with self.mutex:
            self.queues.clear()
