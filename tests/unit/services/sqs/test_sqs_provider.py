import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from localqueue.aws.api.sqs import (
    BatchEntryIdsNotDistinct,
    EmptyBatchRequest,
    InvalidAttributeName,
    InvalidBatchEntryId,
    InvalidMessageContents,
    QueueDoesNotExist,
    QueueNameExists,
    TooManyEntriesInBatchRequest,
)
from localqueue.services.sqs.exceptions import (
    InvalidAttributeValue,
    InvalidParameterValue,
    InvalidParameterValueClientError,
    MissingParameter,
)
from localqueue.services.sqs.provider import check_message_size
from localqueue.utils.strings import short_uid


def _receive(sqs_provider, request_context, queue_url, **kwargs):
    return sqs_provider.receive_message(request_context, queue_url=queue_url, **kwargs)["Messages"]


class TestQueues:
    def test_create_queue_and_get_url(self, sqs_provider, request_context):
        result = sqs_provider.create_queue(request_context, queue_name="foo-bar")
        assert result["QueueUrl"] == "http://localhost:3000/queues/foo-bar"

        result = sqs_provider.get_queue_url(request_context, queue_name="foo-bar")
        assert result["QueueUrl"] == "http://localhost:3000/queues/foo-bar"

    def test_get_url_of_missing_queue(self, sqs_provider, request_context):
        with pytest.raises(QueueDoesNotExist) as e:
            sqs_provider.get_queue_url(request_context, queue_name="missing")
        assert e.value.code == "AWS.SimpleQueueService.NonExistentQueue"
        assert e.value.message == "The specified queue does not exist for this wsdl version."

    def test_create_queue_is_idempotent(self, sqs_provider, request_context):
        attributes = {"DelaySeconds": "5", "VisibilityTimeout": "20"}
        first = sqs_provider.create_queue(request_context, queue_name="foo", attributes=attributes)
        second = sqs_provider.create_queue(
            request_context, queue_name="foo", attributes=dict(attributes)
        )
        assert first == second
        assert sqs_provider.list_queues(request_context)["QueueUrls"] == [first["QueueUrl"]]

    def test_create_queue_with_different_attributes(self, sqs_provider, request_context):
        queue_url = sqs_provider.create_queue(
            request_context, queue_name="foo", attributes={"DelaySeconds": "5"}
        )["QueueUrl"]

        with pytest.raises(QueueNameExists) as e:
            sqs_provider.create_queue(
                request_context, queue_name="foo", attributes={"DelaySeconds": "6"}
            )
        assert e.value.message.endswith("different value for attribute DelaySeconds")

        result = sqs_provider.get_queue_attributes(
            request_context, queue_url=queue_url, attribute_names=["DelaySeconds"]
        )
        assert result["Attributes"] == {"DelaySeconds": "5"}

    def test_create_queue_with_default_attributes_is_idempotent(self, sqs_provider, request_context):
        sqs_provider.create_queue(request_context, queue_name="foo")
        sqs_provider.create_queue(
            request_context, queue_name="foo", attributes={"VisibilityTimeout": "30"}
        )

    @pytest.mark.parametrize(
        "queue_name,attributes",
        [("foo", {"FifoQueue": "true"}), ("foo.fifo", {}), ("foo.fifo", {"FifoQueue": "false"})],
    )
    def test_fifo_suffix_mismatch(self, sqs_provider, request_context, queue_name, attributes):
        with pytest.raises(InvalidParameterValue):
            sqs_provider.create_queue(request_context, queue_name=queue_name, attributes=attributes)
        assert sqs_provider.list_queues(request_context)["QueueUrls"] == []

    def test_list_queues(self, sqs_provider, request_context, sqs_create_queue):
        first = sqs_create_queue(QueueName="queue-b")
        second = sqs_create_queue(QueueName="queue-a")
        third = sqs_create_queue(QueueName="other")

        assert sqs_provider.list_queues(request_context)["QueueUrls"] == [first, second, third]
        result = sqs_provider.list_queues(request_context, queue_name_prefix="queue-")
        assert result["QueueUrls"] == [first, second]

    def test_delete_queue(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        sqs_provider.delete_queue(request_context, queue_url=queue_url)

        with pytest.raises(QueueDoesNotExist):
            sqs_provider.delete_queue(request_context, queue_url=queue_url)
        with pytest.raises(QueueDoesNotExist):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")

    def test_queue_can_be_addressed_by_name(self, sqs_provider, request_context, sqs_create_queue):
        sqs_create_queue(QueueName="foo")
        sqs_provider.send_message(request_context, queue_url="foo", message_body="bar")
        assert _receive(sqs_provider, request_context, "foo")[0]["Body"] == "bar"

    def test_tags(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(tags={"a": "1"})
        sqs_provider.tag_queue(request_context, queue_url=queue_url, tags={"b": "2", "a": "3"})
        assert sqs_provider.list_queue_tags(request_context, queue_url=queue_url)["Tags"] == {
            "a": "3",
            "b": "2",
        }

        sqs_provider.untag_queue(request_context, queue_url=queue_url, tag_keys=["a", "missing"])
        assert sqs_provider.list_queue_tags(request_context, queue_url=queue_url)["Tags"] == {
            "b": "2"
        }


class TestQueueAttributes:
    def test_get_all_attributes(self, sqs_provider, request_context, sqs_create_queue, clock):
        queue_url = sqs_create_queue(QueueName="foo")
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="bar")
        sqs_provider.send_message(
            request_context, queue_url=queue_url, message_body="baz", delay_seconds=10
        )
        _receive(sqs_provider, request_context, queue_url)

        attributes = sqs_provider.get_queue_attributes(
            request_context, queue_url=queue_url, attribute_names=["All"]
        )["Attributes"]
        assert attributes == {
            "DelaySeconds": "0",
            "MaximumMessageSize": "262144",
            "MessageRetentionPeriod": "345600",
            "ReceiveMessageWaitTimeSeconds": "0",
            "VisibilityTimeout": "30",
            "FifoQueue": "false",
            "KmsMasterKeyId": "alias/aws/sqs",
            "KmsDataKeyReusePeriodSeconds": "300",
            "CreatedTimestamp": str(clock() // 1000),
            "LastModifiedTimestamp": str(clock() // 1000),
            "QueueArn": "arn:aws:sqs:us-east-1:queues:foo",
            "ApproximateNumberOfMessages": "1",
            "ApproximateNumberOfMessagesNotVisible": "1",
            "ApproximateNumberOfMessagesDelayed": "1",
        }

    def test_get_selected_attributes(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        result = sqs_provider.get_queue_attributes(
            request_context,
            queue_url=queue_url,
            attribute_names=["VisibilityTimeout", "ApproximateNumberOfMessages", "RedrivePolicy"],
        )
        assert result["Attributes"] == {"VisibilityTimeout": "30", "ApproximateNumberOfMessages": "0"}

    def test_get_unknown_attribute(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidAttributeName):
            sqs_provider.get_queue_attributes(
                request_context, queue_url=queue_url, attribute_names=["Foo"]
            )

    def test_set_attributes(self, sqs_provider, request_context, sqs_create_queue, clock):
        queue_url = sqs_create_queue(Attributes={"DelaySeconds": "5"})
        clock.advance(10)
        sqs_provider.set_queue_attributes(
            request_context, queue_url=queue_url, attributes={"VisibilityTimeout": "60"}
        )

        attributes = sqs_provider.get_queue_attributes(
            request_context, queue_url=queue_url, attribute_names=["All"]
        )["Attributes"]
        assert attributes["DelaySeconds"] == "5"
        assert attributes["VisibilityTimeout"] == "60"
        assert int(attributes["LastModifiedTimestamp"]) == int(attributes["CreatedTimestamp"]) + 10

    def test_set_invalid_attributes(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidAttributeValue):
            sqs_provider.set_queue_attributes(
                request_context,
                queue_url=queue_url,
                attributes={"DelaySeconds": "1", "MaximumMessageSize": "1"},
            )
        with pytest.raises(InvalidAttributeName):
            sqs_provider.set_queue_attributes(
                request_context, queue_url=queue_url, attributes={"QueueArn": "foo"}
            )

        result = sqs_provider.get_queue_attributes(
            request_context, queue_url=queue_url, attribute_names=["DelaySeconds"]
        )
        assert result["Attributes"] == {"DelaySeconds": "0"}


class TestRedrivePolicy:
    def test_dead_letter_target_does_not_exist(self, sqs_provider, request_context):
        policy = json.dumps(
            {"deadLetterTargetArn": "arn:aws:sqs:us-east-1:queues:missing", "maxReceiveCount": "5"}
        )
        with pytest.raises(InvalidParameterValue) as e:
            sqs_provider.create_queue(
                request_context, queue_name="source", attributes={"RedrivePolicy": policy}
            )
        assert e.value.message.endswith("Reason: Dead letter target does not exist.")
        assert "&quot;maxReceiveCount&quot;: &quot;5&quot;" in e.value.message

    def test_dead_letter_target_type_mismatch(self, sqs_provider, request_context, sqs_create_queue):
        sqs_create_queue(QueueName="dlq.fifo", Attributes={"FifoQueue": "true"})
        policy = {"deadLetterTargetArn": "arn:aws:sqs:us-east-1:queues:dlq.fifo", "maxReceiveCount": 5}
        with pytest.raises(InvalidParameterValue) as e:
            sqs_provider.create_queue(
                request_context, queue_name="source", attributes={"RedrivePolicy": policy}
            )
        assert e.value.message.endswith(
            "Reason: Dead-letter target owner should be same as the source."
        )

    def test_list_dead_letter_source_queues(self, sqs_provider, request_context, sqs_create_queue):
        dlq_url = sqs_create_queue(QueueName="dlq")
        policy = {"deadLetterTargetArn": "arn:aws:sqs:us-east-1:queues:dlq", "maxReceiveCount": 5}
        source_url = sqs_create_queue(QueueName="source", Attributes={"RedrivePolicy": policy})
        other_url = sqs_create_queue(QueueName="other")

        result = sqs_provider.list_dead_letter_source_queues(request_context, queue_url=dlq_url)
        assert result["queueUrls"] == [source_url]

        sqs_provider.set_queue_attributes(
            request_context, queue_url=other_url, attributes={"RedrivePolicy": json.dumps(policy)}
        )
        result = sqs_provider.list_dead_letter_source_queues(request_context, queue_url=dlq_url)
        assert result["queueUrls"] == [source_url, other_url]

        policy = sqs_provider.get_queue_attributes(
            request_context, queue_url=other_url, attribute_names=["RedrivePolicy"]
        )["Attributes"]["RedrivePolicy"]
        assert json.loads(policy) == {
            "deadLetterTargetArn": "arn:aws:sqs:us-east-1:queues:dlq",
            "maxReceiveCount": 5,
        }

    def test_set_redrive_policy_to_missing_target(
        self, sqs_provider, request_context, sqs_create_queue
    ):
        queue_url = sqs_create_queue()
        policy = {"deadLetterTargetArn": "arn:aws:sqs:us-east-1:queues:missing", "maxReceiveCount": 5}
        with pytest.raises(InvalidParameterValue):
            sqs_provider.set_queue_attributes(
                request_context, queue_url=queue_url, attributes={"RedrivePolicy": policy}
            )


class TestMessages:
    def test_send_receive_delete(self, sqs_provider, request_context):
        queue_url = sqs_provider.create_queue(request_context, queue_name="foo-bar")["QueueUrl"]

        result = sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        assert result["MD5OfMessageBody"] == "acbd18db4cc2f85cedef654fccc4a4d8"
        assert "MD5OfMessageAttributes" not in result
        assert "SequenceNumber" not in result

        messages = _receive(sqs_provider, request_context, queue_url)
        assert len(messages) == 1
        assert messages[0]["Body"] == "foo"
        assert messages[0]["MD5OfBody"] == "acbd18db4cc2f85cedef654fccc4a4d8"
        assert messages[0]["MessageId"] == result["MessageId"]

        sqs_provider.delete_message(
            request_context, queue_url=queue_url, receipt_handle=messages[0]["ReceiptHandle"]
        )
        assert _receive(sqs_provider, request_context, queue_url) == []
        assert sqs_provider.get_queue_state(queue_url)["messages"] == []

    def test_standard_queue_ignores_fifo_ids(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        for body in ("foo", "bar"):
            result = sqs_provider.send_message(
                request_context,
                queue_url=queue_url,
                message_body=body,
                message_group_id="1",
                message_deduplication_id="dedup",
            )
            assert "MessageDeduplicationId" not in result

        messages = _receive(
            sqs_provider,
            request_context,
            queue_url,
            max_number_of_messages=10,
            attribute_names=["All"],
        )
        assert [m["Body"] for m in messages] == ["foo", "bar"]
        for message in messages:
            assert "MessageGroupId" not in message["Attributes"]
            assert "MessageDeduplicationId" not in message["Attributes"]

    def test_delete_with_unknown_receipt_handle(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        sqs_provider.delete_message(request_context, queue_url=queue_url, receipt_handle="unknown")
        assert len(sqs_provider.get_queue_state(queue_url)["messages"]) == 1

        with pytest.raises(QueueDoesNotExist):
            sqs_provider.delete_message(
                request_context, queue_url="http://localhost/queues/missing", receipt_handle="unknown"
            )

    def test_message_attributes(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        message_attributes = {
            "timestamp": {"StringValue": "1493147359900", "DataType": "Number"},
            "data": {"BinaryValue": b"\x00\x01", "DataType": "Binary"},
        }
        result = sqs_provider.send_message(
            request_context,
            queue_url=queue_url,
            message_body="foo",
            message_attributes=message_attributes,
        )
        assert result["MD5OfMessageAttributes"]

        message = _receive(
            sqs_provider, request_context, queue_url, message_attribute_names=["All"]
        )[0]
        assert message["MessageAttributes"] == message_attributes
        assert message["MD5OfMessageAttributes"] == result["MD5OfMessageAttributes"]

    def test_message_attributes_are_filtered(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        sqs_provider.send_message(
            request_context,
            queue_url=queue_url,
            message_body="foo",
            message_attributes={
                "timestamp": {"StringValue": "1493147359900", "DataType": "Number"},
                "city": {"StringValue": "Vienna", "DataType": "String"},
            },
        )

        message = _receive(
            sqs_provider,
            request_context,
            queue_url,
            message_attribute_names=["timestamp"],
            visibility_timeout=0,
        )[0]
        assert list(message["MessageAttributes"].keys()) == ["timestamp"]
        assert message["MD5OfMessageAttributes"] == "235c5c510d26fb653d073faed50ae77c"
        assert "Attributes" not in message

        message = _receive(sqs_provider, request_context, queue_url)[0]
        assert "MessageAttributes" not in message
        assert "MD5OfMessageAttributes" not in message

    def test_system_attributes(self, sqs_provider, request_context, sqs_create_queue, clock):
        queue_url = sqs_create_queue()
        result = sqs_provider.send_message(
            request_context,
            queue_url=queue_url,
            message_body="foo",
            message_system_attributes={
                "AWSTraceHeader": {"StringValue": "Root=1-5759e988", "DataType": "String"}
            },
        )
        assert result["MD5OfMessageSystemAttributes"]

        message = _receive(sqs_provider, request_context, queue_url, attribute_names=["All"])[0]
        assert message["Attributes"]["SentTimestamp"] == str(clock())
        assert message["Attributes"]["ApproximateReceiveCount"] == "1"
        assert message["Attributes"]["ApproximateFirstReceiveTimestamp"] == str(clock())
        assert message["Attributes"]["AWSTraceHeader"] == "Root=1-5759e988"

    def test_invalid_system_attribute(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidParameterValue):
            sqs_provider.send_message(
                request_context,
                queue_url=queue_url,
                message_body="foo",
                message_system_attributes={"Foo": {"StringValue": "bar", "DataType": "String"}},
            )

    @pytest.mark.parametrize(
        "message_attributes",
        [
            {"a": {"StringValue": "b"}},
            {"a": {"StringValue": "b", "DataType": "Foo"}},
            {"a": {"StringValue": "abc", "DataType": "Number"}},
            {"a": {"DataType": "String"}},
            {"a": {"DataType": "Binary"}},
            {"AWS.a": {"StringValue": "b", "DataType": "String"}},
            {"a b": {"StringValue": "b", "DataType": "String"}},
        ],
    )
    def test_invalid_message_attributes(
        self, sqs_provider, request_context, sqs_create_queue, message_attributes
    ):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidParameterValue):
            sqs_provider.send_message(
                request_context,
                queue_url=queue_url,
                message_body="foo",
                message_attributes=message_attributes,
            )

    def test_invalid_message_body(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidMessageContents):
            sqs_provider.send_message(
                request_context, queue_url=queue_url, message_body="foo %s" % chr(8)
            )

    def test_message_too_large(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"MaximumMessageSize": "1024"})
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="a" * 1024)
        with pytest.raises(InvalidParameterValue):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body="a" * 1025)

    def test_check_message_size_counts_attributes(self):
        message_attributes = {"k": {"DataType": "String", "StringValue": "x"}}
        check_message_size("a" * 1016, message_attributes, 1024)
        with pytest.raises(InvalidParameterValue):
            check_message_size("a" * 1017, message_attributes, 1024)

    def test_delay_seconds(self, sqs_provider, request_context, sqs_create_queue, clock):
        queue_url = sqs_create_queue()
        result = sqs_provider.send_message(
            request_context, queue_url=queue_url, message_body="foo", delay_seconds=5
        )
        assert result["DelaySeconds"] == 5
        assert _receive(sqs_provider, request_context, queue_url) == []

        clock.advance(5)
        assert len(_receive(sqs_provider, request_context, queue_url)) == 1

        with pytest.raises(InvalidParameterValue):
            sqs_provider.send_message(
                request_context, queue_url=queue_url, message_body="foo", delay_seconds=901
            )

    def test_receive_max_number_of_messages(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        for i in range(12):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=str(i))

        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["Body"] for m in messages] == [str(i) for i in range(10)]

        for value in (0, 11):
            with pytest.raises(InvalidParameterValue):
                _receive(sqs_provider, request_context, queue_url, max_number_of_messages=value)

    def test_receive_limit_can_be_disabled(
        self, sqs_provider, request_context, sqs_create_queue, monkeypatch
    ):
        from localqueue import config

        monkeypatch.setattr(config, "SQS_DISABLE_MAX_NUMBER_OF_MESSAGE_LIMIT", True)
        queue_url = sqs_create_queue()
        for i in range(12):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=str(i))
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=12)
        assert len(messages) == 12

    def test_receive_validates_parameters(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(InvalidParameterValue):
            _receive(sqs_provider, request_context, queue_url, visibility_timeout=43201)
        with pytest.raises(InvalidParameterValue):
            _receive(sqs_provider, request_context, queue_url, wait_time_seconds=21)
        assert _receive(sqs_provider, request_context, queue_url, wait_time_seconds=20) == []

    def test_purge_queue(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        for i in range(3):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=str(i))
        _receive(sqs_provider, request_context, queue_url)

        sqs_provider.purge_queue(request_context, queue_url=queue_url)
        assert sqs_provider.get_queue_state(queue_url)["messages"] == []


class TestVisibility:
    def test_change_message_visibility(self, sqs_provider, request_context, sqs_create_queue, clock):
        queue_url = sqs_create_queue()
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        message = _receive(sqs_provider, request_context, queue_url)[0]

        sqs_provider.change_message_visibility(
            request_context,
            queue_url=queue_url,
            receipt_handle=message["ReceiptHandle"],
            visibility_timeout=0,
        )
        message = _receive(sqs_provider, request_context, queue_url, attribute_names=["All"])[0]
        assert message["Attributes"]["ApproximateReceiveCount"] == "2"

    @pytest.mark.parametrize("timeout", [-1, 43201])
    def test_change_message_visibility_out_of_range(
        self, sqs_provider, request_context, sqs_create_queue, timeout
    ):
        queue_url = sqs_create_queue()
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        message = _receive(sqs_provider, request_context, queue_url)[0]
        before = sqs_provider.get_queue_state(queue_url)["messages"]

        with pytest.raises(InvalidParameterValueClientError) as e:
            sqs_provider.change_message_visibility(
                request_context,
                queue_url=queue_url,
                receipt_handle=message["ReceiptHandle"],
                visibility_timeout=timeout,
            )
        assert e.value.code == "ClientError"
        assert e.value.message.startswith(
            "An error occurred (InvalidParameterValue) when calling the ChangeMessageVisibility operation:"
        )
        assert "43200" in e.value.message
        assert sqs_provider.get_queue_state(queue_url)["messages"] == before

    def test_change_message_visibility_unknown_handle(
        self, sqs_provider, request_context, sqs_create_queue
    ):
        queue_url = sqs_create_queue()
        sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        _receive(sqs_provider, request_context, queue_url)
        before = sqs_provider.get_queue_state(queue_url)["messages"]

        sqs_provider.change_message_visibility(
            request_context, queue_url=queue_url, receipt_handle="unknown", visibility_timeout=0
        )
        assert sqs_provider.get_queue_state(queue_url)["messages"] == before
        assert _receive(sqs_provider, request_context, queue_url) == []


class TestFifo:
    def test_content_based_deduplication(self, sqs_provider, request_context, clock):
        queue_url = sqs_provider.create_queue(
            request_context,
            queue_name="foo.fifo",
            attributes={"FifoQueue": "true", "ContentBasedDeduplication": "true"},
        )["QueueUrl"]

        first = sqs_provider.send_message(
            request_context, queue_url=queue_url, message_body="foo1", message_group_id="111"
        )
        second = sqs_provider.send_message(
            request_context, queue_url=queue_url, message_body="foo1", message_group_id="111"
        )
        third = sqs_provider.send_message(
            request_context,
            queue_url=queue_url,
            message_body="foo1",
            message_group_id="111",
            message_deduplication_id="other",
        )
        assert len(first["SequenceNumber"]) == 20
        assert int(second["SequenceNumber"]) > int(first["SequenceNumber"])
        assert first["MessageDeduplicationId"] == second["MessageDeduplicationId"]
        assert third["MessageDeduplicationId"] == "other"

        state = {m["MessageId"]: m for m in sqs_provider.get_queue_state(queue_url)["messages"]}
        assert state[first["MessageId"]]["AvailableSince"] == state[first["MessageId"]]["SentTimestamp"]
        second_state = state[second["MessageId"]]
        assert second_state["AvailableSince"] - second_state["SentTimestamp"] == 300000
        assert state[third["MessageId"]]["AvailableSince"] == state[third["MessageId"]]["SentTimestamp"]

        messages = _receive(
            sqs_provider, request_context, queue_url, max_number_of_messages=10, attribute_names=["All"]
        )
        assert [m["MessageId"] for m in messages] == [first["MessageId"], third["MessageId"]]
        assert messages[0]["Attributes"]["MessageGroupId"] == "111"
        assert messages[0]["Attributes"]["SequenceNumber"] == first["SequenceNumber"]

        clock.advance(300)
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["MessageId"] for m in messages] == [
            first["MessageId"],
            second["MessageId"],
            third["MessageId"],
        ]

    def test_explicit_deduplication_id(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"FifoQueue": "true"})
        for body in ("foo", "bar"):
            sqs_provider.send_message(
                request_context,
                queue_url=queue_url,
                message_body=body,
                message_group_id="1",
                message_deduplication_id="dedup",
            )
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["Body"] for m in messages] == ["foo"]

    def test_no_deduplication_without_id(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"FifoQueue": "true"})
        for _ in range(2):
            sqs_provider.send_message(
                request_context, queue_url=queue_url, message_body="foo", message_group_id="1"
            )
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert len(messages) == 2

    def test_group_id_is_required(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"FifoQueue": "true"})
        with pytest.raises(MissingParameter) as e:
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")
        assert e.value.code == "MissingParameter"

    def test_strict_send_order_across_groups(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"FifoQueue": "true"})
        for body, group in [("1", "a"), ("2", "b"), ("3", "a"), ("4", "b")]:
            sqs_provider.send_message(
                request_context, queue_url=queue_url, message_body=body, message_group_id=group
            )
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["Body"] for m in messages] == ["1", "2", "3", "4"]

    def test_invalid_deduplication_id(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue(Attributes={"FifoQueue": "true"})
        with pytest.raises(InvalidParameterValue):
            sqs_provider.send_message(
                request_context,
                queue_url=queue_url,
                message_body="foo",
                message_group_id="1",
                message_deduplication_id="a" * 129,
            )


class TestBatches:
    def test_send_message_batch(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        result = sqs_provider.send_message_batch(
            request_context,
            queue_url=queue_url,
            entries=[
                {"Id": "1", "MessageBody": "foo"},
                {"Id": "2", "MessageBody": "bar", "DelaySeconds": 1000},
                {"Id": "3", "MessageBody": "baz", "DelaySeconds": 0},
            ],
        )
        assert [entry["Id"] for entry in result["Successful"]] == ["1", "3"]
        assert result["Successful"][0]["MD5OfMessageBody"] == "acbd18db4cc2f85cedef654fccc4a4d8"
        assert result["Successful"][1]["DelaySeconds"] == 0
        assert len(result["Failed"]) == 1
        failed = result["Failed"][0]
        assert failed["Id"] == "2"
        assert failed["Code"] == "InvalidParameterValue"
        assert failed["SenderFault"] is True

        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["Body"] for m in messages] == ["foo", "baz"]

    def test_batch_hygiene(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        with pytest.raises(EmptyBatchRequest):
            sqs_provider.send_message_batch(request_context, queue_url=queue_url, entries=[])
        with pytest.raises(TooManyEntriesInBatchRequest):
            sqs_provider.send_message_batch(
                request_context,
                queue_url=queue_url,
                entries=[{"Id": str(i), "MessageBody": "foo"} for i in range(11)],
            )
        with pytest.raises(InvalidBatchEntryId):
            sqs_provider.delete_message_batch(
                request_context, queue_url=queue_url, entries=[{"Id": "a.b", "ReceiptHandle": "x"}]
            )
        with pytest.raises(BatchEntryIdsNotDistinct):
            sqs_provider.change_message_visibility_batch(
                request_context,
                queue_url=queue_url,
                entries=[
                    {"Id": "a", "ReceiptHandle": "x", "VisibilityTimeout": 0},
                    {"Id": "a", "ReceiptHandle": "y", "VisibilityTimeout": 0},
                ],
            )
        assert sqs_provider.get_queue_state(queue_url)["messages"] == []

    def test_delete_message_batch(self, sqs_provider, request_context, sqs_create_queue):
        queue_url = sqs_create_queue()
        for body in ("foo", "bar", "baz"):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=body)
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=2)

        result = sqs_provider.delete_message_batch(
            request_context,
            queue_url=queue_url,
            entries=[
                {"Id": "a", "ReceiptHandle": messages[0]["ReceiptHandle"]},
                {"Id": "b", "ReceiptHandle": messages[1]["ReceiptHandle"]},
                {"Id": "c", "ReceiptHandle": "unknown"},
            ],
        )
        assert [entry["Id"] for entry in result["Successful"]] == ["a", "b", "c"]
        assert result["Failed"] == []
        state = sqs_provider.get_queue_state(queue_url)["messages"]
        assert [m["MessageBody"] for m in state] == ["baz"]

    def test_change_message_visibility_batch(
        self, sqs_provider, request_context, sqs_create_queue
    ):
        queue_url = sqs_create_queue()
        for body in ("foo", "bar"):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=body)
        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=2)

        result = sqs_provider.change_message_visibility_batch(
            request_context,
            queue_url=queue_url,
            entries=[
                {"Id": "a", "ReceiptHandle": messages[0]["ReceiptHandle"], "VisibilityTimeout": 0},
                {"Id": "b", "ReceiptHandle": messages[1]["ReceiptHandle"], "VisibilityTimeout": -5},
            ],
        )
        assert [entry["Id"] for entry in result["Successful"]] == ["a"]
        assert result["Failed"][0]["Id"] == "b"
        assert result["Failed"][0]["Code"] == "ClientError"

        messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=10)
        assert [m["Body"] for m in messages] == ["foo"]


def test_get_queue_state(sqs_provider, request_context, sqs_create_queue):
    queue_url = sqs_create_queue(QueueName="foo", tags={"a": "b"})
    sqs_provider.send_message(request_context, queue_url=queue_url, message_body="bar")

    state = sqs_provider.get_queue_state(queue_url, host="localhost:3000")
    assert state["QueueName"] == "foo"
    assert state["QueueUrl"] == queue_url
    assert state["QueueArn"] == "arn:aws:sqs:us-east-1:queues:foo"
    assert state["tags"] == {"a": "b"}
    assert state["Attributes"].visibility_timeout == 30
    assert state["messages"][0]["MessageBody"] == "bar"
    assert state["messages"][0]["IsRead"] is False


def test_clear_queues(sqs_provider, request_context, sqs_create_queue):
    sqs_create_queue()
    sqs_provider.clear_queues()
    assert sqs_provider.list_queues(request_context)["QueueUrls"] == []


class TestConcurrency:
    def test_concurrent_receives_deliver_each_message_once(
        self, sqs_provider, request_context, sqs_create_queue
    ):
        queue_url = sqs_create_queue()
        for i in range(100):
            sqs_provider.send_message(request_context, queue_url=queue_url, message_body=f"message-{i}")

        def _drain():
            received = []
            while True:
                messages = _receive(sqs_provider, request_context, queue_url, max_number_of_messages=3)
                if not messages:
                    return received
                received.extend(m["MessageId"] for m in messages)

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(_drain) for _ in range(8)]
            message_ids = [message_id for future in futures for message_id in future.result(timeout=30)]

        assert len(message_ids) == 100
        assert len(set(message_ids)) == 100

    def test_queues_are_locked_independently(self, sqs_provider, request_context, sqs_create_queue):
        first_url = sqs_create_queue(QueueName=f"first-{short_uid()}")
        second_url = sqs_create_queue(QueueName=f"second-{short_uid()}")
        first_queue = sqs_provider.store.get_queue(first_url.rsplit("/", 1)[-1])

        def _send(queue_url):
            return sqs_provider.send_message(request_context, queue_url=queue_url, message_body="foo")

        with ThreadPoolExecutor(max_workers=2) as executor:
            with first_queue.mutex:
                to_first = executor.submit(_send, first_url)
                to_second = executor.submit(_send, second_url)
                to_second.result(timeout=5)
                assert not to_first.done()
            to_first.result(timeout=5)

        assert len(sqs_provider.get_queue_state(first_url)["messages"]) == 1
