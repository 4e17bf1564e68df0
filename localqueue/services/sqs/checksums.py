"""
Content digests of messages. The body digest is the hex MD5 of the UTF-8 encoded body, the attribute digest follows
the algorithm SQS clients use to verify message attributes, built on moto's message helpers.
"""
import hashlib
from typing import Optional, Union

from moto.sqs.models import BINARY_TYPE_FIELD_INDEX, STRING_TYPE_FIELD_INDEX
from moto.sqs.models import Message as MotoMessage

from localqueue.aws.api.sqs import MessageBodyAttributeMap
from localqueue.utils.strings import md5, sha256


def body_md5(body: Union[str, bytes]) -> str:
    return md5(body)


def message_attributes_md5(message_attributes: Optional[MessageBodyAttributeMap]) -> Optional[str]:
    """
    Calculates the MD5 digest of the given message attributes. Every attribute (ordered by name) contributes its
    length-prefixed name, data type, a transport type marker and its length-prefixed value.

    :param message_attributes: the message attributes, binary values as bytes
    :return: the hex digest, or None if there are no attributes
    """
    if not message_attributes:
        return None

    digest = hashlib.md5()
    for name in sorted(message_attributes.keys()):
        value = message_attributes[name]
        MotoMessage.update_binary_length_and_value(digest, MotoMessage.utf8(name))
        MotoMessage.update_binary_length_and_value(digest, MotoMessage.utf8(value["DataType"]))
        if value.get("StringValue") is not None:
            digest.update(bytearray([STRING_TYPE_FIELD_INDEX]))
            MotoMessage.update_binary_length_and_value(digest, MotoMessage.utf8(value["StringValue"]))
        elif value.get("BinaryValue") is not None:
            digest.update(bytearray([BINARY_TYPE_FIELD_INDEX]))
            MotoMessage.update_binary_length_and_value(digest, MotoMessage.utf8(value["BinaryValue"]))
    return digest.hexdigest()


def content_deduplication_id(body: Union[str, bytes]) -> str:
    """Deduplication id derived from the message body, used for content-based deduplication."""
    return sha256(body)
