# Valid unicode values: #x9 | #xA | #xD | #x20 to #xD7FF | #xE000 to #xFFFD | #x10000 to #x10FFFF
# https://docs.aws.amazon.com/AWSSimpleQueueService/latest/APIReference/API_SendMessage.html
MSG_CONTENT_REGEX = "^[\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]*$"

# While not documented, umlauts seem to be allowed
ATTR_NAME_CHAR_REGEX = "^[\u00c0-\u017fa-zA-Z0-9_.-]*$"
ATTR_NAME_PREFIX_SUFFIX_REGEX = r"^(?!(aws\.|amazon\.|\.)).*(?<!\.)$"
ATTR_TYPE_REGEX = "^(String|Number|Binary).*$"
FIFO_MSG_REGEX = "^[0-9a-zA-Z!\"#$%&'()*+,./:;<=>?@[\\]^_`{|}~-]*$"

QUEUE_NAME_REGEX = r"^[a-zA-Z0-9_-]{1,80}$"
BATCH_ENTRY_ID_REGEX = r"^[\w-]{1,80}$"
FIFO_SUFFIX = ".fifo"

# the window in which a repeated deduplication key defers the delivery of the new message
DEDUPLICATION_INTERVAL_IN_SEC = 5 * 60
DEDUPLICATION_INTERVAL_IN_MILLIS = DEDUPLICATION_INTERVAL_IN_SEC * 1000

# the default maximum message size in SQS
DEFAULT_MAXIMUM_MESSAGE_SIZE = 262144

# maximum number of messages per receive call and of entries per batch call
MAX_NUMBER_OF_MESSAGES = 10

# fixed pseudo region/account used in queue ARNs
QUEUE_ARN_PREFIX = "arn:aws:sqs:us-east-1:queues:"
QUEUE_URL_PATH = "queues"

# sender id reported in the system attributes of every message
DEFAULT_SENDER_ID = "AAAAAAAAAAAAAAAAAAAAA:i-00a0aaa0aaa000000"

# request id reported in every response document
DEFAULT_REQUEST_ID = "00000000-0000-0000-0000-000000000000"

API_VERSION = "2012-11-05"
XMLNS_SQS = f"http://queue.amazonaws.com/doc/{API_VERSION}/"
