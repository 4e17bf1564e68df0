import logging
from typing import Callable

import pytest

from localqueue.aws.api import RequestContext
from localqueue.services.sqs.models import SqsStore
from localqueue.services.sqs.provider import SqsProvider
from localqueue.utils.strings import short_uid

LOG = logging.getLogger(__name__)

# a fixed point in time (epoch millis) the fake clock starts at
DEFAULT_START_MILLIS = 1_700_000_000_000


class FakeClock:
    """
    A settable millisecond clock that can be passed wherever a ``Clock`` is expected.
    """

    def __init__(self, millis: int = DEFAULT_START_MILLIS) -> None:
        self.millis = millis

    def __call__(self) -> int:
        return self.millis

    def advance(self, seconds: float = 0, millis: int = 0) -> int:
        self.millis += int(seconds * 1000) + millis
        return self.millis


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sqs_store(clock) -> SqsStore:
    return SqsStore(clock=clock)


@pytest.fixture
def sqs_provider(sqs_store) -> SqsProvider:
    provider = SqsProvider(store=sqs_store)
    yield provider
    provider.clear_queues()


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext(host="localhost:3000")


@pytest.fixture
def sqs_create_queue(sqs_provider, request_context) -> Callable[..., str]:
    """
    Factory that creates queues on the ``sqs_provider`` and returns their URL. Queues get a random name unless a
    ``QueueName`` is given, and are deleted after the test.
    """
    queue_urls = []

    def factory(**kwargs):
        if "QueueName" not in kwargs:
            kwargs["QueueName"] = "test-queue-%s" % short_uid()
            if (kwargs.get("Attributes") or {}).get("FifoQueue") in (True, "true"):
                kwargs["QueueName"] += ".fifo"

        response = sqs_provider.create_queue(
            request_context,
            queue_name=kwargs["QueueName"],
            attributes=kwargs.get("Attributes"),
            tags=kwargs.get("tags"),
        )
        url = response["QueueUrl"]
        queue_urls.append(url)

        return url

    yield factory

    # cleanup
    for queue_url in queue_urls:
        try:
            sqs_provider.delete_queue(request_context, queue_url=queue_url)
        except Exception as e:
            LOG.debug("error cleaning up queue %s: %s", queue_url, e)
