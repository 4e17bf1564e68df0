import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from werkzeug.serving import BaseWSGIServer

from localqueue import config
from localqueue.aws.api.sqs import SqsApi
from localqueue.services.sqs.provider import SqsProvider
from localqueue.services.sqs.query_api import SqsQueryApi
from localqueue.utils.net import is_port_open
from localqueue.utils.sync import poll_condition

LOG = logging.getLogger(__name__)


class ThreadPoolWSGIServer(BaseWSGIServer):
    """
    A werkzeug WSGI server that handles requests in a bounded pool of worker threads, instead of creating a thread
    per request.
    """

    multithread = True

    def __init__(self, host: str, port: int, app, max_workers: int = None, **kwargs) -> None:
        super().__init__(host, port, app, **kwargs)
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers or config.LQ_MAX_WORKERS, thread_name_prefix="lq-worker"
        )

    def process_request(self, request, client_address):
        self.executor.submit(self.process_request_thread, request, client_address)

    def process_request_thread(self, request, client_address):
        try:
            self.finish_request(request, client_address)
        except Exception:
            self.handle_error(request, client_address)
        finally:
            self.shutdown_request(request)

    def server_close(self):
        super().server_close()
        self.executor.shutdown(wait=False)


class QueueServer:
    """
    Runs the SQS Query API in a ``ThreadPoolWSGIServer`` in a background thread, and implements its lifecycle.
    """

    def __init__(
        self,
        port: int,
        host: str = "localhost",
        provider: SqsApi = None,
        max_workers: int = None,
    ) -> None:
        self._host = host
        self._port = port
        self.provider = provider or SqsProvider()
        self.app = SqsQueryApi(self.provider)
        self.max_workers = max_workers

        self._server: Optional[ThreadPoolWSGIServer] = None
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[Exception] = None

        self._lifecycle_lock = threading.RLock()
        self._stopped = threading.Event()
        self._started = threading.Event()

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def url(self):
        return "http://%s:%s" % (self.host, self.port)

    def get_error(self) -> Optional[Exception]:
        """
        If the thread running the server returned with an Exception, then this function will return that exception.
        """
        return self._error

    def is_up(self) -> bool:
        """
        Checks whether the server is up by checking whether its port accepts connections.

        :returns: false if the server has not been started or is not reachable, true otherwise
        """
        if not self._started.is_set() or self._stopped.is_set():
            return False
        return is_port_open(self.host, self.port)

    def wait_is_up(self, timeout: float = None) -> bool:
        """
        Waits until the server is started and is_up returns true.

        :param timeout: the time in seconds to wait before returning false. If timeout is None, then wait indefinitely.
        :returns: true if the server is up, false if not or the timeout was reached while waiting.
        """
        self._started.wait(timeout=timeout)
        poll_condition(lambda: self.is_up() or self._stopped.is_set(), timeout=timeout, interval=0.1)
        return self.is_up()

    def start(self) -> bool:
        """
        Binds the server socket and starts serving in a new thread. Repeated calls to this function have no effect
        but return False. If the socket cannot be bound, the server is stopped right away and ``get_error`` returns
        the cause.

        :return: True if the server was started in this call, False if the server was already started previously
        """
        with self._lifecycle_lock:
            if self._started.is_set():
                return False
            self._started.set()

            try:
                self._server = ThreadPoolWSGIServer(
                    self.host, self.port, self.app, max_workers=self.max_workers
                )
            except SystemExit:
                # werkzeug exits instead of raising if the socket cannot be bound
                self._fail_start(OSError(f"cannot bind to {self.host}:{self.port}"))
                return True
            except Exception as e:
                self._fail_start(e)
                return True

            self._thread = threading.Thread(
                target=self._run, name=f"server-{self.__class__.__name__}", daemon=True
            )
            self._thread.start()
            return True

    def _fail_start(self, error: Exception):
        LOG.error("error while starting server %s: %s", self.url, error)
        self._error = error
        self._stopped.set()

    def _run(self):
        try:
            LOG.info("server listening on %s", self.url)
            self._server.serve_forever()
        except Exception as e:
            LOG.error("error while running server %s: %s", self.url, e)
            self._error = e
        finally:
            self._stopped.set()

    def shutdown(self) -> None:
        """
        Shuts down the server if it has been started, and waits until it stopped serving. Repeated calls to this
        function have no effect.

        :raises RuntimeError: shutdown was called before start
        """
        with self._lifecycle_lock:
            if not self._started.is_set():
                raise RuntimeError("cannot shutdown server before it is started")
            if self._stopped.is_set():
                return

            LOG.info("stopping server %s", self.url)
            # returns once serve_forever has exited, even if it had not entered its loop yet
            self._server.shutdown()
            self._stopped.set()

    def join(self, timeout=None):
        """
        Waits for the given amount of time until the thread running the server returns.

        :params: the time in seconds to wait. If None then wait indefinitely.
        :raises TimeoutError: If the server didn't shut down before the given timeout.
        """
        if not self._started.is_set():
            raise RuntimeError("cannot join server before it is started")
        if self._thread is None:
            return

        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError
