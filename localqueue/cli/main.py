import logging
import sys

import click
from rich.console import Console

from localqueue import __version__, config
from localqueue.http.server import QueueServer

LOG = logging.getLogger(__name__)

console = Console()


def _setup_cli_logging(debug: bool):
    from localqueue.logging.setup import setup_logging_for_cli, setup_logging_from_config

    if debug:
        config.DEBUG = True
        setup_logging_for_cli(logging.DEBUG)
    else:
        setup_logging_from_config()


@click.command(name="localqueue", help="Run a local SQS-compatible message queue server")
@click.version_option(version=__version__, message="%(version)s")
@click.option("--host", default=config.LQ_HOST, help="Address to listen on", show_default=True)
@click.option(
    "--port", type=int, default=config.LQ_PORT, help="Port to listen on", show_default=True
)
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
def localqueue(host: str, port: int, debug: bool):
    _setup_cli_logging(debug)

    server = QueueServer(port, host=host)
    server.start()
    if not server.wait_is_up(timeout=10):
        error = server.get_error()
        raise click.ClickException(
            "could not start server on %s: %s" % (server.url, error or "timeout")
        )

    console.print("server listening on %s" % server.url)

    try:
        # join in short intervals so ctrl-c reaches the main thread
        while True:
            try:
                server.join(timeout=1)
                break
            except TimeoutError:
                continue
    except KeyboardInterrupt:
        console.print("shutting down")
    finally:
        server.shutdown()

    if server.get_error():
        sys.exit(1)


def main():
    localqueue()


if __name__ == "__main__":
    main()
