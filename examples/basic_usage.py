"""
Basic usage example for lokihandler.

Sends a few records to a local Loki instance, once through the
``handle(record)`` interface and once through the stdlib ``logging`` module.
"""

import logging

from lokihandler import LogRecord, LokiHandler, LokiLoggingHandler


def main() -> None:
    handler = LokiHandler(url="http://localhost:3100", enable_arg_naming=True)

    handler.handle(LogRecord("Example Message", "INFO"))
    handler.handle(
        LogRecord("Example Message with Object", "INFO", args=({"foo": "bar"},))
    )
    handler.handle(
        LogRecord(
            "Example Message with Named Object, and unnamed object",
            "INFO",
            args=(["ARGNAMES", "test"], {"foo": "bar"}, {"bar": "baz"}),
        )
    )
    handler.close(timeout=5)

    # Same handler behind the logging module; levels are filtered by logging
    adapter = LokiLoggingHandler(
        logging.DEBUG,
        url="http://localhost:3100",
        send_buffer_size=10,
        mode="JSON",
        enable_arg_naming=True,
    )
    logger = logging.getLogger("main")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(adapter)

    logger.info(
        "Test Command Invoked",
        ["ARGNAMES", "command", "method"],
        "DoAction",
        "HttpRequest",
    )
    logger.debug("Cache warmed", 128)
    adapter.close()


if __name__ == "__main__":
    main()
