"""
Invocation Handler

Entry point for externally triggered runs (cron events, function runtimes).
Returns an HTTP-style response; failure details only go to the logs.

Usage:
    from apps.exporter.handler import handler

    response = handler(event, context)  # {"statusCode": 200, "body": "ok"}
"""

import asyncio
import logging
import re
import traceback
from typing import Any, Optional

import aiohttp
import orjson

from apps.exporter.job import run_export
from utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

OK_RESPONSE = {"statusCode": 200, "body": "ok"}
ERROR_RESPONSE = {"statusCode": 500, "body": "Internal Server Error"}

# Credentials travel as query parameters and surface in request URLs.
_SECRET_PARAMS = re.compile(r"((?:corpsecret|access_token)=)[^&\s'\"\\)]+")


def redact_secrets(text: str) -> str:
    """Mask credential query values in `text`."""
    return _SECRET_PARAMS.sub(r"\1***", text)


def describe_error(error: BaseException) -> str:
    """Serialize an exception, including all of its attributes, for logging."""
    details: dict[str, Any] = dict(vars(error))
    if error.args:
        details.setdefault("args", error.args)
    details["type"] = type(error).__name__
    details["message"] = str(error)
    return redact_secrets(orjson.dumps(details, default=repr).decode("utf-8"))


async def handle(
    event: Any = None,
    context: Any = None,
    *,
    settings: Optional[Settings] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> dict[str, Any]:
    """
    Run one export and map the outcome to a response.

    Args:
        event: Trigger payload (unused)
        context: Runtime context (unused)
        settings: Settings override, defaults to the environment
        session: HTTP session override, one is created per run otherwise

    Returns:
        {"statusCode": 200, "body": "ok"} or the generic 500 response
    """
    config = settings or get_settings()

    try:
        result = await run_export(config, session=session)
    except Exception as e:
        logger.error(
            "Exception occurred: %s\n%s",
            describe_error(e),
            redact_secrets(traceback.format_exc()),
        )
        return dict(ERROR_RESPONSE)

    logger.info(
        "Handler execution completed successfully",
        extra={
            "file_name": result.file_name,
            "destination": result.destination,
            "contact_count": result.contact_count,
        },
    )
    return dict(OK_RESPONSE)


def handler(event: Any = None, context: Any = None) -> dict[str, Any]:
    """Synchronous wrapper around `handle` for function runtimes."""
    return asyncio.run(handle(event, context))
