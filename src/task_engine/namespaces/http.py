# http.py
# HTTP requests against the HTTP_TARGET variable, with a header storage the
# model can edit between requests.

import time
from urllib.parse import urljoin

import httpx
import structlog

from task_engine.errors import ActionError, MissingVariableError
from task_engine.namespaces.base import Action, Namespace, require_attribute, require_payload
from task_engine.storage import StorageDescriptor

logger = structlog.get_logger()

STORAGE = "http-headers"
TARGET_VARIABLE = "HTTP_TARGET"

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
    ),
    "Accept-Encoding": "deflate",
}

METHODS = {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"}


class ClearHeaders(Action):
    name = "http-clear-headers"
    description = "To clear all the HTTP headers that will be sent with the next requests:"

    async def run(self, state, attributes, payload):
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).clear()
        return "http headers cleared"


class SetHeader(Action):
    name = "http-set-header"
    description = "To set an HTTP header that will be sent with every following request:"
    example_attributes = {"name": "X-Header"}
    example_payload = "some-value-for-the-header"

    async def run(self, state, attributes, payload):
        key = require_attribute(attributes, "name")
        data = require_payload(payload)
        async with state.lock() as s:
            s.get_storage_mut(STORAGE).add_tagged(key, data)
        return "header set"


def create_url(target: str, page: str) -> str:
    """Join the requested page onto the target, adding a scheme if missing."""
    if "://" not in target:
        target = f"http://{target}"

    base = httpx.URL(target)
    if not base.host:
        raise ActionError(f"can't parse {target}")
    return urljoin(str(base), page)


class Request(Action):
    name = "http-request"
    description = (
        "To send an HTTP request to the target, specify the method as attribute "
        "and the path and query string as payload:"
    )
    example_attributes = {"method": "GET"}
    example_payload = "/index.php?id=1"
    required_variables = [TARGET_VARIABLE]
    timeout = 30.0

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def run(self, state, attributes, payload):
        method = require_attribute(attributes, "method").upper()
        if method not in METHODS:
            raise ActionError(f"unsupported HTTP method '{method}'")
        page = payload.strip() if payload else "/"

        async with state.lock() as s:
            target = s.get_variable(TARGET_VARIABLE)
            if target is None:
                raise MissingVariableError(TARGET_VARIABLE)
            headers = {key: entry.data for key, entry in s.get_storage(STORAGE).iter()}

        url = create_url(target, page)
        logger.info("http_request", method=method, url=url)

        start = time.monotonic()
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.request(method, url, headers=headers)
        elapsed = time.monotonic() - start

        status = f"{response.status_code} {response.reason_phrase}"
        if not response.is_success:
            logger.error("http_response", status=status, elapsed=round(elapsed, 3))
            raise ActionError(status)

        text = f"{status}\n"
        for key, value in response.headers.items():
            text += f"{key}: {value}\n"
        text += "\n\n"
        text += response.text

        logger.info("http_response", status=status, elapsed=round(elapsed, 3), size=len(text))
        return text


def get_namespace() -> Namespace:
    return Namespace.non_default(
        "Web",
        "You can use the web actions to interact with the HTTP target and inspect its responses.",
        [SetHeader(), ClearHeaders(), Request()],
        [StorageDescriptor.tagged(STORAGE).predefine(DEFAULT_HEADERS)],
    )
