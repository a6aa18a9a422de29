#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""HTTP transport used by the metadata and container credential providers.

`HttpClient` is the capability the providers depend on: issue a request and
return a response, or fail, within a caller-specified `(connect, read)`
timeout. `RequestsHttpClient` is the default implementation. It sends requests
with a shared `requests.Session` in a worker thread so the event loop is never
blocked. Tests substitute their own `HttpClient`.
"""

import asyncio
import json
import logging
import threading

import requests

LOG = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a request cannot be sent or no response was received."""


class TransportTimeout(TransportError):
    """Raised when a request did not complete within its timeout."""


class HttpResponse:
    """A response to an HTTP request."""

    def __init__(self, status, body=b"", headers=None):
        self.status = status
        self.body = body if isinstance(body, bytes) else body.encode("utf-8")
        self.headers = {} if headers is None else headers

    @property
    def ok(self):
        return 200 <= self.status < 300

    @property
    def text(self):
        return self.body.decode("utf-8")

    def json(self):
        return json.loads(self.text)

    def __repr__(self):
        return f"HttpResponse(status={self.status}, {len(self.body)} bytes)"


class HttpClient:
    """Sends HTTP requests.

    This is an abstract base class and cannot be instantiated directly.
    """

    async def send(self, method, url, headers=None, timeout=None):
        """Returns an `HttpResponse` for the request.

        `timeout` is a `(connect, read)` tuple of seconds, or `None` for no
        limit. Raises `TransportTimeout` if the request does not complete in
        time and `TransportError` if it cannot be sent at all.
        """
        raise NotImplementedError


class RequestsHttpClient(HttpClient):
    """An `HttpClient` backed by the requests library.

    A single `requests.Session` is created lazily and reused for every request
    to benefit from connection pooling. The session is protected by a lock
    because requests sessions are not guaranteed to be thread-safe.
    """

    def __init__(self):
        self._session = None
        self._lock = threading.Lock()

    async def send(self, method, url, headers=None, timeout=None):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._send_blocking, method, url, headers or {}, timeout
        )

    def _send_blocking(self, method, url, headers, timeout):
        with self._lock:
            if self._session is None:
                self._session = requests.Session()
            session = self._session

        LOG.debug("%s %s", method, url)
        try:
            resp = session.request(
                method, url, headers=headers, timeout=timeout, allow_redirects=False
            )
        except requests.exceptions.Timeout as e:
            raise TransportTimeout(f"{method} {url} timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        return HttpResponse(resp.status_code, resp.content, dict(resp.headers))

    def close(self):
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None

    def __repr__(self):
        return "RequestsHttpClient()"
