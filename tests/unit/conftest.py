#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#

# pylint: disable=redefined-outer-name,missing-docstring

from datetime import datetime, timedelta, timezone

import pytest

from awsconf.http import HttpClient, HttpResponse, TransportError
from awsconf.os_shim import Env, Fs
from awsconf.provider_config import ProviderConfig

HOME = "/home/user"


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, now=None):
        self._now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self):
        return self._now

    def advance(self, **kwargs):
        self._now += timedelta(**kwargs)


class StubHttpClient(HttpClient):
    """Serves canned responses keyed by (method, url) and records requests.

    A route may be an `HttpResponse`, an exception to raise, or a list of
    either, which are served in order with the last one repeating. Requests
    to unknown routes fail as unreachable.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def route(self, method, url, *responses):
        self.routes[(method, url)] = list(responses)
        return self

    async def send(self, method, url, headers=None, timeout=None):
        self.requests.append((method, url, dict(headers or {})))
        responses = self.routes.get((method, url))
        if not responses:
            raise TransportError(f"{method} {url}: connection refused")
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def urls(self, method=None):
        return [u for m, u, _ in self.requests if method is None or m == method]


class StubAwsClient:
    def __init__(self, factory, service):
        self.factory = factory
        self.service = service

    def __getattr__(self, operation):
        def call(**kwargs):
            self.factory.calls.append((self.service, operation, kwargs))
            result = self.factory.responses[operation]
            if isinstance(result, list):
                result = result.pop(0) if len(result) > 1 else result[0]
            if isinstance(result, Exception):
                raise result
            return result

        return call


class StubClientFactory:
    """Builds fake boto3 clients that answer with canned `responses`.

    `responses` maps an operation name such as `assume_role` to a response
    dict or an exception. Each client built and each call made is recorded.
    """

    def __init__(self, **responses):
        self.responses = responses
        self.clients = []
        self.calls = []

    def client(self, service, region, credentials=None, unsigned=False, **kwargs):
        self.clients.append(
            {
                "service": service,
                "region": region,
                "credentials": credentials,
                "unsigned": unsigned,
            }
        )
        return StubAwsClient(self, service)


def _ok(body, status=200):
    return HttpResponse(status, body)


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def http():
    return StubHttpClient()


@pytest.fixture()
def factory():
    return StubClientFactory()


@pytest.fixture()
def make_conf(clock, http, factory):
    """Returns a function building a `ProviderConfig` from plain dicts.

    `env` always includes `HOME`. `files` maps paths to contents; paths
    starting with `~` are placed in `HOME`.
    """

    def make(env=None, files=None, **kwargs):
        env = dict({"HOME": HOME}, **(env or {}))
        files = {
            (HOME + path[1:] if path.startswith("~") else path): content
            for path, content in (files or {}).items()
        }
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("http_client", http)
        kwargs.setdefault("client_factory", factory)
        return ProviderConfig(env=Env.from_dict(env), fs=Fs.from_dict(files), **kwargs)

    return make


@pytest.fixture()
def imds_routes(http):
    """Returns a function routing IMDS responses for `paths` on `http`."""

    def route(paths, token="imds-token"):
        http.route("PUT", "http://169.254.169.254/latest/api/token", _ok(token))
        for path, responses in paths.items():
            if not isinstance(responses, list):
                responses = [responses]
            responses = [
                r if isinstance(r, (HttpResponse, Exception)) else _ok(r)
                for r in responses
            ]
            http.route("GET", "http://169.254.169.254" + path, *responses)
        return http

    return route
