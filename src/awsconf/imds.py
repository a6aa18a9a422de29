#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Credentials and region from the EC2 instance metadata service (IMDS).

## Overview

IMDS is a token-gated HTTP endpoint that is only reachable from an EC2
instance. `ImdsClient` implements the IMDSv2 session flow: a `PUT` to
`/latest/api/token` obtains a short-lived token, which is then sent in the
`X-aws-ec2-metadata-token` header of every `GET`. The token is reused until
shortly before it expires.

`ImdsCredentialsProvider`
:  Looks up the name of the instance role and fetches its credentials.

`ImdsRegionProvider`
:  Returns the region the instance is running in.

## Configuration

`AWS_EC2_METADATA_DISABLED`
:  If `true`, IMDS is never contacted and the providers report
`NotConfigured`.

`AWS_EC2_METADATA_SERVICE_ENDPOINT`
:  Overrides the endpoint, which defaults to `http://169.254.169.254`. The
`ec2_metadata_service_endpoint` setting of the selected profile is used when
the variable is not set.

## Errors

When not running on EC2, the endpoint usually cannot be reached at all. That
is reported as `ProviderUnreachable` (or `ProviderTimeout`), which credential
chains treat as a soft miss. A `403` or `404` from the token endpoint, or a
`404` when listing roles because the instance has no role, is reported as
`NotConfigured`.
"""

import logging
from datetime import timedelta

from awsconf.aio import with_timeout
from awsconf.chain import CredentialsProvider, Provider
from awsconf.config import URL, Bool, Config, Region
from awsconf.errors import (
    NotConfigured,
    ProviderError,
    ProviderTimeout,
    ProviderUnreachable,
)
from awsconf.http import TransportError, TransportTimeout
from awsconf.json_credentials import parse_credentials

LOG = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://169.254.169.254"
TOKEN_PATH = "/latest/api/token"
TOKEN_TTL = 21600
CREDENTIALS_PATH = "/latest/meta-data/iam/security-credentials/"
REGION_PATH = "/latest/meta-data/placement/region"

# Refresh the token this long before the service would expire it
_TOKEN_BUFFER = timedelta(seconds=120)


class ImdsClient:
    """Sends token-authenticated requests to IMDS.

    `provider_config` supplies the environment, profile, clock, and HTTP
    client. `connect_timeout` and `read_timeout` bound each HTTP request and
    `timeout` bounds a complete `get`, including the token request.
    """

    name = "Imds"

    def __init__(self, provider_config, connect_timeout=1, read_timeout=1, timeout=5):
        self.conf = provider_config
        self.http_timeout = (connect_timeout, read_timeout)
        self.timeout = timeout
        self._token = None
        self._token_expiry = None

    def is_disabled(self):
        return Config(self.conf.env).get(
            "AWS_EC2_METADATA_DISABLED", type=Bool, default=False
        )

    async def endpoint(self):
        endpoint = Config(self.conf.env).get(
            "AWS_EC2_METADATA_SERVICE_ENDPOINT", type=URL
        )
        if endpoint is None:
            profiles = await self.conf.profile()
            endpoint = profiles.config().get(
                "ec2_metadata_service_endpoint", type=URL, default=DEFAULT_ENDPOINT
            )
        return endpoint.rstrip("/")

    async def get(self, path):
        """Returns the body of `path` as text.

        Raises `NotConfigured` if IMDS is disabled or the path does not exist.
        """
        if self.is_disabled():
            raise NotConfigured("IMDS disabled by AWS_EC2_METADATA_DISABLED")
        return await with_timeout(self._get(path), self.timeout, self.name)

    async def _get(self, path):
        endpoint = await self.endpoint()
        token = await self._session_token(endpoint)
        resp = await self._send(
            "GET", endpoint + path, {"X-aws-ec2-metadata-token": token}
        )

        if resp.status == 404:
            raise NotConfigured(f"IMDS path {path} not found")
        if resp.status == 401:
            # token was rejected, fetch a new one next time
            self._token = None
            raise ProviderError(f"IMDS rejected session token for {path}", self.name)
        if not resp.ok:
            raise _status_error(resp, path)
        return _text(resp, path)

    async def _session_token(self, endpoint):
        now = self.conf.clock.now()
        if self._token is not None and now < self._token_expiry:
            return self._token

        resp = await self._send(
            "PUT",
            endpoint + TOKEN_PATH,
            {"X-aws-ec2-metadata-token-ttl-seconds": str(TOKEN_TTL)},
        )
        if resp.status in (403, 404):
            raise NotConfigured(f"IMDS token endpoint returned {resp.status}")
        if not resp.ok:
            raise _status_error(resp, TOKEN_PATH)

        self._token = _text(resp, TOKEN_PATH)
        self._token_expiry = now + timedelta(seconds=TOKEN_TTL) - _TOKEN_BUFFER
        LOG.debug("obtained IMDS session token")
        return self._token

    async def _send(self, method, url, headers):
        try:
            return await self.conf.http_client.send(
                method, url, headers=headers, timeout=self.http_timeout
            )
        except TransportTimeout as e:
            raise ProviderTimeout(f"IMDS: {e}", source=self.name) from e
        except TransportError as e:
            raise ProviderUnreachable(f"IMDS: {e}", source=self.name) from e


def _text(resp, path):
    try:
        return resp.text
    except UnicodeDecodeError as e:
        raise ProviderError(
            f"IMDS returned a body for {path} that is not UTF-8", ImdsClient.name
        ) from e


def _status_error(resp, path):
    if resp.status >= 500:
        return ProviderUnreachable(
            f"IMDS returned {resp.status} for {path}", source=ImdsClient.name
        )
    return ProviderError(f"IMDS returned {resp.status} for {path}", ImdsClient.name)


class ImdsCredentialsProvider(CredentialsProvider):
    """Provides the credentials of the EC2 instance role.

    Pass an existing `client` to share its session token with other IMDS
    providers.
    """

    name = "Imds"

    def __init__(self, provider_config, client=None):
        self.client = ImdsClient(provider_config) if client is None else client

    async def provide(self):
        roles = (await self.client.get(CREDENTIALS_PATH)).split()
        if not roles:
            raise NotConfigured("no IAM role attached to the instance")

        role = roles[0]
        LOG.info("fetching credentials for instance role %s", role)
        text = await self.client.get(CREDENTIALS_PATH + role)
        return parse_credentials(text, self.name)

    def __repr__(self):
        return "ImdsCredentialsProvider()"


class ImdsRegionProvider(Provider):
    """Provides the region of the EC2 instance."""

    name = "Imds(region)"

    def __init__(self, provider_config, client=None):
        self.client = ImdsClient(provider_config) if client is None else client

    async def provide(self):
        text = await self.client.get(REGION_PATH)
        try:
            return Region.parse(text)
        except ValueError as e:
            raise ProviderError(
                f"IMDS returned an invalid region: {text!r}", source=self.name
            ) from e

    def __repr__(self):
        return "ImdsRegionProvider()"
