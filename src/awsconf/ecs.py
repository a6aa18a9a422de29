#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Credentials from the container credentials endpoint (ECS task roles).

ECS and similar container platforms serve task role credentials over HTTP and
tell the process where to find them through the environment:

`AWS_CONTAINER_CREDENTIALS_RELATIVE_URI`
:  A path on the ECS agent at `http://169.254.170.2`. Takes precedence.

`AWS_CONTAINER_CREDENTIALS_FULL_URI`
:  A complete URI. It must use HTTPS or point at a loopback address so
credentials are never sent in the clear to a remote host.

`AWS_CONTAINER_AUTHORIZATION_TOKEN`
:  Optional value sent in the `Authorization` header.
"""

import ipaddress
import logging
from urllib.parse import urlparse

from awsconf.aio import with_timeout
from awsconf.chain import CredentialsProvider
from awsconf.errors import (
    InvalidConfiguration,
    NotConfigured,
    ProviderError,
    ProviderTimeout,
    ProviderUnreachable,
)
from awsconf.http import TransportError, TransportTimeout
from awsconf.json_credentials import parse_credentials

LOG = logging.getLogger(__name__)

ECS_HOST = "http://169.254.170.2"


class EcsCredentialsProvider(CredentialsProvider):
    """Provides credentials from the container credentials endpoint.

    Raises `NotConfigured` when neither URI variable is set and
    `InvalidConfiguration` when the full URI is not allowed.
    """

    name = "EcsContainer"

    def __init__(self, provider_config, connect_timeout=2, read_timeout=5, timeout=5):
        self.conf = provider_config
        self.http_timeout = (connect_timeout, read_timeout)
        self.timeout = timeout

    def uri(self):
        """Returns the endpoint URI or `None` if the provider is not configured."""
        env = self.conf.env
        relative = (env.get("AWS_CONTAINER_CREDENTIALS_RELATIVE_URI") or "").strip()
        if relative:
            return ECS_HOST + ("" if relative.startswith("/") else "/") + relative

        full = (env.get("AWS_CONTAINER_CREDENTIALS_FULL_URI") or "").strip()
        if not full:
            return None

        parsed = urlparse(full)
        if parsed.scheme == "https" or (
            parsed.scheme == "http" and _is_loopback(parsed.hostname)
        ):
            return full

        raise InvalidConfiguration(
            f"{full!r} must use https or a loopback host",
            setting="AWS_CONTAINER_CREDENTIALS_FULL_URI",
        )

    async def provide(self):
        uri = self.uri()
        if uri is None:
            raise NotConfigured("container credentials URI not set")
        return await with_timeout(self._fetch(uri), self.timeout, self.name)

    async def _fetch(self, uri):
        headers = {"Accept": "application/json"}
        token = self.conf.env.get("AWS_CONTAINER_AUTHORIZATION_TOKEN")
        if token:
            headers["Authorization"] = token

        LOG.info("fetching container credentials from %s", uri)
        try:
            resp = await self.conf.http_client.send(
                "GET", uri, headers=headers, timeout=self.http_timeout
            )
        except TransportTimeout as e:
            raise ProviderTimeout(f"{self.name}: {e}", source=self.name) from e
        except TransportError as e:
            raise ProviderUnreachable(f"{self.name}: {e}", source=self.name) from e

        if resp.status >= 500:
            raise ProviderUnreachable(
                f"{self.name}: endpoint returned {resp.status}", source=self.name
            )
        if not resp.ok:
            raise ProviderError(
                f"{self.name}: endpoint returned {resp.status}", source=self.name
            )
        try:
            text = resp.text
        except UnicodeDecodeError as e:
            raise ProviderError(
                f"{self.name}: response is not UTF-8", source=self.name
            ) from e
        return parse_credentials(text, self.name)

    def __repr__(self):
        return "EcsCredentialsProvider()"


def _is_loopback(host):
    if not host:
        return False
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False
