#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Providers that read configuration from environment variables.

`EnvironmentVariableProvider` reads a single variable and parses it with an
`awsconf.config.Type`. A malformed value raises
`awsconf.errors.InvalidConfiguration`, which the non-credential chains log and
treat as if the variable was not set. `EnvironmentCredentialsProvider` reads
the standard static credential variables:

`AWS_ACCESS_KEY_ID`
:  The access key identifier.

`AWS_SECRET_ACCESS_KEY`
:  The secret key.

`AWS_SESSION_TOKEN`
:  Optional session token for temporary credentials.
"""

import logging

from awsconf.chain import CredentialsProvider, Provider, ProviderChain
from awsconf.config import Config, Region, Str
from awsconf.errors import InvalidConfiguration, NotConfigured
from awsconf.types import Credentials

LOG = logging.getLogger(__name__)


class EnvironmentVariableProvider(Provider):
    """Provides the value of environment variable `var` parsed as `type`."""

    def __init__(self, env, var, type=Str):
        # pylint: disable=redefined-builtin
        self.env = env
        self.var = var
        self.type = type
        self.name = f"Environment({var})"

    async def provide(self):
        return Config(self.env).get(self.var, type=self.type)

    def __repr__(self):
        return f"EnvironmentVariableProvider({self.var!r}, type={self.type})"


def region_provider(env):
    """Returns a provider for `AWS_REGION`, falling back to `AWS_DEFAULT_REGION`."""
    chain = ProviderChain(
        [
            EnvironmentVariableProvider(env, "AWS_REGION", Region),
            EnvironmentVariableProvider(env, "AWS_DEFAULT_REGION", Region),
        ]
    )
    chain.name = "Environment(region)"
    return chain


class EnvironmentCredentialsProvider(CredentialsProvider):
    """Provides static credentials from environment variables.

    Raises `NotConfigured` if neither key variable is set and
    `InvalidConfiguration` if only one of the pair is set.
    """

    name = "Environment"

    def __init__(self, env):
        self.env = env

    async def provide(self):
        access_key = (self.env.get("AWS_ACCESS_KEY_ID") or "").strip()
        secret_key = (self.env.get("AWS_SECRET_ACCESS_KEY") or "").strip()
        token = (self.env.get("AWS_SESSION_TOKEN") or "").strip() or None

        if not access_key and not secret_key:
            raise NotConfigured("AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY not set")
        if not access_key:
            raise InvalidConfiguration(
                "set without AWS_ACCESS_KEY_ID", setting="AWS_SECRET_ACCESS_KEY"
            )
        if not secret_key:
            raise InvalidConfiguration(
                "set without AWS_SECRET_ACCESS_KEY", setting="AWS_ACCESS_KEY_ID"
            )

        LOG.debug("loaded credentials for %s from environment", access_key)
        return Credentials(access_key, secret_key, token, provider_name=self.name)

    def __repr__(self):
        return "EnvironmentCredentialsProvider()"
