#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""The shared bundle of sources handed to every provider.

## Overview

`ProviderConfig` replaces the implicit globals a provider would otherwise
read: the process environment, the filesystem, the clock, the HTTP transport,
and the factory used to build boto3 clients. A single instance is created by
`awsconf.loader.ConfigLoader` and threaded through every default chain and
provider it builds, so substituting it replaces every source at once:

    conf = ProviderConfig(
        env=Env.from_dict({"AWS_PROFILE": "dev"}),
        fs=Fs.from_dict({"/home/me/.aws/config": "[profile dev]\\nregion = eu-west-1\\n"}),
    )
    region = await default_provider.region_chain(conf).provide()

Instances are treated as immutable; the `with_*` methods return copies. The
parsed profile files are loaded at most once per instance by `profile`, and
the copy returned by `with_region` shares that load with its original since
the region does not affect which profile files are read.
"""

import asyncio
import copy
import logging

import botocore.exceptions

from awsconf import profile as profile_files
from awsconf.clients import AwsClientFactory
from awsconf.http import HttpClient, RequestsHttpClient, TransportError
from awsconf.os_shim import Env, Fs, SystemClock

LOG = logging.getLogger(__name__)


class _ProfileLoad:
    """Holds the single shared load of the profile files."""

    def __init__(self):
        self.task = None


class ProviderConfig:
    """Sources shared by all providers.

    Any argument left as `None` uses the real implementation: `Env.real()`,
    `Fs.real()`, `SystemClock()`, a `RequestsHttpClient`, and an
    `AwsClientFactory`. `region` is the region hint used by providers that must
    sign requests against a regional endpoint. `profile_name`,
    `config_file`, and `credentials_file` override the `AWS_PROFILE`,
    `AWS_CONFIG_FILE`, and `AWS_SHARED_CREDENTIALS_FILE` variables.
    """

    def __init__(
        self,
        env=None,
        fs=None,
        clock=None,
        http_client=None,
        client_factory=None,
        region=None,
        profile_name=None,
        config_file=None,
        credentials_file=None,
    ):
        self.env = Env.real() if env is None else env
        self.fs = Fs.real() if fs is None else fs
        self.clock = SystemClock() if clock is None else clock
        self.http_client = (
            RequestsHttpClient() if http_client is None else http_client
        )
        self.client_factory = (
            AwsClientFactory() if client_factory is None else client_factory
        )
        self.region = region
        self.profile_name = profile_name
        self.config_file = config_file
        self.credentials_file = credentials_file
        self._profile_load = _ProfileLoad()

    @classmethod
    def empty(cls):
        """Returns a config with no variables, no files, and no network.

        The HTTP client and boto3 client factory still exist but every request
        fails as unreachable.
        """
        return cls(
            env=Env.from_dict({}),
            fs=Fs.from_dict({}),
            http_client=_UnreachableHttpClient(),
            client_factory=_UnreachableClientFactory(),
        )

    async def profile(self):
        """Returns the parsed `awsconf.profile.ProfileSet`.

        The files are read and parsed once. Concurrent callers share the same
        load. Raises `awsconf.errors.InvalidConfiguration` if a file cannot be
        parsed, in which case every caller sees the same error.
        """
        load = self._profile_load
        if load.task is None:
            load.task = asyncio.ensure_future(
                profile_files.load(
                    self.env,
                    self.fs,
                    profile_name=self.profile_name,
                    config_file=self.config_file,
                    credentials_file=self.credentials_file,
                )
            )
        return await asyncio.shield(load.task)

    def _copy(self, reset_profile, **changes):
        new = copy.copy(self)
        for k, v in changes.items():
            setattr(new, k, v)
        if reset_profile:
            new._profile_load = _ProfileLoad()
        return new

    def with_env(self, env):
        return self._copy(True, env=env)

    def with_fs(self, fs):
        return self._copy(True, fs=fs)

    def with_region(self, region):
        return self._copy(False, region=region)

    def with_profile_name(self, profile_name):
        return self._copy(True, profile_name=profile_name)

    def with_profile_files(self, config_file=None, credentials_file=None):
        return self._copy(
            True, config_file=config_file, credentials_file=credentials_file
        )

    def __repr__(self):
        return (
            f"ProviderConfig(env={self.env!r}, fs={self.fs!r}, "
            f"region={self.region!r}, profile_name={self.profile_name!r})"
        )


class _UnreachableHttpClient(HttpClient):
    async def send(self, method, url, headers=None, timeout=None):
        raise TransportError(f"{method} {url}: no network configured")


class _UnreachableClientFactory:
    def client(self, service, region, **kwargs):
        raise botocore.exceptions.EndpointConnectionError(
            endpoint_url=f"https://{service}.{region}.amazonaws.com"
        )
