#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Builds the configuration snapshot used by an AWS service client.

## Overview

`ConfigLoader` is a single-use builder. Callers may override any axis of the
configuration, and every axis left alone is resolved by its default chain in
`awsconf.default_provider`:

    loader = ConfigLoader().region("us-west-2").app_name("billing")
    config = await loader.load()

    creds = await config.credentials_provider.provide_credentials()

`load` resolves the region first, since the credentials providers that call
STS or SSO need it to sign their requests, and then resolves the remaining
axes concurrently. An override is used as given with no fallback to the
default chain, even when it produces `None`. Unless overridden, credentials
come from `awsconf.default_provider.DefaultCredentialsChain` wrapped in an
`awsconf.cache.LazyCredentialsCache`. Neither is contacted by `load`, so a
machine without credentials can still load a configuration; the failure
surfaces on the first request for credentials.

After `load` the loader is consumed: calling `load` again or any setter raises
`awsconf.errors.LoaderConsumed`.

## Overrides File

Overrides can also be read from a YAML or JSON file with `from_file`. All keys
are optional:

    region: us-west-2
    profile: billing
    app_name: billing-batch
    endpoint_url: http://localhost:4566
    retry:
      max_attempts: 5
      mode: adaptive
    timeouts:
      connect_timeout: 2
      read_timeout: 10

A `retry` or `timeouts` section replaces the default chain for that axis as a
whole. Fields not listed take the defaults of `awsconf.types.RetryConfig` and
`awsconf.types.TimeoutConfig`.
"""

import asyncio
import logging

from awsconf.cache import LazyCredentialsCache
from awsconf.chain import (
    CredentialsProvider,
    StaticCredentialsProvider,
    as_provider,
)
from awsconf.config import (
    URL,
    Config,
    PositiveInt,
    Region,
    RetryMode,
    Seconds,
    Str,
)
from awsconf.default_provider import (
    AppName,
    DefaultCredentialsChain,
    RetryConfigProvider,
    TimeoutConfigProvider,
    app_name_chain,
    region_chain,
)
from awsconf.errors import LoaderConsumed
from awsconf.provider_config import ProviderConfig
from awsconf.types import (
    TIMEOUT_PHASES,
    Credentials,
    RetryConfig,
    SdkConfig,
    TimeoutConfig,
)

LOG = logging.getLogger(__name__)


class ConfigLoader:
    """Builder of an `awsconf.types.SdkConfig`.

    Each setter records an override for one axis and returns the loader so
    calls can be chained. Setting the same axis twice keeps the last value.
    Values may be plain values or `awsconf.chain.Provider` instances, which
    are invoked by `load`.
    """

    def __init__(self):
        self._overrides = {}
        self._provider_config = None
        self._profile_name = None
        self._consumed = False

    @classmethod
    def from_file(cls, filename):
        """Returns a loader with the overrides found in `filename`.

        Refer to the module documentation for the file format. A missing file
        returns a loader without overrides. Malformed values raise
        `awsconf.errors.InvalidConfiguration` naming the key.
        """
        c = Config.from_file(filename)
        loader = cls()

        region = c.get("region", type=Region)
        if region:
            loader.region(region)

        profile = c.get("profile", type=Str)
        if profile:
            loader.profile_name(profile)

        app_name = c.get("app_name", type=AppName())
        if app_name:
            loader.app_name(app_name)

        endpoint_url = c.get("endpoint_url", type=URL)
        if endpoint_url:
            loader.endpoint_url(endpoint_url)

        if c.get("retry"):
            defaults = RetryConfig()
            loader.retry_config(
                RetryConfig(
                    mode=c.get("retry", "mode", type=RetryMode, default=defaults.mode),
                    max_attempts=c.get(
                        "retry",
                        "max_attempts",
                        type=PositiveInt,
                        default=defaults.max_attempts,
                    ),
                )
            )

        if c.get("timeouts"):
            timeouts = c.get("timeouts")
            if hasattr(timeouts, "keys"):
                unknown = set(timeouts) - set(TIMEOUT_PHASES)
                for phase in sorted(unknown):
                    LOG.warning(
                        "%s: ignoring unknown timeout phase: %s", filename, phase
                    )
            loader.timeout_config(
                TimeoutConfig(
                    **{
                        phase: c.get("timeouts", phase, type=Seconds)
                        for phase in TIMEOUT_PHASES
                    }
                )
            )

        LOG.debug("loaded overrides from %s: %s", filename, sorted(loader._overrides))
        return loader

    def _set(self, axis, value):
        self._check_not_consumed()
        if axis in self._overrides:
            LOG.debug("replacing %s override", axis)
        self._overrides[axis] = value
        return self

    def _check_not_consumed(self):
        if self._consumed:
            raise LoaderConsumed("loader has already been used to load a config")

    def region(self, region):
        """Overrides the region with a name or a provider of one."""
        return self._set("region", region)

    def credentials_provider(self, provider):
        """Overrides the credentials provider.

        `provider` may also be `awsconf.types.Credentials`, which are used as
        static credentials. The provider is not cached by the loader.
        """
        if isinstance(provider, Credentials):
            provider = StaticCredentialsProvider(provider)
        elif not isinstance(provider, CredentialsProvider):
            raise TypeError(f"not a credentials provider: {provider!r}")
        return self._set("credentials_provider", provider)

    def retry_config(self, retry_config):
        """Overrides the `awsconf.types.RetryConfig`."""
        return self._set("retry_config", retry_config)

    def timeout_config(self, timeout_config):
        """Overrides the `awsconf.types.TimeoutConfig`."""
        return self._set("timeout_config", timeout_config)

    def app_name(self, app_name):
        """Overrides the application name sent in the user agent."""
        return self._set("app_name", app_name)

    def sleep(self, sleep):
        """Overrides the coroutine function used to sleep between retries."""
        return self._set("sleep", sleep)

    def http_client(self, http_client):
        """Overrides the HTTP client used by the service client.

        Unless `configure` is also called, the same client is used by the
        providers that contact instance metadata and container endpoints.
        """
        return self._set("http_client", http_client)

    def endpoint_url(self, endpoint_url):
        """Overrides the endpoint the service client sends requests to."""
        return self._set("endpoint_url", endpoint_url)

    def profile_name(self, profile_name):
        """Selects the profile, taking precedence over `AWS_PROFILE`."""
        self._check_not_consumed()
        self._profile_name = profile_name
        return self

    def configure(self, provider_config):
        """Replaces the `awsconf.provider_config.ProviderConfig` used by the
        default chains, which is how tests substitute the environment,
        filesystem, clock, and network."""
        self._check_not_consumed()
        self._provider_config = provider_config
        return self

    async def _resolve(self, axis, default_provider):
        if axis in self._overrides:
            LOG.debug("using %s override", axis)
            return await as_provider(self._overrides[axis]).provide()
        return await default_provider.provide()

    async def load(self):
        """Returns the `awsconf.types.SdkConfig` for this loader.

        The loader is consumed by this call. Refer to the module documentation
        for the order of resolution.
        """
        self._check_not_consumed()
        self._consumed = True

        conf = self._provider_config
        if conf is None:
            conf = ProviderConfig(http_client=self._overrides.get("http_client"))
        if self._profile_name:
            conf = conf.with_profile_name(self._profile_name)

        region = await self._resolve("region", region_chain(conf))
        conf = conf.with_region(region)

        retry_config, timeout_config, app_name = await asyncio.gather(
            self._resolve("retry_config", RetryConfigProvider(conf)),
            self._resolve("timeout_config", TimeoutConfigProvider(conf)),
            self._resolve("app_name", app_name_chain(conf)),
        )

        credentials_provider = self._overrides.get("credentials_provider")
        if credentials_provider is None:
            credentials_provider = LazyCredentialsCache(
                DefaultCredentialsChain(conf), clock=conf.clock
            )

        config = SdkConfig(
            region=region,
            credentials_provider=credentials_provider,
            retry_config=retry_config,
            timeout_config=timeout_config,
            app_name=app_name,
            sleep=self._overrides.get("sleep", asyncio.sleep),
            http_client=self._overrides.get("http_client", conf.http_client),
            endpoint_url=self._overrides.get("endpoint_url"),
        )
        LOG.info(
            "loaded config: region=%s, retry=%s, app_name=%s",
            region,
            retry_config,
            app_name,
        )
        return config


def from_env():
    """Returns a new `ConfigLoader` using the real environment."""
    return ConfigLoader()


async def load_from_env():
    """Returns the `awsconf.types.SdkConfig` resolved from the environment."""
    return await from_env().load()
