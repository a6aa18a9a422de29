#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Ordered fallback chains of providers.

## Overview

A configuration axis such as the region can be supplied by several sources,
each of which may or may not have an opinion. A `ProviderChain` holds the
sources for one axis in priority order and asks each in turn, returning the
first value offered. Later providers are never consulted once a value is
found. For example, to prefer an environment variable but fall back to a
literal:

    chain = ProviderChain([EnvironmentRegionProvider(env)]).or_default("us-east-1")
    region = await chain.provide()

Every provider implements the `Provider` interface: a `name` used in log and
error messages and an async `provide` method that returns a value or `None`
when the source has no opinion.

## Error Policy

Chains differ in how they treat a provider that fails rather than declines:

`ProviderChain`
:  Any `awsconf.errors.ConfigError` is logged and treated like `None`. The
region, retry, timeout, and app name axes are never fatal to loading a
configuration, so they use this policy.

`CredentialsProviderChain`
:  `NotConfigured` is a soft miss. `ProviderUnreachable` (and its
`ProviderTimeout` subclass) is a soft miss unless it comes from the final
provider, in which case it is raised unchanged. Every other error, notably
`InvalidConfiguration`, ends resolution immediately no matter where in the
chain it occurs, since it points at a user misconfiguration that falling back
would only hide. If every provider misses, `ChainExhausted` is raised.

Errors that are not `ConfigError` subclasses always propagate. They indicate a
bug, not a missing value.
"""

import logging

from awsconf.errors import (
    ChainExhausted,
    ConfigError,
    NotConfigured,
    ProviderUnreachable,
)

LOG = logging.getLogger(__name__)


class Provider:
    """A source of a value for one configuration axis.

    This is an abstract base class and cannot be instantiated directly.
    Subclasses set `name` and implement `provide`.
    """

    name = "Unknown"

    async def provide(self):
        """Returns the value from this source or `None` if it has none.

        Failures are reported by raising a subclass of
        `awsconf.errors.ConfigError`.
        """
        raise NotImplementedError


class StaticProvider(Provider):
    """A provider that always returns `value`, which may be `None`."""

    name = "Static"

    def __init__(self, value):
        self.value = value

    async def provide(self):
        return self.value

    def __repr__(self):
        return f"StaticProvider({self.value!r})"


def as_provider(value):
    """Returns `value` if it is a `Provider`, else a `StaticProvider` of it."""
    return value if isinstance(value, Provider) else StaticProvider(value)


class ProviderChain(Provider):
    """Tries `providers` in order and returns the first value offered.

    If no provider offers a value, `default` is returned. A chain is itself a
    `Provider`, so chains can be nested.
    """

    name = "Chain"

    def __init__(self, providers, default=None):
        self.providers = list(providers)
        self.default = default

    def or_else(self, provider):
        """Returns a new chain with `provider` tried after all others.

        A plain value is wrapped in a `StaticProvider`.
        """
        return type(self)(self.providers + [as_provider(provider)], self.default)

    def or_default(self, value):
        """Returns a new chain that yields `value` when every provider misses."""
        return type(self)(self.providers, value)

    async def provide(self):
        misses = []
        last = len(self.providers) - 1
        for position, provider in enumerate(self.providers):
            try:
                value = await provider.provide()
            except Exception as e:  # pylint: disable=broad-except
                # on_error re-raises anything that should end the chain
                self.on_error(provider, e, position == last)
                misses.append((provider.name, e))
                continue

            if value is not None:
                LOG.debug("%s: value provided by %s", self.name, provider.name)
                return value

            LOG.debug("%s: %s has no value", self.name, provider.name)
            misses.append((provider.name, None))

        return self.exhausted(misses)

    def on_error(self, provider, error, is_last):
        """Decides whether `error` from `provider` ends the chain.

        Re-raise `error` to end the chain. Returning continues with the next
        provider.
        """
        if not isinstance(error, ConfigError):
            raise error
        LOG.warning("%s: ignoring %s: %s", self.name, provider.name, error)

    def exhausted(self, misses):
        """Returns the result of the chain when no provider had a value.

        `misses` lists a `(name, error)` tuple for every provider attempted,
        in order, where `error` is `None` if the provider returned `None`.
        """
        return self.default

    def __repr__(self):
        names = ", ".join(p.name for p in self.providers)
        return f"{type(self).__name__}([{names}], default={self.default!r})"


class CredentialsProvider(Provider):
    """A source of `awsconf.types.Credentials`.

    Credentials providers report that they have nothing to offer by raising
    `awsconf.errors.NotConfigured` rather than returning `None`.
    """

    async def provide_credentials(self):
        """Returns credentials or raises a `ConfigError`."""
        return await self.provide()


class StaticCredentialsProvider(StaticProvider, CredentialsProvider):
    """A credentials provider that always returns the same `Credentials`."""

    def __init__(self, credentials, name="Static"):
        super().__init__(credentials)
        self.name = name

    async def provide(self):
        if self.value is None:
            raise NotConfigured(f"{self.name}: no credentials")
        return self.value

    def __repr__(self):
        return f"StaticCredentialsProvider({self.value!r})"


class CredentialsProviderChain(ProviderChain, CredentialsProvider):
    """Tries credentials `providers` in order using the credentials error policy.

    Refer to the module documentation for the policy. The chain never has a
    default; when all providers miss, `ChainExhausted` is raised.
    """

    name = "CredentialsChain"

    def __init__(self, providers, default=None):
        if default is not None:
            raise ValueError("a credentials chain cannot have a default value")
        super().__init__(providers)

    def on_error(self, provider, error, is_last):
        if isinstance(error, NotConfigured):
            LOG.debug("%s: %s: %s", self.name, provider.name, error)
            return

        if isinstance(error, ProviderUnreachable) and not is_last:
            LOG.info("%s: %s unavailable: %s", self.name, provider.name, error)
            return

        raise error

    def exhausted(self, misses):
        unreachable = [n for n, e in misses if isinstance(e, ProviderUnreachable)]
        if unreachable:
            last = unreachable[-1]
        elif misses:
            last = misses[-1][0]
        else:
            last = None

        names = ", ".join(p.name for p in self.providers)
        raise ChainExhausted(
            f"no credentials found by any provider in the chain [{names}]; "
            f"last attempted source: {last}",
            last_source=last,
        )
