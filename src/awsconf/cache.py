#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Caches credentials until shortly before they expire.

## Overview

Temporary credentials carry an expiration time. `LazyCredentialsCache` wraps
any credentials provider, typically the default credentials chain, and
returns the same credentials from memory until they are within a refresh
buffer of their expiration:

    cache = LazyCredentialsCache(provider, clock, refresh_buffer=timedelta(minutes=5))
    creds = await cache.get_credentials()  # invokes provider
    creds = await cache.get_credentials()  # served from memory

Nothing is loaded when the cache is created. The inner provider is only
invoked by the first call to `get_credentials` and then again once the cached
credentials need a refresh. Credentials without an expiration, such as static
keys, are cached indefinitely.

## Concurrency

When a refresh is needed, exactly one refresh runs at a time. Callers that
arrive while it is in flight wait for that same refresh instead of invoking
the provider again, so a burst of requests does not produce a burst of calls
to an identity service. The refresh runs as its own task: a caller that stops
waiting, for instance because its own timeout elapsed, does not cancel the
refresh, and the credentials it produces are still cached for the next caller.
Callers holding valid credentials are never blocked by a refresh.

The cache may be shared by any number of tasks running on the same event
loop.

## Failures

If the refresh fails while the previous credentials have not reached their
actual expiration, the failure is logged and the previous credentials are
returned. If they have expired, `awsconf.errors.CredentialsExpired` is raised.
If there were no previous credentials, the error from the provider is raised
unchanged. Every caller waiting on the same refresh receives the same result.
"""

import asyncio
import logging
from datetime import timedelta

from awsconf.aio import with_timeout
from awsconf.chain import CredentialsProvider
from awsconf.errors import ConfigError, CredentialsExpired
from awsconf.os_shim import SystemClock

LOG = logging.getLogger(__name__)

DEFAULT_REFRESH_BUFFER = timedelta(minutes=5)
DEFAULT_LOAD_TIMEOUT = 5


class CacheEntry:
    """Credentials and the time they must be refreshed by.

    Entries are never modified. A refresh replaces the entry as a whole.
    """

    __slots__ = ("credentials", "expiry")

    def __init__(self, credentials):
        self.credentials = credentials
        self.expiry = credentials.expiry

    def is_expired(self, now):
        return self.expiry is not None and now >= self.expiry

    def needs_refresh(self, now, buffer):
        return self.expiry is not None and now >= self.expiry - buffer


class LazyCredentialsCache(CredentialsProvider):
    """Caches the credentials returned by `provider`.

    `clock` provides the current time and defaults to the system clock.
    Credentials are refreshed once the current time is within `refresh_buffer`
    (a `timedelta`) of their expiration. Each invocation of the provider is
    bounded by `load_timeout` seconds.
    """

    name = "LazyCache"

    def __init__(
        self,
        provider,
        clock=None,
        refresh_buffer=DEFAULT_REFRESH_BUFFER,
        load_timeout=DEFAULT_LOAD_TIMEOUT,
    ):
        self.provider = provider
        self.clock = SystemClock() if clock is None else clock
        self.refresh_buffer = refresh_buffer
        self.load_timeout = load_timeout
        self._entry = None
        self._refresh = None

    async def get_credentials(self):
        """Returns currently valid credentials.

        Refer to the module documentation for caching behavior and the errors
        that may be raised.
        """
        entry = self._entry
        if entry is not None and not entry.needs_refresh(
            self.clock.now(), self.refresh_buffer
        ):
            LOG.debug("cache hit for %s", entry.credentials.provider_name)
            return entry.credentials

        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._load(entry))
            self._refresh.add_done_callback(_retrieve_exception)

        # Shielded, so a caller that is cancelled while waiting leaves the
        # refresh running for everyone else
        return await asyncio.shield(self._refresh)

    async def provide(self):
        return await self.get_credentials()

    def invalidate(self):
        """Drops the cached credentials so the next call refreshes them."""
        self._entry = None

    async def _load(self, previous):
        try:
            creds = await with_timeout(
                self.provider.provide(), self.load_timeout, self.provider.name
            )
        except ConfigError as e:
            return self._fallback(previous, e)
        finally:
            self._refresh = None

        self._entry = CacheEntry(creds)
        LOG.info(
            "loaded credentials from %s, expiring %s",
            creds.provider_name,
            creds.expiry or "never",
        )
        return creds

    def _fallback(self, previous, error):
        if previous is None:
            raise error

        if not previous.is_expired(self.clock.now()):
            LOG.warning(
                "refreshing credentials failed, using cached credentials "
                "from %s until %s: %s",
                previous.credentials.provider_name,
                previous.expiry,
                error,
            )
            return previous.credentials

        raise CredentialsExpired(
            f"credentials from {previous.credentials.provider_name} expired at "
            f"{previous.expiry} and refreshing them failed: {error}"
        ) from error

    def __repr__(self):
        return f"LazyCredentialsCache({self.provider!r})"


def _retrieve_exception(task):
    # Marks the exception as retrieved when every waiter has gone away, so
    # asyncio does not log it as never retrieved
    if not task.cancelled():
        task.exception()
