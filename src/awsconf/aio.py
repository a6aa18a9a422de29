#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Helpers to bound and offload work done by remote identity providers."""

import asyncio
import functools

from awsconf.errors import ProviderTimeout


async def run_blocking(fn, *args, **kwargs):
    """Runs the blocking callable `fn` in the default worker thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


async def with_timeout(awaitable, seconds, source):
    """Awaits `awaitable` for at most `seconds`.

    Raises `awsconf.errors.ProviderTimeout` naming `source` if the time
    elapses. A `seconds` of `None` waits forever.
    """
    try:
        return await asyncio.wait_for(awaitable, seconds)
    except asyncio.TimeoutError as e:
        raise ProviderTimeout(
            f"{source} did not respond within {seconds} seconds", source=source
        ) from e
