#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Injectable views of the environment, the filesystem, and the wall clock.

## Overview

Providers never read `os.environ`, open files, or call `datetime.now`
directly. Instead they are handed an `Env`, a `Fs`, and a clock through
`awsconf.provider_config.ProviderConfig`. The real implementations are the
default, while the in-memory variants make it possible to drive every
resolution path from a test without touching the host:

    env = Env.from_dict({"AWS_REGION": "us-west-2"})
    fs = Fs.from_dict({"/home/user/.aws/config": "[default]\\nregion = eu-west-1\\n"})

Paths beginning with `~` are expanded using the `HOME` (or `USERPROFILE`)
variable of the `Env` given to `Fs.read`, so an in-memory environment fully
controls where profile files are looked up.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from awsconf.errors import InvalidConfiguration

LOG = logging.getLogger(__name__)


class Env:
    """A read-only view of environment variables."""

    def __init__(self, mapping):
        self._mapping = mapping

    @classmethod
    def real(cls):
        """Returns a view of the process environment."""
        return cls(os.environ)

    @classmethod
    def from_dict(cls, mapping):
        """Returns a view of a fixed set of variables."""
        return cls(dict(mapping))

    def get(self, name, default=None):
        return self._mapping.get(name, default)

    def home_dir(self):
        """Returns the home directory named by the environment or `None`."""
        return self.get("HOME") or self.get("USERPROFILE")

    def __contains__(self, name):
        return name in self._mapping

    def __repr__(self):
        return f"Env({len(self._mapping)} variables)"


class Fs:
    """A read-only view of the filesystem.

    This is an abstract base class. Use `Fs.real` or `Fs.from_dict`.
    """

    @classmethod
    def real(cls):
        return RealFs()

    @classmethod
    def from_dict(cls, files):
        return InMemoryFs(files)

    async def read(self, path, env=None):
        """Returns the contents of `path` as bytes or `None` if it is missing.

        A leading `~` is replaced by the home directory from `env`.
        """
        raise NotImplementedError


def expand_home(path, env):
    """Returns `path` with a leading `~` replaced by the home in `env`."""
    path = str(path)
    if not path.startswith("~") or env is None:
        return path
    home = env.home_dir()
    if not home:
        return path
    return str(Path(home) / path[1:].lstrip("/\\"))


class RealFs(Fs):
    """Reads files from disk in a worker thread."""

    async def read(self, path, env=None):
        path = Path(expand_home(path, env))
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_bytes, path)

    def __repr__(self):
        return "RealFs()"


def _read_bytes(path):
    try:
        return path.read_bytes()
    except FileNotFoundError:
        LOG.debug("file not found: %s", path)
        return None
    except OSError as e:
        raise InvalidConfiguration(f"cannot read {path}: {e}") from e


class InMemoryFs(Fs):
    """Serves files from a dict of paths to `str` or `bytes` contents."""

    def __init__(self, files):
        self._files = {
            str(Path(k)): v.encode("utf-8") if isinstance(v, str) else v
            for k, v in files.items()
        }

    async def read(self, path, env=None):
        return self._files.get(str(Path(expand_home(path, env))))

    def __repr__(self):
        return f"InMemoryFs({sorted(self._files)})"


class SystemClock:
    """Clock returning the current UTC time."""

    def now(self):
        return datetime.now(timezone.utc)

    def __repr__(self):
        return "SystemClock()"
