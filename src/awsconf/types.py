#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Immutable values produced by configuration resolution.

All of the values in this module are `namedtuple` subclasses, so once built
they cannot be modified and can be shared freely between concurrently running
tasks. `SdkConfig` is the snapshot returned by `awsconf.loader.ConfigLoader`.
"""

from collections import namedtuple


class Credentials(
    namedtuple(
        "Credentials",
        [
            "access_key_id",
            "secret_access_key",
            "session_token",
            "expiry",
            "provider_name",
        ],
    )
):
    """AWS credentials along with the name of the provider that produced them.

    `expiry` is a timezone-aware `datetime` or `None` for long-lived keys. The
    secret key and session token are never included in the `repr`.
    """

    __slots__ = ()

    def __new__(
        cls,
        access_key_id,
        secret_access_key,
        session_token=None,
        expiry=None,
        provider_name="Static",
    ):
        return super().__new__(
            cls, access_key_id, secret_access_key, session_token, expiry, provider_name
        )

    def __repr__(self):
        token = "** redacted **" if self.session_token else None
        return (
            f"Credentials(access_key_id={self.access_key_id!r}, "
            f"secret_access_key='** redacted **', "
            f"session_token={token!r}, "
            f"expiry={self.expiry!r}, provider_name={self.provider_name!r})"
        )

    def with_provider_name(self, name):
        """Returns a copy of these credentials attributed to `name`."""
        return self._replace(provider_name=name)


class RetryConfig(
    namedtuple(
        "RetryConfig", ["mode", "max_attempts", "initial_backoff", "max_backoff"]
    )
):
    """Retry policy for service calls. Backoff values are in seconds."""

    __slots__ = ()

    def __new__(
        cls, mode="standard", max_attempts=3, initial_backoff=1.0, max_backoff=20.0
    ):
        return super().__new__(cls, mode, max_attempts, initial_backoff, max_backoff)


TIMEOUT_PHASES = (
    "connect_timeout",
    "tls_negotiation_timeout",
    "read_timeout",
    "api_call_attempt_timeout",
    "api_call_timeout",
)


class TimeoutConfig(namedtuple("TimeoutConfig", TIMEOUT_PHASES)):
    """Per-phase timeouts in seconds. `None` means the phase is unbounded."""

    __slots__ = ()

    def __new__(cls, **phases):
        unknown = set(phases) - set(TIMEOUT_PHASES)
        if unknown:
            raise TypeError(f"unknown timeout phases: {', '.join(sorted(unknown))}")
        return super().__new__(cls, *(phases.get(p) for p in TIMEOUT_PHASES))

    def is_unset(self):
        return all(v is None for v in self)


class SdkConfig(
    namedtuple(
        "SdkConfig",
        [
            "region",
            "credentials_provider",
            "retry_config",
            "timeout_config",
            "app_name",
            "sleep",
            "http_client",
            "endpoint_url",
        ],
    )
):
    """Configuration snapshot shared read-only by every request of a client.

    Each axis either has a value or is `None`. There is no error state; a
    credentials provider that cannot produce credentials fails when it is
    asked for them, not when the snapshot is built.
    """

    __slots__ = ()
