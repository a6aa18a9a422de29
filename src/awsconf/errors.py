#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Exceptions raised while resolving configuration and credentials.

## Overview

Every failure that awsconf raises on purpose is a subclass of `ConfigError`.
The hierarchy mirrors the questions a provider chain has to answer when a step
fails: does this source simply have no opinion, is the user's configuration
broken, or is a remote identity source temporarily out of reach?

`NotConfigured`
:  The source has no opinion. Chains always continue past it.

`ChainExhausted`
:  Every step of a credentials chain missed. `last_source` names the step that
failed last.

`InvalidConfiguration`
:  Malformed local input such as a bad profile file, an unreadable token file,
or a circular profile reference. Terminal for the credentials chain.

`ProviderUnreachable` and `ProviderTimeout`
:  A remote identity source could not be reached. Soft within a chain unless
raised by its final step.

`ProviderError`
:  A remote identity source answered, but rejected the request or returned a
document that could not be understood.

`CredentialsExpired`
:  The credential cache holds nothing usable and the refresh failed.

`LoaderConsumed`
:  A `awsconf.loader.ConfigLoader` was used after `load` was called.
"""


class ConfigError(Exception):
    """Base class of all errors raised by awsconf."""


class NotConfigured(ConfigError):
    """Raised when a source has no value to offer."""


class ChainExhausted(NotConfigured):
    """Raised when no step of a credentials chain produced credentials.

    `last_source` is the name of the last step that failed because its remote
    source was unreachable. If no step failed that way, it is the name of the
    last step attempted.
    """

    def __init__(self, message, last_source=None):
        super().__init__(message)
        self.last_source = last_source


class InvalidConfiguration(ConfigError):
    """Raised when local configuration is malformed or inconsistent.

    The offending `profile` and `setting`, when known, are stored on the
    exception and prepended to the message.
    """

    def __init__(self, message, profile=None, setting=None):
        prefix = ""
        if profile:
            prefix += f"profile '{profile}': "
        if setting:
            prefix += f"{setting}: "
        super().__init__(prefix + message)
        self.profile = profile
        self.setting = setting


class ProviderUnreachable(ConfigError):
    """Raised when a remote identity source cannot be reached."""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.source = source


class ProviderTimeout(ProviderUnreachable):
    """Raised when a remote identity source does not answer in time."""


class ProviderError(ConfigError):
    """Raised when a remote identity source rejects a request."""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.source = source


class CredentialsExpired(ConfigError):
    """Raised when cached credentials expired and could not be refreshed."""


class LoaderConsumed(ConfigError):
    """Raised when a `ConfigLoader` is reused after `load`."""
