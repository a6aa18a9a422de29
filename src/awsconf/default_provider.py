#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""The default resolution chains for every configuration axis.

## Overview

Each function or class in this module builds the chain used by
`awsconf.loader.ConfigLoader` for one axis when the user did not override it.
All of them take an `awsconf.provider_config.ProviderConfig` and accept
keyword arguments to replace individual steps, which is how tests substitute a
single source without touching the others.

`region_chain`
:  `AWS_REGION`, then `AWS_DEFAULT_REGION` → `region` in the selected profile
→ the region of the EC2 instance → unset.

`RetryConfigProvider`
:  Each field resolves on its own: `AWS_MAX_ATTEMPTS` → `max_attempts` → 3 and
`AWS_RETRY_MODE` → `retry_mode` → `standard`.

`TimeoutConfigProvider`
:  Each phase resolves on its own from `AWS_<PHASE>` → the profile setting of
the same name in lower case → unset.

`app_name_chain`
:  `AWS_SDK_UA_APP_ID` → `sdk_ua_app_id` → unset.

`DefaultCredentialsChain`
:  Static credentials (if given) → environment → profile → web identity token →
container endpoint → instance metadata → SSO, optionally followed by an
AssumeRole using the result as the base identity. See the class for details.

None of the non-credential chains ever raise because of a source: a malformed
value is logged and skipped, allowing later steps to supply a value.
"""

import logging
import re

from awsconf.chain import (
    CredentialsProvider,
    CredentialsProviderChain,
    Provider,
    ProviderChain,
    StaticCredentialsProvider,
)
from awsconf.config import (
    Config,
    PositiveInt,
    Region,
    RetryMode,
    Seconds,
    Str,
    StrType,
)
from awsconf.ecs import EcsCredentialsProvider
from awsconf.environment import (
    EnvironmentCredentialsProvider,
    EnvironmentVariableProvider,
    region_provider,
)
from awsconf.imds import ImdsClient, ImdsCredentialsProvider, ImdsRegionProvider
from awsconf.profile.credentials import ProfileFileCredentialsProvider
from awsconf.sso import SsoCredentialsProvider
from awsconf.sts import AssumeRoleProvider, WebIdentityTokenCredentialsProvider
from awsconf.types import TIMEOUT_PHASES, RetryConfig, TimeoutConfig

LOG = logging.getLogger(__name__)

APP_NAME_MAX_LENGTH = 50


class ProfileSettingProvider(Provider):
    """Provides `setting` of the selected profile parsed as `type`."""

    def __init__(self, provider_config, setting, type=Str):
        # pylint: disable=redefined-builtin
        self.conf = provider_config
        self.setting = setting
        self.type = type
        self.name = f"Profile({setting})"

    async def provide(self):
        profiles = await self.conf.profile()
        return profiles.config().get(self.setting, type=self.type)

    def __repr__(self):
        return f"ProfileSettingProvider({self.setting!r}, type={self.type})"


def region_chain(conf, env=None, profile=None, imds=None):
    """Returns the default region chain.

    `env`, `profile`, and `imds` replace the respective steps.
    """
    return ProviderChain(
        [
            env or region_provider(conf.env),
            profile or ProfileSettingProvider(conf, "region", Region),
            imds or ImdsRegionProvider(conf),
        ]
    )


class AppName(StrType):
    """An application name that can be sent in a user agent header."""

    _VALID = re.compile(r"^[A-Za-z0-9!#$%&'*+\-.^_`|~]+$")

    def parse(self, obj):
        value = super().parse(obj)
        if not self._VALID.match(value):
            raise ValueError(f"{value!r} contains characters not valid in an app name")
        if len(value) > APP_NAME_MAX_LENGTH:
            LOG.warning(
                "app name %r is longer than the recommended %d characters",
                value,
                APP_NAME_MAX_LENGTH,
            )
        return value

    def __str__(self):
        return "app name"


def app_name_chain(conf, env=None, profile=None):
    """Returns the default app name chain."""
    return ProviderChain(
        [
            env
            or EnvironmentVariableProvider(conf.env, "AWS_SDK_UA_APP_ID", AppName()),
            profile or ProfileSettingProvider(conf, "sdk_ua_app_id", AppName()),
        ]
    )


class RetryConfigProvider(Provider):
    """Provides a `RetryConfig` whose fields are resolved independently.

    `max_attempts` and `mode` replace the chains for the respective fields.
    The result is never `None`.
    """

    name = "RetryConfig"

    def __init__(self, conf, max_attempts=None, mode=None):
        self.max_attempts = max_attempts or ProviderChain(
            [
                EnvironmentVariableProvider(conf.env, "AWS_MAX_ATTEMPTS", PositiveInt),
                ProfileSettingProvider(conf, "max_attempts", PositiveInt),
            ],
            default=RetryConfig().max_attempts,
        )
        self.mode = mode or ProviderChain(
            [
                EnvironmentVariableProvider(conf.env, "AWS_RETRY_MODE", RetryMode),
                ProfileSettingProvider(conf, "retry_mode", RetryMode),
            ],
            default=RetryConfig().mode,
        )

    async def provide(self):
        return RetryConfig(
            mode=await self.mode.provide(),
            max_attempts=await self.max_attempts.provide(),
        )


class TimeoutConfigProvider(Provider):
    """Provides a `TimeoutConfig` whose phases are resolved independently.

    `phases` maps a phase name to a provider that replaces its chain. The
    result is never `None`, but any phase may be unset.
    """

    name = "TimeoutConfig"

    def __init__(self, conf, phases=None):
        self.phases = {
            phase: ProviderChain(
                [
                    EnvironmentVariableProvider(
                        conf.env, f"AWS_{phase.upper()}", Seconds
                    ),
                    ProfileSettingProvider(conf, phase, Seconds),
                ]
            )
            for phase in TIMEOUT_PHASES
        }
        self.phases.update(phases or {})

    async def provide(self):
        values = {}
        for phase, provider in self.phases.items():
            values[phase] = await provider.provide()
        return TimeoutConfig(**values)


class DefaultCredentialsChain(CredentialsProvider):
    """The default chain of credentials providers.

    Providers are tried in the following order. The first to return
    credentials wins:

    1. `static`, if provided.
    2. `awsconf.environment.EnvironmentCredentialsProvider`
    3. `awsconf.profile.credentials.ProfileFileCredentialsProvider`
    4. `awsconf.sts.WebIdentityTokenCredentialsProvider` from the environment
    5. `awsconf.ecs.EcsCredentialsProvider`
    6. `awsconf.imds.ImdsCredentialsProvider`
    7. `awsconf.sso.SsoCredentialsProvider` for the selected profile

    If `AWS_ROLE_ARN` is set without `AWS_WEB_IDENTITY_TOKEN_FILE`, the
    credentials found are used as the base identity to assume that role via
    `awsconf.sts.AssumeRoleProvider`, using `AWS_ROLE_SESSION_NAME` if set.

    `conf` should carry the resolved region, which the STS and SSO providers
    need to pick a regional endpoint. `providers` replaces steps 2 through 7.
    The error policy is that of `awsconf.chain.CredentialsProviderChain`.
    Building the chain performs no I/O.
    """

    name = "DefaultChain"

    def __init__(self, conf, static=None, providers=None):
        self.conf = conf
        if providers is None:
            imds = ImdsClient(conf)
            providers = [
                EnvironmentCredentialsProvider(conf.env),
                ProfileFileCredentialsProvider(conf),
                WebIdentityTokenCredentialsProvider(conf),
                EcsCredentialsProvider(conf),
                ImdsCredentialsProvider(conf, client=imds),
                SsoCredentialsProvider(conf),
            ]
        if static is not None:
            providers = [StaticCredentialsProvider(static)] + list(providers)
        self.chain = CredentialsProviderChain(providers)

    def assume_role(self):
        """Returns the `AssumeRoleProvider` wrapping the chain or `None`."""
        env = Config(self.conf.env)
        role_arn = env.get("AWS_ROLE_ARN", type=Str)
        if not role_arn or env.get("AWS_WEB_IDENTITY_TOKEN_FILE"):
            return None
        return AssumeRoleProvider(
            self.conf,
            role_arn,
            self.chain,
            session_name=env.get("AWS_ROLE_SESSION_NAME", type=Str),
        )

    async def provide(self):
        provider = self.assume_role() or self.chain
        creds = await provider.provide()
        LOG.info("credentials resolved by %s", creds.provider_name)
        return creds

    def __repr__(self):
        return f"DefaultCredentialsChain({self.chain!r})"
