#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Credentials obtained via AWS IAM Identity Center (SSO).

## Overview

After a user runs `aws sso login`, the AWS CLI caches an SSO access token in
`~/.aws/sso/cache`. `SsoCredentialsProvider` reads that cached token and
exchanges it for role credentials with the SSO portal API. It never performs
the interactive login itself.

A profile opts into SSO with either the legacy settings:

    [profile dev]
    sso_start_url = https://my-sso-portal.awsapps.com/start
    sso_region = us-east-1
    sso_account_id = 111222333444
    sso_role_name = Developer

or by referring to a shared `sso-session` section:

    [profile dev]
    sso_session = my-sso
    sso_account_id = 111222333444
    sso_role_name = Developer

    [sso-session my-sso]
    sso_start_url = https://my-sso-portal.awsapps.com/start
    sso_region = us-east-1

The cached token file is named after the SHA-1 of the session name, or of the
start URL for legacy profiles. A missing or unparseable token file raises
`InvalidConfiguration`, and an expired token raises `ProviderError`. In both
cases the user must log in again.
"""

import hashlib
import json
import logging
from collections import namedtuple
from datetime import datetime, timezone

from awsconf import clients
from awsconf.chain import CredentialsProvider
from awsconf.errors import InvalidConfiguration, NotConfigured, ProviderError
from awsconf.json_credentials import parse_timestamp
from awsconf.types import Credentials

LOG = logging.getLogger(__name__)

TOKEN_CACHE_DIR = "~/.aws/sso/cache"

SsoConfig = namedtuple(
    "SsoConfig", ["start_url", "region", "account_id", "role_name", "session_name"]
)
"""SSO settings of a profile. `session_name` is `None` for legacy profiles."""

_SSO_KEYS = ("sso_start_url", "sso_session", "sso_account_id", "sso_role_name")


def has_sso_settings(settings):
    """Returns true if the profile `settings` dict configures SSO."""
    return any(settings.get(k) for k in _SSO_KEYS)


def sso_config(profiles, name):
    """Returns the `SsoConfig` of profile `name` in `profiles`.

    Returns `None` if the profile does not configure SSO. Raises
    `InvalidConfiguration` naming the missing setting if the profile configures
    SSO only partially.
    """
    settings = profiles.profile(name) or {}
    if not has_sso_settings(settings):
        return None

    c = profiles.config(name)
    session_name = c.get("sso_session")
    if session_name:
        session = profiles.sso_session(session_name)
        if session is None:
            raise InvalidConfiguration(
                f"sso-session '{session_name}' does not exist",
                profile=name,
                setting="sso_session",
            )
        start_url = session.get("sso_start_url")
        region = session.get("sso_region")
        if not start_url or not region:
            raise InvalidConfiguration(
                "must set sso_start_url and sso_region",
                profile=f"sso-session {session_name}",
            )
    else:
        start_url = c.get("sso_start_url", must_exist=True)
        region = c.get("sso_region", must_exist=True)

    return SsoConfig(
        start_url,
        region,
        c.get("sso_account_id", must_exist=True),
        c.get("sso_role_name", must_exist=True),
        session_name,
    )


class SsoCredentialsProvider(CredentialsProvider):
    """Provides role credentials for a cached SSO access token.

    If `config` (an `SsoConfig`) is `None`, the SSO settings of the selected
    profile are used and the provider raises `NotConfigured` when that profile
    does not configure SSO.
    """

    name = "Sso"

    def __init__(self, provider_config, config=None, timeout=5):
        self.conf = provider_config
        self.config = config
        self.timeout = timeout

    async def provide(self):
        config = self.config
        if config is None:
            profiles = await self.conf.profile()
            config = sso_config(profiles, profiles.selected)
            if config is None:
                raise NotConfigured(f"profile '{profiles.selected}' does not use SSO")

        token = await self._access_token(config)
        LOG.info(
            "exchanging SSO token for %s/%s", config.account_id, config.role_name
        )

        def get_role_credentials():
            sso = self.conf.client_factory.client("sso", config.region, unsigned=True)
            return sso.get_role_credentials(
                roleName=config.role_name,
                accountId=config.account_id,
                accessToken=token,
            )

        resp = await clients.call(self.name, self.timeout, get_role_credentials)

        creds = (resp or {}).get("roleCredentials") or {}
        try:
            return Credentials(
                creds["accessKeyId"],
                creds["secretAccessKey"],
                creds.get("sessionToken"),
                datetime.fromtimestamp(creds["expiration"] / 1000, tz=timezone.utc),
                self.name,
            )
        except (KeyError, TypeError) as e:
            raise ProviderError(
                f"{self.name}: malformed role credentials: {e}", source=self.name
            ) from e

    async def _access_token(self, config):
        path = token_cache_path(config)
        data = await self.conf.fs.read(path, self.conf.env)
        if data is None:
            raise InvalidConfiguration(
                f"no cached SSO token at {path}; run 'aws sso login'",
                setting="sso_start_url",
            )

        try:
            doc = json.loads(data.decode("utf-8"))
            token = doc["accessToken"]
            expires_at = parse_timestamp(doc["expiresAt"])
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidConfiguration(
                f"cannot parse cached SSO token {path}: {e}", setting="sso_start_url"
            ) from e

        if expires_at <= self.conf.clock.now():
            raise ProviderError(
                f"{self.name}: SSO token expired at {expires_at}; run 'aws sso login'",
                source=self.name,
            )
        return token

    def __repr__(self):
        return f"SsoCredentialsProvider({self.config!r})"


def token_cache_path(config):
    """Returns the path of the cached token file for `config`."""
    key = config.session_name or config.start_url
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()  # nosec
    return f"{TOKEN_CACHE_DIR}/{digest}.json"
