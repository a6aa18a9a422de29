#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Credentials obtained from AWS STS.

## Overview

Two providers exchange an identity for temporary credentials with STS:

`AssumeRoleProvider`
:  Obtains credentials for a "base" identity from another provider, then
assumes a role with them. This is how cross-account access and role chaining
are implemented. For example, to assume a role using credentials from the
environment:

    provider = AssumeRoleProvider(
        provider_config,
        role_arn="arn:aws:iam::222333444111:role/CrossAccountRoleName",
        base=EnvironmentCredentialsProvider(provider_config.env),
    )
    creds = await provider.provide_credentials()

`WebIdentityTokenCredentialsProvider`
:  Exchanges an OIDC token read from a file for credentials via
AssumeRoleWithWebIdentity (for example, EKS IAM roles for service accounts).
Unless configured explicitly, it reads `AWS_WEB_IDENTITY_TOKEN_FILE`,
`AWS_ROLE_ARN`, and `AWS_ROLE_SESSION_NAME` from the environment.

STS requests must be sent to a regional endpoint, so both providers use the
region hint of the `awsconf.provider_config.ProviderConfig`, or `us-east-1` if
none was resolved. The calls are made with boto3 clients from the config's
`awsconf.clients.AwsClientFactory` and are bounded by `timeout` seconds.
"""

import logging
from datetime import timezone

from awsconf import clients
from awsconf.chain import CredentialsProvider
from awsconf.errors import InvalidConfiguration, NotConfigured, ProviderError
from awsconf.types import Credentials

LOG = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class AssumeRoleProvider(CredentialsProvider):
    """Assumes `role_arn` using credentials from the `base` provider.

    `session_name` defaults to a name derived from the current time.
    `external_id` and `duration` (seconds) are passed to STS when set.
    """

    name = "AssumeRole"

    def __init__(
        self,
        provider_config,
        role_arn,
        base,
        session_name=None,
        external_id=None,
        duration=None,
        timeout=5,
    ):
        self.conf = provider_config
        self.role_arn = role_arn
        self.base = base
        self.session_name = session_name
        self.external_id = external_id
        self.duration = duration
        self.timeout = timeout

    async def provide(self):
        base_creds = await self.base.provide()
        if base_creds is None:
            raise NotConfigured(f"{self.base.name} has no base credentials")

        region = self.conf.region or DEFAULT_REGION
        kwargs = {
            "RoleArn": self.role_arn,
            "RoleSessionName": self.session_name or default_session_name(self.conf),
        }
        if self.external_id:
            kwargs["ExternalId"] = self.external_id
        if self.duration:
            kwargs["DurationSeconds"] = self.duration

        LOG.info(
            "assuming role %s in %s with credentials from %s",
            self.role_arn,
            region,
            base_creds.provider_name,
        )

        def assume_role():
            sts = self.conf.client_factory.client("sts", region, credentials=base_creds)
            return sts.assume_role(**kwargs)

        resp = await clients.call(self.name, self.timeout, assume_role)
        return credentials_from_response(resp, self.name)

    def __repr__(self):
        return f"AssumeRoleProvider({self.role_arn!r}, base={self.base.name})"


class WebIdentityTokenCredentialsProvider(CredentialsProvider):
    """Exchanges a web identity token file for credentials.

    If `token_file` is `None`, the token file, role ARN, and session name are
    read from the environment and the provider raises `NotConfigured` when
    `AWS_WEB_IDENTITY_TOKEN_FILE` is not set. A token file that cannot be read
    or is empty raises `InvalidConfiguration`.
    """

    name = "WebIdentityToken"

    def __init__(
        self,
        provider_config,
        token_file=None,
        role_arn=None,
        session_name=None,
        timeout=5,
    ):
        self.conf = provider_config
        self.token_file = token_file
        self.role_arn = role_arn
        self.session_name = session_name
        self.timeout = timeout

    def settings(self):
        """Returns the `(token_file, role_arn, session_name)` in effect."""
        if self.token_file is not None:
            return self.token_file, self.role_arn, self.session_name

        env = self.conf.env
        token_file = (env.get("AWS_WEB_IDENTITY_TOKEN_FILE") or "").strip()
        if not token_file:
            raise NotConfigured("AWS_WEB_IDENTITY_TOKEN_FILE not set")

        role_arn = (env.get("AWS_ROLE_ARN") or "").strip()
        if not role_arn:
            raise InvalidConfiguration(
                "must be set with AWS_WEB_IDENTITY_TOKEN_FILE", setting="AWS_ROLE_ARN"
            )
        return token_file, role_arn, env.get("AWS_ROLE_SESSION_NAME")

    async def provide(self):
        token_file, role_arn, session_name = self.settings()
        token = await self._read_token(token_file)

        region = self.conf.region or DEFAULT_REGION
        kwargs = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name or default_session_name(self.conf),
            "WebIdentityToken": token,
        }
        LOG.info("assuming role %s with web identity token", role_arn)

        def assume_role():
            sts = self.conf.client_factory.client("sts", region, unsigned=True)
            return sts.assume_role_with_web_identity(**kwargs)

        resp = await clients.call(self.name, self.timeout, assume_role)
        return credentials_from_response(resp, self.name)

    async def _read_token(self, token_file):
        data = await self.conf.fs.read(token_file, self.conf.env)
        if data is None:
            raise InvalidConfiguration(
                f"cannot read token file {token_file}",
                setting="web_identity_token_file",
            )
        try:
            token = data.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise InvalidConfiguration(
                f"token file {token_file} is not UTF-8",
                setting="web_identity_token_file",
            ) from e
        if not token:
            raise InvalidConfiguration(
                f"token file {token_file} is empty", setting="web_identity_token_file"
            )
        return token

    def __repr__(self):
        return f"WebIdentityTokenCredentialsProvider(token_file={self.token_file!r})"


def default_session_name(provider_config):
    """Returns a role session name unique to the current second."""
    return f"awsconf-session-{int(provider_config.clock.now().timestamp())}"


def credentials_from_response(resp, provider_name):
    """Returns `Credentials` from the `Credentials` dict of an STS response."""
    creds = (resp or {}).get("Credentials")
    if not creds:
        raise ProviderError(
            f"{provider_name}: response has no credentials", source=provider_name
        )

    try:
        expiry = creds["Expiration"]
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return Credentials(
            creds["AccessKeyId"],
            creds["SecretAccessKey"],
            creds.get("SessionToken"),
            expiry.astimezone(timezone.utc),
            provider_name,
        )
    except (KeyError, AttributeError) as e:
        raise ProviderError(
            f"{provider_name}: malformed credentials in response: {e}",
            source=provider_name,
        ) from e
