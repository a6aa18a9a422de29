#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#

# pylint: disable=redefined-outer-name,missing-docstring

import asyncio
import hashlib
import json
from datetime import datetime, timezone

import botocore.exceptions
import pytest

from awsconf.errors import InvalidConfiguration, NotConfigured, ProviderError
from awsconf.sso import SsoConfig, SsoCredentialsProvider, sso_config, token_cache_path

START_URL = "https://corp.awsapps.com/start"

SESSION_PROFILE = """
[default]
sso_session = corp
sso_account_id = 111222333444
sso_role_name = Developer

[sso-session corp]
sso_start_url = https://corp.awsapps.com/start
sso_region = us-east-2
"""

LEGACY_PROFILE = """
[profile legacy]
sso_start_url = https://corp.awsapps.com/start
sso_region = eu-west-1
sso_account_id = 111222333444
sso_role_name = ReadOnly
"""

ROLE_CREDENTIALS = {
    "roleCredentials": {
        "accessKeyId": "ASIASSO",
        "secretAccessKey": "secret",
        "sessionToken": "token",
        "expiration": 1704117600000,
    }
}


def cached_token(key, expires_at="2024-01-01T20:00:00Z"):
    path = f"~/.aws/sso/cache/{hashlib.sha1(key.encode()).hexdigest()}.json"
    return path, json.dumps({"accessToken": "sso-access-token", "expiresAt": expires_at})


def test_session_profile(make_conf, factory):
    factory.responses["get_role_credentials"] = ROLE_CREDENTIALS
    path, token = cached_token("corp")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: token})

    creds = asyncio.run(SsoCredentialsProvider(conf).provide_credentials())

    assert creds.access_key_id == "ASIASSO"
    assert creds.expiry == datetime(2024, 1, 1, 14, 0, tzinfo=timezone.utc)
    assert creds.provider_name == "Sso"
    assert factory.clients[0]["service"] == "sso"
    assert factory.clients[0]["region"] == "us-east-2"
    assert factory.clients[0]["unsigned"]
    assert factory.calls[0][2] == {
        "roleName": "Developer",
        "accountId": "111222333444",
        "accessToken": "sso-access-token",
    }


def test_legacy_profile(make_conf, factory):
    factory.responses["get_role_credentials"] = ROLE_CREDENTIALS
    path, token = cached_token(START_URL)
    conf = make_conf(
        env={"AWS_PROFILE": "legacy"},
        files={"~/.aws/config": LEGACY_PROFILE, path: token},
    )

    asyncio.run(SsoCredentialsProvider(conf).provide())
    assert factory.clients[0]["region"] == "eu-west-1"
    assert factory.calls[0][2]["roleName"] == "ReadOnly"


def test_profile_without_sso(make_conf, factory):
    conf = make_conf(files={"~/.aws/config": "[default]\nregion = us-east-1\n"})
    with pytest.raises(NotConfigured):
        asyncio.run(SsoCredentialsProvider(conf).provide())
    assert factory.clients == []


def test_missing_token(make_conf):
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE})
    with pytest.raises(InvalidConfiguration, match="aws sso login"):
        asyncio.run(SsoCredentialsProvider(conf).provide())


def test_unparseable_token(make_conf):
    path, _ = cached_token("corp")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: "{not json"})
    with pytest.raises(InvalidConfiguration, match="cannot parse cached SSO token"):
        asyncio.run(SsoCredentialsProvider(conf).provide())


def test_expired_token(make_conf, factory):
    path, token = cached_token("corp", expires_at="2024-01-01T11:59:59Z")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: token})

    with pytest.raises(ProviderError, match="expired"):
        asyncio.run(SsoCredentialsProvider(conf).provide())
    assert factory.clients == []


def test_token_expiry_written_by_cli(make_conf, factory):
    factory.responses["get_role_credentials"] = ROLE_CREDENTIALS
    path, token = cached_token("corp", expires_at="2024-01-01T20:00:00UTC")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: token})

    creds = asyncio.run(SsoCredentialsProvider(conf).provide())
    assert creds.access_key_id == "ASIASSO"


def test_rejected_token(make_conf, factory):
    factory.responses["get_role_credentials"] = botocore.exceptions.ClientError(
        {"Error": {"Code": "UnauthorizedException", "Message": "expired"}},
        "GetRoleCredentials",
    )
    path, token = cached_token("corp")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: token})

    with pytest.raises(ProviderError, match="UnauthorizedException"):
        asyncio.run(SsoCredentialsProvider(conf).provide())


def test_malformed_role_credentials(make_conf, factory):
    factory.responses["get_role_credentials"] = {"roleCredentials": {}}
    path, token = cached_token("corp")
    conf = make_conf(files={"~/.aws/config": SESSION_PROFILE, path: token})

    with pytest.raises(ProviderError, match="malformed"):
        asyncio.run(SsoCredentialsProvider(conf).provide())


@pytest.mark.parametrize(
    "config, message",
    [
        (
            "[default]\nsso_session = nope\nsso_account_id = 1\nsso_role_name = R\n",
            "sso-session 'nope' does not exist",
        ),
        (
            "[default]\nsso_session = corp\nsso_account_id = 1\nsso_role_name = R\n"
            "[sso-session corp]\nsso_region = us-east-1\n",
            "must set sso_start_url and sso_region",
        ),
        (
            "[default]\nsso_start_url = https://x\nsso_account_id = 1\n"
            "sso_role_name = R\n",
            "sso_region: must be set",
        ),
        (
            "[default]\nsso_session = corp\nsso_role_name = R\n"
            "[sso-session corp]\nsso_start_url = https://x\nsso_region = us-east-1\n",
            "sso_account_id: must be set",
        ),
    ],
)
def test_partial_configuration(make_conf, config, message):
    conf = make_conf(files={"~/.aws/config": config})
    profiles = asyncio.run(conf.profile())
    with pytest.raises(InvalidConfiguration, match=message):
        sso_config(profiles, "default")


def test_token_cache_path():
    legacy = SsoConfig(START_URL, "us-east-1", "1", "R", None)
    session = SsoConfig(START_URL, "us-east-1", "1", "R", "corp")

    assert token_cache_path(legacy) == cached_token(START_URL)[0]
    assert token_cache_path(session) == cached_token("corp")[0]
