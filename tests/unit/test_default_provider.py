#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#

# pylint: disable=redefined-outer-name,missing-docstring

import asyncio
import json
from datetime import datetime, timezone

import pytest

from awsconf.chain import StaticProvider
from awsconf.config import PositiveInt
from awsconf.default_provider import (
    AppName,
    DefaultCredentialsChain,
    ProfileSettingProvider,
    RetryConfigProvider,
    TimeoutConfigProvider,
    app_name_chain,
    region_chain,
)
from awsconf.errors import ChainExhausted, InvalidConfiguration, ProviderTimeout
from awsconf.http import HttpResponse, TransportTimeout
from awsconf.types import Credentials, RetryConfig, TimeoutConfig

REGION_PATH = "/latest/meta-data/placement/region"
ROLES = "/latest/meta-data/iam/security-credentials/"

ENV_CREDS = {"AWS_ACCESS_KEY_ID": "akid", "AWS_SECRET_ACCESS_KEY": "secret"}

PROFILE_CREDS = """
[default]
region = eu-west-1
aws_access_key_id = AKIDPROFILE
aws_secret_access_key = SECRETPROFILE
"""

INSTANCE_CREDS = json.dumps(
    {
        "Code": "Success",
        "AccessKeyId": "ASIAIMDS",
        "SecretAccessKey": "secret",
        "Token": "token",
        "Expiration": "2024-01-01T18:00:00Z",
    }
)


def sts_response(akid):
    return {
        "Credentials": {
            "AccessKeyId": akid,
            "SecretAccessKey": "secret",
            "SessionToken": "token",
            "Expiration": datetime(2024, 1, 1, 13, tzinfo=timezone.utc),
        }
    }


def resolve(provider):
    return asyncio.run(provider.provide())


@pytest.mark.parametrize(
    "env, config, expected",
    [
        ({"AWS_REGION": "us-west-4"}, PROFILE_CREDS, "us-west-4"),
        ({"AWS_DEFAULT_REGION": "us-west-1"}, PROFILE_CREDS, "us-west-1"),
        ({}, PROFILE_CREDS, "eu-west-1"),
        ({"AWS_REGION": "bad region!"}, PROFILE_CREDS, "eu-west-1"),
        ({}, "[default]\nregion = ??\n", "ap-south-1"),
        ({}, "", "ap-south-1"),
    ],
)
def test_region_chain(make_conf, imds_routes, env, config, expected):
    imds_routes({REGION_PATH: "ap-south-1"})
    conf = make_conf(env=env, files={"~/.aws/config": config})
    assert resolve(region_chain(conf)) == expected


def test_region_chain_all_sources_missing(make_conf):
    assert resolve(region_chain(make_conf())) is None


def test_region_chain_imds_timeout_is_not_fatal(make_conf, http):
    http.route("PUT", "http://169.254.169.254/latest/api/token", TransportTimeout("x"))
    assert resolve(region_chain(make_conf())) is None


def test_region_chain_step_can_be_replaced(make_conf, http):
    chain = region_chain(make_conf(), imds=StaticProvider("local-1"))
    assert resolve(chain) == "local-1"
    assert http.requests == []


def test_profile_setting_provider(make_conf):
    conf = make_conf(
        env={"AWS_PROFILE": "dev"},
        files={"~/.aws/config": "[profile dev]\nmax_attempts = 7\n"},
    )
    provider = ProfileSettingProvider(conf, "max_attempts", PositiveInt)
    assert resolve(provider) == 7
    assert provider.name == "Profile(max_attempts)"


@pytest.mark.parametrize(
    "env, config, expected",
    [
        ({}, "", RetryConfig()),
        ({"AWS_MAX_ATTEMPTS": "10"}, "", RetryConfig(max_attempts=10)),
        (
            {"AWS_MAX_ATTEMPTS": "10"},
            "[default]\nmax_attempts = 4\nretry_mode = adaptive\n",
            RetryConfig(mode="adaptive", max_attempts=10),
        ),
        (
            {"AWS_RETRY_MODE": "legacy"},
            "[default]\nmax_attempts = 4\nretry_mode = adaptive\n",
            RetryConfig(mode="legacy", max_attempts=4),
        ),
        (
            {"AWS_MAX_ATTEMPTS": "0", "AWS_RETRY_MODE": "sometimes"},
            "[default]\nmax_attempts = 2\n",
            RetryConfig(max_attempts=2),
        ),
    ],
)
def test_retry_config(make_conf, env, config, expected):
    conf = make_conf(env=env, files={"~/.aws/config": config})
    assert resolve(RetryConfigProvider(conf)) == expected


def test_retry_config_field_can_be_replaced(make_conf):
    conf = make_conf(env={"AWS_MAX_ATTEMPTS": "10", "AWS_RETRY_MODE": "adaptive"})
    provider = RetryConfigProvider(conf, max_attempts=StaticProvider(1))
    assert resolve(provider) == RetryConfig(mode="adaptive", max_attempts=1)


def test_timeout_config(make_conf):
    conf = make_conf(
        env={"AWS_CONNECT_TIMEOUT": "2", "AWS_API_CALL_TIMEOUT": "-1"},
        files={
            "~/.aws/config": "[default]\nread_timeout = 7.5\nconnect_timeout = 9\n"
            "api_call_timeout = 60\n"
        },
    )
    assert resolve(TimeoutConfigProvider(conf)) == TimeoutConfig(
        connect_timeout=2.0, read_timeout=7.5, api_call_timeout=60.0
    )


def test_timeout_config_unset(make_conf):
    timeouts = resolve(TimeoutConfigProvider(make_conf()))
    assert timeouts.is_unset()


def test_timeout_config_phase_can_be_replaced(make_conf):
    provider = TimeoutConfigProvider(
        make_conf(), phases={"read_timeout": StaticProvider(30.0)}
    )
    assert resolve(provider) == TimeoutConfig(read_timeout=30.0)


@pytest.mark.parametrize(
    "env, config, expected",
    [
        ({"AWS_SDK_UA_APP_ID": "billing"}, "[default]\nsdk_ua_app_id = ignored\n", "billing"),
        ({}, "[default]\nsdk_ua_app_id = from-profile\n", "from-profile"),
        ({"AWS_SDK_UA_APP_ID": "has spaces"}, "[default]\nsdk_ua_app_id = ok\n", "ok"),
        ({}, "", None),
    ],
)
def test_app_name_chain(make_conf, env, config, expected):
    conf = make_conf(env=env, files={"~/.aws/config": config})
    assert resolve(app_name_chain(conf)) == expected


def test_long_app_name_is_accepted_with_warning(caplog):
    name = "a" * 51
    assert AppName().parse(name) == name
    assert "longer than the recommended" in caplog.text


def test_credentials_from_environment_first(make_conf, http, factory):
    conf = make_conf(env=ENV_CREDS, files={"~/.aws/config": PROFILE_CREDS})
    creds = resolve(DefaultCredentialsChain(conf))

    assert creds.access_key_id == "akid"
    assert creds.provider_name == "Environment"
    assert http.requests == []
    assert factory.clients == []


def test_static_override_is_first(make_conf):
    static = Credentials("STATIC", "secret")
    conf = make_conf(env=ENV_CREDS)
    creds = resolve(DefaultCredentialsChain(conf, static=static))
    assert creds.access_key_id == "STATIC"


def test_credentials_from_profile(make_conf):
    conf = make_conf(files={"~/.aws/config": PROFILE_CREDS})
    creds = resolve(DefaultCredentialsChain(conf))
    assert creds.provider_name == "Profile(default)"


def test_credentials_from_container_before_instance(make_conf, http, imds_routes):
    imds_routes({ROLES: "role", ROLES + "role": INSTANCE_CREDS})
    http.route(
        "GET",
        "http://169.254.170.2/creds",
        HttpResponse(200, INSTANCE_CREDS.replace("ASIAIMDS", "ASIAECS")),
    )
    conf = make_conf(env={"AWS_CONTAINER_CREDENTIALS_RELATIVE_URI": "/creds"})

    creds = resolve(DefaultCredentialsChain(conf))
    assert creds.access_key_id == "ASIAECS"
    assert http.urls("PUT") == []


def test_credentials_from_instance(make_conf, imds_routes):
    imds_routes({ROLES: "role", ROLES + "role": INSTANCE_CREDS})
    creds = resolve(DefaultCredentialsChain(make_conf()))
    assert creds.access_key_id == "ASIAIMDS"


def test_credentials_from_web_identity(make_conf, factory):
    factory.responses["assume_role_with_web_identity"] = sts_response("ASIAWEB")
    conf = make_conf(
        env={"AWS_WEB_IDENTITY_TOKEN_FILE": "/token", "AWS_ROLE_ARN": "arn:role"},
        files={"/token": "jwt"},
    )

    creds = resolve(DefaultCredentialsChain(conf))
    assert creds.access_key_id == "ASIAWEB"
    assert [c[1] for c in factory.calls] == ["assume_role_with_web_identity"]


def test_assume_role_on_top_of_chain(make_conf, factory):
    factory.responses["assume_role"] = sts_response("ASIAROLE")
    conf = make_conf(
        env=dict(ENV_CREDS, AWS_ROLE_ARN="arn:role", AWS_ROLE_SESSION_NAME="ci")
    ).with_region("eu-west-1")

    creds = resolve(DefaultCredentialsChain(conf))

    assert creds.access_key_id == "ASIAROLE"
    assert creds.provider_name == "AssumeRole"
    assert factory.clients[0]["region"] == "eu-west-1"
    assert factory.clients[0]["credentials"].access_key_id == "akid"
    assert factory.calls[0][2]["RoleSessionName"] == "ci"


def test_no_credentials_anywhere(make_conf):
    with pytest.raises(ChainExhausted) as excinfo:
        resolve(DefaultCredentialsChain(make_conf()))
    assert excinfo.value.last_source == "Imds"


def test_misconfigured_profile_is_terminal(make_conf, imds_routes, http):
    imds_routes({ROLES: "role", ROLES + "role": INSTANCE_CREDS})
    conf = make_conf(
        files={
            "~/.aws/config": "[default]\nrole_arn = arn:role\nsource_profile = gone\n"
        }
    )

    with pytest.raises(InvalidConfiguration, match="source profile 'gone'"):
        resolve(DefaultCredentialsChain(conf))
    assert http.requests == []


def test_role_profile_without_its_source_is_terminal(make_conf, imds_routes, factory):
    imds_routes({ROLES: "role", ROLES + "role": INSTANCE_CREDS})
    conf = make_conf(
        env={"AWS_PROFILE": "prod"},
        files={
            "~/.aws/config": "[profile prod]\nrole_arn = arn:role\n"
            "credential_source = Environment\n"
        },
    )

    with pytest.raises(InvalidConfiguration) as excinfo:
        resolve(DefaultCredentialsChain(conf))
    assert excinfo.value.profile == "prod"
    assert excinfo.value.setting == "credential_source"
    assert factory.clients == []


def test_timeout_of_last_step_is_surfaced(make_conf):
    class SlowLast(StaticProvider):
        name = "Slow"

        async def provide(self):
            raise ProviderTimeout("Slow did not respond", source="Slow")

    chain = DefaultCredentialsChain(make_conf(), providers=[SlowLast(None)])
    with pytest.raises(ProviderTimeout):
        resolve(chain)


def test_steps_can_be_replaced(make_conf):
    static = Credentials("INJECTED", "secret")
    chain = DefaultCredentialsChain(
        make_conf(env=ENV_CREDS), providers=[StaticProvider(static)]
    )
    assert resolve(chain).access_key_id == "INJECTED"


def test_construction_performs_no_io(make_conf, http, factory):
    DefaultCredentialsChain(make_conf(env=dict(ENV_CREDS, AWS_ROLE_ARN="arn:role")))
    assert http.requests == []
    assert factory.clients == []
