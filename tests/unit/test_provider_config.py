#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#

# pylint: disable=redefined-outer-name,missing-docstring

import asyncio

import pytest

from awsconf.errors import InvalidConfiguration
from awsconf.os_shim import Env, Fs
from awsconf.provider_config import ProviderConfig
from awsconf.types import Credentials, TimeoutConfig


def test_profile_is_loaded_once(make_conf, mocker):
    conf = make_conf(files={"~/.aws/config": "[default]\nregion = us-west-2\n"})
    spy = mocker.spy(conf.fs, "read")

    async def main():
        return await asyncio.gather(*(conf.profile() for _ in range(5)))

    results = asyncio.run(main())
    assert all(r is results[0] for r in results)
    # One read each for the config and credentials files
    assert spy.call_count == 2


def test_with_region_shares_profile_load(make_conf):
    conf = make_conf(files={"~/.aws/config": "[default]\nregion = us-west-2\n"})

    async def main():
        return await conf.profile(), await conf.with_region("eu-west-1").profile()

    first, second = asyncio.run(main())
    assert first is second


def test_with_profile_name_reloads(make_conf):
    conf = make_conf(
        files={"~/.aws/config": "[default]\nregion = a-1\n[profile dev]\nregion = b-2\n"}
    )
    dev = conf.with_profile_name("dev")

    async def main():
        return await conf.profile(), await dev.profile()

    default, selected = asyncio.run(main())
    assert default is not selected
    assert dev.profile_name == "dev"
    assert conf.profile_name is None


def test_copies_leave_the_original_untouched(make_conf):
    conf = make_conf()
    env = Env.from_dict({"AWS_REGION": "us-east-2"})

    assert conf.with_env(env).env is env
    assert conf.env is not env
    assert conf.with_region("ap-east-1").region == "ap-east-1"
    assert conf.region is None


def test_profile_errors_are_shared(make_conf):
    conf = make_conf(files={"~/.aws/config": "not a profile file"})

    async def main():
        results = await asyncio.gather(
            conf.profile(), conf.profile(), return_exceptions=True
        )
        return results

    first, second = asyncio.run(main())
    assert isinstance(first, InvalidConfiguration)
    assert first is second


def test_empty_has_nothing():
    conf = ProviderConfig.empty()

    assert conf.env.get("HOME") is None
    assert asyncio.run(conf.profile()).is_empty()


def test_with_fs(make_conf):
    fs = Fs.from_dict({"/home/user/.aws/config": "[default]\nregion = x-1\n"})
    conf = make_conf().with_fs(fs)
    assert conf.fs is fs


def test_with_profile_files(make_conf):
    conf = make_conf(
        files={
            "~/.aws/config": "[default]\nregion = us-east-1\n",
            "/etc/aws/config": "[default]\nregion = eu-north-1\n",
        }
    )
    moved = conf.with_profile_files(config_file="/etc/aws/config")

    async def main():
        return await conf.profile(), await moved.profile()

    original, relocated = asyncio.run(main())
    assert original.get("region") == "us-east-1"
    assert relocated.get("region") == "eu-north-1"


def test_credentials_repr_redacts_secrets():
    creds = Credentials("AKID", "SECRET", "TOKEN")
    assert "SECRET" not in repr(creds)
    assert "TOKEN" not in repr(creds)
    assert "AKID" in repr(creds)


def test_timeout_config_rejects_unknown_phases():
    with pytest.raises(TypeError, match="socket_timeout"):
        TimeoutConfig(socket_timeout=1)
