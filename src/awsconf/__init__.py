#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Library to resolve the configuration of an AWS service client.

## Overview

`awsconf` determines everything an AWS service client needs before it can
send its first request: the region, a credentials provider, the retry and
timeout policies, an application name for the user agent, and an optional
endpoint override. Each of these axes can be set explicitly by the caller or
looked up through an ordered chain of sources, the same chain the AWS CLI
consults: environment variables, the shared config and credentials files,
assumed roles, web identity tokens, SSO, container endpoints, and EC2
instance metadata.

    from awsconf.loader import ConfigLoader

    config = await ConfigLoader().app_name("billing").load()
    creds = await config.credentials_provider.provide_credentials()

The result is an immutable `awsconf.types.SdkConfig` that can be shared by
any number of concurrent requests. Credentials are not fetched while loading.
They are fetched when first needed and then cached by
`awsconf.cache.LazyCredentialsCache` until shortly before they expire.

### Library Usage

Each submodule contains an overview of its use followed by the standard
module docs for its classes and functions. Of particular interest:

`awsconf.loader`
: The `awsconf.loader.ConfigLoader` builder, the entry point for most users.

`awsconf.default_provider`
: The default chains for each axis, including
`awsconf.default_provider.DefaultCredentialsChain`.

`awsconf.chain`
: The generic `awsconf.chain.ProviderChain` and the error policy of
credentials chains. Build your own providers by subclassing
`awsconf.chain.Provider` or `awsconf.chain.CredentialsProvider`.

`awsconf.provider_config`
: The `awsconf.provider_config.ProviderConfig` that bundles the environment,
filesystem, clock, and network used by every provider. Substitute it to test
code that loads configuration without touching the host.

`awsconf.errors`
: The errors raised by the library. All derive from
`awsconf.errors.ConfigError`.

### Logging

Every module logs to a logger named after the module. The library does not
configure any handlers. To see how a value was resolved, enable debug logging
for the `awsconf` logger:

    logging.getLogger("awsconf").setLevel(logging.DEBUG)

Secret keys and session tokens are never logged.
"""

__version__ = "1.0.0"
