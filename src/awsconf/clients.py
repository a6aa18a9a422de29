#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Creates the boto3 clients used to federate identities.

The STS and SSO providers do not speak their wire protocols themselves. They
obtain a boto3 client from an `AwsClientFactory` and call it in a worker
thread via `call`, which also translates botocore exceptions into the awsconf
error taxonomy:

`botocore.exceptions.ConnectTimeoutError`, `ReadTimeoutError`
:  `awsconf.errors.ProviderTimeout`

`botocore.exceptions.ConnectionError` (and subclasses)
:  `awsconf.errors.ProviderUnreachable`

`botocore.exceptions.ClientError`, any other `BotoCoreError`
:  `awsconf.errors.ProviderError`

Substitute the factory in `awsconf.provider_config.ProviderConfig` to avoid
real network calls in tests.
"""

import logging

import boto3
import botocore.exceptions
from botocore import UNSIGNED
from botocore.config import Config as BotoConfig

from awsconf.aio import run_blocking, with_timeout
from awsconf.errors import ProviderError, ProviderTimeout, ProviderUnreachable

LOG = logging.getLogger(__name__)


class AwsClientFactory:
    """Builds boto3 clients for a service in a region.

    If `credentials` (an `awsconf.types.Credentials`) are given, the client
    signs requests with them. If `unsigned` is true, the client does not sign
    requests at all, as required by AssumeRoleWithWebIdentity and the SSO
    portal API. Clients never retry; retries are left to the caller.
    """

    def client(
        self,
        service,
        region,
        credentials=None,
        unsigned=False,
        connect_timeout=2,
        read_timeout=5,
    ):
        config = BotoConfig(
            region_name=region,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 1, "mode": "standard"},
            signature_version=UNSIGNED if unsigned else None,
        )
        session = boto3.Session(
            aws_access_key_id=credentials.access_key_id if credentials else None,
            aws_secret_access_key=(
                credentials.secret_access_key if credentials else None
            ),
            aws_session_token=credentials.session_token if credentials else None,
            region_name=region,
        )
        return session.client(service, config=config)

    def __repr__(self):
        return "AwsClientFactory()"


async def call(source, timeout, fn, **kwargs):
    """Invokes the boto3 operation `fn` in a worker thread.

    The call is bounded by `timeout` seconds. Errors are translated as
    described in the module documentation and name `source`.
    """
    return await with_timeout(
        run_blocking(_translated, source, fn, **kwargs), timeout, source
    )


def _translated(source, fn, **kwargs):
    try:
        return fn(**kwargs)

    except (
        botocore.exceptions.ConnectTimeoutError,
        botocore.exceptions.ReadTimeoutError,
    ) as e:
        raise ProviderTimeout(f"{source}: {e}", source=source) from e

    except botocore.exceptions.ConnectionError as e:
        raise ProviderUnreachable(f"{source}: {e}", source=source) from e

    except botocore.exceptions.ClientError as e:
        error = e.response.get("Error", {})
        raise ProviderError(
            f"{source}: {error.get('Code', 'Unknown')}: {error.get('Message', e)}",
            source=source,
        ) from e

    except botocore.exceptions.BotoCoreError as e:
        raise ProviderError(f"{source}: {e}", source=source) from e
