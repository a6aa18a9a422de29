#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Parse the JSON credential documents served by IMDS and the ECS agent.

Both the instance metadata service and the container credentials endpoint
return a document of the following form:

    {
      "Code" : "Success",
      "LastUpdated" : "2021-09-17T20:57:08Z",
      "Type" : "AWS-HMAC",
      "AccessKeyId" : "ASIARTEST",
      "SecretAccessKey" : "xjtest",
      "Token" : "IQote///test",
      "Expiration" : "2021-09-18T03:31:56Z"
    }

The container endpoint omits `Code` and `Type`. When `Code` is present and is
not `Success`, the document describes an error and its `Message` is reported.
"""

import json
from datetime import timezone

from dateutil.parser import parse

from awsconf.errors import ProviderError
from awsconf.types import Credentials


def parse_credentials(text, provider_name):
    """Returns `awsconf.types.Credentials` parsed from the JSON `text`.

    Raises `awsconf.errors.ProviderError` naming `provider_name` if the
    document is malformed or reports an error.
    """
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise ProviderError(
            f"{provider_name}: invalid JSON credentials: {e}", source=provider_name
        ) from e

    if not isinstance(doc, dict):
        raise ProviderError(
            f"{provider_name}: credentials document is not an object",
            source=provider_name,
        )

    code = doc.get("Code", "Success")
    if code != "Success":
        raise ProviderError(
            f"{provider_name}: {code}: {doc.get('Message', 'no message')}",
            source=provider_name,
        )

    missing = [
        k for k in ("AccessKeyId", "SecretAccessKey", "Expiration") if not doc.get(k)
    ]
    if missing:
        raise ProviderError(
            f"{provider_name}: credentials document missing {', '.join(missing)}",
            source=provider_name,
        )

    try:
        expiry = parse_timestamp(doc["Expiration"])
    except ValueError as e:
        raise ProviderError(
            f"{provider_name}: invalid Expiration: {doc['Expiration']!r}",
            source=provider_name,
        ) from e

    return Credentials(
        doc["AccessKeyId"],
        doc["SecretAccessKey"],
        doc.get("Token"),
        expiry,
        provider_name,
    )


def parse_timestamp(value):
    """Returns a UTC `datetime` parsed from an ISO 8601 string.

    Timestamps without an offset are taken to be UTC. Raises `ValueError` if
    `value` is not a timestamp.
    """
    if not isinstance(value, str):
        raise ValueError(f"{value!r} is not a timestamp")
    try:
        ts = parse(value.strip())
    except OverflowError as e:
        raise ValueError(f"{value!r} is out of range") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
