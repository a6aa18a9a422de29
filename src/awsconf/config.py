#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Typed reads of settings from environment variables, profiles, and files.

## Overview

`Config` wraps a dict, which may contain other dicts, and reads values from it
while providing default values, mandatory values, and the ability to parse and
validate values using type specifications. Settings in AWS profile files and
environment variables are always strings, so unlike a plain type check, each
type here *parses* the raw value and returns the converted result:

    c = Config({"AWS_MAX_ATTEMPTS": "10", "retry": {"mode": "adaptive"}})

    assert c.get("AWS_MAX_ATTEMPTS", type=PositiveInt) == 10
    assert c.get("retry", "mode", type=RetryMode) == "adaptive"
    assert c.get("AWS_REGION", default="us-east-1") == "us-east-1"

If a value does not parse as the requested type, an
`awsconf.errors.InvalidConfiguration` is raised that names the key path. The
`Config.from_file` factory loads a YAML or JSON file based on its extension.
Additional parsers can be registered via `Config.register_filetype`.

## Types

Simple types are provided as pre-defined objects: `Str`, `Int`, `PositiveInt`,
`Float`, `Seconds`, `Bool`, `Region`, and `RetryMode`. `StrMatch` and `Choice`
can be instantiated to build more, and `Or` combines types by returning the
result of the first one that parses. Users can define custom types by
subclassing `Type` and implementing `parse` and `__str__`.
"""

import json
import logging
import math
import re
from pathlib import Path

import yaml

from awsconf.errors import InvalidConfiguration

LOG = logging.getLogger(__name__)

_MISSING = object()


class Config:
    """A `Config` reads parsed values from a Python dictionary.

    This class provides an interface to read values from a dictionary while
    providing for default values, mandatory values, as well as the ability to
    parse values into types. The class also contains a registry of
    configuration parsers based on file extensions, so users can load configs
    from files. `profile` is only used to name the profile in error messages.
    """

    _filetypes = {}

    @classmethod
    def register_filetype(cls, config_class, *extensions):
        """Register a parser for files with one of the specified extensions.

        Extensions should be specified as '.ext'. Subsequent registrations for
        the same extension override the prior registration.
        """
        for ext in extensions:
            cls._filetypes[ext] = config_class

    @classmethod
    def from_file(cls, filename, must_exist=False):
        """Factory method to load a `Config` from a filename.

        The extension of the filename determines the parser used. If
        `must_exist` is true, a `FileNotFoundError` is raised if the file does
        not exist, otherwise an empty `Config` is returned.
        """
        path = Path(filename)

        if not path.is_file():
            if must_exist:
                raise FileNotFoundError(f"Config file not found: {filename}")
            return Config({})

        if path.suffix not in cls._filetypes:
            raise ValueError(f"Unregistered file type extension: {path.suffix}")

        with path.open(encoding="utf-8") as f:
            return cls._filetypes[path.suffix](f)

    def __init__(self, d, profile=None):
        self.conf = {} if d is None else d
        self.profile = profile

    def get(self, *keys, default=None, type=None, must_exist=False):
        """Return the specified value from the `Config`.

        Specify the value to read by providing the keys required to reach the
        value. If the value is not found at the specified key path, `default`
        is returned unless `must_exist` is `True`, in which case an
        `InvalidConfiguration` is raised. Values that are empty strings are
        treated as missing.

        If `type` is specified, the value is parsed with it and the parsed
        value is returned. Defaults are returned as-is without being parsed.
        """
        # pylint: disable=redefined-builtin
        path = "->".join(keys)

        value = self.conf
        for key in keys:
            if value is None:
                value = _MISSING
                break
            if not hasattr(value, "get"):
                raise InvalidConfiguration(
                    "not a dictionary", profile=self.profile, setting=path
                )
            value = value.get(key, _MISSING)
            if value is _MISSING:
                break

        if value is _MISSING or value is None or value == "":
            if must_exist:
                raise InvalidConfiguration(
                    "must be set", profile=self.profile, setting=path
                )
            return default

        if not type:
            return value

        try:
            return type.parse(value)
        except ValueError as e:
            raise InvalidConfiguration(
                f"not a {type}: {value!r}", profile=self.profile, setting=path
            ) from e


class YAMLConfig(Config):
    """Loads a YAML configuration from a stream."""

    def __init__(self, stream):
        super().__init__(yaml.safe_load(stream))


class JSONConfig(Config):
    """Loads a JSON configuration from a stream."""

    def __init__(self, stream):
        super().__init__(json.load(stream))


Config.register_filetype(JSONConfig, ".json", ".jsn")
Config.register_filetype(YAMLConfig, ".yaml", ".yml")


class Type:
    """Represents a type a raw setting can be parsed into."""

    def parse(self, obj):
        """Returns `obj` converted to this `Type` or raises `ValueError`."""
        raise NotImplementedError

    def __str__(self):
        """Returns a string representing this `Type`."""
        raise NotImplementedError


class StrType(Type):
    def parse(self, obj):
        if not isinstance(obj, str):
            raise ValueError(f"{obj!r} is not a string")
        return obj.strip()

    def __str__(self):
        return "str"


class IntType(Type):
    def __init__(self, minimum=None):
        self.minimum = minimum

    def parse(self, obj):
        # bool is a subclass of int, but True is not a retry count
        if isinstance(obj, bool):
            raise ValueError(f"{obj!r} is not an int")
        value = int(obj.strip()) if isinstance(obj, str) else obj
        if type(value) != int:  # noqa: E721
            raise ValueError(f"{obj!r} is not an int")
        if self.minimum is not None and value < self.minimum:
            raise ValueError(f"{value} is less than {self.minimum}")
        return value

    def __str__(self):
        if self.minimum == 1:
            return "positive int"
        return "int"


class FloatType(Type):
    def __init__(self, minimum=None, name="float"):
        self.minimum = minimum
        self.name = name

    def parse(self, obj):
        if isinstance(obj, bool) or not isinstance(obj, (str, int, float)):
            raise ValueError(f"{obj!r} is not a number")
        value = float(obj.strip()) if isinstance(obj, str) else float(obj)
        if not math.isfinite(value):
            raise ValueError(f"{obj!r} is not finite")
        if self.minimum is not None and value < self.minimum:
            raise ValueError(f"{value} is less than {self.minimum}")
        return value

    def __str__(self):
        return self.name


class BoolType(Type):
    def parse(self, obj):
        if isinstance(obj, bool):
            return obj
        if isinstance(obj, str) and obj.strip().lower() in ("true", "false"):
            return obj.strip().lower() == "true"
        raise ValueError(f"{obj!r} is not a bool")

    def __str__(self):
        return "bool"


class StrMatch(Type):
    """Represents a string matching `pattern`.

    `pattern` is matched using `re.search` so anchors should be explicit.
    """

    def __init__(self, pattern, name=None):
        self.pattern = pattern
        self.name = name

    def parse(self, obj):
        value = Str.parse(obj)
        if not re.search(self.pattern, value):
            raise ValueError(f"{value!r} does not match {self.pattern}")
        return value

    def __str__(self):
        return self.name or f"str matching '{self.pattern}'"


class Choice(Type):
    """Represents one of a fixed set of case-insensitive string constants."""

    def __init__(self, *choices):
        self.choices = choices

    def parse(self, obj):
        value = Str.parse(obj).lower()
        if value not in self.choices:
            raise ValueError(f"{value!r} is not one of {self.choices}")
        return value

    def __str__(self):
        return "one of " + ", ".join(f"'{c}'" for c in self.choices)


class Or(Type):
    """Represents a value parsed by the first of `config_types` that accepts it."""

    def __init__(self, *config_types):
        self.config_types = config_types

    def parse(self, obj):
        for t in self.config_types:
            try:
                return t.parse(obj)
            except ValueError:
                continue
        raise ValueError(f"{obj!r} is not {self}")

    def __str__(self):
        return "(" + " or ".join(str(t) for t in self.config_types) + ")"


Str = StrType()
"""Singleton representing a str, stripped of surrounding whitespace."""

Int = IntType()
"""Singleton representing an int."""

PositiveInt = IntType(minimum=1)
"""Singleton representing an int greater than zero."""

Float = FloatType()
"""Singleton representing a finite float."""

Seconds = FloatType(minimum=0, name="non-negative number of seconds")
"""Singleton representing a duration in seconds."""

Bool = BoolType()
"""Singleton representing a bool, parsed from 'true' or 'false'."""

Region = StrMatch(r"^[a-zA-Z0-9-]+$", name="region name")
"""Singleton representing an AWS region name such as us-east-1."""

RetryMode = Choice("standard", "adaptive", "legacy")
"""Singleton representing a retry mode."""

URL = StrMatch(r"^[^:]+://", name="URL")
"""Singleton representing a URL in the form of xxxx://."""
