# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module for the StreamSettings class
"""

from __future__ import annotations

from copy import deepcopy
from json import loads

import jsonschema
import yaml
from importlib_resources import files as pkg_files

from kinesis_reconciler.common import LOG, keyisset, set_else_none
from kinesis_reconciler.common.aws import define_session
from kinesis_reconciler.exceptions import InvalidStreamSettings
from kinesis_reconciler.kinesis.kinesis_gateway import KinesisGateway
from kinesis_reconciler.kinesis.kinesis_params import (
    CONSUMER_STATE_CHECK_DELAY,
    WAITER_DELAY,
    WAITER_MAX_ATTEMPTS,
)
from kinesis_reconciler.kinesis.kinesis_stream import EncryptionSpec


class StreamSettings:
    """
    Class to handle the desired state of the stream, from config file and CLI arguments.
    CLI arguments take precedence over the config file values.

    :ivar str stream_name:
    :ivar int shard_count:
    :ivar bool create_if_missing:
    :ivar dict tags:
    :ivar EncryptionSpec encryption:
    :ivar list[str] consumers:
    """

    name_arg = "StreamName"
    shard_count_arg = "ShardCount"
    create_arg = "CreateStreamIfNeeded"
    tags_arg = "Tags"
    encryption_arg = "Encryption"
    consumers_arg = "Consumers"
    consumer_delay_arg = "ConsumerCheckDelay"
    waiter_delay_arg = "WaiterDelay"
    waiter_attempts_arg = "WaiterMaxAttempts"

    input_file_arg = "ConfigFile"
    region_arg = "RegionName"
    profile_arg = "ProfileName"
    arn_arg = "RoleArn"
    command_arg = "command"

    default_shard_count = 1

    active_commands = [
        {
            "name": "up",
            "help": "Creates/activates the stream, converges tags & encryption, registers consumers",
        },
        {
            "name": "describe",
            "help": "Shows whether the stream exists, waiting for any transition to finish",
        },
        {"name": "shards", "help": "Lists the stream shards and their lineage"},
        {
            "name": "consumers",
            "help": "Lists the stream enhanced consumers once they are all active",
        },
    ]
    neutral_commands = [{"name": "version", "help": "Kinesis Reconciler Version"}]
    all_commands = active_commands + neutral_commands

    definition_keys = [
        name_arg,
        shard_count_arg,
        create_arg,
        tags_arg,
        encryption_arg,
        consumers_arg,
        consumer_delay_arg,
        waiter_delay_arg,
        waiter_attempts_arg,
    ]

    def __init__(self, content=None, session=None, **kwargs):
        """
        :param dict content: Stream definition, used instead of the config file
        :param boto3.session.Session session: The session to use for the API calls
        """
        self.__args = deepcopy(kwargs)
        self.input_file = set_else_none(self.input_file_arg, kwargs)
        self.definition = self.set_definition(kwargs, content)
        self.validate_definition(self.definition)

        self.stream_name = self.definition[self.name_arg]
        self.shard_count = set_else_none(
            self.shard_count_arg, self.definition, alt_value=self.default_shard_count
        )
        self.create_if_missing = keyisset(self.create_arg, self.definition)
        self.tags = {
            str(key): str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in self.definition.get(self.tags_arg, {}).items()
        }
        self.encryption = self.set_encryption(self.definition)
        self.consumers = list(self.definition.get(self.consumers_arg, []))
        self.consumer_check_delay = self.definition.get(
            self.consumer_delay_arg, CONSUMER_STATE_CHECK_DELAY
        )
        self.waiter_delay = self.definition.get(self.waiter_delay_arg, WAITER_DELAY)
        self.waiter_max_attempts = self.definition.get(
            self.waiter_attempts_arg, WAITER_MAX_ATTEMPTS
        )
        self.session = define_session(
            session,
            profile_name=set_else_none(self.profile_arg, kwargs),
            region_name=set_else_none(self.region_arg, kwargs),
            role_arn=set_else_none(self.arn_arg, kwargs),
        )
        self._gateway = None

    @property
    def gateway(self) -> KinesisGateway:
        if self._gateway is None:
            self._gateway = KinesisGateway(
                self.session,
                waiter_delay=self.waiter_delay,
                waiter_max_attempts=self.waiter_max_attempts,
            )
        return self._gateway

    def set_definition(self, kwargs: dict, content: dict = None) -> dict:
        """
        Merges the config file (or content) with the CLI overrides.

        :param dict kwargs: CLI arguments
        :param dict content: definition to use instead of the config file
        :rtype: dict
        """
        if content is not None:
            definition = deepcopy(content)
        elif self.input_file:
            LOG.debug(f"Loading stream settings from {self.input_file}")
            with open(self.input_file) as config_fd:
                definition = yaml.safe_load(config_fd.read()) or {}
        else:
            definition = {}
        if not isinstance(definition, dict):
            raise InvalidStreamSettings(
                "The stream definition must be a mapping. Got", type(definition)
            )
        for key in self.definition_keys:
            if key not in kwargs or kwargs[key] is None:
                continue
            if key == self.tags_arg:
                definition.setdefault(self.tags_arg, {}).update(kwargs[key])
            elif key == self.consumers_arg:
                consumers = definition.setdefault(self.consumers_arg, [])
                consumers += [name for name in kwargs[key] if name not in consumers]
            else:
                definition[key] = kwargs[key]
        return definition

    @staticmethod
    def validate_definition(definition: dict):
        source = pkg_files("kinesis_reconciler").joinpath("specs/stream.spec.json")
        LOG.debug(f"Validating against input schema {source}")
        try:
            jsonschema.validate(definition, loads(source.read_text()))
        except jsonschema.ValidationError as error:
            raise InvalidStreamSettings(
                f"Invalid stream settings: {error.message}", list(error.path)
            ) from error

    def set_encryption(self, definition: dict) -> EncryptionSpec | None:
        if not keyisset(self.encryption_arg, definition):
            return None
        encryption = definition[self.encryption_arg]
        return EncryptionSpec(encryption["Type"], set_else_none("KeyId", encryption))

    def __repr__(self):
        return f"StreamSettings({self.stream_name}, {self.__args})"
