# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Console script for kinesis_reconciler.
"""

import argparse
import sys
from threading import Event

from botocore.exceptions import ClientError, WaiterError
from tabulate import tabulate

from kinesis_reconciler import __version__
from kinesis_reconciler.common.logging import LOG, set_log_level
from kinesis_reconciler.common.settings import StreamSettings
from kinesis_reconciler.exceptions import (
    InvalidStreamSettings,
    PollingCancelled,
    StreamNotFound,
)
from kinesis_reconciler.kinesis.kinesis_consumers import get_enhanced_consumers
from kinesis_reconciler.kinesis.kinesis_reconcile import reconcile_stream
from kinesis_reconciler.kinesis.kinesis_shards import get_stream_shards
from kinesis_reconciler.kinesis.kinesis_stream import check_if_stream_exists


class ArgparseHelper(argparse._HelpAction):
    """
    Used to help print top level '--help' arguments from argparse
    when used with subparsers
    """

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        for subparsers_action in subparsers_actions:
            for choice, subparser in list(subparsers_action.choices.items()):
                if choice in [cmd["name"] for cmd in StreamSettings.active_commands]:
                    print(f"Command '{choice}'")
                    print(subparser.format_usage())
        parser.exit()


def parse_tag(tag_arg):
    """
    Parses Key=Value tags arguments
    """
    if "=" not in tag_arg:
        raise argparse.ArgumentTypeError(f"Tag {tag_arg} must be Key=Value")
    key, value = tag_arg.split("=", 1)
    if not key:
        raise argparse.ArgumentTypeError(f"Tag {tag_arg} has no key")
    return key, value


def main_parser():
    """
    Console script for kinesis_reconciler.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action=ArgparseHelper,
        help="show this help message and exit",
    )
    cmd_parsers = parser.add_subparsers(
        dest=StreamSettings.command_arg, help="Command to execute."
    )
    base_command_parser = argparse.ArgumentParser(add_help=False)
    stream_parser = argparse.ArgumentParser(add_help=False)
    base_command_parser.add_argument(
        "-f",
        "--config-file",
        dest=StreamSettings.input_file_arg,
        required=False,
        help="Path to the YAML file defining the stream settings",
    )
    base_command_parser.add_argument(
        "-n",
        "--stream-name",
        dest=StreamSettings.name_arg,
        required=False,
        type=str,
        help="Name of the Kinesis stream. Overrides the config file value",
    )
    base_command_parser.add_argument(
        "--region",
        required=False,
        dest=StreamSettings.region_arg,
        help="Specify the region of the stream. "
        "default use default region from config or environment vars",
    )
    base_command_parser.add_argument(
        "--profile",
        required=False,
        dest=StreamSettings.profile_arg,
        help="Name of the AWS profile to use",
    )
    base_command_parser.add_argument(
        "--role-arn",
        dest=StreamSettings.arn_arg,
        help="Allow you to run API calls using a specific IAM role, within same or for cross-account",
        required=False,
    )
    base_command_parser.add_argument(
        "--loglevel", type=str, help="Log level. Defaults to INFO", required=False
    )
    stream_parser.add_argument(
        "--shard-count",
        dest=StreamSettings.shard_count_arg,
        type=int,
        required=False,
        help="Number of shards to create the stream with",
    )
    stream_parser.add_argument(
        "--create",
        dest=StreamSettings.create_arg,
        action="store_true",
        default=None,
        help="Create the stream if it does not exist",
    )
    stream_parser.add_argument(
        "--tag",
        dest=StreamSettings.tags_arg,
        type=parse_tag,
        action="append",
        required=False,
        help="Tag to set on the stream, as Key=Value. Can be repeated",
    )
    stream_parser.add_argument(
        "--kms-key-id",
        dest="KmsKeyId",
        required=False,
        help="Encrypt the stream with this KMS key (id, ARN or alias)",
    )
    stream_parser.add_argument(
        "--consumer",
        dest=StreamSettings.consumers_arg,
        action="append",
        required=False,
        help="Name of an enhanced consumer to register. Can be repeated",
    )
    for command in StreamSettings.active_commands:
        parents = [base_command_parser]
        if command["name"] == "up":
            parents.append(stream_parser)
        cmd_parsers.add_parser(
            name=command["name"], help=command["help"], parents=parents
        )
    for command in StreamSettings.neutral_commands:
        cmd_parsers.add_parser(name=command["name"], help=command["help"])
    return parser


def args_to_settings_kwargs(args) -> dict:
    """
    Translates the CLI arguments into the StreamSettings arguments
    """
    kwargs = {key: value for key, value in vars(args).items() if value is not None}
    if StreamSettings.tags_arg in kwargs:
        kwargs[StreamSettings.tags_arg] = dict(kwargs[StreamSettings.tags_arg])
    if "KmsKeyId" in kwargs:
        kwargs[StreamSettings.encryption_arg] = {
            "Type": "KMS",
            "KeyId": kwargs.pop("KmsKeyId"),
        }
    kwargs.pop("loglevel", None)
    return kwargs


def print_stream_state(state):
    print(
        tabulate(
            [
                ["StreamArn", state.stream.arn],
                ["CreatedOn", state.stream.created_on],
                ["TagsUpdated", state.tags_updated],
                ["EncryptionStarted", state.encryption_started],
                ["Shards", len(state.shards)],
                ["Consumers", ", ".join(state.consumers.keys())],
            ],
            tablefmt="rst",
        )
    )


def print_shards(shards):
    print(
        tabulate(
            [
                [
                    shard.shard_id,
                    shard.parent,
                    shard.adjacent_parent,
                    shard.starting_sequence_number,
                ]
                for shard in shards.values()
            ],
            ["ShardId", "Parent", "AdjacentParent", "StartingSequenceNumber"],
            tablefmt="rst",
        )
    )


def print_consumers(consumers):
    print(
        tabulate(
            [
                [consumer.name, consumer.status, consumer.arn]
                for consumer in consumers.values()
            ],
            ["ConsumerName", "Status", "ConsumerARN"],
            tablefmt="rst",
        )
    )


def run_command(command: str, settings: StreamSettings, cancel_token: Event) -> int:
    """
    Executes the command with the settings

    :return: status code
    """
    if command == "up":
        print_stream_state(reconcile_stream(settings, cancel_token))
        return 0
    stream = check_if_stream_exists(
        settings.gateway, settings.stream_name, cancel_token
    )
    if not stream.exists:
        LOG.error(f"The stream {settings.stream_name} does not exist")
        return 1
    if command == "describe":
        print(
            tabulate(
                [[settings.stream_name, stream.arn, stream.created_on]],
                ["StreamName", "StreamArn", "CreatedOn"],
                tablefmt="rst",
            )
        )
    elif command == "shards":
        print_shards(get_stream_shards(settings.gateway, settings.stream_name))
    elif command == "consumers":
        print_consumers(
            get_enhanced_consumers(
                settings.gateway,
                stream.arn,
                interval=settings.consumer_check_delay,
                cancel_token=cancel_token,
            )
        )
    return 0


def main():
    """
    Main entry point for CLI
    :return: status code
    """
    parser = main_parser()
    if len(sys.argv) == 1:
        parser.print_help()
        sys.exit()
    args = parser.parse_args()
    command = getattr(args, StreamSettings.command_arg)
    if command == "version":
        print("Kinesis Reconciler", __version__)
        return 0
    if args.loglevel and not set_log_level(args.loglevel):
        print(f"Log level value {args.loglevel} is invalid.")
    LOG.debug(args)
    try:
        settings = StreamSettings(**args_to_settings_kwargs(args))
    except InvalidStreamSettings as error:
        LOG.error(error)
        return 1
    LOG.debug(settings)
    cancel_token = Event()
    try:
        return run_command(command, settings, cancel_token)
    except KeyboardInterrupt:
        cancel_token.set()
        LOG.warning("Interrupted. Stopped waiting for the stream.")
        return 1
    except PollingCancelled as error:
        LOG.warning(error)
        return 1
    except StreamNotFound as error:
        LOG.error(error)
        return 1
    except (ClientError, WaiterError) as error:
        LOG.error(error)
        return 1


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
