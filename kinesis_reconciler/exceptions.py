#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Custom exceptions for kinesis-reconciler
"""


class KinesisReconcilerException(Exception):
    """
    Top class for kinesis-reconciler Exceptions
    """

    def __init__(self, msg, *args):
        super().__init__(msg, *args)


class StreamNotFound(KinesisReconcilerException):
    """
    Exception when the Kinesis stream does not exist (or no longer exists)
    """


class ShardLineageError(KinesisReconcilerException):
    """
    Exception when the shards parent/child references do not form a forest, i.e. a shard is its own ancestor
    """


class PollingCancelled(KinesisReconcilerException):
    """
    Exception raised when the cancellation token is set while waiting for a remote state to converge
    """


class InvalidStreamSettings(KinesisReconcilerException):
    """
    Exception when the stream settings cannot be used to reconcile a stream
    """
