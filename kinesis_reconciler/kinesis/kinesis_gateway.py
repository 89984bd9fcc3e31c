# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Thin layer over the boto3 Kinesis client.

Everything the reconciliation functions need from AWS goes through :class:`KinesisGateway`,
which owns pagination, tags batching and the waiters, and translates the stream not found
errors into :class:`StreamNotFound`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from threading import Event
    from boto3.session import Session

from botocore.exceptions import ClientError, WaiterError

from kinesis_reconciler.common import LOG, chunk_mapping, keyisset
from kinesis_reconciler.common.polling import check_cancelled, pause
from kinesis_reconciler.exceptions import StreamNotFound
from kinesis_reconciler.kinesis.kinesis_params import (
    MAX_TAGS_PER_CALL,
    STREAM_EXISTS,
    WAITER_DELAY,
    WAITER_MAX_ATTEMPTS,
    WAITERS,
)

WAITER_MAX_ATTEMPTS_REASON = "Max attempts exceeded"


class KinesisGateway:
    """
    Class wrapping the Kinesis API calls used to reconcile streams and consumers

    :ivar client: boto3 kinesis client
    :ivar int waiter_delay: seconds between two waiter attempts
    :ivar int waiter_max_attempts: number of attempts before the waiter gives up
    """

    def __init__(
        self,
        session: Session,
        waiter_delay: int = WAITER_DELAY,
        waiter_max_attempts: int = WAITER_MAX_ATTEMPTS,
    ):
        self.client = session.client("kinesis")
        self.waiter_delay = waiter_delay
        self.waiter_max_attempts = waiter_max_attempts

    def describe_stream(self, stream_name: str) -> dict:
        """
        :param str stream_name:
        :return: The stream description summary
        :rtype: dict
        :raises StreamNotFound: when the stream does not exist
        """
        try:
            return self.client.describe_stream_summary(StreamName=stream_name)[
                "StreamDescriptionSummary"
            ]
        except self.client.exceptions.ResourceNotFoundException as error:
            raise StreamNotFound(f"Stream {stream_name} does not exist") from error

    def wait_until(
        self, condition: str, stream_name: str, cancel_token: Event = None
    ) -> dict | None:
        """
        Uses the kinesis waiter for the condition, one attempt at a time so that the wait
        can be cancelled in between attempts.

        :param str condition: STREAM_EXISTS or STREAM_NOT_EXISTS
        :param str stream_name:
        :param threading.Event cancel_token:
        :return: the stream description once active for STREAM_EXISTS, None otherwise
        :raises WaiterError: when the waiter fails or runs out of attempts
        """
        if condition not in WAITERS:
            raise KeyError(
                "condition must be one of", list(WAITERS.keys()), "Got", condition
            )
        waiter = self.client.get_waiter(WAITERS[condition])
        attempt = 1
        while True:
            check_cancelled(cancel_token, f"{condition} {stream_name}")
            try:
                waiter.wait(
                    StreamName=stream_name,
                    WaiterConfig={"Delay": self.waiter_delay, "MaxAttempts": 1},
                )
                break
            except WaiterError as error:
                if not str(error.kwargs.get("reason", "")).startswith(
                    WAITER_MAX_ATTEMPTS_REASON
                ):
                    LOG.error(error)
                    raise
                if attempt >= self.waiter_max_attempts:
                    LOG.error(
                        f"{stream_name} - {condition} not reached after {attempt} attempts"
                    )
                    raise
            attempt += 1
            pause(self.waiter_delay, cancel_token, f"{condition} {stream_name}")
        if condition == STREAM_EXISTS:
            return self.describe_stream(stream_name)
        return None

    def create_stream(self, stream_name: str, shard_count: int):
        self.client.create_stream(StreamName=stream_name, ShardCount=shard_count)

    def start_stream_encryption(
        self, stream_name: str, encryption_type: str, key_id: str
    ):
        self.client.start_stream_encryption(
            StreamName=stream_name, EncryptionType=encryption_type, KeyId=key_id
        )

    def list_tags_for_stream(self, stream_name: str) -> dict:
        """
        Retrieves all the tags of the stream, following HasMoreTags

        :param str stream_name:
        :return: tags as Key: Value
        :rtype: dict
        """
        tags = {}
        params = {"StreamName": stream_name}
        while True:
            tags_r = self.client.list_tags_for_stream(**params)
            for tag in tags_r["Tags"]:
                tags[tag["Key"]] = tag["Value"] if keyisset("Value", tag) else ""
            if not keyisset("HasMoreTags", tags_r) or not tags_r["Tags"]:
                return tags
            params["ExclusiveStartTagKey"] = tags_r["Tags"][-1]["Key"]

    def add_tags_to_stream(self, stream_name: str, tags: dict):
        for tags_chunk in chunk_mapping(tags, MAX_TAGS_PER_CALL):
            self.client.add_tags_to_stream(StreamName=stream_name, Tags=tags_chunk)

    def list_shards(self, stream_name: str) -> list:
        """
        Lists all the shards of the stream. ListShards does not accept StreamName along
        with NextToken, so the pages are followed with the token only.

        :param str stream_name:
        :rtype: list[dict]
        """
        shards = []
        params = {"StreamName": stream_name}
        while True:
            shards_r = self.client.list_shards(**params)
            shards += shards_r["Shards"]
            if not keyisset("NextToken", shards_r):
                return shards
            params = {"NextToken": shards_r["NextToken"]}

    def register_stream_consumer(self, stream_arn: str, consumer_name: str) -> dict:
        return self.client.register_stream_consumer(
            StreamARN=stream_arn, ConsumerName=consumer_name
        )["Consumer"]

    def list_stream_consumers(self, stream_arn: str) -> list:
        consumers = []
        paginator = self.client.get_paginator("list_stream_consumers")
        try:
            for page in paginator.paginate(StreamARN=stream_arn):
                consumers += page["Consumers"]
        except ClientError as error:
            LOG.error(error)
            raise
        return consumers
