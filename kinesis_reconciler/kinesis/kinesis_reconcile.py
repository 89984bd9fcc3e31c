# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to drive a stream, its tags, encryption and consumers to the desired settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from threading import Event
    from kinesis_reconciler.common.settings import StreamSettings

from kinesis_reconciler.common import LOG
from kinesis_reconciler.exceptions import StreamNotFound
from kinesis_reconciler.kinesis.kinesis_consumers import (
    get_enhanced_consumers,
    register_enhanced_consumer,
)
from kinesis_reconciler.kinesis.kinesis_shards import get_stream_shards
from kinesis_reconciler.kinesis.kinesis_stream import (
    confirm_stream_tags,
    ensure_stream_encryption,
    ensure_stream_exists,
)


class StreamState:
    """
    Result of the stream reconciliation

    :ivar StreamDescriptor stream:
    :ivar dict[str, Shard] shards:
    :ivar dict[str, EnhancedConsumer] consumers:
    :ivar bool tags_updated:
    :ivar bool encryption_started:
    """

    def __init__(
        self, stream, shards, consumers, tags_updated=False, encryption_started=False
    ):
        self.stream = stream
        self.shards = shards
        self.consumers = consumers
        self.tags_updated = tags_updated
        self.encryption_started = encryption_started


def register_missing_consumers(
    settings: StreamSettings, stream_arn: str, cancel_token: Event = None
) -> dict:
    """
    Registers the consumers from the settings not yet registered on the stream, then
    waits for all of the stream consumers to be active.

    :rtype: dict[str, EnhancedConsumer]
    """
    gateway = settings.gateway
    consumers = get_enhanced_consumers(
        gateway,
        stream_arn,
        interval=settings.consumer_check_delay,
        cancel_token=cancel_token,
    )
    for consumer_name in settings.consumers:
        if consumer_name in consumers:
            LOG.debug(f"{consumer_name} - Enhanced consumer already registered.")
            continue
        consumers[consumer_name] = register_enhanced_consumer(
            gateway,
            stream_arn,
            consumer_name,
            interval=settings.consumer_check_delay,
            cancel_token=cancel_token,
        )
    return consumers


def reconcile_stream(
    settings: StreamSettings, cancel_token: Event = None
) -> StreamState:
    """
    Function to reconcile the stream with the settings:

    * makes sure the stream exists and is active, creating it if allowed to
    * adds the missing tags
    * turns on encryption
    * retrieves the shards topology
    * registers the consumers and waits for them to be active

    :param StreamSettings settings:
    :param threading.Event cancel_token: Event to set in order to interrupt any wait
    :raises StreamNotFound: if the stream does not exist and cannot be created
    :rtype: StreamState
    """
    gateway = settings.gateway
    stream_name = settings.stream_name
    stream = ensure_stream_exists(
        gateway,
        stream_name,
        settings.shard_count,
        settings.create_if_missing,
        cancel_token=cancel_token,
    )
    if not stream.exists:
        raise StreamNotFound(
            f"The stream {stream_name} does not exist and "
            f"{settings.create_arg} is not set"
        )
    tags_updated = False
    if settings.tags:
        tags_updated = confirm_stream_tags(gateway, stream_name, settings.tags)
    encryption_started = False
    if settings.encryption:
        encryption_started = ensure_stream_encryption(
            gateway, stream_name, settings.encryption, cancel_token=cancel_token
        )
    shards = get_stream_shards(gateway, stream_name)
    consumers = {}
    if settings.consumers:
        consumers = register_missing_consumers(settings, stream.arn, cancel_token)
    return StreamState(stream, shards, consumers, tags_updated, encryption_started)
