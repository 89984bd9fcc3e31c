# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to register the enhanced fan-out consumers of a stream and wait for them to be active.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from threading import Event
    from kinesis_reconciler.kinesis.kinesis_gateway import KinesisGateway

from kinesis_reconciler.common import LOG, set_else_none
from kinesis_reconciler.common.polling import poll_until
from kinesis_reconciler.kinesis.kinesis_params import (
    CONSUMER_ACTIVE,
    CONSUMER_STATE_CHECK_DELAY,
)


class EnhancedConsumer:
    """
    :ivar str name: Name of the consumer, unique within the stream
    :ivar str arn: Consumer ARN
    :ivar str status: CREATING, ACTIVE or DELETING. None when the consumer could not be found
    """

    def __init__(self, name: str, arn: str = None, status: str = None):
        self.name = name
        self.arn = arn
        self.status = status

    @classmethod
    def from_api(cls, consumer_r: dict) -> EnhancedConsumer:
        return cls(
            consumer_r["ConsumerName"],
            set_else_none("ConsumerARN", consumer_r),
            set_else_none("ConsumerStatus", consumer_r),
        )

    @property
    def is_active(self) -> bool:
        return self.status == CONSUMER_ACTIVE

    def __eq__(self, other):
        if not isinstance(other, EnhancedConsumer):
            return NotImplemented
        return (self.name, self.arn, self.status) == (
            other.name,
            other.arn,
            other.status,
        )

    def __repr__(self):
        return f"EnhancedConsumer({self.name}, status={self.status})"


def describe_enhanced_consumer(
    gateway: KinesisGateway, stream_arn: str, consumer_name: str
) -> dict:
    """
    Finds the consumer in the stream consumers.

    :return: the consumer description, empty if the consumer does not exist
    :rtype: dict
    """
    for consumer in gateway.list_stream_consumers(stream_arn):
        if consumer["ConsumerName"] == consumer_name:
            return consumer
    return {}


def register_enhanced_consumer(
    gateway: KinesisGateway,
    stream_arn: str,
    consumer_name: str,
    interval: float = CONSUMER_STATE_CHECK_DELAY,
    cancel_token: Event = None,
) -> EnhancedConsumer:
    """
    Function to register a new enhanced consumer and wait until it is active.
    A consumer missing from the listing while waiting is considered not active yet, and
    the polling carries on until the cancellation token is set.

    :param KinesisGateway gateway:
    :param str stream_arn:
    :param str consumer_name:
    :param float interval: seconds between two status checks
    :param threading.Event cancel_token:
    :return: the active consumer
    :rtype: EnhancedConsumer
    """
    LOG.info(f"{stream_arn} - Registering enhanced consumer {consumer_name}")
    consumer_r = gateway.register_stream_consumer(stream_arn, consumer_name)
    LOG.debug(
        f"{consumer_name} - Registered with status {consumer_r.get('ConsumerStatus')}."
        " Waiting for it to be active"
    )
    consumer_r = poll_until(
        lambda: describe_enhanced_consumer(gateway, stream_arn, consumer_name),
        lambda description: description.get("ConsumerStatus") == CONSUMER_ACTIVE,
        interval,
        cancel_token=cancel_token,
        initial_delay=True,
        reason=f"Enhanced consumer {consumer_name} to be active",
    )
    LOG.info(f"{consumer_name} - The enhanced consumer is now active.")
    return EnhancedConsumer.from_api(consumer_r)


def list_enhanced_consumers(gateway: KinesisGateway, stream_arn: str) -> dict:
    """
    Single listing of the stream consumers, mapped by name

    :rtype: dict[str, EnhancedConsumer]
    """
    consumers = {}
    for consumer_r in gateway.list_stream_consumers(stream_arn):
        consumer = EnhancedConsumer.from_api(consumer_r)
        consumers[consumer.name] = consumer
    return consumers


def all_consumers_active(consumers: dict) -> bool:
    return all(consumer.is_active for consumer in consumers.values())


def get_enhanced_consumers(
    gateway: KinesisGateway,
    stream_arn: str,
    interval: float = CONSUMER_STATE_CHECK_DELAY,
    cancel_token: Event = None,
) -> dict:
    """
    Function to retrieve the enhanced consumers of the stream, once they are all active.
    Each attempt lists the consumers again, so consumers added or removed in between attempts
    are taken into account.

    :param KinesisGateway gateway:
    :param str stream_arn:
    :param float interval: seconds between two listings
    :param threading.Event cancel_token:
    :return: the consumers mapped by name
    :rtype: dict[str, EnhancedConsumer]
    """
    return poll_until(
        lambda: list_enhanced_consumers(gateway, stream_arn),
        all_consumers_active,
        interval,
        cancel_token=cancel_token,
        reason=f"{stream_arn} - All enhanced consumers to be active",
    )
