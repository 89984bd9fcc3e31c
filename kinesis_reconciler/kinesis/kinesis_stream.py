# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to ensure the Kinesis stream exists, is active, and has the expected tags and encryption.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from threading import Event
    from kinesis_reconciler.kinesis.kinesis_gateway import KinesisGateway

from botocore.exceptions import ClientError, WaiterError

from kinesis_reconciler.common import LOG, to_iso_timestamp
from kinesis_reconciler.exceptions import StreamNotFound
from kinesis_reconciler.kinesis.kinesis_params import (
    DEFAULT_KMS_KEY_ID,
    ENCRYPTION_KMS,
    ENCRYPTION_NONE,
    ENCRYPTION_TYPES,
    STREAM_ACTIVE,
    STREAM_DELETING,
    STREAM_EXISTS,
    STREAM_NOT_EXISTS,
)


class StreamDescriptor:
    """
    Snapshot of the stream identity. An arn set to None means that the stream does not exist.
    """

    def __init__(self, arn: str = None, created_on: str = None):
        self._arn = arn
        self._created_on = created_on

    @classmethod
    def from_description(cls, description: dict) -> StreamDescriptor:
        return cls(
            description["StreamARN"],
            to_iso_timestamp(description.get("StreamCreationTimestamp")),
        )

    @property
    def arn(self) -> str | None:
        return self._arn

    @property
    def created_on(self) -> str | None:
        return self._created_on

    @property
    def exists(self) -> bool:
        return self._arn is not None

    def __eq__(self, other):
        if not isinstance(other, StreamDescriptor):
            return NotImplemented
        return (self.arn, self.created_on) == (other.arn, other.created_on)

    def __repr__(self):
        return f"StreamDescriptor(arn={self.arn}, created_on={self.created_on})"


class EncryptionSpec:
    """
    Desired server side encryption of the stream
    """

    def __init__(self, encryption_type: str = ENCRYPTION_KMS, key_id: str = None):
        if encryption_type not in ENCRYPTION_TYPES:
            raise ValueError(
                "encryption_type must be one of",
                ENCRYPTION_TYPES,
                "Got",
                encryption_type,
            )
        self.encryption_type = encryption_type
        if key_id is None and encryption_type == ENCRYPTION_KMS:
            key_id = DEFAULT_KMS_KEY_ID
        self.key_id = key_id

    def __repr__(self):
        return f"EncryptionSpec(type={self.encryption_type}, key_id={self.key_id})"


def merge_tags(existing: dict, desired: dict) -> dict:
    """
    Merges the desired tags onto the existing ones. Desired values win, existing only keys are kept.
    """
    merged = dict(existing)
    merged.update(desired)
    return merged


def tags_are_equal(left: dict, right: dict) -> bool:
    """
    Compares two tags sets: same keys, and same value for each key.
    """
    if set(left.keys()) != set(right.keys()):
        return False
    for key, value in left.items():
        if right[key] != value:
            return False
    return True


def check_if_stream_exists(
    gateway: KinesisGateway, stream_name: str, cancel_token: Event = None
) -> StreamDescriptor:
    """
    Function to retrieve the stream ARN and creation date, waiting out any transition.
    A stream being deleted is waited for and then reported as not existing.

    :param KinesisGateway gateway:
    :param str stream_name:
    :param threading.Event cancel_token:
    :return: the stream descriptor, with arn None if the stream does not exist
    :rtype: StreamDescriptor
    """
    try:
        description = gateway.describe_stream(stream_name)
        status = description["StreamStatus"]
        if status == STREAM_DELETING:
            LOG.debug(f"{stream_name} - Waiting for the stream to complete deletion")
            gateway.wait_until(STREAM_NOT_EXISTS, stream_name, cancel_token)
            LOG.info(f"{stream_name} - The stream is now gone.")
            return StreamDescriptor()
        if status and status != STREAM_ACTIVE:
            LOG.debug(f"{stream_name} - Waiting for the stream ({status}) to be active")
            description = gateway.wait_until(STREAM_EXISTS, stream_name, cancel_token)
            LOG.info(f"{stream_name} - The stream is now active.")
        return StreamDescriptor.from_description(description)
    except StreamNotFound:
        return StreamDescriptor()
    except (ClientError, WaiterError) as error:
        LOG.error(error)
        raise


def ensure_stream_exists(
    gateway: KinesisGateway,
    stream_name: str,
    shard_count: int,
    create_if_missing: bool,
    cancel_token: Event = None,
) -> StreamDescriptor:
    """
    Function to make sure the stream exists and is active, creating it if allowed to.

    :param KinesisGateway gateway:
    :param str stream_name:
    :param int shard_count: the initial number of shards, if the stream gets created
    :param bool create_if_missing: whether to create the stream when it does not exist
    :param threading.Event cancel_token:
    :rtype: StreamDescriptor
    """
    LOG.debug(f"{stream_name} - Verifying the stream exists and is active")
    descriptor = check_if_stream_exists(gateway, stream_name, cancel_token)
    if descriptor.exists:
        LOG.debug(f"{stream_name} - The stream exists and is active.")
        return descriptor
    if not create_if_missing:
        LOG.warning(f"{stream_name} - The stream does not exist.")
        return descriptor
    LOG.info(f"{stream_name} - Creating the stream with {shard_count} shard(s)")
    gateway.create_stream(stream_name, shard_count)
    LOG.debug(f"{stream_name} - Waiting for the new stream to be active")
    description = gateway.wait_until(STREAM_EXISTS, stream_name, cancel_token)
    LOG.info(f"{stream_name} - The new stream is now active.")
    return StreamDescriptor.from_description(description)


def confirm_stream_tags(
    gateway: KinesisGateway, stream_name: str, desired_tags: dict
) -> bool:
    """
    Function to add/update the stream tags. Tags not in desired_tags are never removed.

    :param KinesisGateway gateway:
    :param str stream_name:
    :param dict desired_tags:
    :return: Whether the tags were updated
    :rtype: bool
    """
    existing_tags = gateway.list_tags_for_stream(stream_name)
    merged_tags = merge_tags(existing_tags, desired_tags)
    if tags_are_equal(merged_tags, existing_tags):
        LOG.debug(f"{stream_name} - The stream is already tagged as required.")
        return False
    gateway.add_tags_to_stream(stream_name, merged_tags)
    LOG.info(f"{stream_name} - The stream tags have been updated.")
    return True


def ensure_stream_encryption(
    gateway: KinesisGateway,
    stream_name: str,
    encryption: EncryptionSpec,
    cancel_token: Event = None,
) -> bool:
    """
    Function to turn on the stream encryption if the stream is not encrypted.
    Already encrypted streams are left as-is: no key rotation, no downgrade.

    :param KinesisGateway gateway:
    :param str stream_name:
    :param EncryptionSpec encryption:
    :param threading.Event cancel_token:
    :return: Whether the encryption was started
    :rtype: bool
    """
    if encryption.encryption_type == ENCRYPTION_NONE:
        LOG.debug(f"{stream_name} - No encryption requested.")
        return False
    description = gateway.describe_stream(stream_name)
    if description.get("EncryptionType", ENCRYPTION_NONE) != ENCRYPTION_NONE:
        LOG.debug(f"{stream_name} - The stream is already encrypted.")
        return False
    LOG.info(f"{stream_name} - Encrypting the stream with {encryption.key_id}")
    gateway.start_stream_encryption(
        stream_name, encryption.encryption_type, encryption.key_id
    )
    LOG.debug(f"{stream_name} - Waiting for the stream to update")
    gateway.wait_until(STREAM_EXISTS, stream_name, cancel_token)
    LOG.info(f"{stream_name} - The stream is now encrypted.")
    return True
