#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille<john@compose-x.io>

import pytest
from botocore.exceptions import ClientError
from conftest import STREAM_ARN, FakeGateway, stream_description
from pytest import raises

from kinesis_reconciler.exceptions import StreamNotFound
from kinesis_reconciler.kinesis.kinesis_params import STREAM_EXISTS, STREAM_NOT_EXISTS
from kinesis_reconciler.kinesis.kinesis_stream import (
    EncryptionSpec,
    StreamDescriptor,
    check_if_stream_exists,
    confirm_stream_tags,
    ensure_stream_encryption,
    ensure_stream_exists,
    merge_tags,
    tags_are_equal,
)


def throttled_error():
    return ClientError(
        {"Error": {"Code": "LimitExceededException", "Message": "Rate exceeded"}},
        "DescribeStreamSummary",
    )


def test_check_stream_not_found(stream_name):
    gateway = FakeGateway(descriptions=[StreamNotFound("not found")])
    descriptor = check_if_stream_exists(gateway, stream_name)
    assert descriptor.arn is None
    assert descriptor.created_on is None
    assert not descriptor.exists


def test_check_stream_active(stream_name):
    gateway = FakeGateway(descriptions=[stream_description()])
    descriptor = check_if_stream_exists(gateway, stream_name)
    assert descriptor.arn == STREAM_ARN
    assert descriptor.created_on.startswith("2022-03-01T10:00:00")
    assert not gateway.calls_to("wait_until")


def test_check_stream_deleting(stream_name):
    """A stream being deleted is waited for, then reported as gone"""
    gateway = FakeGateway(descriptions=[stream_description("DELETING")])
    descriptor = check_if_stream_exists(gateway, stream_name)
    assert descriptor == StreamDescriptor()
    assert gateway.calls_to("wait_until") == [
        ("wait_until", STREAM_NOT_EXISTS, stream_name)
    ]


@pytest.mark.parametrize("status", ["CREATING", "UPDATING"])
def test_check_stream_in_transition(stream_name, status):
    gateway = FakeGateway(descriptions=[stream_description(status)])
    descriptor = check_if_stream_exists(gateway, stream_name)
    assert descriptor.arn == STREAM_ARN
    assert gateway.calls_to("wait_until") == [
        ("wait_until", STREAM_EXISTS, stream_name)
    ]


def test_check_stream_propagates_errors(stream_name):
    gateway = FakeGateway(descriptions=[throttled_error()])
    with raises(ClientError):
        check_if_stream_exists(gateway, stream_name)


def test_ensure_stream_absent_no_create(stream_name):
    gateway = FakeGateway(descriptions=[StreamNotFound("not found")])
    descriptor = ensure_stream_exists(gateway, stream_name, 2, False)
    assert descriptor.arn is None
    assert gateway.write_calls == []


def test_ensure_stream_absent_create(stream_name):
    gateway = FakeGateway(descriptions=[StreamNotFound("not found")])
    descriptor = ensure_stream_exists(gateway, stream_name, 2, True)
    assert descriptor.arn == STREAM_ARN
    assert gateway.write_calls == [("create_stream", stream_name, 2)]
    assert gateway.calls[-1] == ("wait_until", STREAM_EXISTS, stream_name)


def test_ensure_stream_present_is_idempotent(stream_name):
    gateway = FakeGateway(descriptions=[stream_description(), stream_description()])
    first = ensure_stream_exists(gateway, stream_name, 2, True)
    second = ensure_stream_exists(gateway, stream_name, 2, True)
    assert first == second
    assert first.arn == STREAM_ARN
    assert gateway.write_calls == []


def test_ensure_stream_deleting_gets_recreated(stream_name):
    gateway = FakeGateway(descriptions=[stream_description("DELETING")])
    descriptor = ensure_stream_exists(gateway, stream_name, 1, True)
    assert descriptor.exists
    assert [call[0] for call in gateway.calls] == [
        "describe_stream",
        "wait_until",
        "create_stream",
        "wait_until",
    ]


@pytest.mark.parametrize(
    "existing, desired, expected_write",
    [
        ({}, {}, None),
        ({"team": "data"}, {}, None),
        ({"team": "data"}, {"team": "data"}, None),
        ({}, {"team": "data"}, {"team": "data"}),
        ({"team": "data"}, {"team": "ops"}, {"team": "ops"}),
        (
            {"team": "data", "costcenter": "123"},
            {"env": "prod"},
            {"team": "data", "costcenter": "123", "env": "prod"},
        ),
    ],
)
def test_confirm_stream_tags(stream_name, existing, desired, expected_write):
    gateway = FakeGateway(tags=existing)
    updated = confirm_stream_tags(gateway, stream_name, desired)
    writes = gateway.calls_to("add_tags_to_stream")
    if expected_write is None:
        assert not updated
        assert writes == []
    else:
        assert updated
        assert writes == [("add_tags_to_stream", stream_name, expected_write)]
        assert gateway.tags == merge_tags(existing, desired)


def test_confirm_stream_tags_never_removes(stream_name):
    gateway = FakeGateway(tags={"a": "1", "b": "2"})
    confirm_stream_tags(gateway, stream_name, {"c": "3"})
    assert gateway.tags == {"a": "1", "b": "2", "c": "3"}


def test_tags_are_equal():
    assert tags_are_equal({}, {})
    assert tags_are_equal({"a": "1", "b": "2"}, {"b": "2", "a": "1"})
    assert not tags_are_equal({"a": "1"}, {"a": "2"})
    assert not tags_are_equal({"a": "1"}, {"a": "1", "b": "2"})
    assert not tags_are_equal({"a": "1", "b": "2"}, {"a": "1"})


def test_ensure_encryption_already_encrypted(stream_name):
    gateway = FakeGateway(descriptions=[stream_description(encryption_type="KMS")])
    assert not ensure_stream_encryption(
        gateway, stream_name, EncryptionSpec("KMS", "alias/other")
    )
    assert gateway.write_calls == []


def test_ensure_encryption_not_encrypted(stream_name):
    gateway = FakeGateway(descriptions=[stream_description()])
    assert ensure_stream_encryption(gateway, stream_name, EncryptionSpec("KMS"))
    assert gateway.write_calls == [
        ("start_stream_encryption", stream_name, "KMS", "alias/aws/kinesis")
    ]
    assert gateway.calls[-1] == ("wait_until", STREAM_EXISTS, stream_name)


def test_ensure_encryption_none_requested(stream_name):
    gateway = FakeGateway(descriptions=[stream_description()])
    assert not ensure_stream_encryption(gateway, stream_name, EncryptionSpec("NONE"))
    assert gateway.calls == []


def test_encryption_spec():
    assert EncryptionSpec().key_id == "alias/aws/kinesis"
    assert EncryptionSpec("KMS", "alias/mine").key_id == "alias/mine"
    assert EncryptionSpec("NONE").key_id is None
    with raises(ValueError):
        EncryptionSpec("AES")
