# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Kinesis API values and defaults
"""

STREAM_ACTIVE = "ACTIVE"
STREAM_CREATING = "CREATING"
STREAM_DELETING = "DELETING"
STREAM_UPDATING = "UPDATING"

CONSUMER_ACTIVE = "ACTIVE"
CONSUMER_CREATING = "CREATING"
CONSUMER_DELETING = "DELETING"

ENCRYPTION_NONE = "NONE"
ENCRYPTION_KMS = "KMS"
ENCRYPTION_TYPES = [ENCRYPTION_NONE, ENCRYPTION_KMS]
DEFAULT_KMS_KEY_ID = "alias/aws/kinesis"

STREAM_EXISTS = "StreamExists"
STREAM_NOT_EXISTS = "StreamNotExists"
WAITERS = {
    STREAM_EXISTS: "stream_exists",
    STREAM_NOT_EXISTS: "stream_not_exists",
}

CONSUMER_STATE_CHECK_DELAY = 3
WAITER_DELAY = 10
WAITER_MAX_ATTEMPTS = 18

MAX_TAGS_PER_CALL = 10
