# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Most commonly used functions shared across all modules.
"""

from __future__ import annotations

from datetime import datetime as dt

from compose_x_common.compose_x_common import keyisset, set_else_none

from kinesis_reconciler.common.logging import LOG

__all__ = ["LOG", "keyisset", "set_else_none", "to_iso_timestamp", "chunk_mapping"]


def to_iso_timestamp(timestamp) -> str | None:
    """
    Renders the timestamps returned by the AWS API as ISO 8601 strings

    :param timestamp: datetime as returned by boto3, or an already rendered string
    :return: the ISO formatted timestamp
    """
    if timestamp is None:
        return None
    if isinstance(timestamp, dt):
        return timestamp.isoformat()
    return str(timestamp)


def chunk_mapping(mapping: dict, size: int) -> list[dict]:
    """
    Splits a dict into a list of dicts with at most `size` keys each

    :param dict mapping:
    :param int size:
    :rtype: list[dict]
    """
    if size < 1:
        raise ValueError("size must be at least 1. Got", size)
    items = list(mapping.items())
    return [dict(items[i : i + size]) for i in range(0, len(items), size)]
