# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to build the shards topology (lineage forest) of a stream.

Shards expire once past the stream retention period, but their children still reference them.
References to shards not present in the listing are dropped, so that every parent found in the
topology is also a key of the topology.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kinesis_reconciler.kinesis.kinesis_gateway import KinesisGateway

from kinesis_reconciler.common import LOG, set_else_none
from kinesis_reconciler.exceptions import ShardLineageError


class Shard:
    """
    :ivar str shard_id:
    :ivar str parent: Id of the parent shard (split), None for root shards
    :ivar str adjacent_parent: Id of the second parent shard when created from a merge
    :ivar str starting_sequence_number:
    """

    def __init__(
        self,
        shard_id: str,
        parent: str = None,
        starting_sequence_number: str = None,
        adjacent_parent: str = None,
    ):
        self.shard_id = shard_id
        self.parent = parent
        self.starting_sequence_number = starting_sequence_number
        self.adjacent_parent = adjacent_parent

    @classmethod
    def from_api(cls, shard_r: dict) -> Shard:
        return cls(
            shard_r["ShardId"],
            parent=set_else_none("ParentShardId", shard_r),
            starting_sequence_number=shard_r["SequenceNumberRange"][
                "StartingSequenceNumber"
            ],
            adjacent_parent=set_else_none("AdjacentParentShardId", shard_r),
        )

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def __eq__(self, other):
        if not isinstance(other, Shard):
            return NotImplemented
        return (
            self.shard_id,
            self.parent,
            self.adjacent_parent,
            self.starting_sequence_number,
        ) == (
            other.shard_id,
            other.parent,
            other.adjacent_parent,
            other.starting_sequence_number,
        )

    def __repr__(self):
        return f"Shard({self.shard_id}, parent={self.parent})"


def prune_expired_parents(shards: dict) -> list:
    """
    Sets to None the parent references to shards not in the topology

    :param dict[str, Shard] shards:
    :return: the ids of the shards which had a parent reference dropped
    :rtype: list[str]
    """
    pruned = []
    for shard in shards.values():
        if shard.parent and shard.parent not in shards:
            shard.parent = None
            pruned.append(shard.shard_id)
        if shard.adjacent_parent and shard.adjacent_parent not in shards:
            shard.adjacent_parent = None
    return pruned


def validate_shards_lineage(shards: dict):
    """
    Walks up each shard parents chain to make sure it ends with a root shard.

    :param dict[str, Shard] shards:
    :raises ShardLineageError: if a shard is its own ancestor
    """
    verified = set()
    for shard_id in shards:
        path = []
        current = shard_id
        while current is not None and current not in verified:
            if current in path:
                raise ShardLineageError(
                    f"Shard {current} is its own ancestor", path + [current]
                )
            path.append(current)
            current = shards[current].parent
        verified.update(path)


def get_stream_shards(gateway: KinesisGateway, stream_name: str) -> dict:
    """
    Function to retrieve all the shards of the stream and map them by id.

    :param KinesisGateway gateway:
    :param str stream_name:
    :return: the shards mapped by shard id
    :rtype: dict[str, Shard]
    """
    LOG.debug(f"{stream_name} - Retrieving shards")
    shards = {}
    for shard_r in gateway.list_shards(stream_name):
        shard = Shard.from_api(shard_r)
        shards[shard.shard_id] = shard
    pruned = prune_expired_parents(shards)
    if pruned:
        LOG.debug(f"{stream_name} - Parent shards expired for {pruned}")
    validate_shards_lineage(shards)
    return shards


def get_root_shards(shards: dict) -> list:
    return [shard_id for shard_id, shard in shards.items() if shard.is_root]


def get_shard_children(shards: dict, shard_id: str) -> list:
    """
    Children of a shard: shards created from it by split, or by merge as either parent.
    """
    return [
        child_id
        for child_id, shard in shards.items()
        if shard_id in (shard.parent, shard.adjacent_parent)
    ]


def get_shard_lineage(shards: dict, shard_id: str) -> list:
    """
    Returns the chain of parents of a shard, from its root shard down to the shard itself.

    :param dict[str, Shard] shards:
    :param str shard_id:
    :rtype: list[str]
    """
    if shard_id not in shards:
        raise KeyError(f"Shard {shard_id} is not part of the topology")
    lineage = []
    current = shard_id
    while current is not None:
        if current in lineage:
            raise ShardLineageError(f"Shard {current} is its own ancestor", lineage)
        lineage.append(current)
        current = shards[current].parent
    lineage.reverse()
    return lineage
