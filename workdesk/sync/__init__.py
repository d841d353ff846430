"""Record synchronization layer — keeps client-held view state consistent with the row store."""

from workdesk.sync.aggregator import (
    count_by_status,
    count_where,
    partition_by,
    search,
    top_by_assignee,
)
from workdesk.sync.cache import ViewModelCache
from workdesk.sync.collection import SyncedCollection
from workdesk.sync.entity import EntitySpec
from workdesk.sync.feed import ChangeFeed, ChangeFeedListener, Subscription
from workdesk.sync.mutator import OptimisticMutator
from workdesk.sync.remote import ChangeEvent, Query, RemoteCollection, RemoteError

__all__ = [
    # Contract
    "ChangeEvent",
    "Query",
    "RemoteCollection",
    "RemoteError",
    # Components
    "ChangeFeed",
    "ChangeFeedListener",
    "EntitySpec",
    "OptimisticMutator",
    "Subscription",
    "SyncedCollection",
    "ViewModelCache",
    # Aggregation
    "count_by_status",
    "count_where",
    "partition_by",
    "search",
    "top_by_assignee",
]
