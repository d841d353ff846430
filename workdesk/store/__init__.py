"""Row store clients — direct SQL and the hosted REST API — plus object storage."""

from workdesk.store.rest_client import RestCollectionClient
from workdesk.store.sql_client import SqlCollectionClient
from workdesk.store.storage import StorageClient

__all__ = ["RestCollectionClient", "SqlCollectionClient", "StorageClient"]
