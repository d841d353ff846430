"""Global search — tasks and notices whose text contains the query."""

from __future__ import annotations

from typing import TYPE_CHECKING

from workdesk.notices.schemas import NOTICES
from workdesk.search.schemas import SearchResponse
from workdesk.sync.remote import Query
from workdesk.tasks.schemas import TASKS

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

TASK_FIELDS = ("title", "description")
NOTICE_FIELDS = ("title", "content")


class SearchService:
    """Search results page; every search reads fresh from the row store."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.tasks = workspace.collection(TASKS, live=False)
        self.notices = workspace.collection(NOTICES, live=False)

    async def search(self, query: str) -> SearchResponse:
        query = query.strip()
        if not query:
            return SearchResponse(query=query, total=0, tasks=[], notices=[])

        tasks = await self.tasks.ensure(Query().ilike(query, *TASK_FIELDS), refresh=True)
        notices = await self.notices.ensure(Query().ilike(query, *NOTICE_FIELDS), refresh=True)
        return SearchResponse(
            query=query,
            total=len(tasks) + len(notices),
            tasks=await self.workspace.tasks.present(tasks),
            notices=await self.workspace.notices.present(notices),
        )
