"""Search Pydantic schemas."""

from pydantic import BaseModel

from workdesk.notices.schemas import NoticeOut
from workdesk.tasks.schemas import TaskOut


class SearchResponse(BaseModel):
    query: str
    total: int
    tasks: list[TaskOut]
    notices: list[NoticeOut]
