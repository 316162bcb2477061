from typing import List
from invoice_intake.repositories.base import BaseRepository
from invoice_intake.models.issue import Issue

class IssueRepository(BaseRepository[Issue]):

    async def list_issues(self) -> List[Issue]:
        """All issues regardless of status, in store order. Read fresh on every call."""
        cursor = self.collection.find({}, {"building": 1, "unit": 1, "description": 1})
        docs = await cursor.to_list(length=None)
        return [Issue.from_mongo(doc) for doc in docs]
