# app/database/mongo_assignment.py
from typing import Iterable, List, Optional, Sequence
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.database.assignment_repo import AssignmentRepo
from app.database.errors import translate_mongo_errors
from app.schemas.assignment import Assignment, AssignmentStatus

ASSIGNMENTS = "assignments"
SUBMISSIONS = "submissions"


class MongoAssignmentRepository(AssignmentRepo):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.client = db.client
        self.col = db[ASSIGNMENTS]
        self.submissions = db[SUBMISSIONS]

    def _from_doc(self, d: dict) -> Assignment:
        base = {k: v for k, v in d.items() if k not in {"_id"}}
        return Assignment(**base)

    def _to_doc_from_model(self, a: Assignment) -> dict:
        doc = a.model_dump(mode="python")
        doc["status"] = a.status.value
        return doc

    async def _find(self, filt: dict, sort: list) -> List[Assignment]:
        with translate_mongo_errors():
            cursor = self.col.find(filt).sort(sort)
            docs: List[dict] = [d async for d in cursor]
        return [self._from_doc(d) for d in docs]

    async def create(self, assignment: Assignment) -> str:
        with translate_mongo_errors():
            await self.col.insert_one(self._to_doc_from_model(assignment))
        return assignment.assignmentId

    async def find_one(self, assignment_id: str) -> Optional[Assignment]:
        with translate_mongo_errors():
            d = await self.col.find_one({"assignmentId": str(assignment_id)})
        return self._from_doc(d) if d else None

    async def find_many(self, assignment_ids: Iterable[str]) -> Sequence[Assignment]:
        ids = [str(i) for i in set(assignment_ids)]
        if not ids:
            return []
        return await self._find({"assignmentId": {"$in": ids}}, [("assignmentId", ASCENDING)])

    async def find_for_teacher(
        self, teacher_id: str, status: Optional[AssignmentStatus] = None
    ) -> Sequence[Assignment]:
        filt = {"createdBy": str(teacher_id)}
        if status is not None:
            filt["status"] = AssignmentStatus(status).value
        return await self._find(filt, [("createdAt", DESCENDING)])

    async def find_published(self) -> Sequence[Assignment]:
        return await self._find(
            {"status": AssignmentStatus.published.value}, [("dueDate", ASCENDING)]
        )

    async def replace_if_version(self, assignment: Assignment, expected_version: int) -> bool:
        with translate_mongo_errors():
            res = await self.col.replace_one(
                {"assignmentId": assignment.assignmentId, "version": expected_version},
                self._to_doc_from_model(assignment),
            )
        return res.matched_count == 1

    async def delete_draft(self, assignment_id: str, expected_version: int) -> bool:
        # richiede un replica set: assignment e submission spariscono insieme o per niente
        with translate_mongo_errors():
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    res = await self.col.delete_one(
                        {
                            "assignmentId": str(assignment_id),
                            "version": expected_version,
                            "status": AssignmentStatus.draft.value,
                        },
                        session=session,
                    )
                    if res.deleted_count == 0:
                        return False
                    await self.submissions.delete_many(
                        {"assignmentId": str(assignment_id)}, session=session
                    )
        return True

    async def ensure_indexes(self):
        await self.col.create_index("assignmentId", unique=True)
        await self.col.create_index("createdBy")
        await self.col.create_index([("status", 1), ("dueDate", 1)])
