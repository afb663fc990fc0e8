# app/database/mongo_submission.py
from typing import Any, Dict, Iterable, List, Optional, Sequence
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from app.database.errors import translate_mongo_errors
from app.database.mongo_assignment import SUBMISSIONS
from app.database.submission_repo import SubmissionRepo
from app.schemas.submission import Submission

REVIEW_FIELDS = {"reviewed", "reviewedAt", "feedback"}


class MongoSubmissionRepository(SubmissionRepo):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[SUBMISSIONS]

    def _from_doc(self, d: dict) -> Submission:
        base = {k: v for k, v in d.items() if k not in {"_id"}}
        return Submission(**base)

    async def _find(self, filt: dict) -> List[Submission]:
        with translate_mongo_errors():
            cursor = self.col.find(filt).sort([("submittedAt", DESCENDING)])
            docs: List[dict] = [d async for d in cursor]
        return [self._from_doc(d) for d in docs]

    async def create(self, submission: Submission) -> str:
        # DuplicateKeyError sull'indice unico -> DuplicateSubmissionError
        with translate_mongo_errors():
            await self.col.insert_one(submission.model_dump(mode="python"))
        return submission.submissionId

    async def find_one(self, submission_id: str) -> Optional[Submission]:
        with translate_mongo_errors():
            d = await self.col.find_one({"submissionId": str(submission_id)})
        return self._from_doc(d) if d else None

    async def find_for_student(
        self, student_id: str, assignment_ids: Optional[Iterable[str]] = None
    ) -> Sequence[Submission]:
        filt: Dict[str, Any] = {"studentId": str(student_id)}
        if assignment_ids is not None:
            filt["assignmentId"] = {"$in": [str(i) for i in assignment_ids]}
        return await self._find(filt)

    async def find_for_assignment(self, assignment_id: str) -> Sequence[Submission]:
        return await self._find({"assignmentId": str(assignment_id)})

    async def count_for_assignments(self, assignment_ids: Iterable[str]) -> Dict[str, int]:
        ids = [str(i) for i in assignment_ids]
        if not ids:
            return {}
        pipeline = [
            {"$match": {"assignmentId": {"$in": ids}}},
            {"$group": {"_id": "$assignmentId", "count": {"$sum": 1}}},
        ]
        with translate_mongo_errors():
            rows = await self.col.aggregate(pipeline).to_list(length=None)
        return {r["_id"]: r["count"] for r in rows}

    async def update_review(self, submission_id: str, changes: Dict[str, Any]) -> Optional[Submission]:
        unknown = set(changes) - REVIEW_FIELDS
        if unknown:
            raise ValueError(f"campi non modificabili: {sorted(unknown)}")
        with translate_mongo_errors():
            d = await self.col.find_one_and_update(
                {"submissionId": str(submission_id)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        return self._from_doc(d) if d else None

    async def ensure_indexes(self):
        await self.col.create_index("submissionId", unique=True)
        await self.col.create_index([("assignmentId", 1), ("studentId", 1)], unique=True)
        await self.col.create_index([("studentId", 1), ("submittedAt", -1)])
