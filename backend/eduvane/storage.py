"""
Persistence façade for pipeline outputs.

Authenticated users are stored through SQLAlchemy; guests get a
process-local in-memory store, mirroring the browser-local guest mode of the
front-end. Both expose the same save/list operations, are keyed by record id
(saving the same record twice keeps one copy) and list newest first.
"""

from __future__ import annotations

import json
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Protocol

from sqlalchemy.orm import Session

from .models import PracticeSetRecord, SubmissionRecord
from .schemas import PracticeQuestion, PracticeSet, Submission
from .settings import settings


class LearningStore(Protocol):
    def save_submission(self, user_id: str, submission: Submission) -> None: ...

    def list_submissions(self, user_id: str) -> List[Submission]: ...

    def save_practice_set(self, user_id: str, practice_set: PracticeSet) -> None: ...

    def list_practice_sets(self, user_id: str) -> List[PracticeSet]: ...


def _submission_from_row(row: SubmissionRecord) -> Submission:
    return Submission(
        id=row.id,
        timestamp=row.timestamp,
        image_url=row.image_url,
        subject=row.subject,
        topic=row.topic,
        score=row.score,
        feedback=row.feedback,
        improvement_steps=json.loads(row.improvement_steps_json),
        confidence_score=row.confidence_score,
    )


def _practice_set_from_row(row: PracticeSetRecord) -> PracticeSet:
    return PracticeSet(
        id=row.id,
        subject=row.subject,
        topic=row.topic,
        difficulty=row.difficulty,
        questions=[PracticeQuestion(**q) for q in json.loads(row.questions_json)],
        timestamp=row.timestamp,
    )


class DatabaseLearningStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def save_submission(self, user_id: str, submission: Submission) -> None:
        row = SubmissionRecord(
            id=submission.id,
            user_id=user_id,
            subject=submission.subject,
            topic=submission.topic,
            score=submission.score,
            feedback=submission.feedback,
            improvement_steps_json=json.dumps(submission.improvement_steps),
            confidence_score=submission.confidence_score,
            image_url=submission.image_url,
            timestamp=submission.timestamp,
        )
        self.db.merge(row)
        self.db.commit()

    def list_submissions(self, user_id: str) -> List[Submission]:
        rows = (
            self.db.query(SubmissionRecord)
            .filter(SubmissionRecord.user_id == user_id)
            .order_by(SubmissionRecord.timestamp.desc())
            .all()
        )
        return [_submission_from_row(r) for r in rows]

    def save_practice_set(self, user_id: str, practice_set: PracticeSet) -> None:
        row = PracticeSetRecord(
            id=practice_set.id,
            user_id=user_id,
            subject=practice_set.subject,
            topic=practice_set.topic,
            difficulty=practice_set.difficulty.value,
            questions_json=json.dumps([q.model_dump() for q in practice_set.questions]),
            timestamp=practice_set.timestamp,
        )
        self.db.merge(row)
        self.db.commit()

    def list_practice_sets(self, user_id: str) -> List[PracticeSet]:
        rows = (
            self.db.query(PracticeSetRecord)
            .filter(PracticeSetRecord.user_id == user_id)
            .order_by(PracticeSetRecord.timestamp.desc())
            .all()
        )
        return [_practice_set_from_row(r) for r in rows]


class _GuestBucket:
    __slots__ = ("submissions", "practice_sets", "image_bytes")

    def __init__(self) -> None:
        self.submissions: Dict[str, Submission] = {}
        self.practice_sets: Dict[str, PracticeSet] = {}
        self.image_bytes = 0


def _drop_oldest(records: Dict[str, Any], limit: int) -> List[Any]:
    if len(records) <= limit:
        return []
    ordered = sorted(records, key=lambda rid: records[rid].timestamp, reverse=True)
    return [records.pop(rid) for rid in ordered[limit:]]


class GuestLearningStore:
    """In-memory store scoped to the running process; contents vanish on restart.

    Guests are minted per login and not metered, so the store is bounded:
    each guest keeps its `max_records` newest submissions and practice sets,
    and guests are evicted least recently active first once there are more
    than `max_guests` of them or their stored images exceed `max_image_bytes`.
    The guest being written to is never evicted by its own write.
    """

    def __init__(self, *, max_records: int = 50, max_guests: int = 500, max_image_bytes: int = 256 * 1024 * 1024) -> None:
        self.max_records = max_records
        self.max_guests = max_guests
        self.max_image_bytes = max_image_bytes
        self._lock = threading.Lock()
        self._guests: "OrderedDict[str, _GuestBucket]" = OrderedDict()
        self._image_bytes = 0

    def _bucket(self, user_id: str) -> _GuestBucket:
        bucket = self._guests.get(user_id)
        if bucket is None:
            bucket = self._guests[user_id] = _GuestBucket()
        self._guests.move_to_end(user_id)
        return bucket

    def _evict(self) -> None:
        while len(self._guests) > 1 and (
            len(self._guests) > self.max_guests or self._image_bytes > self.max_image_bytes
        ):
            _, bucket = self._guests.popitem(last=False)
            self._image_bytes -= bucket.image_bytes

    def save_submission(self, user_id: str, submission: Submission) -> None:
        with self._lock:
            bucket = self._bucket(user_id)
            previous = bucket.submissions.get(submission.id)
            size = len(submission.image_url) - (len(previous.image_url) if previous else 0)
            bucket.submissions[submission.id] = submission
            for dropped in _drop_oldest(bucket.submissions, self.max_records):
                size -= len(dropped.image_url)
            bucket.image_bytes += size
            self._image_bytes += size
            self._evict()

    def list_submissions(self, user_id: str) -> List[Submission]:
        with self._lock:
            bucket = self._guests.get(user_id)
            items = list(bucket.submissions.values()) if bucket else []
        return sorted(items, key=lambda s: s.timestamp, reverse=True)

    def save_practice_set(self, user_id: str, practice_set: PracticeSet) -> None:
        with self._lock:
            bucket = self._bucket(user_id)
            bucket.practice_sets[practice_set.id] = practice_set
            _drop_oldest(bucket.practice_sets, self.max_records)
            self._evict()

    def list_practice_sets(self, user_id: str) -> List[PracticeSet]:
        with self._lock:
            bucket = self._guests.get(user_id)
            items = list(bucket.practice_sets.values()) if bucket else []
        return sorted(items, key=lambda s: s.timestamp, reverse=True)

    def forget(self, user_id: str) -> None:
        with self._lock:
            bucket = self._guests.pop(user_id, None)
            if bucket is not None:
                self._image_bytes -= bucket.image_bytes

    def clear(self) -> None:
        with self._lock:
            self._guests.clear()
            self._image_bytes = 0

    def guest_count(self) -> int:
        with self._lock:
            return len(self._guests)


guest_store = GuestLearningStore(
    max_records=settings.guest_max_records,
    max_guests=settings.guest_max_sessions,
    max_image_bytes=settings.guest_max_image_bytes,
)
