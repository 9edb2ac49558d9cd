from __future__ import annotations
import base64
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from ..orchestrator import AIOrchestrator
from ..schemas import Submission
from ..settings import settings
from ..storage import LearningStore
from .auth import User, get_current_user
from .deps import consume_request_quota, get_store, require_configured, run_until_disconnect


router = APIRouter(tags=["evaluation"])


class SubmissionSummary(BaseModel):
	count: int
	average_score: int


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def _data_url(content: bytes, mime_type: str) -> str:
	return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


@router.post("/evaluate", response_model=Submission)
async def evaluate_work(
	request: Request,
	file: UploadFile = File(...),
	subject: Optional[str] = Form(default=None),
	orchestrator: AIOrchestrator = Depends(require_configured),
	user: User = Depends(consume_request_quota),
	store: LearningStore = Depends(get_store),
):
	content = await file.read()
	if not content:
		raise HTTPException(status_code=400, detail="file is empty")
	if len(content) > settings.max_upload_bytes:
		raise HTTPException(status_code=413, detail="file too large")
	mime_type = file.content_type or "application/octet-stream"
	result = await run_until_disconnect(
		request,
		orchestrator.evaluate_work_flow(content, mime_type, subject_hint=subject),
	)
	# The pipeline result is immutable; identity and image reference are attached here
	submission = Submission(
		**result.model_dump(),
		id=f"SUB-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
		timestamp=_now_iso(),
		image_url=_data_url(content, mime_type),
	)
	store.save_submission(user.username, submission)
	return submission


@router.get("/submissions", response_model=List[Submission])
async def list_submissions(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
	return store.list_submissions(user.username)


@router.get("/submissions/summary", response_model=SubmissionSummary)
async def submissions_summary(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
	items = store.list_submissions(user.username)
	if not items:
		return SubmissionSummary(count=0, average_score=0)
	avg = round(sum(s.score for s in items) / len(items))
	return SubmissionSummary(count=len(items), average_score=avg)
