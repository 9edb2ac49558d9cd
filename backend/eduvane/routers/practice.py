from __future__ import annotations
import time
import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..orchestrator import AIOrchestrator
from ..schemas import CommandRoute, Difficulty, PracticeQuestion, PracticeSet
from ..storage import LearningStore
from .auth import User, get_current_user
from .deps import consume_request_quota, get_store, require_configured, run_until_disconnect


router = APIRouter(tags=["practice"])


class GenerateRequest(BaseModel):
	prompt: str


class GenerateResponse(BaseModel):
	questions: List[PracticeQuestion]


class SavePracticeSetRequest(BaseModel):
	# Questions as reviewed (and possibly edited or pruned) by the learner
	subject: str = Field(min_length=1)
	topic: str = Field(min_length=1)
	difficulty: Difficulty = Difficulty.MEDIUM
	questions: List[PracticeQuestion] = Field(min_length=1)


class CommandRequest(BaseModel):
	command: str


@router.post("/practice/generate", response_model=GenerateResponse)
async def generate_practice(
	req: GenerateRequest,
	request: Request,
	orchestrator: AIOrchestrator = Depends(require_configured),
	user: User = Depends(consume_request_quota),
):
	prompt = (req.prompt or "").strip()
	if not prompt:
		raise HTTPException(status_code=400, detail="prompt is required")
	questions = await run_until_disconnect(request, orchestrator.generate_practice_flow(prompt))
	return GenerateResponse(questions=questions)


@router.post("/practice/sets", response_model=PracticeSet, status_code=201)
async def save_practice_set(
	req: SavePracticeSetRequest,
	user: User = Depends(get_current_user),
	store: LearningStore = Depends(get_store),
):
	practice_set = PracticeSet(
		id=f"SET-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
		subject=req.subject.strip(),
		topic=req.topic.strip(),
		difficulty=req.difficulty,
		questions=req.questions,
		timestamp=datetime.now(timezone.utc).isoformat(),
	)
	store.save_practice_set(user.username, practice_set)
	return practice_set


@router.get("/practice/sets", response_model=List[PracticeSet])
async def list_practice_sets(user: User = Depends(get_current_user), store: LearningStore = Depends(get_store)):
	return store.list_practice_sets(user.username)


@router.post("/command", response_model=CommandRoute)
async def route_command(
	req: CommandRequest,
	request: Request,
	orchestrator: AIOrchestrator = Depends(require_configured),
	user: User = Depends(consume_request_quota),
):
	command = (req.command or "").strip()
	if not command:
		raise HTTPException(status_code=400, detail="command is required")
	return await run_until_disconnect(request, orchestrator.route_command(command))
