from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ConfigurationError
from ..models import AuthUser
from ..orchestrator import AIOrchestrator
from ..storage import DatabaseLearningStore, LearningStore, guest_store
from .auth import User, get_current_user

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds between client-disconnect checks while a pipeline is in flight
DISCONNECT_POLL_SECONDS = 0.5


def get_orchestrator(request: Request) -> AIOrchestrator:
	orchestrator = getattr(request.app.state, "orchestrator", None)
	if orchestrator is None:
		raise HTTPException(status_code=503, detail={"state": "configuration_error", "message": "AI orchestrator unavailable"})
	return orchestrator


def require_configured(orchestrator: AIOrchestrator = Depends(get_orchestrator)) -> AIOrchestrator:
	"""Refuse pipeline access while configuration is invalid (re-checked per request)."""
	try:
		orchestrator.check_configuration()
	except ConfigurationError as exc:
		raise HTTPException(status_code=503, detail={"state": "configuration_error", "message": str(exc)})
	return orchestrator


def get_store(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> LearningStore:
	if user.is_guest:
		return guest_store
	return DatabaseLearningStore(db)


def consume_request_quota(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
	# Enforce per-user request limits; guests are not metered
	if user.is_guest:
		return user
	row = db.query(AuthUser).filter(AuthUser.username == user.username).first()
	if row:
		if row.requests_used >= row.requests_limit:
			raise HTTPException(status_code=429, detail="request limit reached")
		row.requests_used += 1
		db.add(row)
		db.commit()
	return user


async def run_until_disconnect(request: Request, awaitable: Awaitable[T]) -> T:
	"""Await a pipeline, cancelling it (and its in-flight model call) if the client goes away."""
	task = asyncio.ensure_future(awaitable)
	try:
		while True:
			done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
			if done:
				return task.result()
			if await request.is_disconnected():
				logger.info("client disconnected; cancelling pipeline for %s", request.url.path)
				task.cancel()
				await asyncio.gather(task, return_exceptions=True)
				raise HTTPException(status_code=499, detail="client disconnected")
	finally:
		if not task.done():
			task.cancel()
