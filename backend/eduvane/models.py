from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, Text
from .db import Base


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	# Per-user budget of pipeline invocations
	requests_used = Column(Integer, default=0, nullable=False)
	requests_limit = Column(Integer, default=1000, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT id (jti); a token is only honoured while its session row exists
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	is_guest = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SubmissionRecord(Base):
	__tablename__ = "submissions"
	id = Column(String(64), primary_key=True)
	user_id = Column(String(128), nullable=False, index=True)
	subject = Column(String(128), nullable=False)
	topic = Column(String(256), nullable=False)
	score = Column(Float, nullable=False)
	feedback = Column(Text, nullable=False)
	improvement_steps_json = Column(Text, nullable=False)  # JSON array of strings
	confidence_score = Column(Float, default=0.0, nullable=False)
	image_url = Column(Text, nullable=True)
	timestamp = Column(String(40), nullable=False, index=True)


class PracticeSetRecord(Base):
	__tablename__ = "practice_sets"
	id = Column(String(64), primary_key=True)
	user_id = Column(String(128), nullable=False, index=True)
	subject = Column(String(128), nullable=False)
	topic = Column(String(256), nullable=False)
	difficulty = Column(String(16), nullable=False)
	questions_json = Column(Text, nullable=False)  # JSON array snapshot, presentation order
	timestamp = Column(String(40), nullable=False, index=True)
