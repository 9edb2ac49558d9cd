from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid
import logging

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..settings import settings
from ..db import get_db
from ..models import AuthUser, AuthSession
from ..storage import guest_store

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

# Login names that start a guest session instead of checking a password
GUEST_LOGINS = {"guest", "guests"}
GUEST_PREFIX = "guest-"
BCRYPT_MAX_BYTES = 72


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class User(BaseModel):
	username: str
	is_guest: bool = False


class RegisterRequest(BaseModel):
	username: str
	password: str
	email: Optional[str] = None


def _bcrypt_input(password: str) -> str:
	raw = password.encode('utf-8')[:BCRYPT_MAX_BYTES]
	return raw.decode('utf-8', errors='ignore')


def hash_password(password: str) -> str:
	return pwd_context.hash(_bcrypt_input(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(_bcrypt_input(plain_password), hashed_password)


def is_reserved_username(username: str) -> bool:
	name = username.lower()
	return name in GUEST_LOGINS or name.startswith(GUEST_PREFIX)


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
	if username.lower() in GUEST_LOGINS:
		# Every guest login is a new identity; nothing links two guest sessions
		return User(username=f"{GUEST_PREFIX}{uuid.uuid4().hex[:12]}", is_guest=True)
	row = db.query(AuthUser).filter(AuthUser.username == username).first()
	if row is None or not verify_password(password, row.password_hash):
		return None
	return User(username=row.username)


def create_access_token(user: User, session_id: str, expires_delta: Optional[timedelta] = None) -> str:
	if expires_delta is None:
		minutes = settings.access_token_expire_minutes
		expires_delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	claims = {
		"sub": user.username,
		"jti": session_id,
		"guest": user.is_guest,
		"exp": datetime.now(timezone.utc) + expires_delta,
	}
	return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode_claims(token: str) -> dict:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	if not claims.get("sub") or not claims.get("jti"):
		raise credentials_exception
	return claims


@router.post("/token", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username, form_data.password)
	if not user:
		raise HTTPException(status_code=401, detail="Incorrect username or password")
	session_id = uuid.uuid4().hex
	try:
		db.add(AuthSession(session_id=session_id, username=user.username, is_guest=int(user.is_guest)))
		db.commit()
	except Exception:
		db.rollback()
		logger.exception("failed to persist auth session for %s", user.username)
		raise HTTPException(status_code=500, detail="could not create session")
	logger.info("session opened for %s", user.username)
	return Token(access_token=create_access_token(user, session_id))


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
	claims = _decode_claims(token)
	username = claims["sub"]
	try:
		row = db.get(AuthSession, claims["jti"])
		# Logged-out (deleted) sessions reject their tokens even before expiry
		if row is None or row.username != username:
			raise HTTPException(status_code=401, detail="Session is no longer active")
		row.last_activity_at = datetime.utcnow()
		db.commit()
	except HTTPException:
		raise
	except Exception:
		db.rollback()
		logger.exception("session lookup failed")
		raise HTTPException(status_code=401, detail="Could not validate credentials")
	return User(username=username, is_guest=bool(row.is_guest))


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
	return user


@router.post("/logout", status_code=204)
async def logout(token: str = Depends(oauth2_scheme), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	"""End the session behind this token. Guest history is dropped with it."""
	row = db.get(AuthSession, _decode_claims(token)["jti"])
	if row is not None:
		db.delete(row)
		db.commit()
	if user.is_guest:
		guest_store.forget(user.username)
	logger.info("session closed for %s", user.username)


@router.post("/register", status_code=201)
async def register(req: RegisterRequest, db: Session = Depends(get_db)):
	username = (req.username or "").strip()
	password = req.password or ""
	if not username or not password:
		raise HTTPException(status_code=400, detail="username and password are required")
	if not 3 <= len(username) <= 128:
		raise HTTPException(status_code=400, detail="username must be 3-128 characters")
	if is_reserved_username(username):
		raise HTTPException(status_code=400, detail="username is reserved")
	if db.query(AuthUser).filter(AuthUser.username == username).first():
		raise HTTPException(status_code=409, detail="username already exists")
	db.add(
		AuthUser(
			username=username,
			password_hash=hash_password(password),
			email=(req.email or "").strip() or None,
			requests_limit=settings.default_requests_limit,
		)
	)
	db.commit()
	return {"ok": True}
