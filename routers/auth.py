from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from itsdangerous import BadData, URLSafeTimedSerializer
from passlib.context import CryptContext

import settings
from logger import get_logger
from models import User, UserRole
from schemas import LoginData, UserCreate, UserRead
from storage import StorageDep

router = APIRouter(prefix="/api", tags=["auth"])
logger = get_logger(__name__)

SESSION_COOKIE = "session"
serializer = URLSafeTimedSerializer(settings.SESSION_SECRET)


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int) -> str:
    """
    Only the user id goes into the signed token. The role is read from
    storage on every request so an admin role change applies at once.
    """
    return serializer.dumps({"user_id": user_id})


def verify_session_token(token: str, max_age_seconds: int = settings.SESSION_MAX_AGE):
    """
    Returns {'user_id': ...} if valid, or None if the token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadData:
        return None


def has_capability(required_role: UserRole, user: User) -> bool:
    """Admins pass every role check; everyone else needs the exact role."""
    return user.role in (required_role.value, UserRole.ADMIN.value)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


def get_current_user(
    storage: StorageDep,
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> User:
    """
    Reads the 'session' cookie, verifies the token and looks up the user.
    Raises 401 if not logged in / invalid.
    """
    if session_token is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    data = verify_session_token(session_token)
    if not data:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = storage.get_user(data["user_id"])
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_role(role: UserRole):
    def dependency(user: CurrentUserDep) -> User:
        if not has_capability(role, user):
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return dependency


def require_admin(user: CurrentUserDep) -> User:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


HRUserDep = Annotated[User, Depends(require_role(UserRole.HR))]
VendorUserDep = Annotated[User, Depends(require_role(UserRole.VENDOR))]
AdminUserDep = Annotated[User, Depends(require_admin)]


def _set_session_cookie(response: Response, user: User) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=create_session_token(user.id),
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.SESSION_MAX_AGE,
    )


@router.post("/register", response_model=UserRead, status_code=201)
def register(user_in: UserCreate, storage: StorageDep, response: Response):
    """
    Register an HR or VENDOR account with a hashed password and log it in.
    Admins are only ever created by seeding or promotion.
    """
    if user_in.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Cannot register as admin")

    if storage.get_user_by_username(user_in.username):
        raise HTTPException(status_code=400, detail="Username already exists")

    if storage.get_user_by_email(user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    data = user_in.model_dump(mode="json")
    data["password"] = hash_password(user_in.password)
    user = storage.create_user(data)

    logger.info(f"Registered user {user.id} ({user.username}) as {user.role}")
    _set_session_cookie(response, user)
    return user


@router.post("/login", response_model=UserRead)
def login(payload: LoginData, storage: StorageDep, response: Response):
    user = storage.get_user_by_username(payload.username)
    if user is None or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    _set_session_cookie(response, user)
    return user


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out"}


@router.get("/user", response_model=UserRead)
def read_me(user: CurrentUserDep):
    """The currently logged-in user."""
    return user
