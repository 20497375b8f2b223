import logging

from fastapi import APIRouter, Depends, Request, Response

from ..auth import (
    clear_session_cookie,
    get_current_user,
    hash_password,
    session_token_from,
    set_session_cookie,
    try_get_user,
    verify_password,
)
from ..config import settings
from ..deps import get_sessions, get_users
from ..errors import InvalidCredentials, ValidationError
from ..models import User
from ..schemas import CredentialsIn, ProfileUpdateIn, SuccessOut, UserOut, user_out
from ..storage import SessionRepository, UserRepository


logger = logging.getLogger("cityshare.auth")

router = APIRouter(prefix="/api", tags=["auth"])


def _credentials(payload: CredentialsIn) -> tuple[str, str]:
    username = payload.username.strip()
    if not username or not payload.password.strip():
        raise ValidationError("username and password are required")
    return username, payload.password


@router.post("/register", response_model=UserOut)
@router.post("/auth/register", response_model=UserOut, include_in_schema=False)
def register(
    payload: CredentialsIn,
    response: Response,
    users: UserRepository = Depends(get_users),
    sessions: SessionRepository = Depends(get_sessions),
):
    username, password = _credentials(payload)
    user = users.create(username, hash_password(password))
    token = sessions.create(user, settings.session_ttl)
    set_session_cookie(response, token)
    logger.info("registered user %s", user.id)
    return user_out(user)


@router.post("/login", response_model=UserOut)
@router.post("/auth/login", response_model=UserOut, include_in_schema=False)
def login(
    payload: CredentialsIn,
    response: Response,
    users: UserRepository = Depends(get_users),
    sessions: SessionRepository = Depends(get_sessions),
):
    username, password = _credentials(payload)
    user = users.get_by_username(username)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    sessions.purge_expired()
    token = sessions.create(user, settings.session_ttl)
    set_session_cookie(response, token)
    return user_out(user)


@router.post("/logout", response_model=SuccessOut)
def logout(
    request: Request,
    response: Response,
    user: User | None = Depends(try_get_user),
    sessions: SessionRepository = Depends(get_sessions),
):
    sessions.destroy(session_token_from(request))
    clear_session_cookie(response)
    if user is not None:
        logger.info("logged out user %s", user.id)
    return SuccessOut()


@router.get("/auth/user", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user_out(user)


@router.patch("/auth/user", response_model=UserOut)
def update_me(
    payload: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    users: UserRepository = Depends(get_users),
):
    return user_out(users.update_profile(user, payload.model_dump(exclude_unset=True)))
