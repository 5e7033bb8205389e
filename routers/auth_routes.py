import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from config.settings import Settings
from database import get_db
from middleware.rate_limit import LOGIN_RATE_LIMIT, limiter
from models.user import User
from schemas.auth import MeOut, RegisterOut, TokenOut, UserCreate
from services.auth import create_access_token, get_current_db_user, get_settings
from services.crud import UsernameTaken, authenticate_user, create_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=RegisterOut)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    try:
        user = create_user(db, payload.username, payload.password)
    except UsernameTaken as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.info("user_registered user_id=%s", user.id)
    return RegisterOut(message="User created", user_id=user.id, username=user.username)


@router.post("/login", response_model=TokenOut)
@limiter.limit(LOGIN_RATE_LIMIT)
def login(
    request: Request,
    payload: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = authenticate_user(db, payload.username, payload.password)
    if not user:
        # same answer for unknown user and wrong password
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    token = create_access_token(settings, {"sub": str(user.id)})
    return TokenOut(access_token=token, user_id=user.id, username=user.username)


@router.get("/me", response_model=MeOut)
def me(current_user: User = Depends(get_current_db_user)):
    return MeOut(id=current_user.id, username=current_user.username)
