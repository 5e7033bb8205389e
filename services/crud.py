# services/crud.py
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.user import User
from services.auth import get_password_hash, verify_password


class UsernameTaken(ValueError):
    pass


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def create_user(db: Session, username: str, password: str) -> User:
    if get_user_by_username(db, username):
        raise UsernameTaken("Username already taken")

    user = User(username=username, password_hash=get_password_hash(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race with a concurrent registration
        db.rollback()
        raise UsernameTaken("Username already taken") from e
    db.refresh(user)
    return user


def authenticate_user(db: Session, username: str, password: str) -> User | None:
    user = get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user
