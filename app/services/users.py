import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models import RoleModel, UserModel

logger = logging.getLogger(__name__)


def find_user_by_email(db: Session, email: str) -> Optional[UserModel]:
    return db.query(UserModel).filter(UserModel.email == email).first()


def authenticate(db: Session, email: str, password: str) -> Optional[UserModel]:
    """Return the user when the credentials match, else None."""
    user = find_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def ensure_role(db: Session, name: str) -> RoleModel:
    role = db.query(RoleModel).filter(RoleModel.name == name).first()
    if role is None:
        role = RoleModel(name=name)
        db.add(role)
        db.flush()
        logger.info(f"Created role {name}")
    return role


def ensure_user(db: Session, email: str, password: str, role_names: Iterable[str]) -> UserModel:
    """Create the account when missing; an existing account is left as is."""
    user = find_user_by_email(db, email)
    if user is not None:
        return user

    user = UserModel(
        username=email,
        email=email,
        password_hash=hash_password(password),
        roles=[ensure_role(db, name) for name in role_names],
    )
    db.add(user)
    db.flush()
    logger.info(f"Created user {email} with roles {user.role_names}")
    return user
