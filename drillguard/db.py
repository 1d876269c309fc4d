from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker

from drillguard.models import (
    Base,
    LoginAttemptLogModel,
    PasswordResetTokenModel,
    User,
    UserModel,
)
from drillguard.security import get_pepper, hash_password

db_path = "drillguard.db"
engine = None
SessionLocal = None


def init_db(path: str):
    global db_path, engine, SessionLocal
    db_path = path
    sqlite_url = f"sqlite:///{path}"

    engine = create_engine(sqlite_url, connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)


@contextmanager
def get_session():
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_user(
    email: str,
    name: str,
    password: str,
    hash_mode: str = "bcrypt",
    role: str = "PARTICIPANT",
    totp_secret: str | None = None,
) -> User:
    hashed_password = hash_password(password, get_pepper(), hash_mode)

    with get_session() as session:
        user_model = UserModel(
            email=email,
            name=name,
            role=role,
            status="active",
            password=hashed_password,
            hash_mode=hash_mode,
            totp_secret=totp_secret,
        )
        session.add(user_model)
        session.flush()
        return User.from_orm_model(user_model)


def get_user(email: str) -> User | None:
    with get_session() as session:
        stmt = select(UserModel).where(UserModel.email == email)
        user_model = session.execute(stmt).scalar_one_or_none()
        if user_model:
            return User.from_orm_model(user_model)
        return None


def set_password(email: str, password: str, hash_mode: str) -> bool:
    with get_session() as session:
        stmt = select(UserModel).where(UserModel.email == email)
        user_model = session.execute(stmt).scalar_one_or_none()
        if user_model is None:
            return False
        user_model.password = hash_password(password, get_pepper(), hash_mode)
        user_model.hash_mode = hash_mode
        return True


def insert_attempt_log(email: str, ip: str, status: str, created_at: datetime) -> None:
    with get_session() as session:
        session.add(LoginAttemptLogModel(email=email, ip_address=ip, status=status, created_at=created_at))


def recent_attempt_logs(email: str | None = None, ip: str | None = None, limit: int = 50) -> list[LoginAttemptLogModel]:
    with get_session() as session:
        stmt = select(LoginAttemptLogModel)
        if email is not None:
            stmt = stmt.where(LoginAttemptLogModel.email == email)
        if ip is not None:
            stmt = stmt.where(LoginAttemptLogModel.ip_address == ip)
        stmt = stmt.order_by(LoginAttemptLogModel.created_at.desc(), LoginAttemptLogModel.id.desc()).limit(limit)
        rows = list(session.execute(stmt).scalars())
        session.expunge_all()
        return rows


def replace_reset_token(email: str, token_hash: str, created_at: datetime) -> None:
    """Store a reset token hash, dropping any earlier token for the email."""
    with get_session() as session:
        session.execute(delete(PasswordResetTokenModel).where(PasswordResetTokenModel.email == email))
        session.add(PasswordResetTokenModel(email=email, token=token_hash, created_at=created_at))


def get_reset_token(email: str) -> tuple[str, datetime] | None:
    with get_session() as session:
        row = session.get(PasswordResetTokenModel, email)
        if row is None:
            return None
        return row.token, row.created_at


def delete_reset_token(email: str) -> None:
    with get_session() as session:
        session.execute(delete(PasswordResetTokenModel).where(PasswordResetTokenModel.email == email))
