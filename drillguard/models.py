from datetime import datetime, timezone

from pydantic import BaseModel, Field
from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="PARTICIPANT")
    status = Column(String(16), nullable=False, default="active")
    password = Column(String, nullable=False)
    hash_mode = Column(String, nullable=False)
    totp_secret = Column(String, nullable=True)


class LoginAttemptLogModel(Base):
    __tablename__ = "login_attempt_logs"
    __table_args__ = (
        Index("ix_login_attempt_logs_email_created", "email", "created_at"),
        Index("ix_login_attempt_logs_ip_created", "ip_address", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=False)
    status = Column(String(20), nullable=False)  # failed | locked
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PasswordResetTokenModel(Base):
    __tablename__ = "password_reset_tokens"

    email = Column(String(255), primary_key=True)
    token = Column(String(128), nullable=False)  # sha256 hex, never the raw token
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True)
    user_name = Column(String(255), nullable=True)
    user_role = Column(String(32), nullable=True)
    action = Column(String(80), nullable=False)
    module = Column(String(80), nullable=True)
    status = Column(String(20), nullable=False, default="success")
    description = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    failure_reason = Column(String(255), nullable=True)
    performed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class User(BaseModel):
    id: int | None = None
    email: str
    name: str
    role: str = "PARTICIPANT"
    status: str = "active"
    password: str
    hash_mode: str
    totp_secret: str | None = None

    @classmethod
    def from_orm_model(cls, orm_user: UserModel) -> "User":
        return cls(
            id=orm_user.id,
            email=orm_user.email,
            name=orm_user.name,
            role=orm_user.role,
            status=orm_user.status,
            password=orm_user.password,
            hash_mode=orm_user.hash_mode,
            totp_secret=orm_user.totp_secret,
        )


class AttemptLogEntry(BaseModel):
    email: str | None
    ip_address: str
    status: str
    created_at: datetime

    @classmethod
    def from_orm_model(cls, row: LoginAttemptLogModel) -> "AttemptLogEntry":
        return cls(email=row.email, ip_address=row.ip_address, status=row.status, created_at=row.created_at)


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8)
    role: str = Field(default="PARTICIPANT", description="PARTICIPANT|LGU_TRAINER|LGU_ADMIN")
    hash_mode: str | None = Field(default=None)


class RegisterResponse(BaseModel):
    result: str
    totp_uri: str | None = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str


class LoginTotpRequest(LoginRequest):
    totp_code: str | None = None


class LoginResponse(BaseModel):
    result: str
    email: str
    role: str


class PasswordForgotRequest(BaseModel):
    email: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    email: str = Field(min_length=1)
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)
    password_confirmation: str


class AttemptHistoryResponse(BaseModel):
    failed_attempt_count: int
    locked_out: bool
    retry_after_seconds: int | None = None
    entries: list[AttemptLogEntry]
