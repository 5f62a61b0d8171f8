"""
Record store abstraction for Postgres and an in-memory test implementation.

Three tables, one equality index each:

- users, unique on ``clerk_id``
- predictions, by ``user_id``
- feedback, by ``prediction_id``
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, Literal, Optional, Protocol

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cropyield.errors import DuplicateRecordError, RecordNotFoundError

Role = Literal["user", "admin"]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class UserRecord:
    clerk_id: str
    email: str
    name: str = ""
    username: str = ""
    phone: str = ""
    location: str = ""
    role: Role = "user"
    image: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class PredictionRecord:
    user_id: str
    crop_type: str
    planting_date: float
    yield_prediction: str
    harvest_date: float
    prediction_data: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class FeedbackRecord:
    prediction_id: str
    user_id: str
    accuracy_rating: float
    comment: Optional[str] = None
    actual_yield: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


class DbClient(Protocol):
    """Interface for record store access."""

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_clerk_id(self, clerk_id: str) -> Optional[UserRecord]:
        ...

    def insert_user(self, user: UserRecord) -> str:
        ...

    def patch_user_role(self, user_id: str, role: Role) -> None:
        ...

    def list_users(self) -> list[UserRecord]:
        ...

    def insert_prediction(self, prediction: PredictionRecord) -> str:
        ...

    def get_prediction(self, prediction_id: str) -> Optional[PredictionRecord]:
        ...

    def list_predictions_by_user(self, user_id: str) -> list[PredictionRecord]:
        ...

    def insert_feedback(self, feedback: FeedbackRecord) -> str:
        ...

    def list_feedback_by_prediction(self, prediction_id: str) -> list[FeedbackRecord]:
        ...


class InMemoryDbClient:
    """Simple in-memory store for development and tests.

    Dicts keep insertion order, which is the order index lookups return.
    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.predictions: Dict[str, PredictionRecord] = {}
        self.feedback: Dict[str, FeedbackRecord] = {}
        self._clerk_index: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self.users.get(user_id)
            return replace(user) if user else None

    def get_user_by_clerk_id(self, clerk_id: str) -> Optional[UserRecord]:
        with self._lock:
            user_id = self._clerk_index.get(clerk_id)
            user = self.users.get(user_id) if user_id is not None else None
            return replace(user) if user else None

    def insert_user(self, user: UserRecord) -> str:
        with self._lock:
            if user.clerk_id in self._clerk_index:
                raise DuplicateRecordError("users", "clerk_id", user.clerk_id)
            self.users[user.id] = replace(user)
            self._clerk_index[user.clerk_id] = user.id
        return user.id

    def patch_user_role(self, user_id: str, role: Role) -> None:
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                raise RecordNotFoundError("users", user_id)
            user.role = role

    def list_users(self) -> list[UserRecord]:
        with self._lock:
            return [replace(user) for user in self.users.values()]

    def insert_prediction(self, prediction: PredictionRecord) -> str:
        with self._lock:
            if prediction.user_id not in self.users:
                raise RecordNotFoundError("users", prediction.user_id)
            self.predictions[prediction.id] = replace(prediction)
        return prediction.id

    def get_prediction(self, prediction_id: str) -> Optional[PredictionRecord]:
        with self._lock:
            prediction = self.predictions.get(prediction_id)
            return replace(prediction) if prediction else None

    def list_predictions_by_user(self, user_id: str) -> list[PredictionRecord]:
        with self._lock:
            return [
                replace(prediction)
                for prediction in self.predictions.values()
                if prediction.user_id == user_id
            ]

    def insert_feedback(self, feedback: FeedbackRecord) -> str:
        with self._lock:
            if feedback.prediction_id not in self.predictions:
                raise RecordNotFoundError("predictions", feedback.prediction_id)
            self.feedback[feedback.id] = replace(feedback)
        return feedback.id

    def list_feedback_by_prediction(self, prediction_id: str) -> list[FeedbackRecord]:
        with self._lock:
            return [
                replace(entry)
                for entry in self.feedback.values()
                if entry.prediction_id == prediction_id
            ]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_user_record(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            clerk_id=row.clerk_id,
            name=row.name,
            username=row.username,
            email=row.email,
            phone=row.phone,
            location=row.location,
            role=row.role,
            image=row.image,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_prediction_record(row: "PredictionRow") -> PredictionRecord:
        return PredictionRecord(
            id=row.id,
            user_id=row.user_id,
            crop_type=row.crop_type,
            planting_date=row.planting_date,
            yield_prediction=row.yield_prediction,
            harvest_date=row.harvest_date,
            prediction_data=row.prediction_data,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_feedback_record(row: "FeedbackRow") -> FeedbackRecord:
        return FeedbackRecord(
            id=row.id,
            prediction_id=row.prediction_id,
            user_id=row.user_id,
            accuracy_rating=row.accuracy_rating,
            comment=row.comment,
            actual_yield=row.actual_yield,
            created_at=row.created_at,
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = _get_row(session, UserRow, user_id)
            return self._to_user_record(row) if row else None

    def get_user_by_clerk_id(self, clerk_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.clerk_id == clerk_id).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def insert_user(self, user: UserRecord) -> str:
        with self.Session() as session:
            session.add(
                UserRow(
                    id=user.id,
                    clerk_id=user.clerk_id,
                    name=user.name,
                    username=user.username,
                    email=user.email,
                    phone=user.phone,
                    location=user.location,
                    role=user.role,
                    image=user.image,
                    created_at=user.created_at,
                )
            )
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRecordError("users", "clerk_id", user.clerk_id) from exc
        return user.id

    def patch_user_role(self, user_id: str, role: Role) -> None:
        with self.Session() as session:
            row = _get_row(session, UserRow, user_id)
            if not row:
                raise RecordNotFoundError("users", user_id)
            row.role = role
            session.commit()

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.seq.asc())
            ).scalars()
            return [self._to_user_record(row) for row in rows]

    def insert_prediction(self, prediction: PredictionRecord) -> str:
        with self.Session() as session:
            if _get_row(session, UserRow, prediction.user_id) is None:
                raise RecordNotFoundError("users", prediction.user_id)
            session.add(
                PredictionRow(
                    id=prediction.id,
                    user_id=prediction.user_id,
                    crop_type=prediction.crop_type,
                    planting_date=prediction.planting_date,
                    yield_prediction=prediction.yield_prediction,
                    harvest_date=prediction.harvest_date,
                    prediction_data=prediction.prediction_data,
                    created_at=prediction.created_at,
                )
            )
            session.commit()
        return prediction.id

    def get_prediction(self, prediction_id: str) -> Optional[PredictionRecord]:
        with self.Session() as session:
            row = _get_row(session, PredictionRow, prediction_id)
            return self._to_prediction_record(row) if row else None

    def list_predictions_by_user(self, user_id: str) -> list[PredictionRecord]:
        with self.Session() as session:
            stmt = (
                select(PredictionRow)
                .where(PredictionRow.user_id == user_id)
                .order_by(PredictionRow.seq.asc())
            )
            rows = session.execute(stmt).scalars()
            return [self._to_prediction_record(row) for row in rows]

    def insert_feedback(self, feedback: FeedbackRecord) -> str:
        with self.Session() as session:
            if _get_row(session, PredictionRow, feedback.prediction_id) is None:
                raise RecordNotFoundError("predictions", feedback.prediction_id)
            session.add(
                FeedbackRow(
                    id=feedback.id,
                    prediction_id=feedback.prediction_id,
                    user_id=feedback.user_id,
                    accuracy_rating=feedback.accuracy_rating,
                    comment=feedback.comment,
                    actual_yield=feedback.actual_yield,
                    created_at=feedback.created_at,
                )
            )
            session.commit()
        return feedback.id

    def list_feedback_by_prediction(self, prediction_id: str) -> list[FeedbackRecord]:
        with self.Session() as session:
            stmt = (
                select(FeedbackRow)
                .where(FeedbackRow.prediction_id == prediction_id)
                .order_by(FeedbackRow.seq.asc())
            )
            rows = session.execute(stmt).scalars()
            return [self._to_feedback_record(row) for row in rows]


def _get_row(session: Session, model, record_id: str):
    return session.execute(
        select(model).where(model.id == record_id)
    ).scalar_one_or_none()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    # Insertion order; ids are random and created_at is set by the caller.
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True, index=True)
    clerk_id = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False, default="")
    username = Column(String, nullable=False, default="")
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False, default="")
    location = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="user")
    image = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class PredictionRow(Base):
    __tablename__ = "predictions"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    crop_type = Column(String, nullable=False)
    planting_date = Column(Float, nullable=False)
    yield_prediction = Column(String, nullable=False)
    harvest_date = Column(Float, nullable=False)
    prediction_data = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class FeedbackRow(Base):
    __tablename__ = "feedback"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True, index=True)
    prediction_id = Column(
        String, ForeignKey("predictions.id"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False)
    accuracy_rating = Column(Float, nullable=False)
    comment = Column(String, nullable=True)
    actual_yield = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
