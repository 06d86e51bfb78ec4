"""Database setup, call record access and analysis history using SQLAlchemy.

Queries run synchronously; the async store methods push them onto a worker
thread with asyncio.to_thread so they can be awaited and cancelled by callers.
Datetimes are stored as naive UTC.
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .errors import SubjectNotFoundError
from .models import CallRecord, DateRange, TrendAnalysisResult, TrendHistoryItem

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class RepRecord(Base):
    """A sales rep whose calls are graded."""

    __tablename__ = "reps"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class CallAnalysisRecord(Base):
    """A graded call. Soft-deleted rows keep `deleted_at`."""

    __tablename__ = "call_analyses"

    id = Column(String(64), primary_key=True)
    rep_id = Column(String(64), ForeignKey("reps.id"), nullable=False, index=True)
    call_date = Column(DateTime, nullable=False, index=True)
    heat_score = Column(Float, nullable=True)

    analysis_behavior = Column(JSON, nullable=True)
    analysis_strategy = Column(JSON, nullable=True)
    framework_scores = Column(JSON, nullable=True)

    meddpicc_improvements = Column(JSON, default=list)
    bant_improvements = Column(JSON, default=list)
    gap_selling_improvements = Column(JSON, default=list)
    active_listening_improvements = Column(JSON, default=list)
    critical_info_missing = Column(JSON, default=list)
    follow_up_questions = Column(JSON, default=list)

    created_at = Column(DateTime, default=_utcnow)
    deleted_at = Column(DateTime, nullable=True)

    def to_model(self) -> CallRecord:
        return CallRecord(
            id=self.id,
            subject_id=self.rep_id,
            call_date=self.call_date,
            heat_score=self.heat_score,
            analysis_behavior=self.analysis_behavior,
            analysis_strategy=self.analysis_strategy,
            framework_scores=self.framework_scores,
            meddpicc_improvements=self.meddpicc_improvements or [],
            bant_improvements=self.bant_improvements or [],
            gap_selling_improvements=self.gap_selling_improvements or [],
            active_listening_improvements=self.active_listening_improvements or [],
            critical_info_missing=self.critical_info_missing or [],
            follow_up_questions=self.follow_up_questions or [],
        )


class CoachingTrendAnalysisRecord(Base):
    """A saved trend analysis; one per rep and date range."""

    __tablename__ = "coaching_trend_analyses"
    __table_args__ = (UniqueConstraint("rep_id", "date_range_from", "date_range_to"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    rep_id = Column(String(64), ForeignKey("reps.id"), nullable=False, index=True)
    date_range_from = Column(DateTime, nullable=False)
    date_range_to = Column(DateTime, nullable=False)
    call_count = Column(Integer, nullable=False)
    analysis_data = Column(JSON, nullable=False)
    title = Column(String(255), nullable=True)
    is_snapshot = Column(Boolean, default=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, onupdate=_utcnow)

    def to_model(self) -> TrendHistoryItem:
        return TrendHistoryItem(
            id=self.id,
            subject_id=self.rep_id,
            date_range=DateRange(start=self.date_range_from, end=self.date_range_to),
            call_count=self.call_count,
            title=self.title,
            is_snapshot=bool(self.is_snapshot),
            created_at=self.created_at,
            updated_at=self.updated_at,
            analysis=TrendAnalysisResult.model_validate(self.analysis_data),
        )


# Database setup
def get_engine(database_url: str | None = None):
    """Get SQLAlchemy engine."""
    settings = get_settings()
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # Queries run on worker threads
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=settings.debug, **kwargs)
    return create_engine(url, echo=settings.debug)


def init_db(database_url: str | None = None):
    """Initialize the database and create tables."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return engine


class CallRecordStore:
    """Reads a rep's graded calls."""

    def __init__(self, engine=None):
        self.engine = engine or init_db()
        self.Session = sessionmaker(bind=self.engine)

    async def fetch_records(self, subject_id: str, date_range: DateRange) -> list[CallRecord]:
        return await asyncio.to_thread(self._fetch_records, subject_id, date_range)

    async def count_records(self, subject_id: str, date_range: DateRange) -> int:
        return await asyncio.to_thread(self._count_records, subject_id, date_range)

    def _query_calls(self, session, subject_id: str, date_range: DateRange):
        if session.get(RepRecord, subject_id) is None:
            raise SubjectNotFoundError(subject_id)
        return (
            session.query(CallAnalysisRecord)
            .filter(CallAnalysisRecord.rep_id == subject_id)
            .filter(CallAnalysisRecord.deleted_at.is_(None))
            .filter(CallAnalysisRecord.call_date >= to_naive_utc(date_range.start))
            .filter(CallAnalysisRecord.call_date <= to_naive_utc(date_range.end))
        )

    def _fetch_records(self, subject_id: str, date_range: DateRange) -> list[CallRecord]:
        session = self.Session()
        try:
            rows = (
                self._query_calls(session, subject_id, date_range)
                .order_by(CallAnalysisRecord.call_date, CallAnalysisRecord.id)
                .all()
            )
            logger.info("Fetched %d calls for %s in %s", len(rows), subject_id, date_range.label())
            return [row.to_model() for row in rows]
        finally:
            session.close()

    def _count_records(self, subject_id: str, date_range: DateRange) -> int:
        session = self.Session()
        try:
            return self._query_calls(session, subject_id, date_range).count()
        finally:
            session.close()

    def add_rep(self, rep_id: str, name: str | None = None) -> None:
        """Create a rep if it does not exist yet."""
        session = self.Session()
        try:
            if session.get(RepRecord, rep_id) is None:
                session.add(RepRecord(id=rep_id, name=name))
                session.commit()
        finally:
            session.close()

    def add_call(self, record: CallRecord) -> None:
        """Insert or replace a graded call."""
        data = record.model_dump(mode="json")
        session = self.Session()
        try:
            session.merge(CallAnalysisRecord(
                id=record.id,
                rep_id=record.subject_id,
                call_date=to_naive_utc(record.call_date),
                heat_score=record.heat_score,
                analysis_behavior=data["analysis_behavior"],
                analysis_strategy=data["analysis_strategy"],
                framework_scores=data["framework_scores"],
                meddpicc_improvements=record.meddpicc_improvements,
                bant_improvements=record.bant_improvements,
                gap_selling_improvements=record.gap_selling_improvements,
                active_listening_improvements=record.active_listening_improvements,
                critical_info_missing=record.critical_info_missing,
                follow_up_questions=record.follow_up_questions,
            ))
            session.commit()
        finally:
            session.close()

    def soft_delete_call(self, call_id: str) -> bool:
        session = self.Session()
        try:
            row = session.get(CallAnalysisRecord, call_id)
            if row is None or row.deleted_at is not None:
                return False
            row.deleted_at = _utcnow()
            session.commit()
            return True
        finally:
            session.close()


class TrendHistoryStore:
    """Store for saved coaching trend analyses."""

    def __init__(self, engine=None):
        self.engine = engine or init_db()
        self.Session = sessionmaker(bind=self.engine)

    async def save_analysis(
        self,
        subject_id: str,
        date_range: DateRange,
        call_count: int,
        analysis: TrendAnalysisResult,
    ) -> TrendHistoryItem:
        return await asyncio.to_thread(self._save_analysis, subject_id, date_range, call_count, analysis)

    def _save_analysis(
        self,
        subject_id: str,
        date_range: DateRange,
        call_count: int,
        analysis: TrendAnalysisResult,
    ) -> TrendHistoryItem:
        start = to_naive_utc(date_range.start)
        end = to_naive_utc(date_range.end)
        session = self.Session()
        try:
            row = (
                session.query(CoachingTrendAnalysisRecord)
                .filter_by(rep_id=subject_id, date_range_from=start, date_range_to=end)
                .first()
            )
            if row is None:
                row = CoachingTrendAnalysisRecord(rep_id=subject_id, date_range_from=start, date_range_to=end)
                session.add(row)
            row.call_count = call_count
            row.analysis_data = analysis.model_dump(mode="json")
            session.commit()
            session.refresh(row)
            return row.to_model()
        finally:
            session.close()

    def list_history(
        self, subject_id: str, snapshots_only: bool = False, limit: int = 20
    ) -> list[TrendHistoryItem]:
        """Saved analyses for a rep, newest first."""
        session = self.Session()
        try:
            query = session.query(CoachingTrendAnalysisRecord).filter(
                CoachingTrendAnalysisRecord.rep_id == subject_id
            )
            if snapshots_only:
                query = query.filter(CoachingTrendAnalysisRecord.is_snapshot == True)  # noqa: E712
            rows = (
                query.order_by(CoachingTrendAnalysisRecord.created_at.desc(), CoachingTrendAnalysisRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [row.to_model() for row in rows]
        finally:
            session.close()

    def get_analysis(self, analysis_id: int) -> TrendHistoryItem | None:
        session = self.Session()
        try:
            row = session.get(CoachingTrendAnalysisRecord, analysis_id)
            return row.to_model() if row else None
        finally:
            session.close()

    def mark_snapshot(self, analysis_id: int, title: str | None = None) -> TrendHistoryItem | None:
        """Pin a saved analysis as a named snapshot."""
        session = self.Session()
        try:
            row = session.get(CoachingTrendAnalysisRecord, analysis_id)
            if not row:
                return None
            row.is_snapshot = True
            if title is not None:
                row.title = title
            session.commit()
            session.refresh(row)
            return row.to_model()
        finally:
            session.close()
