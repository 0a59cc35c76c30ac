from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .exceptions import ConcurrentModificationError, RunNotFoundError
from .models import PayrollRun, RunStatus
from .serialization import run_from_dict, run_to_dict

Base = declarative_base()


class RunRepository(Protocol):
    def add(self, run: PayrollRun) -> None:
        ...

    def get(self, org_id: str, run_id: str) -> Optional[PayrollRun]:
        ...

    def list(
        self,
        org_id: str,
        status: Optional[RunStatus] = None,
        created_year: Optional[int] = None,
        pay_year: Optional[int] = None,
    ) -> List[PayrollRun]:
        ...

    def save(self, run: PayrollRun) -> None:
        ...

    def delete(self, org_id: str, run_id: str) -> None:
        ...


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _matches(run: PayrollRun, status: Optional[RunStatus], created_year: Optional[int], pay_year: Optional[int]) -> bool:
    if status and run.status != status:
        return False
    if created_year and run.created_at.year != created_year:
        return False
    if pay_year and run.pay_period.pay_date.year != pay_year:
        return False
    return True


class InMemoryRunRepository:
    """Stores serialized runs so callers never share live objects."""

    def __init__(self) -> None:
        self._runs: Dict[Tuple[str, str], dict] = {}

    def add(self, run: PayrollRun) -> None:
        run.version = 1
        self._runs[(run.org_id, run.id)] = run_to_dict(run)

    def get(self, org_id: str, run_id: str) -> Optional[PayrollRun]:
        payload = self._runs.get((org_id, run_id))
        return run_from_dict(payload) if payload else None

    def list(
        self,
        org_id: str,
        status: Optional[RunStatus] = None,
        created_year: Optional[int] = None,
        pay_year: Optional[int] = None,
    ) -> List[PayrollRun]:
        runs = [run_from_dict(payload) for (org, _), payload in self._runs.items() if org == org_id]
        runs = [run for run in runs if _matches(run, status, created_year, pay_year)]
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    def save(self, run: PayrollRun) -> None:
        key = (run.org_id, run.id)
        stored = self._runs.get(key)
        if stored is None:
            raise RunNotFoundError(run.id)
        if stored["version"] != run.version:
            raise ConcurrentModificationError(run.id, run.version, stored["version"])
        run.version += 1
        self._runs[key] = run_to_dict(run)

    def delete(self, org_id: str, run_id: str) -> None:
        if self._runs.pop((org_id, run_id), None) is None:
            raise RunNotFoundError(run_id)


class PayrollRunRecord(Base):
    __tablename__ = "payroll_runs"

    id = Column(String(64), primary_key=True)
    org_id = Column(String(64), nullable=False, index=True)
    run_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=RunStatus.DRAFT.value)
    created_at = Column(DateTime, nullable=False)
    pay_date = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    payload = Column(JSON, nullable=False)


class SqlRunRepository:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(autoflush=False, bind=engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlRunRepository":
        repository = cls(create_engine(database_url, pool_pre_ping=True))
        repository.create_schema()
        return repository

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _record_fields(run: PayrollRun) -> dict:
        return {
            "org_id": run.org_id,
            "run_number": run.run_number,
            "status": run.status.value,
            "created_at": _naive_utc(run.created_at),
            "pay_date": _naive_utc(run.pay_period.pay_date),
            "version": run.version,
            "payload": run_to_dict(run),
        }

    def add(self, run: PayrollRun) -> None:
        run.version = 1
        with self.session_scope() as db:
            db.add(PayrollRunRecord(id=run.id, **self._record_fields(run)))

    def get(self, org_id: str, run_id: str) -> Optional[PayrollRun]:
        with self.session_scope() as db:
            record = db.get(PayrollRunRecord, run_id)
            if record is None or record.org_id != org_id:
                return None
            return run_from_dict(record.payload)

    def list(
        self,
        org_id: str,
        status: Optional[RunStatus] = None,
        created_year: Optional[int] = None,
        pay_year: Optional[int] = None,
    ) -> List[PayrollRun]:
        query = select(PayrollRunRecord).where(PayrollRunRecord.org_id == org_id)
        if status:
            query = query.where(PayrollRunRecord.status == RunStatus(status).value)
        if created_year:
            query = query.where(
                PayrollRunRecord.created_at >= datetime(created_year, 1, 1),
                PayrollRunRecord.created_at < datetime(created_year + 1, 1, 1),
            )
        if pay_year:
            query = query.where(
                PayrollRunRecord.pay_date >= datetime(pay_year, 1, 1),
                PayrollRunRecord.pay_date < datetime(pay_year + 1, 1, 1),
            )
        query = query.order_by(PayrollRunRecord.created_at.desc())
        with self.session_scope() as db:
            return [run_from_dict(record.payload) for record in db.scalars(query)]

    def save(self, run: PayrollRun) -> None:
        expected = run.version
        run.version = expected + 1
        fields = self._record_fields(run)
        with self.session_scope() as db:
            result = db.execute(
                update(PayrollRunRecord)
                .where(PayrollRunRecord.id == run.id, PayrollRunRecord.version == expected)
                .values(**fields)
            )
            if result.rowcount == 1:
                return
            run.version = expected
            current = db.get(PayrollRunRecord, run.id)
            if current is None:
                raise RunNotFoundError(run.id)
            raise ConcurrentModificationError(run.id, expected, current.version)

    def delete(self, org_id: str, run_id: str) -> None:
        with self.session_scope() as db:
            record = db.get(PayrollRunRecord, run_id)
            if record is None or record.org_id != org_id:
                raise RunNotFoundError(run_id)
            db.delete(record)
