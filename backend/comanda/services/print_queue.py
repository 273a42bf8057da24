"""Durable print queue shared by every client.

All coordination between clients goes through the ``fila_impressao`` table.
The only concurrency primitive is :meth:`PrintQueue.try_claim`: a single
conditional ``UPDATE ... WHERE status = 'pendente'`` whose affected-row
count tells the caller whether it won the job. There are no row locks and
no in-process locks involved, so it holds across processes and machines.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import case, select, update

from comanda.config import QUEUE_MAX_ATTEMPTS
from comanda.db.base import SessionLocal
from comanda.db.models import (
    JOB_KINDS,
    STATUS_DONE,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PRINTING,
    PrintJob,
    utcnow,
)

logger = logging.getLogger(__name__)


class PrintQueue:
    def __init__(self, session_factory=SessionLocal, notifier=None, max_attempts: int = QUEUE_MAX_ATTEMPTS):
        self.session_factory = session_factory
        self.notifier = notifier
        self.max_attempts = max_attempts

    # -----------------------------
    # Producer side
    # -----------------------------
    def enqueue(
        self,
        document_data: str,
        kind: str,
        order_id: Optional[str] = None,
        submitted_by_id: Optional[str] = None,
        submitted_by_name: Optional[str] = None,
    ) -> PrintJob:
        if kind not in JOB_KINDS:
            raise ValueError(f"Unknown job kind: {kind!r}")

        with self.session_factory() as db:
            job = PrintJob(
                document_data=document_data,
                kind=kind,
                order_id=order_id,
                status=STATUS_PENDING,
                created_at=utcnow(),
                attempts=0,
                submitted_by_id=submitted_by_id,
                submitted_by_name=submitted_by_name,
            )
            db.add(job)
            db.commit()
            db.refresh(job)
            db.expunge(job)

        logger.info("Print job %s queued (kind=%s order=%s)", job.id, kind, order_id)
        if self.notifier is not None:
            self.notifier.publish(job.id)
        return job

    # -----------------------------
    # Consumer side
    # -----------------------------
    def claim_batch(self, limit: int) -> List[PrintJob]:
        """Oldest pending jobs, without claiming them."""
        with self.session_factory() as db:
            rows = db.execute(
                select(PrintJob)
                .where(PrintJob.status == STATUS_PENDING)
                .order_by(PrintJob.created_at, PrintJob.id)
                .limit(limit)
            ).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

    def try_claim(self, job_id: int) -> bool:
        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_PENDING)
                .values(
                    status=STATUS_PRINTING,
                    claimed_at=utcnow(),
                    attempts=PrintJob.attempts + 1,
                )
                .execution_options(synchronize_session=False)
            )
            claimed = res.rowcount == 1
            db.commit()
        if not claimed:
            logger.debug("Print job %s already taken by another consumer", job_id)
        return claimed

    def mark_done(self, job_id: int) -> bool:
        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_PRINTING)
                .values(status=STATUS_DONE, completed_at=utcnow(), last_error=None)
                .execution_options(synchronize_session=False)
            )
            changed = res.rowcount == 1
            db.commit()
        if not changed:
            logger.warning("Print job %s was not in progress when marked done", job_id)
            return False
        return True

    def mark_failed(self, job_id: int, error: Optional[str] = None) -> bool:
        """Hand the job back for retry, or dead-letter it once out of attempts."""
        if self.max_attempts > 0:
            next_status = case(
                (PrintJob.attempts >= self.max_attempts, STATUS_FAILED),
                else_=STATUS_PENDING,
            )
        else:
            next_status = STATUS_PENDING

        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_PRINTING)
                .values(status=next_status, last_error=(error or "")[:1000] or None)
                .execution_options(synchronize_session=False)
            )
            changed = res.rowcount == 1
            db.commit()
            status = db.execute(
                select(PrintJob.status).where(PrintJob.id == job_id)
            ).scalar_one_or_none()

        if not changed:
            logger.warning("Print job %s was not in progress when marked failed", job_id)
            return False
        if status == STATUS_FAILED:
            logger.error("Print job %s gave up after %s attempts: %s", job_id, self.max_attempts, error)
        else:
            logger.info("Print job %s back to pending: %s", job_id, error)
        return True

    def defer(self, job_id: int, error: Optional[str] = None) -> bool:
        """Hand the job back without spending an attempt (printer unreachable)."""
        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_PRINTING)
                .values(
                    status=STATUS_PENDING,
                    claimed_at=None,
                    attempts=case((PrintJob.attempts > 0, PrintJob.attempts - 1), else_=0),
                    last_error=(error or "")[:1000] or None,
                )
                .execution_options(synchronize_session=False)
            )
            deferred = res.rowcount == 1
            db.commit()
        if deferred:
            logger.warning("Print job %s deferred, printer unreachable: %s", job_id, error)
        return deferred

    # -----------------------------
    # Inspection / manual intervention
    # -----------------------------
    def get(self, job_id: int) -> Optional[PrintJob]:
        with self.session_factory() as db:
            job = db.get(PrintJob, job_id)
            if job is not None:
                db.expunge(job)
            return job

    def list_jobs(self, status: Optional[str] = None, limit: int = 50) -> List[PrintJob]:
        stmt = select(PrintJob).order_by(PrintJob.created_at.desc(), PrintJob.id.desc()).limit(limit)
        if status:
            stmt = stmt.where(PrintJob.status == status)
        with self.session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

    def list_stuck(self, older_than: timedelta) -> List[PrintJob]:
        """Jobs held in progress longer than ``older_than``. Nothing reclaims them automatically."""
        cutoff = utcnow() - older_than
        with self.session_factory() as db:
            rows = db.execute(
                select(PrintJob)
                .where(PrintJob.status == STATUS_PRINTING, PrintJob.claimed_at < cutoff)
                .order_by(PrintJob.claimed_at)
            ).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

    def release(self, job_id: int) -> bool:
        """Operator action: put an in-progress job back to pending."""
        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_PRINTING)
                .values(status=STATUS_PENDING, claimed_at=None)
                .execution_options(synchronize_session=False)
            )
            released = res.rowcount == 1
            db.commit()
        if released:
            logger.warning("Print job %s released manually", job_id)
            if self.notifier is not None:
                self.notifier.publish(job_id)
        return released

    def requeue(self, job_id: int) -> bool:
        """Operator action: give a dead-lettered job a fresh set of attempts."""
        with self.session_factory() as db:
            res = db.execute(
                update(PrintJob)
                .where(PrintJob.id == job_id, PrintJob.status == STATUS_FAILED)
                .values(status=STATUS_PENDING, attempts=0, claimed_at=None)
                .execution_options(synchronize_session=False)
            )
            requeued = res.rowcount == 1
            db.commit()
        if requeued:
            logger.warning("Print job %s requeued manually", job_id)
            if self.notifier is not None:
                self.notifier.publish(job_id)
        return requeued
