# app/crud/processing_job.py
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.db.models.processing_job import ProcessingJob, JobStatus


class CRUDProcessingJob(CRUDBase[ProcessingJob, dict, dict]):

    async def mark_running(self, db: AsyncSession, *, job_id: UUID) -> Optional[ProcessingJob]:
        job = await self.get(db, job_id)
        if job:
            job.status = JobStatus.RUNNING
            job.started_at = datetime.utcnow()
            await db.commit()
        return job

    async def mark_finished(
            self,
            db: AsyncSession,
            *,
            job_id: UUID,
            status: str,
            error_message: Optional[str] = None
    ) -> Optional[ProcessingJob]:
        job = await self.get(db, job_id)
        if job:
            job.status = status
            job.error_message = error_message
            job.finished_at = datetime.utcnow()
            await db.commit()
        return job

    async def list_by_status(self, db: AsyncSession, *, status: str) -> List[ProcessingJob]:
        result = await db.execute(
            select(ProcessingJob)
            .where(ProcessingJob.status == status)
            .order_by(ProcessingJob.created_at)
        )
        return result.scalars().all()


crud_processing_job = CRUDProcessingJob(ProcessingJob)
