# app/services/processing.py
"""
Document processing service

Uploads enqueue a ProcessingJob row in the same commit as the document.
The dispatcher runs each job as a detached asyncio task; the job row keeps
in-flight attempts observable so a crash leaves a recoverable state.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set
from uuid import UUID

import httpx

from app.core.config import settings
from app.core.exceptions import ProcessingError
from app.crud import crud_document, crud_processing_job
from app.db.models.document import DocumentStatus
from app.db.models.processing_job import JobStatus
from app.db.session import AsyncSessionLocal
from app.observability.context import document_id_ctx
from app.observability.metrics import inc_counter, observe_ms

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Processing interrupted"


def can_process_now(file_type: str) -> bool:
    return file_type.lower() in settings.processable_file_types


@dataclass
class ProcessingResult:
    success: bool
    chunks_created: int = 0
    error: Optional[str] = None


class ProcessingClient:
    """HTTP client for the external document processor"""

    def __init__(
            self,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            timeout: Optional[float] = None
    ):
        self.base_url = (base_url if base_url is not None else settings.PROCESSOR_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.PROCESSOR_API_KEY
        self.timeout = timeout or settings.PROCESSOR_TIMEOUT_SECONDS

    async def process_document(
            self,
            document_id: UUID,
            storage_path: str,
            file_type: str,
            workspace: str = "default"
    ) -> ProcessingResult:
        if not self.base_url:
            raise ProcessingError("Document processor is not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "documentId": str(document_id),
            "storagePath": storage_path,
            "fileType": file_type,
            "workspace": workspace,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/process", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise ProcessingError(f"Processor request failed: {e}") from e

        return ProcessingResult(
            success=bool(data.get("success")),
            chunks_created=int(data.get("chunksCreated") or 0),
            error=data.get("error"),
        )


class ProcessingDispatcher:
    """Runs queued processing jobs in the background"""

    def __init__(self, session_factory: Callable, processor: ProcessingClient):
        self.session_factory = session_factory
        self.processor = processor
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, job_id: UUID) -> asyncio.Task:
        """Schedule a job without waiting for it"""
        task = asyncio.create_task(self.run(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run(self, job_id: UUID) -> Optional[ProcessingResult]:
        try:
            return await self._run(job_id)
        except Exception:
            logger.exception(f"❌ Processing job {job_id} crashed")
            return None

    async def _run(self, job_id: UUID) -> Optional[ProcessingResult]:
        async with self.session_factory() as db:
            job = await crud_processing_job.mark_running(db, job_id=job_id)
            if job is None:
                logger.warning(f"⚠️ Processing job {job_id} not found")
                return None
            document_id = job.document_id
            storage_path = job.storage_path
            file_type = job.file_type
            workspace = job.workspace
            await crud_document.update_processing_status(
                db, document_id=document_id, status=DocumentStatus.PROCESSING
            )

        token = document_id_ctx.set(str(document_id))
        try:
            logger.info(f"🔄 Starting document processing: {document_id} ({file_type})")
            loop = asyncio.get_running_loop()
            started = loop.time()
            try:
                result = await self.processor.process_document(
                    document_id, storage_path, file_type, workspace
                )
            except Exception as e:
                logger.error(
                    f"❌ Document processing failed for {document_id}: {type(e).__name__}: {e}",
                    exc_info=True
                )
                result = ProcessingResult(success=False, error=str(e) or "Unexpected processing error")
            observe_ms("processing_duration_ms", (loop.time() - started) * 1000, file_type=file_type)

            async with self.session_factory() as db:
                if result.success:
                    await crud_processing_job.mark_finished(db, job_id=job_id, status=JobStatus.SUCCEEDED)
                    await crud_document.update_processing_status(
                        db,
                        document_id=document_id,
                        status=DocumentStatus.COMPLETED,
                        chunks_count=result.chunks_created,
                        keep_terminal=True,
                    )
                    logger.info(f"✅ Document {document_id} processed: {result.chunks_created} chunks")
                else:
                    error = result.error or "Processing failed"
                    await crud_processing_job.mark_finished(
                        db, job_id=job_id, status=JobStatus.FAILED, error_message=error
                    )
                    await crud_document.update_processing_status(
                        db,
                        document_id=document_id,
                        status=DocumentStatus.FAILED,
                        error_message=error,
                    )
                    logger.error(f"❌ Document {document_id} processing failed: {error}")

            inc_counter("processing_jobs_total", outcome="succeeded" if result.success else "failed")
            return result
        finally:
            document_id_ctx.reset(token)

    async def recover_jobs(self) -> int:
        """
        Resume work left behind by a previous process.
        Queued jobs never started are dispatched again; running jobs were
        interrupted mid-flight and are failed rather than processed twice.
        """
        async with self.session_factory() as db:
            queued = await crud_processing_job.list_by_status(db, status=JobStatus.QUEUED)
            running = await crud_processing_job.list_by_status(db, status=JobStatus.RUNNING)

            for job in running:
                await crud_processing_job.mark_finished(
                    db, job_id=job.id, status=JobStatus.FAILED, error_message=INTERRUPTED_MESSAGE
                )
                await crud_document.update_processing_status(
                    db,
                    document_id=job.document_id,
                    status=DocumentStatus.FAILED,
                    error_message=INTERRUPTED_MESSAGE,
                )
                logger.warning(f"⚠️ Processing of document {job.document_id} was interrupted, marked failed")

            queued_ids = [job.id for job in queued]

        for job_id in queued_ids:
            self.dispatch(job_id)

        if queued_ids or running:
            logger.info(f"♻️ Recovered processing jobs: {len(queued_ids)} re-dispatched, {len(running)} failed")
        return len(queued_ids)


processing_dispatcher = ProcessingDispatcher(AsyncSessionLocal, ProcessingClient())


def get_processing_dispatcher() -> ProcessingDispatcher:
    return processing_dispatcher
