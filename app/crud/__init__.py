# app/crud/__init__.py
from app.crud.document import crud_document
from app.crud.processing_job import crud_processing_job
from app.crud.usage import crud_usage
from app.crud.billing import crud_subscription, crud_invoice

__all__ = [
    "crud_document",
    "crud_processing_job",
    "crud_usage",
    "crud_subscription",
    "crud_invoice",
]
