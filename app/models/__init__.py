"""Database models."""
from app.models.category import Category
from app.models.product import Product
from app.models.report_job import ReportFormat, ReportJob
from app.models.upload_job import JobStatus, UploadJob

__all__ = ["Category", "JobStatus", "Product", "ReportFormat", "ReportJob", "UploadJob"]
