"""Tests for report generation, download checks and cleanup."""
import csv
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from openpyxl import load_workbook

from app.database import utcnow
from app.models.report_job import ReportFormat
from app.models.upload_job import JobStatus
from app.schemas.report import GenerateReportRequest
from app.services import job_store, reports
from app.services.exceptions import (
    JobNotFoundError,
    ReportExpiredError,
    ReportFileNotFoundError,
    ReportNotReadyError,
)
from app.services.job_store import ReportJobPatch
from app.tasks.report_tasks import run_report_job


@pytest.fixture
def catalog_products(categories, make_product):
    """Five products across two categories with distinct creation times."""
    electronics, books = categories["Electronics"], categories["Books"]
    return [
        make_product(electronics, "Cable", 5, datetime(2024, 1, 1)),
        make_product(electronics, "Mouse", 10, datetime(2024, 1, 2)),
        make_product(books, "Novel", 15.5, datetime(2024, 1, 3)),
        make_product(electronics, "Keyboard", 20, datetime(2024, 1, 4)),
        make_product(books, "Atlas", 45, datetime(2024, 1, 5)),
    ]


def generate(db, **fields):
    job = reports.start_report(db, GenerateReportRequest(**fields))
    return reports.generate_report_file(db, job.id)


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_csv_report_has_header_plus_one_row_per_product(db, settings, catalog_products):
    job = generate(db, format="csv")

    assert job.status == JobStatus.COMPLETED.value
    assert job.total_records == 5
    assert job.download_url == f"/api/reports/download/{job.id}"
    assert Path(job.file_path).name == f"products-report-{job.id}.csv"
    assert Path(job.file_path).parent == Path(settings.reports_dir)

    rows = read_csv(job.file_path)
    assert rows[0] == reports.REPORT_COLUMNS
    assert len(rows) == 6
    assert [row[2] for row in rows[1:]] == ["Atlas", "Keyboard", "Novel", "Mouse", "Cable"]
    atlas = rows[1]
    assert atlas[0] == catalog_products[4].id
    assert atlas[1] == catalog_products[4].unique_id
    assert atlas[5] == "Books"


def test_xlsx_report_matches_csv_rows(db, settings, catalog_products):
    job = generate(db, format="xlsx", category_name="electro")

    workbook = load_workbook(job.file_path)
    sheet = workbook.worksheets[0]
    values = list(sheet.iter_rows(values_only=True))

    assert sheet.title == "Products"
    assert job.total_records == 3
    assert len(values) == 4
    assert list(values[0]) == reports.REPORT_COLUMNS
    assert [row[2] for row in values[1:]] == ["Keyboard", "Mouse", "Cable"]
    assert values[1][3] == 20


def test_price_range_filter_is_inclusive_and_newest_first(db, settings, catalog_products):
    job = generate(db, min_price=10, max_price=20)

    rows = read_csv(job.file_path)[1:]

    assert [row[2] for row in rows] == ["Keyboard", "Novel", "Mouse"]
    assert job.filters == {"min_price": 10.0, "max_price": 20.0}


def test_single_price_bound(db, settings, catalog_products):
    job = generate(db, min_price=20)

    assert [row[2] for row in read_csv(job.file_path)[1:]] == ["Atlas", "Keyboard"]


def test_category_id_and_date_filters(db, settings, categories, catalog_products):
    job = generate(
        db,
        category_id=categories["Electronics"].id,
        start_date="2024-01-02T00:00:00",
        end_date="2024-01-04T00:00:00Z",
    )

    assert [row[2] for row in read_csv(job.file_path)[1:]] == ["Keyboard", "Mouse"]


def test_no_matches_still_writes_header(db, settings, catalog_products):
    job = generate(db, category_name="garden")

    assert job.total_records == 0
    assert read_csv(job.file_path) == [reports.REPORT_COLUMNS]


def test_expiry_independent_of_completion_time(db, settings, catalog_products):
    job = reports.start_report(db, GenerateReportRequest())
    created_at, expires_at = job.created_at, job.expires_at

    job = reports.generate_report_file(db, job.id)

    assert job.expires_at == expires_at == created_at + timedelta(hours=24)


def test_download_checks(db, settings, catalog_products):
    job = reports.start_report(db, GenerateReportRequest())

    with pytest.raises(ReportNotReadyError):
        reports.get_download(db, job.id)

    job = reports.generate_report_file(db, job.id)
    download = reports.get_download(db, job.id)
    assert download.file_name == f"products-report-{job.id}.csv"
    assert download.media_type == "text/csv"

    job_store.get_report_job(db, job.id).expires_at = utcnow() - timedelta(seconds=1)
    db.commit()
    with pytest.raises(ReportExpiredError):
        reports.get_download(db, job.id)

    Path(job.file_path).unlink()
    with pytest.raises(ReportFileNotFoundError):
        reports.get_download(db, job.id)

    with pytest.raises(JobNotFoundError):
        reports.get_download(db, "missing")


def test_failed_render_leaves_no_file(db, settings, catalog_products, monkeypatch):
    job = reports.start_report(db, GenerateReportRequest())

    def exploding_writer(file_path, products):
        Path(file_path).write_text("partial")
        raise OSError("disk full")

    monkeypatch.setattr(reports, "write_csv", exploding_writer)

    run_report_job(job.id)

    db.expire_all()
    job = job_store.get_report_job(db, job.id)
    assert job.status == JobStatus.FAILED.value
    assert job.error_message == "disk full"
    assert job.download_url is None
    assert job.file_path is None
    assert not reports.report_path(job.id, "csv").exists()
    with pytest.raises(ReportNotReadyError):
        reports.get_download(db, job.id)


def test_run_report_job_completes(db, settings, catalog_products):
    job = reports.start_report(db, GenerateReportRequest(format=ReportFormat.XLSX))

    run_report_job(job.id)

    db.expire_all()
    job = job_store.get_report_job(db, job.id)
    assert job.status == JobStatus.COMPLETED.value
    assert job.completed_at is not None
    assert Path(job.file_path).exists()


def test_cleanup_expired_reports(db, settings, catalog_products):
    expired = generate(db)
    fresh = generate(db)
    failed = reports.start_report(db, GenerateReportRequest())
    job_store.update_report_job(db, failed.id, ReportJobPatch(status=JobStatus.FAILED))
    past = utcnow() - timedelta(hours=1)
    for job in (expired, failed):
        job_store.get_report_job(db, job.id).expires_at = past
    db.commit()
    expired_id, expired_path, fresh_path = expired.id, expired.file_path, fresh.file_path

    removed = reports.cleanup_expired_reports(db)

    assert removed == 1
    assert not Path(expired_path).exists()
    assert Path(fresh_path).exists()
    with pytest.raises(JobNotFoundError):
        job_store.get_report_job(db, expired_id)
    assert job_store.get_report_job(db, failed.id).status == JobStatus.FAILED.value


def test_cleanup_old_report_jobs_removes_files(db, settings, catalog_products):
    old = generate(db)
    job_store.update_report_job(
        db, old.id, ReportJobPatch(completed_at=utcnow() - timedelta(days=45))
    )
    recent = generate(db)
    old_path = old.file_path

    removed = reports.cleanup_old_report_jobs(db, days_old=30)

    assert removed == 1
    assert not Path(old_path).exists()
    assert Path(recent.file_path).exists()


def test_total_records_counts_rows_in_file(
    db, settings, categories, catalog_products, make_product, monkeypatch
):
    job = reports.start_report(db, GenerateReportRequest())
    real_write_csv = reports.write_csv

    def write_after_concurrent_upload(file_path, products):
        make_product(categories["Books"], "Late arrival", 8, datetime(2024, 2, 1))
        return real_write_csv(file_path, products)

    monkeypatch.setattr(reports, "write_csv", write_after_concurrent_upload)

    job = reports.generate_report_file(db, job.id)

    data_rows = read_csv(job.file_path)[1:]
    assert job.total_records == len(data_rows) == 6
