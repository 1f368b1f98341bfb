import asyncio
import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from venturelink.core import database
from venturelink.core.exceptions import (
    AuthenticationError,
    IdentityMismatchError,
    RemoteOperationError,
    RemoteTimeoutError,
    ResourceNotFoundError,
    ValidationError,
    VentureLinkBaseException,
    create_http_exception,
)
from venturelink.core.logging_config import JSONFormatter, setup_logging
from venturelink.schemas.affiliation import AffiliationDraft, CompanyAffiliation
from venturelink.utils.timeout_handler import TimeoutConfig, run_with_timeout


@pytest.mark.parametrize(
    "error,status_code",
    [
        (ValidationError("bad", field="title"), 400),
        (AuthenticationError(), 401),
        (ResourceNotFoundError("Affiliation", "a1"), 404),
        (IdentityMismatchError("u1", "u2"), 409),
        (RemoteOperationError("boom", operation="insert"), 502),
        (RemoteTimeoutError("insert", 10), 504),
        (VentureLinkBaseException("unexpected"), 500),
    ],
)
def test_create_http_exception_status_codes(error, status_code):
    http_exc = create_http_exception(error)

    assert http_exc.status_code == status_code
    assert http_exc.detail["code"] == error.code


def test_validation_http_exception_carries_field():
    http_exc = create_http_exception(ValidationError("Title is required", field="title"))

    assert http_exc.detail["field"] == "title"


@pytest.mark.asyncio
async def test_run_with_timeout_passes_result_through():
    async def quick():
        return 42

    assert await run_with_timeout(quick(), "quick", 1) == 42


@pytest.mark.asyncio
async def test_run_with_timeout_raises_remote_timeout():
    with pytest.raises(RemoteTimeoutError) as exc_info:
        await run_with_timeout(asyncio.sleep(1), "slow_call", 0.01)

    assert exc_info.value.operation == "slow_call"
    assert exc_info.value.code == "TIMEOUT_ERROR"


def test_timeout_config_defaults():
    assert TimeoutConfig.get_timeout("Supabase") == 10
    assert TimeoutConfig.get_timeout("unknown") == TimeoutConfig.DEFAULT_TIMEOUT


def test_affiliation_from_record_defaults():
    affiliation = CompanyAffiliation.from_record({
        "id": 7,
        "company_name": "Acme",
        "investor_title_in_company": "CEO",
        "website_url": None,
        "created_at": "2024-03-01T12:00:00+00:00",
    })

    assert affiliation.id == "7"
    assert affiliation.website_url == ""
    assert affiliation.date_added == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert affiliation.to_record()["investor_title_in_company"] == "CEO"


def test_draft_records_trim_and_null_empty_website():
    draft = AffiliationDraft(company_name="  Acme ", title=" CEO", website_url="  ")

    insert = draft.to_insert_record("u1")
    update = draft.to_update_record()

    assert insert["company_name"] == "Acme"
    assert insert["investor_id"] == "u1"
    assert insert["website_url"] is None
    assert update["investor_title_in_company"] == "CEO"
    assert "updated_at" in update and "investor_id" not in update


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging_writes_rotating_files(tmp_path, restore_root_logger):
    setup_logging(level="DEBUG", log_dir=tmp_path, enable_console=False)

    logging.getLogger("venturelink.test").error("roster load failed")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "roster load failed" in (tmp_path / "venturelink.log").read_text()
    assert "roster load failed" in (tmp_path / "venturelink_errors.log").read_text()


def test_json_formatter_includes_user_id():
    record = logging.LogRecord("venturelink", logging.INFO, __file__, 1, "loaded %d", (3,), None)
    record.user_id = "u1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "loaded 3"
    assert payload["user_id"] == "u1"
    assert payload["level"] == "INFO"


@pytest.mark.asyncio
async def test_supabase_service_without_config_returns_none():
    service = database.SupabaseService(url=None, key=None, retry_interval=60)

    with patch.object(database.settings, "SUPABASE_URL", None):
        assert await service.get_client() is None


@pytest.mark.asyncio
async def test_supabase_service_retries_after_interval():
    created = object()
    factory = AsyncMock(side_effect=[Exception("dns failure"), created])
    service = database.SupabaseService(url="https://example.supabase.co", key="anon", retry_interval=0)

    with patch.object(database, "acreate_client", factory):
        assert await service.get_client() is None
        assert await service.get_client() is created
        assert await service.get_client() is created

    assert factory.await_count == 2
