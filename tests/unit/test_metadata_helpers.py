import uuid

from starlette.datastructures import FormData

from app.schemas.document import DocumentUpdate
from app.services.documents import merge_metadata
from app.services.storage import build_storage_path, sanitize_file_name
from app.services.upload import file_extension, parse_custom_metadata, parse_duration, parse_media_usage, parse_tags


def test_sanitize_file_name():
    assert sanitize_file_name("Q3 report (final).pdf") == "Q3_report_final.pdf"
    assert sanitize_file_name("отчёт.pdf") == "pdf"
    assert sanitize_file_name("???") == "file"


def test_build_storage_path():
    document_id = uuid.uuid4()
    assert build_storage_path(document_id, "my file.docx") == f"uploads/{document_id}/my_file.docx"


def test_file_extension():
    assert file_extension("photo.JPEG") == "jpeg"
    assert file_extension("archive.tar.gz") == "gz"
    assert file_extension("README") == ""


def test_parse_tags():
    assert parse_tags('["a", " b ", ""]') == ["a", "b"]
    assert parse_tags("finance, q3 ,") == ["finance", "q3"]
    assert parse_tags(None) == []


def test_parse_custom_metadata_ignores_invalid_json():
    assert parse_custom_metadata('{"project": "apollo"}') == {"project": "apollo"}
    assert parse_custom_metadata("{not json") == {}
    assert parse_custom_metadata("[1, 2]") == {}


def test_parse_duration():
    assert parse_duration("90.7") == 90
    assert parse_duration("abc") is None
    assert parse_duration("") is None
    assert parse_duration("inf") is None
    assert parse_duration("-inf") is None
    assert parse_duration("nan") is None
    assert parse_duration("1e999") is None


def test_parse_media_usage():
    assert parse_media_usage(FormData([("mediaType", "audio"), ("durationSeconds", "61.9")])) == ("audio", 61)
    assert parse_media_usage(FormData([("mediaType", "video"), ("durationSeconds", "inf")])) is None
    assert parse_media_usage(FormData([("mediaType", "image"), ("durationSeconds", "10")])) is None
    assert parse_media_usage(FormData([("mediaType", "audio"), ("durationSeconds", "0")])) is None
    assert parse_media_usage(FormData()) is None


def test_merge_metadata_sets_and_removes_fields():
    existing = {"originalName": "a.pdf", "description": "old", "tags": ["x"], "owner": "ops"}
    update = DocumentUpdate(
        id=uuid.uuid4(),
        description="",
        tags="single",
        category="reports",
        customMetadata={"owner": None, "project": "apollo"},
    )

    merged = merge_metadata(existing, update)

    assert merged == {
        "originalName": "a.pdf",
        "tags": ["single"],
        "category": "reports",
        "project": "apollo",
    }
    # stored metadata is not mutated in place
    assert existing["description"] == "old"


def test_merge_metadata_leaves_unsent_fields():
    existing = {"description": "keep", "category": "keep"}
    update = DocumentUpdate(id=uuid.uuid4(), tags=[])

    assert merge_metadata(existing, update) == {"description": "keep", "category": "keep"}
