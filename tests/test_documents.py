"""
Tests for candidate document storage.

Tests cover:
- Upload validation (size, type, payload shape)
- Unique stored filenames
- Cleanup of stored bytes when the record cannot be written
- Retrieval, listing, soft delete and statistics
"""

import os
import uuid

import pytest

from nexus_ats.core.exceptions import DocumentServiceError
from nexus_ats.models.candidate import CandidateDocument
from nexus_ats.services.candidate_service import CandidateService
from nexus_ats.services.document_service import DocumentService, generate_unique_filename

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def file_payload(content=b"%PDF-1.4 resume", name="My Resume.pdf", mime_type=PDF_MIME):
    return {
        "original_name": name,
        "mime_type": mime_type,
        "size": len(content),
        "buffer": content,
    }


def stored_files(storage):
    return os.listdir(storage.base_dir)


class TestFilenameGeneration:
    def test_filename_layout(self):
        candidate_id = str(uuid.uuid4())

        filename = generate_unique_filename("My Resume (final).pdf", candidate_id)

        assert filename.startswith(f"{candidate_id}_")
        assert filename.endswith("_My_Resume__final_.pdf")

    def test_filenames_are_unique(self):
        candidate_id = str(uuid.uuid4())

        names = {generate_unique_filename("resume.pdf", candidate_id) for _ in range(50)}

        assert len(names) == 50

    def test_directories_are_stripped(self):
        filename = generate_unique_filename("../../etc/passwd.pdf", "abc")

        assert "/" not in filename
        assert filename.endswith("_passwd.pdf")


class TestDocumentUpload:
    """Tests for DocumentService.upload_document"""

    def test_upload_success(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)

        document = service.upload_document(grace["id"], file_payload(), "resume", uploaded_by="recruiter-1")

        assert document["original_name"] == "My Resume.pdf"
        assert document["document_type"] == "resume"
        assert document["uploaded_by"] == "recruiter-1"
        assert document["is_active"] is True
        assert document["filename"].startswith(grace["id"])
        assert storage.read(document["file_path"]) == b"%PDF-1.4 resume"

        candidate = CandidateService(db_session).get_candidate_by_id(grace["id"])
        assert [d["id"] for d in candidate["documents"]] == [document["id"]]

    def test_same_file_twice_gets_two_records(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)

        first = service.upload_document(grace["id"], file_payload())
        second = service.upload_document(grace["id"], file_payload())

        assert first["filename"] != second["filename"]
        assert len(stored_files(storage)) == 2

    def test_docx_is_accepted(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        document = DocumentService(db_session, storage).upload_document(
            grace["id"], file_payload(b"PK\x03\x04", "cv.docx", DOCX_MIME), "cover_letter"
        )

        assert document["mime_type"] == DOCX_MIME

    def test_configured_type_list_applies_to_stored_record(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage, allowed_mime_types=["text/plain"])

        document = service.upload_document(grace["id"], file_payload(b"plain cv", "cv.txt", "text/plain"))

        assert document["mime_type"] == "text/plain"
        assert len(stored_files(storage)) == 1

    def test_file_too_large(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage, max_file_size=8)

        with pytest.raises(DocumentServiceError) as exc_info:
            service.upload_document(grace["id"], file_payload(b"123456789"))

        assert exc_info.value.code == "FILE_TOO_LARGE"
        assert exc_info.value.status_code == 400
        assert stored_files(storage) == []

    def test_invalid_file_type(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).upload_document(
                grace["id"], file_payload(b"\x89PNG", "photo.png", "image/png")
            )

        assert exc_info.value.code == "INVALID_FILE_TYPE"

    def test_invalid_document_type(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).upload_document(grace["id"], file_payload(), "selfie")

        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_size_mismatch(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        payload = file_payload()
        payload["size"] = 999

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).upload_document(grace["id"], payload)

        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_missing_candidate(self, db_session, storage):
        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).upload_document(str(uuid.uuid4()), file_payload())

        assert exc_info.value.code == "CANDIDATE_NOT_FOUND"
        assert exc_info.value.status_code == 404
        assert stored_files(storage) == []

    def test_bytes_removed_when_record_fails(self, db_session, storage, make_candidate, monkeypatch):
        """Candidate disappears between the byte write and the record write"""
        grace = make_candidate("Grace", "Hopper")
        monkeypatch.setattr("nexus_ats.crud.candidate.touch", lambda *args, **kwargs: 0)

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).upload_document(grace["id"], file_payload())

        assert exc_info.value.code == "CANDIDATE_NOT_FOUND"
        assert stored_files(storage) == []
        assert db_session.query(CandidateDocument).count() == 0


class TestDocumentRetrieval:
    """Tests for get, list, delete and stats"""

    def test_get_document(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)
        uploaded = service.upload_document(grace["id"], file_payload())

        result = service.get_document(grace["id"], uploaded["id"])

        assert result["buffer"] == b"%PDF-1.4 resume"
        assert result["metadata"]["id"] == uploaded["id"]

    def test_record_without_bytes(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)
        uploaded = service.upload_document(grace["id"], file_payload())
        os.remove(uploaded["file_path"])

        with pytest.raises(DocumentServiceError) as exc_info:
            service.get_document(grace["id"], uploaded["id"])

        assert exc_info.value.code == "FILE_NOT_FOUND"
        assert exc_info.value.status_code == 404

    def test_unknown_document(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).get_document(grace["id"], str(uuid.uuid4()))

        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    def test_malformed_ids(self, db_session, storage):
        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).get_document("abc", "def")

        assert exc_info.value.code == "INVALID_ID"

    def test_soft_delete_keeps_bytes(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)
        uploaded = service.upload_document(grace["id"], file_payload())

        assert service.delete_document(grace["id"], uploaded["id"], deleted_by="recruiter-1") is True

        assert service.list_documents(grace["id"]) == []
        assert storage.exists(uploaded["file_path"])
        with pytest.raises(DocumentServiceError) as exc_info:
            service.get_document(grace["id"], uploaded["id"])
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

        row = db_session.get(CandidateDocument, uploaded["id"])
        assert row.is_active is False
        assert row.deleted_by == "recruiter-1"

    def test_documents_of_deleted_candidate(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        DocumentService(db_session, storage).upload_document(grace["id"], file_payload())
        CandidateService(db_session).delete_candidate(grace["id"])

        with pytest.raises(DocumentServiceError) as exc_info:
            DocumentService(db_session, storage).list_documents(grace["id"])

        assert exc_info.value.code == "CANDIDATE_NOT_FOUND"

    def test_document_stats(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)
        resume = service.upload_document(grace["id"], file_payload(b"resume"), "resume")
        service.upload_document(grace["id"], file_payload(b"letter!", "letter.pdf"), "cover_letter")
        deleted = service.upload_document(grace["id"], file_payload(b"old"), "resume")
        service.delete_document(grace["id"], deleted["id"])

        stats = service.get_document_stats(grace["id"])

        assert stats["total_documents"] == 2
        assert stats["total_size"] == len(b"resume") + len(b"letter!")
        assert stats["document_types"] == {"resume": 1, "cover_letter": 1}
        assert stats["oldest_document"]["id"] == resume["id"]

    def test_stats_without_documents(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        stats = DocumentService(db_session, storage).get_document_stats(grace["id"])

        assert stats["total_documents"] == 0
        assert stats["oldest_document"] is None
        assert stats["newest_document"] is None

    def test_upload_list_then_soft_delete(self, db_session, storage, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = DocumentService(db_session, storage)
        content = b"%PDF" + b"\x00" * 2044

        uploaded = service.upload_document(grace["id"], file_payload(content, "resume.pdf"), "resume")

        listed = service.list_documents(grace["id"])
        assert [(d["size"], d["mime_type"], d["original_name"]) for d in listed] == [
            (2048, "application/pdf", "resume.pdf")
        ]

        service.delete_document(grace["id"], uploaded["id"])

        assert service.list_documents(grace["id"]) == []
        rows = db_session.query(CandidateDocument).filter_by(candidate_id=grace["id"]).all()
        assert len(rows) == 1
        assert rows[0].is_active is False
