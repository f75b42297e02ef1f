"""
Integration tests for the HTTP API.

Tests:
- Response envelope for success and every error kind
- Candidate CRUD over HTTP
- Pipeline, search, documents and job application routes
- Health checks
"""

import uuid

API = "/api/v1"
USER_HEADERS = {"X-User-Id": "recruiter-1"}


def create_candidate(client, **overrides):
    payload = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "skills": ["COBOL", "Python"],
        "location": "Arlington",
        **overrides,
    }
    response = client.post(f"{API}/candidates", json=payload, headers=USER_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestEnvelope:
    """Every response uses {"success": ..., "data" | "error": ...}"""

    def test_success_envelope(self, client):
        candidate = create_candidate(client)

        response = client.get(f"{API}/candidates/{candidate['id']}")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["id"] == candidate["id"]

    def test_validation_error_envelope(self, client):
        response = client.post(f"{API}/candidates", json={"first_name": "Grace", "email": "nope"})

        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        fields = {detail["field"] for detail in body["error"]["details"]}
        assert {"last_name", "email"} <= fields

    def test_not_found_envelope(self, client):
        response = client.get(f"{API}/candidates/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CANDIDATE_NOT_FOUND"

    def test_malformed_id(self, client):
        response = client.get(f"{API}/candidates/not-an-id")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ID"

    def test_malformed_body(self, client):
        candidate = create_candidate(client)

        response = client.put(f"{API}/candidates/{candidate['id']}/stage", json={"notes": "no stage"})

        body = response.json()
        assert response.status_code == 422
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "stage"

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": {"message": "Not Found", "code": "HTTP_ERROR"}}

    def test_error_envelope_is_documented(self, client):
        schema = client.get("/openapi.json").json()

        assert "ErrorResponse" in schema["components"]["schemas"]
        responses = schema["paths"][f"{API}/candidates/{{candidate_id}}"]["get"]["responses"]
        assert responses["404"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert responses["409"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


class TestCandidateRoutes:
    """Candidate CRUD over HTTP"""

    def test_create_records_acting_user(self, client):
        candidate = create_candidate(client, email="  GRACE@Example.com ")

        assert candidate["personal_info"]["email"] == "grace@example.com"
        assert candidate["metadata"]["created_by"] == "recruiter-1"

    def test_create_nested_payload(self, client):
        response = client.post(f"{API}/candidates", json={
            "personal_info": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
            "professional_info": {"skills": ["Mathematics"], "source": "referral"},
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["professional_info"]["source"] == "referral"
        assert data["personal_info"]["phone"] is None

    def test_duplicate_email(self, client):
        create_candidate(client)

        response = client.post(f"{API}/candidates", json={
            "first_name": "Other", "last_name": "Person", "email": "Grace@example.com",
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_EMAIL"

    def test_partial_update(self, client):
        candidate = create_candidate(client)

        response = client.patch(f"{API}/candidates/{candidate['id']}", json={"location": "New York"})

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["personal_info"]["location"] == "New York"
        assert data["professional_info"]["skills"] == ["COBOL", "Python"]

    def test_delete(self, client):
        candidate = create_candidate(client)

        response = client.delete(f"{API}/candidates/{candidate['id']}", headers=USER_HEADERS)
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert client.get(f"{API}/candidates/{candidate['id']}").status_code == 404

    def test_list_with_filters(self, client):
        create_candidate(client)
        create_candidate(client, first_name="Ada", last_name="Lovelace", email="ada@example.com",
                         skills=["Mathematics"], location="London")

        response = client.get(f"{API}/candidates", params={"location": "london", "limit": 5})

        data = response.json()["data"]
        assert [c["personal_info"]["first_name"] for c in data["candidates"]] == ["Ada"]
        assert data["pagination"]["total"] == 1
        assert data["pagination"]["limit"] == 5

    def test_stats(self, client):
        create_candidate(client)

        data = client.get(f"{API}/candidates/stats").json()["data"]

        assert data["active"] == 1
        assert data["by_stage"]["Applied"] == 1

    def test_notes(self, client):
        candidate = create_candidate(client)

        response = client.post(
            f"{API}/candidates/{candidate['id']}/notes",
            json={"content": "Great call", "type": "screening"},
            headers=USER_HEADERS,
        )
        assert response.status_code == 201

        notes = client.get(f"{API}/candidates/{candidate['id']}/notes").json()["data"]
        assert [(n["content"], n["type"]) for n in notes] == [("Great call", "screening")]


class TestPipelineRoutes:
    def test_stage_update_and_history(self, client):
        candidate = create_candidate(client)

        response = client.put(
            f"{API}/candidates/{candidate['id']}/stage",
            json={"stage": "Screening", "notes": "Strong resume"},
            headers=USER_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["data"]["pipeline_info"]["current_stage"] == "Screening"

        history = client.get(f"{API}/candidates/{candidate['id']}/stage/history").json()["data"]
        assert [entry["stage"] for entry in history] == ["Applied", "Screening"]
        assert history[-1]["changed_by"] == "recruiter-1"

    def test_invalid_transition(self, client):
        candidate = create_candidate(client)

        response = client.put(f"{API}/candidates/{candidate['id']}/stage", json={"stage": "Hired"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_board_and_stats(self, client):
        create_candidate(client)

        board = client.get(f"{API}/candidates/pipeline").json()["data"]
        stats = client.get(f"{API}/candidates/pipeline/stats").json()["data"]

        assert board["Applied"]["count"] == 1
        assert set(board) == {"Applied", "Screening", "Interview", "Offer", "Hired"}
        assert stats["total_candidates"] == 1

    def test_next_stages(self, client):
        response = client.get(f"{API}/candidates/pipeline/stages/Screening/next")

        assert response.json()["data"] == ["Interview", "Applied"]

    def test_bulk_update(self, client):
        candidate = create_candidate(client)

        response = client.post(f"{API}/candidates/pipeline/bulk-stage", json={"updates": [
            {"candidate_id": candidate["id"], "new_stage": "Screening"},
            {"candidate_id": str(uuid.uuid4()), "new_stage": "Screening"},
        ]})

        data = response.json()["data"]
        assert response.status_code == 200
        assert len(data["successful"]) == 1
        assert data["failed"][0]["code"] == "CANDIDATE_NOT_FOUND"


class TestSearchRoutes:
    def test_search(self, client):
        create_candidate(client)
        create_candidate(client, first_name="Ada", last_name="Lovelace", email="ada@example.com",
                         skills=["Mathematics"], location="London")

        data = client.get(f"{API}/candidates/search", params={"q": "cobol"}).json()["data"]

        assert [r["personal_info"]["first_name"] for r in data["results"]] == ["Grace"]
        assert data["results"][0]["search_score"] == 3
        assert data["query"] == "cobol"
        assert data["pagination"]["total"] == 1

    def test_search_with_skill_filters(self, client):
        create_candidate(client)

        data = client.get(
            f"{API}/candidates/search", params=[("skills", "rust"), ("skills", "pyth")]
        ).json()["data"]

        assert data["pagination"]["total"] == 1
        assert data["filters"] == {"skills": ["rust", "pyth"]}

    def test_suggestions(self, client):
        create_candidate(client)

        data = client.get(f"{API}/candidates/search/suggestions", params={"q": "co"}).json()["data"]

        assert data == ["COBOL"]

    def test_search_stats(self, client):
        create_candidate(client)

        data = client.get(f"{API}/candidates/search/stats").json()["data"]

        assert data["total_candidates"] == 1
        assert data["stage_distribution"] == {"Applied": 1}


class TestDocumentRoutes:
    def test_upload_download_delete(self, client, storage):
        candidate = create_candidate(client)
        base = f"{API}/candidates/{candidate['id']}/documents"

        response = client.post(
            base,
            files={"file": ("resume.pdf", b"%PDF-1.4 grace", "application/pdf")},
            data={"document_type": "resume"},
            headers=USER_HEADERS,
        )
        assert response.status_code == 201, response.text
        document = response.json()["data"]
        assert document["uploaded_by"] == "recruiter-1"

        download = client.get(f"{base}/{document['id']}")
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 grace"
        assert download.headers["content-type"] == "application/pdf"
        assert "resume.pdf" in download.headers["content-disposition"]

        listing = client.get(base).json()["data"]
        assert [d["id"] for d in listing] == [document["id"]]

        stats = client.get(f"{base}/stats").json()["data"]
        assert stats["total_documents"] == 1

        assert client.delete(f"{base}/{document['id']}").status_code == 200
        assert client.get(base).json()["data"] == []

    def test_rejected_file_type(self, client):
        candidate = create_candidate(client)

        response = client.post(
            f"{API}/candidates/{candidate['id']}/documents",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"


class TestJobApplicationRoutes:
    def test_link_and_list_job_candidates(self, client):
        candidate = create_candidate(client)

        response = client.post(f"{API}/candidates/{candidate['id']}/applications", json={"job_id": "job-42"})
        assert response.status_code == 201
        application = response.json()["data"]

        duplicate = client.post(f"{API}/candidates/{candidate['id']}/applications", json={"job_id": "job-42"})
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "DUPLICATE_APPLICATION"

        patched = client.patch(
            f"{API}/candidates/{candidate['id']}/applications/{application['id']}",
            json={"status": "rejected"},
        )
        assert patched.json()["data"]["status"] == "rejected"

        job_candidates = client.get(f"{API}/jobs/job-42/candidates").json()["data"]
        assert [c["id"] for c in job_candidates] == [candidate["id"]]

        stats = client.get(f"{API}/applications/stats").json()["data"]
        assert stats["total_applications"] == 1

        unlinked = client.delete(f"{API}/candidates/{candidate['id']}/applications/{application['id']}")
        assert unlinked.status_code == 200
        assert client.get(f"{API}/candidates/{candidate['id']}/applications").json()["data"] == []

    def test_convert_applicant(self, client):
        response = client.post(f"{API}/jobs/job-42/candidates/convert", json={
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["created"] is True
        assert data["application"]["job_id"] == "job-42"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["candidates"]["status"] == "healthy"
        assert body["checks"]["storage"]["backend"] == "LocalStorage"

    def test_detailed_health_with_unwritable_storage(self, client, storage, monkeypatch):
        monkeypatch.setattr(storage, "health_check", lambda: False)

        response = client.get("/health/detailed")

        assert response.status_code == 503
        assert response.json()["checks"]["storage"]["status"] == "unhealthy"
