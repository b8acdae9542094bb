"""
Tests for material upload, processing and document Q&A.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from studymind.models.models import AiUsageLog, Material, MaterialChunk
from studymind.services.ai_gateway import GatewayCreditsError, GatewayRateLimitError, GatewayServiceError
from studymind.services.material_processor import EXTRACTION_FAILED_TEXT, build_query_context
from studymind.services.storage import MaterialStorage, StoragePathError, safe_file_name
from tests.conftest import TEST_USER_ID
from tests.mocks import MOCK_EXTRACTED_TEXT, FakeGateway


class TestProcessMaterial:

    @pytest.mark.integration
    def test_plain_text_is_chunked(self, client: TestClient, fake_gateway: FakeGateway, db: Session, text_material: Material):
        response = client.post("/process-material", json={"materialId": text_material.id})

        assert response.status_code == 200
        assert response.json() == {"success": True, "chunks": 3}
        # Plain text never goes through the extraction model
        assert fake_gateway.calls == []

        db.expire_all()
        material = db.query(Material).filter(Material.id == text_material.id).first()
        assert material.processing_status == "ready"
        assert material.extracted_text.startswith("a" * 800)

        chunks = (
            db.query(MaterialChunk)
            .filter(MaterialChunk.material_id == material.id)
            .order_by(MaterialChunk.chunk_index)
            .all()
        )
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert [len(c.chunk_text) for c in chunks] == [800, 800, 900]

    @pytest.mark.integration
    def test_binary_document_uses_extraction_model(self, client: TestClient, fake_gateway: FakeGateway,
                                                    db: Session, storage: MaterialStorage):
        storage.upload(f"{TEST_USER_ID}/slides.pdf", b"%PDF-1.4 fake")
        material = Material(user_id=TEST_USER_ID, file_name="slides.pdf", storage_path=f"{TEST_USER_ID}/slides.pdf",
                            content_type="application/pdf")
        db.add(material)
        db.commit()

        response = client.post("/process-material", json={"materialId": material.id})

        assert response.status_code == 200
        assert response.json()["chunks"] == 1
        assert fake_gateway.calls[0]["method"] == "extract_document_text"
        assert fake_gateway.calls[0]["content_type"] == "application/pdf"

        db.expire_all()
        assert db.query(Material).filter(Material.id == material.id).first().extracted_text == MOCK_EXTRACTED_TEXT

    @pytest.mark.integration
    def test_extraction_failure_stores_placeholder(self, client: TestClient, fake_gateway: FakeGateway,
                                                   db: Session, storage: MaterialStorage):
        fake_gateway.extract_error = GatewayCreditsError()
        storage.upload("u/scan.png", b"\x89PNG")
        material = Material(user_id="u", file_name="scan.png", storage_path="u/scan.png", content_type="image/png")
        db.add(material)
        db.commit()

        response = client.post("/process-material", json={"materialId": material.id})

        assert response.status_code == 200
        db.expire_all()
        stored = db.query(Material).filter(Material.id == material.id).first()
        assert stored.extracted_text == EXTRACTION_FAILED_TEXT
        assert stored.processing_status == "ready"

    @pytest.mark.api
    def test_material_id_required(self, client: TestClient):
        response = client.post("/process-material", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "materialId is required"}

    @pytest.mark.api
    def test_unknown_material(self, client: TestClient):
        response = client.post("/process-material", json={"materialId": "nope"})
        assert response.status_code == 404
        assert response.json() == {"error": "Material not found"}

    @pytest.mark.api
    def test_missing_file_marks_error(self, client: TestClient, db: Session):
        material = Material(user_id="u", file_name="gone.txt", storage_path="u/gone.txt", content_type="text/plain")
        db.add(material)
        db.commit()

        response = client.post("/process-material", json={"materialId": material.id})

        assert response.status_code == 500
        assert response.json() == {"error": "Could not download file"}
        db.expire_all()
        assert db.query(Material).filter(Material.id == material.id).first().processing_status == "error"

    @pytest.mark.integration
    def test_extracted_text_is_capped(self, db: Session, storage: MaterialStorage, client: TestClient):
        storage.upload("u/big.md", ("x" * 900 + "\n\n").encode() * 60)
        material = Material(user_id="u", file_name="big.md", storage_path="u/big.md")
        db.add(material)
        db.commit()

        client.post("/process-material", json={"materialId": material.id})

        db.expire_all()
        stored = db.query(Material).filter(Material.id == material.id).first()
        assert len(stored.extracted_text) == 50000
        assert db.query(MaterialChunk).filter(MaterialChunk.material_id == material.id).count() == 60


class TestQueryMaterial:

    @pytest.mark.api
    def test_streams_answer_with_document_context(self, client: TestClient, fake_gateway: FakeGateway,
                                                  ready_material: Material):
        response = client.post("/query-material", json={"materialId": ready_material.id, "question": "What makes ATP?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.content == b"".join(fake_gateway.stream_chunks)

        call = fake_gateway.calls[0]
        assert call["user_content"] == "What makes ATP?"
        assert '"biology.pdf"' in call["system_prompt"]
        assert "Cells are the basic unit of life.\n\nMitochondria make ATP." in call["system_prompt"]

    @pytest.mark.api
    @pytest.mark.parametrize("body", [{}, {"materialId": "m"}, {"question": "Why?"}, {"materialId": "m", "question": ""}])
    def test_fields_required(self, client: TestClient, body):
        response = client.post("/query-material", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "materialId and question are required"}

    @pytest.mark.api
    def test_unprocessed_material(self, client: TestClient, text_material: Material):
        response = client.post("/query-material", json={"materialId": text_material.id, "question": "Why?"})
        assert response.status_code == 400
        assert response.json() == {"error": "Material has no extracted text yet"}

    @pytest.mark.api
    def test_unknown_material(self, client: TestClient):
        response = client.post("/query-material", json={"materialId": "nope", "question": "Why?"})
        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.parametrize("error,status", [
        (GatewayRateLimitError(), 429),
        (GatewayCreditsError(), 402),
        (GatewayServiceError(), 500),
    ])
    def test_gateway_errors(self, client: TestClient, fake_gateway: FakeGateway, ready_material: Material, error, status):
        fake_gateway.stream_error = error

        response = client.post("/query-material", json={"materialId": ready_material.id, "question": "Why?"})

        assert response.status_code == status
        assert response.json() == {"error": error.message}

    @pytest.mark.integration
    def test_usage_logged_for_signed_in_user(self, test_app, auth_headers, ready_material: Material, db: Session):
        with TestClient(test_app) as client:
            client.post("/query-material", json={"materialId": ready_material.id, "question": "Why?"}, headers=auth_headers)

        usage = db.query(AiUsageLog).all()
        assert [(u.user_id, u.feature_type) for u in usage] == [(TEST_USER_ID, "material")]

    @pytest.mark.unit
    def test_context_falls_back_to_extracted_text(self, db: Session):
        material = Material(user_id="u", file_name="n.txt", storage_path="u/n.txt", extracted_text="y" * 9000)
        db.add(material)
        db.commit()

        assert build_query_context(db, material) == "y" * 8000

    @pytest.mark.unit
    def test_context_uses_first_ten_chunks(self, db: Session):
        material = Material(user_id="u", file_name="n.txt", storage_path="u/n.txt", extracted_text="text")
        db.add(material)
        db.flush()
        db.add_all([MaterialChunk(material_id=material.id, chunk_index=i, chunk_text=f"chunk-{i}") for i in range(12)])
        db.commit()

        context = build_query_context(db, material)

        assert context.split("\n\n") == [f"chunk-{i}" for i in range(10)]


class TestMaterialUpload:

    @pytest.mark.api
    def test_upload_and_list(self, client: TestClient, auth_headers, storage: MaterialStorage):
        response = client.post(
            "/materials",
            files={"file": ("My Notes.txt", b"Paragraph one.\n\nParagraph two.", "text/plain")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        material = response.json()
        assert material["file_name"] == "My Notes.txt"
        assert material["processing_status"] == "processing"
        assert material["storage_path"].startswith(f"{TEST_USER_ID}/")
        assert material["storage_path"].endswith("_My_Notes.txt")
        assert storage.download(material["storage_path"]) == b"Paragraph one.\n\nParagraph two."

        listed = client.get("/materials", headers=auth_headers).json()["materials"]
        assert [m["id"] for m in listed] == [material["id"]]

    @pytest.mark.integration
    def test_upload_then_process_then_query(self, client: TestClient, auth_headers):
        uploaded = client.post(
            "/materials",
            files={"file": ("notes.md", b"Osmosis moves water.\n\nDiffusion moves solutes.", "text/markdown")},
            headers=auth_headers,
        ).json()

        processed = client.post("/process-material", json={"materialId": uploaded["id"]})
        assert processed.json() == {"success": True, "chunks": 1}

        answer = client.post("/query-material", json={"materialId": uploaded["id"], "question": "What is osmosis?"})
        assert answer.status_code == 200

    @pytest.mark.api
    def test_upload_requires_auth(self, client: TestClient):
        response = client.post("/materials", files={"file": ("a.txt", b"x", "text/plain")})
        assert response.status_code == 401

    @pytest.mark.api
    def test_empty_file_rejected(self, client: TestClient, auth_headers):
        response = client.post("/materials", files={"file": ("a.txt", b"", "text/plain")}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "File is empty"}


class TestMaterialStorage:

    @pytest.mark.unit
    def test_safe_file_name(self):
        assert safe_file_name("../../etc/passwd") == "passwd"
        assert safe_file_name("Lecture 1 (final).pdf") == "Lecture_1_final_.pdf"
        assert safe_file_name("") == "upload"

    @pytest.mark.unit
    def test_rejects_paths_outside_bucket(self, storage: MaterialStorage):
        with pytest.raises(StoragePathError):
            storage.upload("../escape.txt", b"x")
        assert storage.download("../escape.txt") is None

    @pytest.mark.unit
    def test_missing_object(self, storage: MaterialStorage):
        assert storage.download("nobody/nothing.txt") is None
