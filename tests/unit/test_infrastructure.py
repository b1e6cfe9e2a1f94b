import json

import httpx
import pytest
from pydantic import ValidationError

from studypotion_service.domain.exceptions import StorageError, UnauthenticatedError, WebhookError
from studypotion_service.infrastructure.auth import SupabaseAuthGateway
from studypotion_service.infrastructure.storage import LocalFileStorage
from studypotion_service.infrastructure.vector_repository import to_vector_literal
from studypotion_service.infrastructure.webhook import HttpWebhookNotifier
from studypotion_service.settings import Settings


class TestLocalFileStorage:
    @pytest.mark.asyncio
    async def test_save_read_delete(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        path = "user-1/proj-1/1700000000000-tema.pdf"

        assert await storage.save(path, b"%PDF") == path
        assert await storage.exists(path)
        assert await storage.read(path) == b"%PDF"

        await storage.delete([path])
        assert not await storage.exists(path)

    @pytest.mark.asyncio
    async def test_deleting_missing_blob_is_a_no_op(self, tmp_path):
        await LocalFileStorage(str(tmp_path)).delete(["user-1/proj-1/missing.pdf"])

    @pytest.mark.asyncio
    async def test_reading_missing_blob_raises(self, tmp_path):
        with pytest.raises(StorageError):
            await LocalFileStorage(str(tmp_path)).read("user-1/missing.pdf")

    @pytest.mark.asyncio
    async def test_paths_cannot_escape_the_root(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path / "blobs"))

        with pytest.raises(StorageError):
            await storage.save("../outside.txt", b"x")
        assert not (tmp_path / "outside.txt").exists()


class TestHttpWebhookNotifier:
    @pytest.mark.asyncio
    async def test_posts_file_and_fields_as_multipart(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["content_type"] = request.headers["content-type"]
            captured["body"] = request.read()
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = HttpWebhookNotifier(client, "https://hooks.example.com/upload")
            await notifier.notify_file_uploaded(
                document_name="tema1.pdf",
                content_type="application/pdf",
                content=b"%PDF-1.4",
                fields={"projectId": "proj-1", "userId": "user-123"},
            )

        assert captured["url"] == "https://hooks.example.com/upload"
        assert captured["content_type"].startswith("multipart/form-data")
        assert b'name="file"; filename="tema1.pdf"' in captured["body"]
        assert b"%PDF-1.4" in captured["body"]
        assert b'name="projectId"' in captured["body"]
        assert b"proj-1" in captured["body"]

    @pytest.mark.asyncio
    async def test_error_status_raises_webhook_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502))

        async with httpx.AsyncClient(transport=transport) as client:
            notifier = HttpWebhookNotifier(client, "https://hooks.example.com/upload")
            with pytest.raises(WebhookError) as exc_info:
                await notifier.notify_file_uploaded("a.pdf", "application/pdf", b"x", {})

        assert "502" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_transport_error_raises_webhook_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = HttpWebhookNotifier(client, "https://hooks.example.com/upload")
            with pytest.raises(WebhookError):
                await notifier.notify_file_uploaded("a.pdf", "application/pdf", b"x", {})

    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = HttpWebhookNotifier(client, "")
            assert notifier.enabled is False
            await notifier.notify_file_uploaded("a.pdf", "application/pdf", b"x", {})


class TestSupabaseAuthGateway:
    @pytest.mark.asyncio
    async def test_valid_token_resolves_user(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["apikey"] = request.headers["apikey"]
            seen["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={"id": "user-123", "email": "ana@example.com"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = SupabaseAuthGateway(client, "https://auth.example.com/", api_key="anon-key")
            user = await gateway.get_user("token-1")

        assert user.id == "user-123"
        assert user.email == "ana@example.com"
        assert seen == {
            "url": "https://auth.example.com/auth/v1/user",
            "apikey": "anon-key",
            "authorization": "Bearer token-1",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(401, json={"message": "invalid JWT"}),
            httpx.Response(200, content=b"not json"),
            httpx.Response(200, json={"email": "sin-id@example.com"}),
        ],
    )
    async def test_rejected_or_malformed_answers_are_unauthenticated(self, response):
        transport = httpx.MockTransport(lambda request: response)

        async with httpx.AsyncClient(transport=transport) as client:
            gateway = SupabaseAuthGateway(client, "https://auth.example.com", api_key="anon-key")
            with pytest.raises(UnauthenticatedError):
                await gateway.get_user("token-1")

    @pytest.mark.asyncio
    async def test_unreachable_provider_is_unauthenticated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = SupabaseAuthGateway(client, "https://auth.example.com", api_key="anon-key")
            with pytest.raises(UnauthenticatedError):
                await gateway.get_user("token-1")


def test_vector_literal_matches_pgvector_text_format():
    assert to_vector_literal([0.5, -1.0, 2.0]) == "[0.5,-1.0,2.0]"


def test_metadata_column_uses_camel_case_json():
    from datetime import datetime, timezone

    from studypotion_service.domain.processing import build_chunk_metadata

    metadata = build_chunk_metadata(
        "tema.pdf", 0, 1, "proj-1", "user-123", "application/pdf", datetime.now(timezone.utc)
    )
    payload = json.loads(json.dumps(metadata.model_dump(mode="json", by_alias=True)))

    assert {"chunkIndex", "totalChunks", "projectId", "userId", "blobType", "uploadedAt"} <= payload.keys()


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.chunk_size_chars == 1000
        assert settings.chunk_overlap_chars == 200
        assert settings.embedding_model == "text-embedding-3-small"
        assert settings.max_document_size_bytes == 50 * 1024 * 1024
        assert settings.webhook_url is None

    def test_overlap_must_be_smaller_than_chunk_size(self):
        with pytest.raises(ValidationError):
            Settings(chunk_size_chars=500, chunk_overlap_chars=500)
