import unittest
import uuid
from unittest.mock import MagicMock

from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from tests.base import FakeS3Storage, JsonFileTestCase, sample_gems

from app.core.deps import get_gem_service, get_s3_storage, get_versioned_cache
from app.main import app
from app.services.gem_cache import InMemoryGemCache, VersionedCache
from app.services.s3_storage import S3Storage, build_image_key


class GemImageUploadTests(JsonFileTestCase):
    def setUp(self):
        super().setUp()
        self.gems = sample_gems()
        self.service = self.memory_service(self.gems)
        self.cache = VersionedCache(InMemoryGemCache())
        self.storage = FakeS3Storage()

        app.dependency_overrides[get_gem_service] = lambda: self.service
        app.dependency_overrides[get_versioned_cache] = lambda: self.cache
        app.dependency_overrides[get_s3_storage] = lambda: self.storage
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        super().tearDown()

    def _init(self, gem_id, **overrides):
        payload = {"file_name": "foto nueva.png", "mime_type": "image/png", "size_bytes": 2048}
        payload.update(overrides)
        return self.client.post(f"/api/gems/{gem_id}/image/init", json=payload)

    def test_upload_flow_replaces_stored_image(self):
        gem = self.gems[0]
        old_url = self.storage.public_url(f"gems/{gem.id}/old.jpg")
        self.service.update_gem(str(gem.id), gem.model_copy(update={"image": old_url}))

        init_resp = self._init(gem.id)
        self.assertEqual(init_resp.status_code, 200)
        body = init_resp.json()
        self.assertEqual(body["method"], "PRESIGNED_PUT")
        self.assertTrue(body["key"].startswith(f"gems/{gem.id}/"))
        self.assertTrue(body["key"].endswith("-foto_nueva.png"))
        self.assertIn(body["key"], body["presigned_url"])

        self.storage.objects[body["key"]] = {"size": 2048, "mime": "image/png"}
        self.client.get(f"/api/gems/{gem.id}")
        done = self.client.post(f"/api/gems/{gem.id}/image/complete", json={"key": body["key"]})
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.json()["image"], self.storage.public_url(body["key"]))
        self.assertEqual(self.storage.deleted, [f"gems/{gem.id}/old.jpg"])
        self.assertEqual(self.client.get(f"/api/gems/{gem.id}").json()["image"], self.storage.public_url(body["key"]))

    def test_init_rejects_bad_files(self):
        gem = self.gems[0]
        self.assertEqual(self._init(gem.id, mime_type="application/pdf").status_code, 400)
        self.assertEqual(self._init(gem.id, size_bytes=0).status_code, 400)
        self.assertEqual(self._init(gem.id, size_bytes=11 * 1024 * 1024).status_code, 400)
        self.assertEqual(self._init(uuid.uuid4()).status_code, 404)

    def test_complete_rejects_foreign_or_missing_objects(self):
        gem = self.gems[1]
        other = self.gems[2]
        resp = self.client.post(f"/api/gems/{gem.id}/image/complete", json={"key": f"gems/{other.id}/x.png"})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(f"/api/gems/{gem.id}/image/complete", json={"key": f"gems/{gem.id}/missing.png"})
        self.assertEqual(resp.status_code, 400)

        key = f"gems/{gem.id}/big.png"
        self.storage.objects[key] = {"size": 50 * 1024 * 1024, "mime": "image/png"}
        resp = self.client.post(f"/api/gems/{gem.id}/image/complete", json={"key": key})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.service.get_gem(str(gem.id)).image, gem.image)

    def test_init_storage_failure_is_502(self):
        self.storage.create_presigned_put_url = MagicMock(
            side_effect=ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        )
        self.assertEqual(self._init(self.gems[0].id).status_code, 502)


class S3StorageHelpersTests(unittest.TestCase):
    def setUp(self):
        self.storage = S3Storage()
        self.storage.client = MagicMock()
        self.storage._bucket_checked = True

    def test_build_image_key_sanitizes_and_maps_extension(self):
        key = build_image_key("abc", "mi piedra?.JPEG", "image/webp")
        self.assertTrue(key.startswith("gems/abc/"))
        self.assertTrue(key.endswith("-mi_piedra_.webp"))

    def test_key_from_url_only_accepts_own_bucket(self):
        url = self.storage.public_url("gems/abc/a.png")
        self.assertEqual(self.storage.key_from_url(url), "gems/abc/a.png")
        self.assertIsNone(self.storage.key_from_url("images/amatista.jpg"))

    def test_delete_image_is_best_effort(self):
        self.storage.client.delete_object.side_effect = ClientError({"Error": {"Code": "403"}}, "DeleteObject")
        with self.assertLogs("app.images", level="WARNING"):
            self.assertFalse(self.storage.delete_image(self.storage.public_url("gems/abc/a.png")))
        self.assertFalse(self.storage.delete_image("images/amatista.jpg"))
