import os
import json
import tempfile
import unittest
from pathlib import Path

from botocore.exceptions import ClientError
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("S3_ENDPOINT", "http://localhost:9000")
os.environ.setdefault("S3_PUBLIC_URL", "http://localhost:9000")
os.environ.setdefault("S3_ACCESS_KEY", "test")
os.environ.setdefault("S3_SECRET_KEY", "test")
os.environ.setdefault("S3_BUCKET", "test")

from app.models.gem import GemRow
from app.schemas.gems import Gem
from app.services.gem_data_source import JsonGemDataSource
from app.services.memory_gem_service import InMemoryGemService
from app.services.sql_gem_service import SqlGemService

SAMPLE_GEMS = [
    {
        "name": "Amatista",
        "magical_description": "Piedra de la calma y la intuición.",
        "category": "Cuarzo",
        "color": "Violeta",
        "chemical_formula": "SiO2",
    },
    {
        "name": "Cuarzo Rosa",
        "magical_description": "La piedra del amor incondicional.",
        "category": "Cuarzo",
        "color": "Rosa",
        "chemical_formula": "SiO2",
    },
    {
        "name": "Ojo de Tigre",
        "magical_description": "Amuleto de coraje y protección.",
        "category": "Cuarzo",
        "color": "Marrón",
        "chemical_formula": "SiO2",
    },
    {
        "name": "Obsidiana",
        "magical_description": "Vidrio volcánico que absorbe energías negativas.",
        "category": "Vidrio volcánico",
        "color": "Negro",
        "chemical_formula": "SiO2 + MgO",
    },
    {
        "name": "Turquesa",
        "magical_description": "Piedra sagrada de sanación y comunicación.",
        "category": "Fosfato",
        "color": "Azul",
        "chemical_formula": "CuAl6(PO4)4(OH)8",
    },
    {
        "name": "Lapislázuli",
        "magical_description": "Piedra de la sabiduría y la verdad.",
        "category": "Roca metamórfica",
        "color": "Azul",
        "chemical_formula": "(Na,Ca)8(AlSiO4)6",
    },
]


def sample_gems() -> list[Gem]:
    return [Gem(image=f"images/{index}.jpg", **item) for index, item in enumerate(SAMPLE_GEMS)]


def numbered_gems(count: int) -> list[Gem]:
    return [
        Gem(
            name=f"Gema {index:02d}",
            magical_description=f"Descripción {index:02d}",
            category="Cuarzo" if index % 2 else "Fosfato",
            color="Azul" if index % 3 else "Rojo",
            chemical_formula="SiO2",
        )
        for index in range(1, count + 1)
    ]


class FakeS3Storage:
    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.public_base = "http://localhost:9000"
        self.bucket = "test"

    def create_presigned_put_url(self, key: str, mime_type: str, expires_sec: int = 900) -> str:
        return f"https://s3.local/{key}?expires={expires_sec}"

    def head_object(self, key: str) -> dict:
        obj = self.objects.get(key)
        if obj is None:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": obj["size"], "ContentType": obj["mime"]}

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{self.bucket}/{key}"

    def delete_image(self, url: str) -> bool:
        prefix = f"{self.public_base}/{self.bucket}/"
        if not str(url or "").startswith(prefix):
            return False
        self.deleted.append(url[len(prefix):])
        return True


class JsonFileTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_file = Path(self._tmp.name) / "gems.json"

    def tearDown(self):
        self._tmp.cleanup()

    def write_gems(self, gems: list) -> None:
        payload = [gem.model_dump(mode="json") if isinstance(gem, Gem) else gem for gem in gems]
        self.data_file.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def read_gems(self) -> list:
        return json.loads(self.data_file.read_text(encoding="utf-8"))

    def memory_service(self, gems: list | None = None) -> InMemoryGemService:
        if gems is not None:
            self.write_gems(gems)
        return InMemoryGemService(JsonGemDataSource(self.data_file))


class SqlGemTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        GemRow.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        GemRow.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(GemRow))
            db.commit()
        self.service = SqlGemService(self.SessionLocal)

    def seed(self, gems: list[Gem]) -> list[Gem]:
        return [self.service.add_gem(gem) for gem in gems]
