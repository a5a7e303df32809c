"""
Unit tests for the exercise catalog client.
"""

import aiohttp
import pytest

from exlab.core.errors import CatalogError, ValidationError
from exlab.domain.exercises.entities import RecordConfig
from exlab.infrastructure.catalog import CatalogClient, ExerciseRecord

EXERCISE_PAYLOAD = {
    "tag": "sql-injection",
    "name": "SQL Injection",
    "category": "web",
    "instance": [
        {
            "image": "exlab/shop-web",
            "memory": 256,
            "cpu": 0.5,
            "envs": [{"name": "APP_ENV", "value": "lab"}],
            "records": [
                {"type": "A", "name": "shop.lab"},
                {"type": "CNAME", "name": "www.shop.lab", "data": "shop.lab"},
            ],
            "children": [
                {
                    "tag": "login-bypass",
                    "name": "Login bypass",
                    "env_flag": "APP_FLAG",
                    "points": 10,
                    "prerequisite": ["http"],
                    "outcome": ["sqli"],
                }
            ],
        }
    ],
    "vms": [{"image": "kali"}],
}


class FakeResponse:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
    
    async def __aenter__(self):
        return self
    
    async def __aexit__(self, *exc):
        return False
    
    def raise_for_status(self):
        if self.error is not None:
            raise self.error
    
    async def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []
        self.closed = False
    
    def get(self, url, params=None):
        self.requests.append((url, params))
        return self.response
    
    async def close(self):
        self.closed = True


class TestExerciseRecord:
    """Test wire-to-domain conversion."""
    
    def test_to_spec(self):
        spec = ExerciseRecord.model_validate(EXERCISE_PAYLOAD).to_spec()
        
        assert spec.tag == "sql-injection"
        assert len(spec.instances) == 1
        instance = spec.instances[0]
        assert instance.memory_mb == 256
        assert instance.records == (
            RecordConfig("A", "shop.lab", ""),
            RecordConfig("CNAME", "www.shop.lab", "shop.lab"),
        )
        assert instance.children[0].env_flag == "APP_FLAG"
        assert instance.children[0].prerequisites == ("http",)
        assert [vm.image for vm in spec.vms] == ["kali"]
    
    def test_defaults(self):
        spec = ExerciseRecord.model_validate({"tag": "bare"}).to_spec()
        
        assert spec.instances == ()
        assert spec.vms == ()


class TestCatalogClient:
    """Test catalog requests."""
    
    async def test_get_exercises(self):
        session = FakeSession(FakeResponse({"exercises": [EXERCISE_PAYLOAD]}))
        client = CatalogClient("http://catalog:8080/", session=session)
        
        exercises = await client.get_exercises()
        
        assert [e.tag for e in exercises] == ["sql-injection"]
        assert session.requests == [("http://catalog:8080/exercises", None)]
    
    async def test_get_exercises_by_tags(self):
        session = FakeSession(FakeResponse({"exercises": []}))
        client = CatalogClient("http://catalog:8080", session=session)
        
        await client.get_exercises_by_tags(["a1", "b2"])
        
        assert session.requests[0][1] == [("tag", "a1"), ("tag", "b2")]
    
    async def test_get_categories(self):
        session = FakeSession(FakeResponse({"categories": [{"tag": "web", "name": "Web"}]}))
        client = CatalogClient("http://catalog:8080", session=session)
        
        categories = await client.get_categories()
        
        assert [(c.tag, c.name) for c in categories] == [("web", "Web")]
    
    async def test_malformed_listing(self):
        session = FakeSession(FakeResponse({"exercises": [{"name": "no tag"}]}))
        client = CatalogClient("http://catalog:8080", session=session)
        
        with pytest.raises(ValidationError):
            await client.get_exercises()
    
    async def test_unreachable_catalog(self):
        session = FakeSession(FakeResponse(error=aiohttp.ClientError("connection refused")))
        client = CatalogClient("http://catalog:8080", session=session)
        
        with pytest.raises(CatalogError):
            await client.get_exercises()
    
    async def test_close(self):
        session = FakeSession(FakeResponse({}))
        client = CatalogClient("http://catalog:8080", session=session)
        
        await client.close()
        
        assert session.closed is True
