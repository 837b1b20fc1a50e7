"""Offline LLM client for `--dry-run` and tests.

Recognizes which agent is calling from the opening lines of the prompt and
returns a canned answer of the right shape (JSON extraction, a complete
SKILL.md, a PEP 723 script, a review verdict).
"""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

# Agents put their identifying phrase in the first lines; source code pasted
# further down the prompt must not change the match.
_HEAD_CHARS = 400

API_SURFACE = {
    "library_category": "web_framework",
    "apis": [
        {
            "name": "fastapi.FastAPI",
            "type": "class",
            "signature": "FastAPI(debug: bool = False, title: str = 'FastAPI', ...)",
            "return_type": "FastAPI",
            "module": "fastapi.applications",
            "publicity_score": "high",
            "module_type": "public",
            "deprecation": {"is_deprecated": False},
        },
        {
            "name": "fastapi.APIRouter",
            "type": "class",
            "signature": "APIRouter(prefix: str = '', tags: list[str] | None = None, ...)",
            "module": "fastapi.routing",
            "publicity_score": "high",
            "module_type": "public",
            "deprecation": {"is_deprecated": False},
        },
        {
            "name": "fastapi.HTTPException",
            "type": "class",
            "signature": "HTTPException(status_code: int, detail: Any = None, headers: dict | None = None)",
            "module": "fastapi",
            "publicity_score": "high",
            "module_type": "public",
            "deprecation": {"is_deprecated": False},
        },
        {
            "name": "fastapi.Depends",
            "type": "function",
            "signature": "Depends(dependency: Callable | None = None, *, use_cache: bool = True)",
            "module": "fastapi",
            "publicity_score": "high",
            "module_type": "public",
            "deprecation": {"is_deprecated": False},
        },
        {
            "name": "fastapi.Query",
            "type": "function",
            "signature": "Query(default: Any = ..., *, description: str | None = None, ...)",
            "module": "fastapi",
            "publicity_score": "high",
            "module_type": "public",
            "deprecation": {"is_deprecated": False},
        },
    ],
}

USAGE_PATTERNS = {
    "patterns": [
        {
            "api": "FastAPI",
            "pattern": "Basic app creation",
            "setup": "from fastapi import FastAPI\napp = FastAPI()",
            "usage": "@app.get('/')\ndef root(): return {'message': 'Hello'}",
            "assertion": "client.get('/').json() == {'message': 'Hello'}",
        },
        {
            "api": "Depends",
            "pattern": "Dependency injection",
            "setup": "def common_params(q: str | None = None): return q",
            "usage": "@app.get('/items/')\ndef read(commons=Depends(common_params)): ...",
        },
    ]
}

CONTEXT = {
    "documented_apis": ["FastAPI", "APIRouter", "Depends", "HTTPException", "Query"],
    "conventions": [
        "Use async def for endpoints that perform I/O",
        "Declare request bodies with Pydantic models",
    ],
    "pitfalls": [
        {
            "category": "Async handling",
            "wrong": "Calling an async dependency without await",
            "why": "The coroutine is never executed",
            "right": "await async calls inside async endpoints",
        }
    ],
    "breaking_changes": [],
    "migration_notes": "",
}

SKILL_MD = """---
name: fastapi
description: Modern, fast web framework for building APIs with Python type hints
version: 0.115.0
ecosystem: python
license: MIT
---

## Imports

```python
from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query
from fastapi.testclient import TestClient
from pydantic import BaseModel
```

## Core Patterns

### Basic Application ✅ Current

```python
from fastapi import FastAPI

app = FastAPI()

@app.get("/")
def read_root():
    return {"message": "Hello World"}
```

Create the application object and register path operations with decorators.

### Configuration of the Application ✅ Current

```python
from fastapi import FastAPI

app = FastAPI(title="Inventory API", version="1.0.0", docs_url="/docs")
```

Metadata passed to `FastAPI()` appears in the generated OpenAPI schema.

### Error Handling with HTTPException ✅ Current

```python
from fastapi import FastAPI, HTTPException

app = FastAPI()
items = {"foo": "The Foo Wrestlers"}

@app.get("/items/{item_id}")
def read_item(item_id: str):
    if item_id not in items:
        raise HTTPException(status_code=404, detail="Item not found")
    return {"item": items[item_id]}
```

Raising `HTTPException` returns a JSON error body with the given status code.

### Dependency Injection ✅ Current

```python
from fastapi import Depends, FastAPI

app = FastAPI()

def common_params(q: str | None = None, skip: int = 0, limit: int = 100):
    return {"q": q, "skip": skip, "limit": limit}

@app.get("/items/")
def read_items(commons: dict = Depends(common_params)):
    return commons
```

## Configuration

- `FastAPI(debug=False)`: tracebacks are hidden unless debug is enabled.
- `docs_url="/docs"` and `redoc_url="/redoc"` control the interactive documentation routes.
- `APIRouter(prefix="/users", tags=["users"])` groups related routes.

## Pitfalls

### Wrong: Forgetting await in async endpoints

```python
@app.get("/users/")
async def get_users(db=Depends(get_db)):
    users = db.fetch_all()
    return users
```

### Right: Await async calls

```python
@app.get("/users/")
async def get_users(db=Depends(get_db)):
    users = await db.fetch_all()
    return users
```

### Wrong: Mutable default arguments

```python
@app.post("/tags/")
def create(tags: list = []):
    return tags
```

### Right: Use None and build the list per request

```python
@app.post("/tags/")
def create(tags: list | None = None):
    return tags or []
```

## References

- [Documentation](https://fastapi.tiangolo.com)
- [Source](https://github.com/fastapi/fastapi)

## API Reference

- **FastAPI()** - Application object; holds routes, middleware and OpenAPI metadata
- **APIRouter()** - Group of routes mounted with `app.include_router()`
- **Depends()** - Declare a dependency resolved per request
- **HTTPException()** - Raise to return an HTTP error response
- **Query()** - Extra validation and metadata for query parameters
"""

VALIDATION_SCRIPT = """```python
# /// script
# requires-python = ">=3.11"
# dependencies = ["fastapi", "httpx"]
# ///
from fastapi import FastAPI
from fastapi.testclient import TestClient

app = FastAPI()

@app.get("/")
def read_root():
    return {"message": "Hello World"}

client = TestClient(app)
response = client.get("/")
assert response.status_code == 200
assert response.json() == {"message": "Hello World"}
print("✓ Test passed: Basic Application")
```"""

INTROSPECTION_SCRIPT = """```python
# /// script
# requires-python = ">=3.10"
# dependencies = ["fastapi"]
# ///
import json
from importlib.metadata import version

result = {"version_installed": None, "version_expected": "0.115.0", "imports": [], "signatures": [], "dates": []}
try:
    result["version_installed"] = version("fastapi")
except Exception as exc:
    result["version_installed"] = str(exc)
try:
    from fastapi import FastAPI  # noqa: F401
    result["imports"].append({"name": "fastapi.FastAPI", "success": True, "error": None})
except Exception as exc:
    result["imports"].append({"name": "fastapi.FastAPI", "success": False, "error": str(exc)})
print(json.dumps(result))
```"""

REVIEW_VERDICT = {"passed": True, "issues": []}


class MockLlmClient:
    """Deterministic `LlmClient`; records every prompt it receives."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.calls.append(prompt)
        head = prompt[:_HEAD_CHARS]

        if "quality gate for a generated SKILL.md" in head:
            return json.dumps(REVIEW_VERDICT)
        if "verification script generator" in head:
            return INTROSPECTION_SCRIPT
        if "validating a SKILL.md file by writing test code" in head:
            return VALIDATION_SCRIPT
        if "Extract the complete public API surface" in head:
            return json.dumps(API_SURFACE, indent=2)
        if "Extract correct usage patterns from the tests" in head:
            return json.dumps(USAGE_PATTERNS, indent=2)
        if "Extract conventions, best practices, pitfalls, and migration notes" in head:
            return json.dumps(CONTEXT, indent=2)
        if (
            "You are creating an agent rules file" in head
            or "You are updating an existing SKILL.md" in head
            or "Here is the current SKILL.md" in head
        ):
            return SKILL_MD

        logger.debug("Mock client: unrecognized prompt, returning placeholder")
        return json.dumps({"status": "mock"})
