"""
Tests for the Vouch HTTP API
"""

import pytest
from fastapi.testclient import TestClient

from vouch import __version__
from vouch.server.app import app


@pytest.fixture
def client():
    return TestClient(app)


FUNCTION = '''
@spec("requires: x >= 0, ensures: output == x + 1")
def inc(x):
    return x + 1
'''


def test_health(client):
    """Test health endpoint"""
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["behaviors"] == ["abort", "report", "none"]


def test_parse(client):
    """Test parsing a valid annotation"""
    response = client.post("/api/parse", json={"annotation": "requires: [x > 0, y > 0], captures: x"})
    data = response.json()

    assert data["success"] is True
    spec = data["specification"]
    assert [c["expr"] for c in spec["preconditions"]] == ["x > 0", "y > 0"]
    assert spec["captures"][0]["alias"] == "old_x"


def test_parse_error(client):
    """Test parse errors carry a location"""
    response = client.post("/api/parse", json={"annotation": "ensures: x, requires: y"})
    data = response.json()

    assert data["success"] is False
    assert "out of order" in data["error"]
    assert data["location"]["line"] == 1
    assert data["location"]["column"] == 13


def test_instrument_with_decorator_annotation(client):
    """Test the annotation is read from the @spec decorator"""
    response = client.post("/api/instrument", json={"function_source": FUNCTION})
    data = response.json()

    assert data["success"] is True
    assert data["function_name"] == "inc"
    assert "if not (x >= 0):" in data["wrapper_source"]
    assert "return output == x + 1" in data["wrapper_source"]
    assert data["config"]["behavior"] == "abort"


def test_instrument_with_explicit_annotation(client):
    """Test an annotation passed alongside plain source"""
    response = client.post("/api/instrument", json={
        "function_source": "def half(n):\n    return n // 2\n",
        "annotation": "requires: n % 2 == 0"
    })
    data = response.json()

    assert data["success"] is True
    assert "__vouch_fail__('Precondition', 'n % 2 == 0')" in data["wrapper_source"]


def test_instrument_no_check(client):
    """Test behavior none gates every check"""
    response = client.post("/api/instrument", json={
        "function_source": FUNCTION,
        "behavior": "none"
    })
    data = response.json()

    assert data["success"] is True
    assert "if False:  # runtime checks disabled" in data["wrapper_source"]
    assert data["config"]["behavior"] == "none"


def test_instrument_cfg(client):
    """Test settings decide which gated checks stay live"""
    request = {
        "function_source": "def f(x):\n    return x\n",
        "annotation": "#[cfg(slow)] requires: x > 0"
    }

    gated = client.post("/api/instrument", json=request).json()
    assert "if False:  # cfg(slow) is not set" in gated["wrapper_source"]

    live = client.post("/api/instrument", json=dict(request, cfg="slow")).json()
    assert "if False" not in live["wrapper_source"]
    assert "slow" in live["config"]["flags"]


def test_instrument_method(client):
    """Test methods are generated inside their class for name mangling"""
    source = '''
class Vault:
    @spec("ensures: self.__secret > 0")
    def check(self):
        return self.__secret
'''
    data = client.post("/api/instrument", json={"function_source": source}).json()

    assert data["success"] is True
    assert data["wrapper_source"].startswith("class Vault:")


def test_instrument_errors(client):
    """Test failures are reported in the response"""
    missing = client.post("/api/instrument", json={"function_source": "x = 1\n"}).json()
    assert missing["success"] is False
    assert missing["error"] == "No function definition found"

    bare = client.post("/api/instrument", json={"function_source": "def f():\n    pass\n"}).json()
    assert bare["success"] is False
    assert "has no @spec annotation" in bare["error"]

    invalid = client.post("/api/instrument", json={
        "function_source": "def f(x):\n    return x\n",
        "annotation": "requires: x >"
    }).json()
    assert invalid["success"] is False
    assert invalid["location"]["column"] == 11

    behavior = client.post("/api/instrument", json={
        "function_source": FUNCTION,
        "behavior": "loud"
    }).json()
    assert behavior["success"] is False
    assert "Unknown runtime behavior" in behavior["error"]


def test_scan(client):
    """Test scanning a whole source file"""
    source = FUNCTION + '''

@spec("captures: len(items)")
def broken(items):
    return items
'''
    data = client.post("/api/scan", json={"source": source, "filename": "example.py"}).json()

    assert data["success"] is True
    report = data["report"]
    assert report["total"] == 2
    assert report["invalid"] == 1
    assert report["functions"][1]["error"]["message"] == \
        "complex expressions require an explicit alias using `as`"


def test_scan_syntax_error(client):
    """Test unparsable files are reported"""
    data = client.post("/api/scan", json={"source": "def broken(:\n"}).json()

    assert data["success"] is False
    assert data["error"]
