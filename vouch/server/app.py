#!/usr/bin/env python3
"""
Vouch FastAPI Server
Provides REST API for parsing annotations and previewing instrumentation
"""
import ast
import os
from typing import Optional, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from vouch import __version__
from vouch.api_models import ErrorLocation
from vouch.core.behavior import RuntimeBehavior
from vouch.core.config import BuildConfig
from vouch.core.errors import SpecError
from vouch.core.instrument import Instrumenter
from vouch.generators.wrapper import FunctionShape
from vouch.grammar.spec import parse_spec
from vouch.scanner import SpecFunctionScanner


# ============================================================================
# Request/Response Models
# ============================================================================

class ParseRequest(BaseModel):
    annotation: str


class ParseResponse(BaseModel):
    success: bool
    specification: Optional[dict] = None
    error: Optional[str] = None
    location: Optional[dict] = None


class InstrumentRequest(BaseModel):
    function_source: str
    annotation: Optional[str] = None  # taken from the @spec decorator when omitted
    behavior: Optional[str] = None
    cfg: Optional[str] = None


class InstrumentResponse(BaseModel):
    success: bool
    function_name: Optional[str] = None
    wrapper_source: Optional[str] = None
    config: Optional[dict] = None
    error: Optional[str] = None
    location: Optional[dict] = None


class ScanRequest(BaseModel):
    source: str
    filename: Optional[str] = "<source>"
    cfg: Optional[str] = None


class ScanResponse(BaseModel):
    success: bool
    report: Optional[dict] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    behaviors: List[str]


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Vouch API",
    description="Function contract annotations: parsing and instrumentation",
    version=__version__
)

# Enable CORS for editor integrations
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_config(behavior: Optional[str] = None, cfg: Optional[str] = None) -> BuildConfig:
    """Defaults plus the request's behavior and settings"""
    config = BuildConfig.defaults()
    if behavior:
        config = config.with_behavior(behavior)
    if cfg:
        config = config.with_settings(cfg)
    return config


def _find_function(source: str):
    """First function in source, with the class it sits in"""
    tree = ast.parse(source)
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return node, None
        if isinstance(node, ast.ClassDef):
            for item in node.body:
                if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    return item, node.name
    return None, None


def _decorator_annotation(node) -> Optional[str]:
    for decorator in node.decorator_list:
        if not isinstance(decorator, ast.Call) or not decorator.args:
            continue
        name = decorator.func
        is_spec = (isinstance(name, ast.Name) and name.id == "spec") or \
                  (isinstance(name, ast.Attribute) and name.attr == "spec")
        literal = decorator.args[0]
        if is_spec and isinstance(literal, ast.Constant) and isinstance(literal.value, str):
            return literal.value
    return None


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    return {
        "status": "ok",
        "version": __version__,
        "behaviors": [b.value for b in RuntimeBehavior]
    }


@app.post("/api/parse", response_model=ParseResponse)
async def parse_annotation(request: ParseRequest):
    """
    Parse an annotation into its specification model.

    Example:
        POST /api/parse
        {
            "annotation": "requires: x > 0, ensures: output > x"
        }
    """
    try:
        specification = parse_spec(request.annotation)
        return {
            "success": True,
            "specification": specification.to_dict()
        }

    except SpecError as e:
        return {
            "success": False,
            "error": str(e),
            "location": ErrorLocation.from_error(e).to_dict()
        }


@app.post("/api/instrument", response_model=InstrumentResponse)
async def instrument(request: InstrumentRequest):
    """
    Generate the instrumented wrapper for a function, without running it.

    Example:
        POST /api/instrument
        {
            "function_source": "def inc(x):\\n    return x + 1",
            "annotation": "requires: x >= 0, ensures: output == x + 1",
            "behavior": "abort",
            "cfg": "debug"
        }
    """
    try:
        config = build_config(request.behavior, request.cfg)

        node, owner = _find_function(request.function_source)
        if node is None:
            return {
                "success": False,
                "error": "No function definition found"
            }

        annotation = request.annotation
        if annotation is None:
            annotation = _decorator_annotation(node)
        if annotation is None:
            return {
                "success": False,
                "function_name": node.name,
                "error": f"Function '{node.name}' has no @spec annotation"
            }

        specification = parse_spec(annotation)
        shape = FunctionShape.from_node(node, owner)
        _, wrapper_source = Instrumenter(config).compile(specification, shape, f"<vouch {node.name}>")

        return {
            "success": True,
            "function_name": node.name,
            "wrapper_source": wrapper_source,
            "config": config.to_dict()
        }

    except SpecError as e:
        return {
            "success": False,
            "error": str(e),
            "location": ErrorLocation.from_error(e).to_dict()
        }
    except (SyntaxError, ValueError) as e:
        return {
            "success": False,
            "error": str(e)
        }


@app.post("/api/scan", response_model=ScanResponse)
async def scan(request: ScanRequest):
    """
    Find every @spec function in a source file and check its annotation.

    Example:
        POST /api/scan
        {
            "source": "@spec('requires: x > 0')\\ndef f(x):\\n    return x\\n",
            "filename": "example.py"
        }
    """
    try:
        scanner = SpecFunctionScanner(config=build_config(cfg=request.cfg))
        report = scanner.parse_source(request.source, request.filename or "<source>")
        return {
            "success": True,
            "report": report.to_dict()
        }

    except (SyntaxError, ValueError) as e:
        return {
            "success": False,
            "error": str(e)
        }


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.getenv("VOUCH_HOST", "127.0.0.1")
    port = int(os.getenv("VOUCH_PORT", "8000"))

    print("=" * 60)
    print("Vouch API Server")
    print("=" * 60)
    print(f"Starting server on http://{host}:{port}")
    print(f"API docs: http://{host}:{port}/docs")
    print("=" * 60)

    uvicorn.run(app, host=host, port=port)
