"""
Vouch API client - talks to a running Vouch server over HTTP
"""
import os
from typing import Optional, Dict, Any

import requests


class VouchClient:
    """
    Thin wrapper over the Vouch REST API.

    Example usage:
        client = VouchClient("http://localhost:8000")

        # Parse an annotation
        result = client.parse("requires: x > 0, ensures: output > x")

        # Preview the checks around a function
        result = client.instrument(source, behavior="report")
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        """
        Args:
            base_url: Server URL (uses VOUCH_URL env var, then localhost, if not provided)
            timeout: Seconds to wait for each response
            session: requests session to reuse
        """
        self.base_url = (base_url or os.getenv("VOUCH_URL") or "http://localhost:8000").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def health(self) -> Dict[str, Any]:
        return self._get("/")

    def parse(self, annotation: str) -> Dict[str, Any]:
        return self._post("/api/parse", {"annotation": annotation})

    def instrument(self, function_source: str,
                   annotation: Optional[str] = None,
                   behavior: Optional[str] = None,
                   cfg: Optional[str] = None) -> Dict[str, Any]:
        """
        Generate the wrapper source for a function.

        Args:
            function_source: Source of one function (decorated with @spec unless annotation is given)
            annotation: Annotation text to use instead of the decorator's
            behavior: abort | report | none
            cfg: Settings such as `debug, feature = "fast"`
        """
        return self._post("/api/instrument", {
            "function_source": function_source,
            "annotation": annotation,
            "behavior": behavior,
            "cfg": cfg
        })

    def scan(self, source: str, filename: str = "<source>", cfg: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/scan", {"source": source, "filename": filename, "cfg": cfg})

    def scan_file(self, file_path: str, cfg: Optional[str] = None) -> Dict[str, Any]:
        with open(file_path, 'r') as f:
            source = f.read()
        return self.scan(source, filename=file_path, cfg=cfg)

    def _get(self, path: str) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}{path}", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()
