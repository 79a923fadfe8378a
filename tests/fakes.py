"""Stand-ins for ``requests`` responses used by the provider and cover tests."""

import requests

from tests.conftest import _png_bytes


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b"", content_type="application/json"):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.headers = {"Content-Type": content_type}

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def image_response(content=None):
    return FakeResponse(content=content if content is not None else _png_bytes(), content_type="image/png")


class FakeWeb:
    """Routes ``requests.get`` calls by URL prefix and records every call."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, params=None, **kwargs):
        self.calls.append((url, params))
        for prefix, handler in self.routes.items():
            if url.startswith(prefix):
                result = handler(url, params) if callable(handler) else handler
                if isinstance(result, Exception):
                    raise result
                return result
        raise requests.ConnectionError(f"unreachable: {url}")
