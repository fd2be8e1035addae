"""Fakes shared by the test modules."""

import json
from typing import Callable, Dict, List, Tuple

import httpx

Handler = Callable[[httpx.Request], httpx.Response]


class MockWeb:
    """Routes requests by host and path to canned handlers and records them."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, handler=None, *, status_code: int = 200, json_body=None, text=None):
        parsed = httpx.URL(url)
        if handler is None:
            def handler(request, _status=status_code, _json=json_body, _text=text):
                if _json is not None:
                    return httpx.Response(_status, json=_json)
                return httpx.Response(_status, text=_text or "")
        self.routes[(parsed.host, parsed.path)] = handler

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._dispatch)

    def hits(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)


def openai_reply(content: str, total_tokens: int = 120) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": content}}],
                "usage": {"total_tokens": total_tokens},
            },
        )
    return handler


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


def words(n: int, word: str = "lorem") -> str:
    return " ".join([word] * n)

