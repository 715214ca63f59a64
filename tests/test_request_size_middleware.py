from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from relay.app.middleware.request_size import RequestSizeLimitMiddleware


def make_app(max_body_size: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=max_body_size)

    @app.post("/echo")
    async def echo(req: Request):
        return {"size": len(await req.body())}

    @app.post("/boom")
    async def boom(_: Request):
        raise RuntimeError("boom")

    return app


def test_request_size_middleware_does_not_mask_exceptions():
    client = TestClient(make_app(1024), raise_server_exceptions=False)
    resp = client.post("/boom", json={"x": 1})

    # If middleware masks exceptions, this would be 413.
    assert resp.status_code == 500


def test_request_size_middleware_returns_plain_text_413_on_oversize_body():
    client = TestClient(make_app(10), raise_server_exceptions=False)
    resp = client.post("/echo", content=b"x" * 11)

    assert resp.status_code == 413
    assert resp.headers.get("content-type", "").startswith("text/plain")
    assert resp.text == "Request too large"


def test_request_size_middleware_bounds_chunked_body():
    client = TestClient(make_app(10), raise_server_exceptions=False)

    def chunks():
        yield b"x" * 6
        yield b"x" * 6

    resp = client.post("/echo", content=chunks())

    assert resp.status_code == 413


def test_request_size_middleware_allows_body_at_limit():
    client = TestClient(make_app(10), raise_server_exceptions=False)
    resp = client.post("/echo", content=b"x" * 10)

    assert resp.status_code == 200
    assert resp.json() == {"size": 10}
