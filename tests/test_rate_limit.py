from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.rate_limit import RateLimitMiddleware


class _Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _app(clock, max_requests=2, window_sec=1.0):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, max_requests=max_requests, window_sec=window_sec, clock=clock)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return app


def test_requests_within_limit_carry_headers():
    client = TestClient(_app(_Clock()))

    resp = client.get("/ping")

    assert resp.status_code == 200
    assert resp.headers["RateLimit-Limit"] == "2"
    assert resp.headers["RateLimit-Remaining"] == "1"
    assert resp.headers["X-RateLimit-Limit"] == "2"


def test_excess_requests_rejected():
    client = TestClient(_app(_Clock()))

    client.get("/ping")
    client.get("/ping")
    resp = client.get("/ping")

    assert resp.status_code == 429
    assert resp.json() == {"code": 429, "message": "Too many requests, please try again later."}
    assert resp.headers["RateLimit-Remaining"] == "0"
    assert "Retry-After" in resp.headers


def test_window_resets():
    clock = _Clock()
    client = TestClient(_app(clock))

    for _ in range(3):
        client.get("/ping")
    clock.now += 1.5

    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.headers["RateLimit-Remaining"] == "1"
