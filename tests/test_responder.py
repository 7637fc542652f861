import asyncio

import pytest

from stagedoor.paths import ManifestPathNormalizer
from stagedoor.responder import AssetResponder, ResponderState, Response, error_response
from stagedoor.stores import AssetRecord, MemoryAssetStore, StoreError

SECURITY = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _respond(store, path, method="GET", **kwargs):
    return asyncio.run(AssetResponder(store, **kwargs).respond(path, method))


def _assert_security_headers(response):
    for name, value in SECURITY.items():
        assert response.header(name) == value


class FailingStore:
    def __init__(self, exc=None):
        self.exc = exc or StoreError("/index.html", "disk on fire")
        self.calls = []

    async def get(self, key):
        self.calls.append(key)
        raise self.exc

    def keys(self):
        return []


class BrokenRecordStore:
    async def get(self, key):
        return AssetRecord(path=key, body="not bytes", content_type="text/html")

    def keys(self):
        return []


def test_root_request_serves_index():
    store = MemoryAssetStore({"/index.html": (b"<html>...</html>", "text/html")})
    response = _respond(store, "/")
    assert response.status == 200
    assert response.body == b"<html>...</html>"
    assert response.header("Content-Type") == "text/html"
    assert response.header("Cache-Control") == "public, max-age=300, must-revalidate"
    _assert_security_headers(response)
    assert response.header("Access-Control-Allow-Origin") is None


def test_hit_uses_policy_for_record_type():
    store = MemoryAssetStore(
        {
            "/images/thumbnail/foo.jpg": (b"\xff\xd8", "image/jpeg"),
            "/about/index.html": (b"about", "text/html; charset=utf-8"),
            "/data.bin": (b"\x00", ""),
        }
    )
    image = _respond(store, "/images/thumbnail/foo.jpg")
    assert image.status == 200
    assert image.header("Cache-Control") == "public, max-age=31536000, immutable"
    assert image.header("Access-Control-Allow-Origin") is None

    about = _respond(store, "/about/")
    assert about.body == b"about"
    assert about.header("Content-Type") == "text/html; charset=utf-8"
    assert about.header("Cache-Control") == "public, max-age=300, must-revalidate"

    blob = _respond(store, "/data.bin")
    assert blob.header("Content-Type") == "application/octet-stream"
    assert blob.header("Cache-Control") == "public, max-age=86400"


def test_cors_headers_only_on_api_paths():
    store = MemoryAssetStore(
        {
            "/api/tracks/index.html": (b"[]", "application/json"),
            "/images/thumbnail/foo.jpg": (b"\xff\xd8", "image/jpeg"),
        }
    )
    image = _respond(store, "/images/thumbnail/foo.jpg")
    assert image.header("Access-Control-Allow-Origin") is None

    api = _respond(store, "/api/tracks")
    assert api.status == 200
    assert api.header("Access-Control-Allow-Origin") == "*"
    assert api.header("Access-Control-Allow-Methods") == "GET, POST, OPTIONS"
    assert api.header("Access-Control-Allow-Headers") == "Content-Type"
    assert api.header("Cache-Control") == "public, max-age=3600"


def test_cors_on_contact_directory_index():
    store = MemoryAssetStore({"/contact/index.html": (b"<form>", "text/html")})
    response = _respond(store, "/contact/")
    assert response.status == 200
    assert response.header("Access-Control-Allow-Origin") == "*"


def test_miss_serves_404_page():
    store = MemoryAssetStore({"/404.html": (b"<h1>Lost</h1>", "text/html")})
    response = _respond(store, "/missing.png")
    assert response.status == 404
    assert response.body == b"<h1>Lost</h1>"
    assert response.headers == {"Content-Type": "text/html;charset=UTF-8", **SECURITY}
    assert response.header("Cache-Control") is None


def test_miss_without_404_page_returns_bare_not_found():
    response = _respond(MemoryAssetStore(), "/missing.png")
    assert response.status == 404
    assert response.body == b"Not Found"
    assert response.headers == SECURITY


def test_not_found_key_is_configurable():
    store = MemoryAssetStore({"/errors/missing.html": (b"gone", "text/html")})
    response = _respond(store, "/nope/", not_found_key="/errors/missing.html")
    assert response.status == 404
    assert response.body == b"gone"


def test_store_failure_returns_500_without_details(capsys):
    store = FailingStore()
    response = _respond(store, "/")
    assert response.status == 500
    assert response.body == b"Internal Server Error"
    assert response.headers == SECURITY
    assert store.calls == ["/index.html"]
    assert "disk on fire" in capsys.readouterr().out


def test_store_failure_during_fallback_returns_500():
    class FallbackFails(MemoryAssetStore):
        async def get(self, key):
            if key == "/404.html":
                raise StoreError(key, "unreadable")
            return await super().get(key)

    response = _respond(FallbackFails(), "/missing.png")
    assert response.status == 500
    assert response.body == b"Internal Server Error"


def test_malformed_record_returns_500():
    response = _respond(BrokenRecordStore(), "/index.html")
    assert response.status == 500
    _assert_security_headers(response)


def test_unexpected_exception_returns_500():
    response = _respond(FailingStore(RuntimeError("boom")), "/a.css")
    assert response.status == 500
    assert b"boom" not in response.body


def test_security_headers_on_hit_miss_and_error():
    hit = _respond(MemoryAssetStore({"/a.css": (b"", "text/css")}), "/a.css")
    miss = _respond(MemoryAssetStore(), "/a.css")
    failed = _respond(FailingStore(), "/a.css")
    assert [hit.status, miss.status, failed.status] == [200, 404, 500]
    for response in (hit, miss, failed):
        _assert_security_headers(response)


def test_state_trails():
    store = MemoryAssetStore({"/index.html": (b"home", "text/html")})
    responder = AssetResponder(store)

    context, _ = asyncio.run(responder.describe("/"))
    assert context.lookup_key == "/index.html"
    assert context.record.body == b"home"
    assert context.trail == [
        ResponderState.RESOLVING,
        ResponderState.FOUND,
        ResponderState.RESPONDING,
    ]

    context, _ = asyncio.run(responder.describe("/gone/"))
    assert context.record is None
    assert context.trail == [
        ResponderState.RESOLVING,
        ResponderState.NOT_FOUND,
        ResponderState.RESPONDING,
    ]

    context, _ = asyncio.run(AssetResponder(FailingStore()).describe("/"))
    assert context.trail == [
        ResponderState.RESOLVING,
        ResponderState.ERRORED,
        ResponderState.RESPONDING,
    ]
    assert context.state is ResponderState.RESPONDING


def test_head_matches_get():
    store = MemoryAssetStore({"/index.html": (b"home", "text/html")})
    get = _respond(store, "/", "GET")
    head = _respond(store, "/", "head")
    assert head == get


def test_options_preflight_on_cors_paths():
    response = _respond(MemoryAssetStore(), "/api/tracks", "OPTIONS")
    assert response.status == 204
    assert response.body == b""
    assert response.header("Access-Control-Allow-Methods") == "GET, POST, OPTIONS"
    _assert_security_headers(response)


@pytest.mark.parametrize(
    ("path", "method"),
    [("/index.html", "OPTIONS"), ("/api/tracks", "POST"), ("/", "DELETE")],
)
def test_other_methods_are_rejected(path, method):
    response = _respond(MemoryAssetStore({"/index.html": (b"", "text/html")}), path, method)
    assert response.status == 405
    assert response.body == b"Method Not Allowed"
    assert response.header("Allow") == "GET, HEAD, OPTIONS"
    _assert_security_headers(response)


def test_manifest_normalizer_can_be_swapped_in():
    store = MemoryAssetStore({"/tour.2025/index.html": (b"tour", "text/html")})
    default = _respond(store, "/tour.2025/")
    assert default.status == 404

    responder = AssetResponder(store, normalizer=ManifestPathNormalizer(store.keys()))
    response = asyncio.run(responder.respond("/tour.2025/"))
    assert response.status == 200
    assert response.body == b"tour"


def test_error_response_shape():
    response = error_response()
    assert isinstance(response, Response)
    assert response.status == 500
    assert response.headers == SECURITY
