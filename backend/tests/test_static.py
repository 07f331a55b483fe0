from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import write_file
from middleware.static import StaticAssetMiddleware, _relative_path


def _static_app(tmp_path):
    public = tmp_path / "public"
    uploads = tmp_path / "uploads"
    public.mkdir()
    uploads.mkdir()
    write_file(str(public), "app.js", b"console.log(1)")
    write_file(str(uploads), "abcd1234-cat.png", b"png")
    write_file(str(tmp_path), "secret.txt", b"nope")

    app = FastAPI()

    @app.get("/{path:path}")
    async def downstream(path: str):
        return {"downstream": path}

    @app.post("/app.js")
    async def post_app_js():
        return {"downstream": "post"}

    app.add_middleware(StaticAssetMiddleware, mounts=[("/", str(public)), ("/uploads", str(uploads))])
    return TestClient(app)


class TestRelativePath:
    def test_root_prefix(self):
        assert _relative_path("/css/site.css", "/") == "css/site.css"

    def test_nested_prefix(self):
        assert _relative_path("/uploads/a.png", "/uploads") == "a.png"
        assert _relative_path("/uploadsx/a.png", "/uploads") is None


class TestStaticAssetMiddleware:
    def test_serves_public_file(self, tmp_path):
        client = _static_app(tmp_path)
        response = client.get("/app.js")
        assert response.status_code == 200
        assert response.content == b"console.log(1)"
        assert "javascript" in response.headers["content-type"]

    def test_serves_upload_under_canonical_prefix(self, tmp_path):
        client = _static_app(tmp_path)
        assert client.get("/uploads/abcd1234-cat.png").content == b"png"

    def test_missing_file_falls_through(self, tmp_path):
        client = _static_app(tmp_path)
        assert client.get("/missing.css").json() == {"downstream": "missing.css"}

    def test_directory_falls_through(self, tmp_path):
        client = _static_app(tmp_path)
        assert client.get("/").json() == {"downstream": ""}

    def test_non_get_falls_through(self, tmp_path):
        client = _static_app(tmp_path)
        assert client.post("/app.js").json() == {"downstream": "post"}

    def test_cannot_escape_mount_directory(self, tmp_path):
        client = _static_app(tmp_path)
        response = client.get("/uploads/..%2Fsecret.txt")
        assert response.status_code == 200
        assert response.json() == {"downstream": "uploads/../secret.txt"}
