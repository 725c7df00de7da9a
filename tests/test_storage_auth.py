"""
tests/test_storage_auth.py — Object Storage & Identity Clients
================================================================

Both clients are exercised against ``httpx.MockTransport`` handlers.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import run_async

from civica.errors import AuthError, StorageError
from civica.services.auth_service import AuthClient, AuthSession, normalize_error_code
from civica.services.storage_service import (
    MAX_FILE_SIZE,
    ImageUpload,
    StorageClient,
    unique_filename,
    validate_image,
)

JPEG = ImageUpload(content=b"\xff\xd8\xff" + b"0" * 64)


# ===========================================================================
# Storage
# ===========================================================================
class TestValidateImage:
    def test_accepts_jpeg(self):
        validate_image(JPEG)

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="Empty"):
            validate_image(ImageUpload(content=b""))

    def test_rejects_too_large(self):
        with pytest.raises(ValueError, match="too large"):
            validate_image(ImageUpload(content=b"0" * (MAX_FILE_SIZE + 1)))

    def test_rejects_extension(self):
        with pytest.raises(ValueError, match="File type"):
            validate_image(ImageUpload(content=b"x", filename="notes.pdf"))

    def test_rejects_mime(self):
        with pytest.raises(ValueError, match="MIME"):
            validate_image(ImageUpload(content=b"x", filename="a.png", content_type="text/html"))

    def test_unique_filename_shape(self):
        stamp, rest = unique_filename().split("_")
        assert stamp.isdigit()
        assert len(rest) == len("abcdefghi.jpg")


class TestStorageClient:
    def test_upload_uses_first_path_segment(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"success": True, "url": "https://cdn/x.jpg"})

        client = StorageClient("https://store", "key", httpx.MockTransport(handler))
        url = run_async(client.upload_avatar(JPEG, "u1"))
        assert url == "https://cdn/x.jpg"
        assert captured[0].url.path == "/upload/avatars"
        assert captured[0].headers["X-API-Key"] == "key"
        assert b'name="image"' in captured[0].content

    def test_server_rejection_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(413, text="too big"))
        client = StorageClient("https://store", "key", transport)
        with pytest.raises(StorageError, match="413"):
            run_async(client.upload_image(JPEG))

    def test_unsuccessful_body_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"success": False}))
        client = StorageClient("https://store", "key", transport)
        with pytest.raises(StorageError):
            run_async(client.upload_image(JPEG))

    def test_upload_many(self):
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"success": True, "url": "https://cdn/y.jpg"})
        )
        client = StorageClient("https://store", "key", transport)
        assert run_async(client.upload_images([JPEG, JPEG])) == ["https://cdn/y.jpg"] * 2

    def test_delete(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"success": True})

        client = StorageClient("https://store", "key", httpx.MockTransport(handler))
        assert run_async(client.delete_image("https://cdn/posts/123_abc.jpg")) is True
        assert captured[0].url.path == "/delete/123_abc.jpg"

    def test_delete_failure_returns_false(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(404))
        client = StorageClient("https://store", "key", transport)
        assert run_async(client.delete_image("https://cdn/x.jpg")) is False

    def test_delete_invalid_url(self):
        client = StorageClient("https://store", "key")
        with pytest.raises(ValueError):
            run_async(client.delete_image("nofilename"))


# ===========================================================================
# Identity
# ===========================================================================
def _identity(handler):
    return AuthClient(api_key="k", base_url="https://id/v1", transport=httpx.MockTransport(handler))


def _error(message: str, status: int = 400):
    return lambda request: httpx.Response(status, json={"error": {"message": message}})


class TestNormalizeErrorCode:
    @pytest.mark.parametrize(
        "message, code",
        [
            ("INVALID_LOGIN_CREDENTIALS", "wrong-password"),
            ("EMAIL_NOT_FOUND", "user-not-found"),
            ("WEAK_PASSWORD : Password should be at least 6 characters", "weak-password"),
            ("TOO_MANY_ATTEMPTS_TRY_LATER", "too-many-requests"),
            ("SOMETHING_NEW", "something-new"),
        ],
    )
    def test_codes(self, message, code):
        assert normalize_error_code(message) == code


class TestAuthClient:
    def test_sign_in(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={
                "localId": "uid-1", "email": "a@b.c", "idToken": "tok", "refreshToken": "ref",
            })

        session = run_async(_identity(handler).sign_in("a@b.c", "pw"))
        assert session == AuthSession("uid-1", "a@b.c", "tok", "ref", None)
        assert captured[0].url.path == "/v1/accounts:signInWithPassword"
        assert captured[0].url.params["key"] == "k"

    def test_wrong_password_raises_auth_error(self):
        with pytest.raises(AuthError) as exc_info:
            run_async(_identity(_error("INVALID_PASSWORD")).sign_in("a@b.c", "pw"))
        assert exc_info.value.code == "wrong-password"
        assert exc_info.value.localized("en") == "Current password is incorrect"
        assert exc_info.value.localized("id") == "Kata sandi saat ini salah"

    def test_unknown_code_gets_generic_message(self):
        err = AuthError("email-already-in-use")
        assert err.localized("en") == "Something went wrong. Please try again."

    def test_update_password_reauthenticates_first(self):
        methods = []

        def handler(request):
            methods.append(request.url.path.rsplit(":", 1)[-1])
            return httpx.Response(200, json={"localId": "uid-1", "email": "a@b.c", "idToken": "new"})

        session = AuthSession("uid-1", "a@b.c", "old")
        fresh = run_async(_identity(handler).update_password(session, "old-pw", "new-pw"))
        assert methods == ["signInWithPassword", "update"]
        assert fresh.id_token == "new"

    def test_reset_password(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"email": "a@b.c"})

        run_async(_identity(handler).reset_password("a@b.c"))
        assert b"PASSWORD_RESET" in captured[0].content
