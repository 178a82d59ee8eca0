"""Tests for everest.http.response: Response and its derived types."""

import pytest

from everest.http.cookies import Cookie
from everest.http.response import JsonResponse, RedirectResponse, Response
from everest.http.uri import Uri


class TestResponse:
    def test_defaults(self) -> None:
        response = Response()
        assert response.status == 200
        assert response.body == ""
        assert response.reason == "OK"
        assert response.content_type is None

    def test_text_and_bytes(self) -> None:
        assert Response("héllo").body_bytes == "héllo".encode()
        assert Response(b"abc").text == "abc"

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="unknown"):
            Response(status=999)
        with pytest.raises(ValueError, match="unknown"):
            Response(status=True)  # type: ignore[arg-type]

    def test_invalid_body(self) -> None:
        with pytest.raises(TypeError, match="must be str or bytes"):
            Response(body=42)  # type: ignore[arg-type]

    def test_with_status(self) -> None:
        response = Response().with_status(418, "Short and stout")
        assert response.status == 418
        assert response.reason == "Short and stout"
        assert Response().with_status(404).reason == "Not Found"

    def test_same_value_returns_same_instance(self) -> None:
        response = Response("x", headers={"X-A": "1"})
        assert response.with_status(200) is response
        assert response.with_body("x") is response
        assert response.with_header("X-A", "1") is response
        assert response.without_header("X-B") is response
        assert response.with_protocol_version("1.1") is response

    def test_header_mutators(self) -> None:
        response = Response().with_header("X-A", "1").with_added_header("x-a", "2")
        assert response.get_header("X-A") == ["1", "2"]
        assert response.get_header_line("X-A") == "1, 2"
        assert not response.without_header("X-A").has_header("X-A")

    def test_with_cookie(self) -> None:
        response = Response().with_cookie(Cookie("a", "1")).with_cookies([Cookie("b", "2", http_only=True)])
        assert response.get_header("Set-Cookie") == ["a=1", "b=2; httponly"]

    def test_original_untouched(self) -> None:
        response = Response("a")
        response.with_body("b").with_status(201)
        assert response.text == "a"
        assert response.status == 200

    def test_str(self) -> None:
        response = Response("hi", headers={"X-A": "1"})
        assert str(response) == "HTTP/1.1 200 OK\r\nX-A: 1\r\n\r\nhi"


class TestJsonResponse:
    def test_serialises_data(self) -> None:
        response = JsonResponse(data={"a": [1, 2]})
        assert response.text == '{"a": [1, 2]}'
        assert response.content_type == "application/json"

    def test_content_type_forced(self) -> None:
        response = JsonResponse(data=[], headers={"Content-Type": "text/plain"})
        assert response.get_header("content-type") == ["application/json"]

    def test_unserialisable(self) -> None:
        with pytest.raises(ValueError, match="not JSON serialisable"):
            JsonResponse(data={"x": object()})

    def test_with_data(self) -> None:
        response = JsonResponse(data={"a": 1})
        updated = response.with_data({"a": 2})
        assert updated.text == '{"a": 2}'
        assert response.with_data({"a": 1}) is response

    def test_transformations_keep_body(self) -> None:
        response = JsonResponse(data={"a": 1}).with_status(201).with_header("X-A", "1")
        assert isinstance(response, JsonResponse)
        assert response.status == 201
        assert response.text == '{"a": 1}'


class TestRedirectResponse:
    def test_defaults(self) -> None:
        response = RedirectResponse(target="https://example.com/next")
        assert response.status == 302
        assert response.get_header_line("Location") == "https://example.com/next"
        assert isinstance(response.target, Uri)
        assert 'url=https://example.com/next"' in response.text

    def test_body_escapes_target(self) -> None:
        response = RedirectResponse(target="https://example.com/?a=1&b=2")
        assert "a=1&amp;b=2" in response.text

    def test_custom_status(self) -> None:
        assert RedirectResponse(target="/x", status=301).status == 301

    def test_with_target(self) -> None:
        response = RedirectResponse(target="https://example.com/a")
        moved = response.with_target("https://example.com/b")
        assert moved.get_header_line("Location") == "https://example.com/b"
        assert "https://example.com/b" in moved.text
        assert response.with_target("https://example.com/a") is response
