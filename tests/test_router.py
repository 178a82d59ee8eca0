"""Tests for everest.routing.router: registration API and tree dispatch."""

import pytest

from everest.config import RouterConfig
from everest.errors import ConfigurationError, HttpException, NotFound
from everest.http.methods import Method
from everest.http.request import Request, ServerRequest
from everest.http.response import JsonResponse, RedirectResponse, Response
from everest.http.uri import Uri
from everest.routing.route import Route
from everest.routing.router import PARAMETER_ATTRIBUTE, ContextBuilder, Router
from everest.testing import make_request


def _text(text: str):
    return lambda request: text


class TestRouterBasics:
    def test_root_route(self) -> None:
        router = Router().get("", _text("home"))
        response = router.handle(make_request("GET", "/"))
        assert response.status == 200
        assert response.text == "home"

    def test_plain_request_is_promoted(self) -> None:
        router = Router().get("hello", _text("hi"))
        response = router.handle(Request(uri="/hello"))
        assert response.text == "hi"

    def test_parameters_become_attributes(self) -> None:
        seen: list[ServerRequest] = []

        def show(request: ServerRequest) -> str:
            seen.append(request)
            return f"user {request.get_attribute('id')}"

        router = Router().get("user/{id}", show)
        response = router.handle(make_request("GET", "/user/42"))

        assert response.text == "user 42"
        assert seen[0].get_attribute(PARAMETER_ATTRIBUTE) == {"id": "42"}

    def test_unmatched_raises_not_found(self) -> None:
        with pytest.raises(NotFound) as exc_info:
            Router().handle(make_request("GET", "/missing"))
        assert exc_info.value.status == 404
        assert exc_info.value.detail == "Not Found"

    def test_debug_not_found_names_request(self) -> None:
        router = Router(RouterConfig(debug=True))
        with pytest.raises(NotFound, match="No route matches GET /missing"):
            router.handle(make_request("GET", "/missing"))

    def test_builder_methods_chain(self) -> None:
        router = Router()
        assert router.get("a", _text("a")).post("b", _text("b")) is router

    def test_prebuilt_route(self) -> None:
        router = Router().route(Route("x/{n}", "PUT").validate("n", "\\d+"), _text("put"))
        assert router.handle(make_request("PUT", "/x/1")).text == "put"
        with pytest.raises(NotFound):
            router.handle(make_request("PUT", "/x/a"))


class TestMethodFiltering:
    def test_get_matches_get_and_head(self) -> None:
        router = Router().get("page", _text("page"))
        assert router.handle(make_request("GET", "/page")).text == "page"
        assert router.handle(make_request("HEAD", "/page")).text == "page"
        with pytest.raises(NotFound):
            router.handle(make_request("POST", "/page"))

    @pytest.mark.parametrize(
        ("register", "method"),
        [
            ("post", "POST"),
            ("put", "PUT"),
            ("patch", "PATCH"),
            ("delete", "DELETE"),
            ("options", "OPTIONS"),
        ],
    )
    def test_single_method_helpers(self, register: str, method: str) -> None:
        router = Router()
        getattr(router, register)("item", _text(method))
        assert router.handle(make_request(method, "/item")).text == method
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/item"))

    def test_any(self) -> None:
        router = Router().any("item", _text("any"))
        for method in ("GET", "POST", "TRACE", "CONNECT"):
            assert router.handle(make_request(method, "/item")).text == "any"

    def test_request_with_mask(self) -> None:
        router = Router().request("item", Method.PUT | Method.PATCH, _text("write"))
        assert router.handle(make_request("PATCH", "/item")).text == "write"
        with pytest.raises(NotFound):
            router.handle(make_request("DELETE", "/item"))


class TestRouteOrdering:
    def test_first_registered_wins(self) -> None:
        router = Router().get("x/{any}", _text("first")).get("x/fixed", _text("second"))
        assert router.handle(make_request("GET", "/x/fixed")).text == "first"

    def test_none_falls_through(self) -> None:
        router = Router().get("x", lambda request: None).get("x", _text("second"))
        assert router.handle(make_request("GET", "/x")).text == "second"

    def test_all_none_is_not_found(self) -> None:
        router = Router().get("x", lambda request: None)
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/x"))

    def test_sub_contexts_before_local_routes(self) -> None:
        router = Router().get("api/x", _text("root"))
        router.context("api", lambda ctx: ctx.get("x", _text("context")))
        assert router.handle(make_request("GET", "/api/x")).text == "context"


class TestContexts:
    def test_nested_prefix_composition(self) -> None:
        def inner(ctx: ContextBuilder) -> None:
            ctx.get("c", _text("abc"))

        router = Router().context("a", lambda ctx: ctx.context("b", inner))
        assert router.handle(make_request("GET", "/a/b/c")).text == "abc"
        inner_context = router.root.sub_contexts[0].sub_contexts[0]
        assert inner_context.prefixed_path == "a/b"
        assert inner_context.routes[0][0].prefix == "a/b"

    def test_prefix_is_segment_aware(self) -> None:
        router = Router().context("api", lambda ctx: ctx.any("*", _text("api")))
        assert router.handle(make_request("GET", "/api")).text == "api"
        assert router.handle(make_request("GET", "/api/anything/deep")).text == "api"
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/apiary"))

    def test_prefix_with_placeholder(self) -> None:
        def posts(ctx: ContextBuilder) -> None:
            ctx.get(
                "posts/{pid}",
                lambda request: f"{request.get_attribute('uid')}:{request.get_attribute('pid')}",
            )

        router = Router().context("user/{uid}", posts)
        assert router.handle(make_request("GET", "/user/7/posts/9")).text == "7:9"

    def test_prefixless_context(self) -> None:
        router = Router().context(lambda ctx: ctx.get("x", _text("grouped")))
        assert router.handle(make_request("GET", "/x")).text == "grouped"

    def test_configurator_runs_lazily_once(self) -> None:
        calls: list[int] = []

        def configure(ctx: ContextBuilder) -> None:
            calls.append(1)
            ctx.get("x", _text("x"))

        router = Router().get("other", _text("other")).context("lazy", configure)
        router.handle(make_request("GET", "/other"))
        assert calls == []

        router.handle(make_request("GET", "/lazy/x"))
        router.handle(make_request("GET", "/lazy/x"))
        assert calls == [1]

    def test_compile_runs_every_configurator(self) -> None:
        calls: list[str] = []

        def inner(ctx: ContextBuilder) -> None:
            calls.append("inner")
            ctx.get("x", _text("x"))

        def outer(ctx: ContextBuilder) -> None:
            calls.append("outer")
            ctx.context("b", inner)

        router = Router().context("a", outer)
        assert router.compile() is router
        assert calls == ["outer", "inner"]

    def test_empty_context_is_configuration_error(self) -> None:
        router = Router().context("empty", lambda ctx: None)
        with pytest.raises(ConfigurationError, match="neither routes nor sub-contexts"):
            router.handle(make_request("GET", "/empty"))

    def test_empty_root_is_not_an_error(self) -> None:
        with pytest.raises(NotFound):
            Router().handle(make_request("GET", "/"))

    def test_context_without_configurator(self) -> None:
        with pytest.raises(ConfigurationError, match="needs a configurator"):
            Router().context("api")

    def test_context_prefix_must_be_str(self) -> None:
        with pytest.raises(ConfigurationError, match="prefix must be a str"):
            Router().context(42, lambda ctx: None)  # type: ignore[arg-type]

    def test_builder_repr(self) -> None:
        builders: list[ContextBuilder] = []
        Router().context("api", builders.append).compile()
        assert repr(builders[0]) == "ContextBuilder('api')"


class TestHostFilter:
    def _router(self) -> Router:
        router = Router()
        router.context(lambda ctx: ctx.host("API.example.com").get("x", _text("api host")))
        router.get("x", _text("any host"))
        return router

    def test_matching_host(self) -> None:
        response = self._router().handle(make_request("GET", "/x", host="api.example.com"))
        assert response.text == "api host"

    def test_other_host_skips_context(self) -> None:
        response = self._router().handle(make_request("GET", "/x", host="www.example.com"))
        assert response.text == "any host"


class TestValidation:
    def test_context_pattern_filters_routes(self) -> None:
        def users(ctx: ContextBuilder) -> None:
            ctx.validate("id", "^\\d+$")
            ctx.get("{id}", _text("by id"))

        router = Router().context("users", users)
        assert router.handle(make_request("GET", "/users/12")).text == "by id"
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/users/abc"))

    def test_pattern_is_searched_not_anchored(self) -> None:
        router = Router().validate("slug", "\\d").get("post/{slug}", _text("post"))
        assert router.handle(make_request("GET", "/post/a1b")).text == "post"

    def test_invalid_pattern(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid pattern"):
            Router().validate("id", "(")

    def test_invalid_template(self) -> None:
        with pytest.raises(ConfigurationError, match="does not compile"):
            Router().get("x/{id|(}", _text("x"))


class TestRegistrationErrors:
    def test_non_callable_handler(self) -> None:
        with pytest.raises(ConfigurationError, match="must be callable"):
            Router().get("x", "not a handler")  # type: ignore[arg-type]

    def test_non_callable_middleware(self) -> None:
        with pytest.raises(ConfigurationError, match="must be callable"):
            Router().before(42)  # type: ignore[arg-type]

    def test_unknown_method(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown HTTP method"):
            Router().request("x", "FETCH", _text("x"))

    def test_middleware_alias_is_deprecated(self) -> None:
        router = Router()
        with pytest.warns(DeprecationWarning, match="use before"):
            router.middleware(lambda next, request: next(request))
        assert len(router.root.local_middlewares("before")) == 1

    def test_shared_route_in_two_contexts(self) -> None:
        shared = Route("x")
        router = Router().route(shared, _text("root"))
        router.context("api", lambda ctx: ctx.route(shared, _text("api")))
        with pytest.raises(ConfigurationError, match="already registered under prefix ''"):
            router.compile()
        assert router.handle(make_request("GET", "/x")).text == "root"

    def test_same_route_twice_in_one_context(self) -> None:
        shared = Route("x")
        router = Router().route(shared, _text("first")).route(shared, _text("second"))
        assert router.handle(make_request("GET", "/x")).text == "first"


class TestMiddlewareDispatch:
    def test_before_middleware_order_and_visibility(self) -> None:
        seen: list[str] = []

        def outer(next, request):
            seen.append("outer")
            return next(request.with_attribute("user", "bob"))

        def inner(next, request):
            seen.append(f"inner sees {request.get_attribute('user')}")
            return next(request)

        router = Router().before(outer)
        router.context("a", lambda ctx: ctx.before(inner).get("x", lambda r: r.get_attribute("user")))

        response = router.handle(make_request("GET", "/a/x"))
        assert response.text == "bob"
        assert seen == ["outer", "inner sees bob"]

    def test_short_circuit_skips_inner_and_handler(self) -> None:
        seen: list[str] = []

        def deny(next, request):
            return Response("denied", status=403)

        def inner(next, request):
            seen.append("inner")
            return next(request)

        def handler(request):
            seen.append("handler")
            return "ok"

        router = Router().before(deny, inner).get("x", handler)
        response = router.handle(make_request("GET", "/x"))
        assert response.status == 403
        assert seen == []

    def test_before_middleware_runs_once_per_request(self) -> None:
        calls: list[int] = []

        def count(next, request):
            calls.append(1)
            return next(request)

        router = Router().before(count)
        router.context("a", lambda ctx: ctx.get("x", _text("x")))
        router.context("b", lambda ctx: ctx.get("y", _text("y")))
        router.handle(make_request("GET", "/b/y"))
        assert calls == [1]

    def test_after_middleware_leaf_first(self) -> None:
        def tag(name: str):
            def after(next, response):
                return next(response.with_body(f"{response.text}|{name}"))

            return after

        router = Router().after(tag("root"))
        router.context("a", lambda ctx: ctx.after(tag("a")).get("x", _text("body")))
        assert router.handle(make_request("GET", "/a/x")).text == "body|a|root"

    def test_after_middleware_next_coerces(self) -> None:
        router = Router().after(lambda next, response: next({"wrapped": response.text}))
        router.get("x", _text("inner"))
        response = router.handle(make_request("GET", "/x"))
        assert isinstance(response, JsonResponse)
        assert response.data == {"wrapped": "inner"}

    def test_after_middleware_skipped_on_no_match(self) -> None:
        calls: list[int] = []

        def after(next, response):
            calls.append(1)
            return next(response)

        router = Router().context("a", lambda ctx: ctx.after(after).get("x", _text("x")))
        router.get("b", _text("b"))
        router.handle(make_request("GET", "/b"))
        assert calls == []

    def test_short_circuit_still_wrapped_by_ancestors(self) -> None:
        def deny(next, request):
            return Response("denied", status=401)

        def local_after(next, response):
            return next(response.with_header("X-Local", "1"))

        router = Router().after(lambda next, response: next(response.with_header("X-Root", "1")))
        router.context("a", lambda ctx: ctx.before(deny).after(local_after).get("x", _text("x")))

        response = router.handle(make_request("GET", "/a/x"))
        assert response.status == 401
        assert response.has_header("X-Root")
        assert not response.has_header("X-Local")

    def test_extras_reach_handler(self) -> None:
        def load_user(next, request):
            return next(request.with_extra("bob", 42))

        router = Router().before(load_user).get("x", lambda request: list(request.extras))
        response = router.handle(make_request("GET", "/x"))
        assert response.data == ["bob", 42]

    def test_before_middleware_bad_return(self) -> None:
        router = Router().before(lambda next, request: "nope").get("x", _text("x"))
        with pytest.raises(ConfigurationError, match="Before middleware"):
            router.handle(make_request("GET", "/x"))

    def test_after_middleware_bad_return(self) -> None:
        router = Router().after(lambda next, response: "nope").get("x", _text("x"))
        with pytest.raises(ConfigurationError, match="After middleware"):
            router.handle(make_request("GET", "/x"))


class TestDefaultHandler:
    def test_default_handles_unmatched(self) -> None:
        router = Router().get("x", _text("x")).otherwise(lambda request, original: "fallback")
        assert router.handle(make_request("GET", "/nowhere")).text == "fallback"

    def test_default_receives_processed_and_original(self) -> None:
        def add_user(next, request):
            return next(request.with_attribute("user", "bob"))

        def fallback(request, original):
            return f"{request.get_attribute('user')}|{original.get_attribute('user')}"

        router = Router().before(add_user).otherwise(fallback)
        assert router.handle(make_request("GET", "/nowhere")).text == "bob|None"

    def test_default_returning_none_is_no_match(self) -> None:
        router = Router().otherwise(lambda request, original: None)
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/nowhere"))

    def test_context_default_only_inside_prefix(self) -> None:
        router = Router()
        router.context("api", lambda ctx: ctx.get("x", _text("x")).otherwise(lambda r, o: "api fallback"))
        assert router.handle(make_request("GET", "/api/unknown")).text == "api fallback"
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/elsewhere"))


class TestErrorHandler:
    def test_error_handler_result_is_coerced(self) -> None:
        def fail(request):
            raise ValueError("bad input")

        router = Router().get("x", fail).error(lambda exc, request: {"error": str(exc)})
        response = router.handle(make_request("GET", "/x"))
        assert isinstance(response, JsonResponse)
        assert response.data == {"error": "bad input"}

    def test_error_handler_receives_processed_request(self) -> None:
        seen: list[ServerRequest] = []

        def fail(request):
            raise RuntimeError("boom")

        def on_error(exc, request):
            seen.append(request)
            return "handled"

        router = Router().before(lambda next, request: next(request.with_attribute("tag", 1)))
        router.get("x", fail).error(on_error)
        router.handle(make_request("GET", "/x"))
        assert seen[0].get_attribute("tag") == 1

    def test_without_handler_exception_propagates(self) -> None:
        def fail(request):
            raise RuntimeError("boom")

        router = Router().context("a", lambda ctx: ctx.get("x", fail))
        with pytest.raises(RuntimeError, match="boom"):
            router.handle(make_request("GET", "/a/x"))

    def test_parent_handler_catches_child_errors(self) -> None:
        def fail(request):
            raise HttpException(status=409, detail="conflict")

        router = Router().error(lambda exc, request: Response(str(exc), status=exc.status))
        router.context("a", lambda ctx: ctx.get("x", fail))
        response = router.handle(make_request("GET", "/a/x"))
        assert response.status == 409
        assert response.text == "409: conflict"

    def test_error_handlers_chain_innermost_first(self) -> None:
        def fail(request):
            raise RuntimeError("boom")

        def rethrow(suffix: str):
            def handler(exc, request):
                raise RuntimeError(f"{exc}{suffix}") from exc

            return handler

        def inner(ctx: ContextBuilder) -> None:
            ctx.error(rethrow("-b")).get("c", fail)

        def outer(ctx: ContextBuilder) -> None:
            ctx.error(rethrow("-a")).context("b", inner)

        router = Router().error(rethrow("-root")).context("a", outer)
        with pytest.raises(RuntimeError, match=r"^boom-b-a-root$"):
            router.handle(make_request("GET", "/a/b/c"))

    def test_error_handler_result_skips_local_after_middleware(self) -> None:
        def fail(request):
            raise RuntimeError("boom")

        def failing(ctx: ContextBuilder) -> None:
            ctx.after(lambda next, response: next(response.with_header("X-Local", "1")))
            ctx.get("x", fail).error(lambda exc, request: "recovered")

        router = Router().after(lambda next, response: next(response.with_header("X-Root", "1")))
        router.context("a", failing)
        response = router.handle(make_request("GET", "/a/x"))
        assert response.text == "recovered"
        assert response.get_header_line("X-Root") == "1"
        assert not response.has_header("X-Local")


class TestResultCoercion:
    def test_mapping_becomes_json(self) -> None:
        router = Router().get("x", lambda request: {"a": 1})
        response = router.handle(make_request("GET", "/x"))
        assert response.content_type == "application/json"
        assert response.text == '{"a": 1}'

    def test_list_becomes_json(self) -> None:
        router = Router().get("x", lambda request: [1, 2])
        assert router.handle(make_request("GET", "/x")).text == "[1, 2]"

    def test_uri_becomes_redirect(self) -> None:
        target = Uri.from_string("https://example.com/login")
        router = Router().get("x", lambda request: target)
        response = router.handle(make_request("GET", "/x"))
        assert isinstance(response, RedirectResponse)
        assert response.status == 302
        assert response.get_header_line("Location") == str(target)

    def test_unsupported_value(self) -> None:
        router = Router().get("x", lambda request: object())
        with pytest.raises(ConfigurationError, match="Invalid route handler return value"):
            router.handle(make_request("GET", "/x"))


class TestRouterConfigApplied:
    def test_case_sensitive(self) -> None:
        router = Router(RouterConfig(case_sensitive=True)).get("Users", _text("users"))
        assert router.handle(make_request("GET", "/Users")).text == "users"
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/users"))

    def test_case_insensitive_prefix(self) -> None:
        router = Router().context("API", lambda ctx: ctx.get("x", _text("x")))
        assert router.handle(make_request("GET", "/api/X")).text == "x"

    def test_parameter_pattern(self) -> None:
        router = Router(RouterConfig(parameter_pattern="\\d+")).get("page/{n}", _text("page"))
        assert router.handle(make_request("GET", "/page/2")).text == "page"
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/page/two"))
