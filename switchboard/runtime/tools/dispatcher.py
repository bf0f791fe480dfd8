"""ToolDispatcher: executes assistant function calls against the external API.

Function calls are routed to HTTP endpoints by convention (kebab-case
function name, POST) unless an explicit override or routing argument says
otherwise. Every call ends in a ToolResult envelope; nothing raises to the
run scheduler.
"""

import base64
import hashlib
import json
import re
from typing import Any
from urllib.parse import quote

import httpx

from switchboard.config.models.tools import AuthConfig, AuthScheme, ToolsConfig
from switchboard.db.errors import StoreError
from switchboard.errors import (
    ClientRequestError,
    ConfigurationError,
    MalformedToolArguments,
    TransientNetworkError,
    UpstreamError,
)
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import TOOL_ATTEMPTS, TOOL_CALLS
from switchboard.runtime.clock import Clock, SystemClock
from switchboard.runtime.runs.models import ToolCallRequest, ToolOutput
from switchboard.runtime.tools.cache import ResponseCache
from switchboard.runtime.tools.models import ResolvedEndpoint, ToolErrorCode, ToolResult

logger = get_logger(__name__)

# Arguments that steer routing and are never forwarded
ROUTING_KEYS = frozenset({"path", "url", "endpoint", "method", "http_method", "auth", "headers"})

QUERY_METHODS = frozenset({"GET", "DELETE"})

_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def kebab_case(function_name: str) -> str:
    """create_order / createOrder -> create-order"""
    return _CAMEL_BOUNDARY.sub("-", function_name).replace("_", "-").lower()


def format_upstream_detail(response: httpx.Response) -> str | None:
    """Extract a readable error detail from an upstream error response.

    FastAPI validation errors (`detail` as a list of `{loc, msg}`) are
    rendered as `field: msg; field: msg`.
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:500] or None

    if not isinstance(body, dict):
        return None

    detail = body.get("detail")
    if isinstance(detail, list):
        parts = []
        for item in detail:
            if isinstance(item, dict):
                loc = item.get("loc") or []
                field = loc[-1] if loc else "body"
                parts.append(f"{field}: {item.get('msg', '')}")
            else:
                parts.append(str(item))
        return "; ".join(parts) or None
    if isinstance(detail, str):
        return detail

    message = body.get("message") or body.get("error")
    return message if isinstance(message, str) else None


class ToolDispatcher:
    """Dispatch tool calls to the external HTTP API.

    Retries transport failures, 5xx and 429 with exponential backoff; other
    4xx responses are final. Successful GET responses are cached.
    """

    def __init__(
        self,
        config: ToolsConfig,
        cache: ResponseCache | None = None,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            config: Base URL, retry, cache and routing configuration
            cache: Response cache; caching is off without one
            clock: Time source for backoff sleeps
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._config = config
        self._cache = cache if config.cache_enabled else None
        self._clock = clock or SystemClock()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    # =========================================================================
    # Argument handling
    # =========================================================================

    def parse_arguments(self, function_name: str, raw_arguments: str | dict[str, Any] | None) -> dict[str, Any]:
        """Decode raw JSON arguments into an object.

        Raises:
            MalformedToolArguments: Not JSON, or JSON but not an object
        """
        if raw_arguments is None or raw_arguments == "":
            return {}
        if isinstance(raw_arguments, dict):
            return dict(raw_arguments)

        try:
            parsed = json.loads(raw_arguments)
        except (TypeError, ValueError) as e:
            raise MalformedToolArguments(function_name, cause=e) from e

        if not isinstance(parsed, dict):
            raise MalformedToolArguments(function_name)
        return parsed

    def resolve_endpoint(self, function_name: str, arguments: dict[str, Any]) -> ResolvedEndpoint:
        """Work out path, method and forwarded arguments for a call.

        Raises:
            ConfigurationError: No base URL configured
            MalformedToolArguments: An override path placeholder has no argument
        """
        if not self._config.base_url:
            raise ConfigurationError("External API base URL is not configured")

        args = dict(arguments)
        override = self._config.endpoints.get(function_name)

        if override is not None:
            path = override.path
            method = override.method
            for name in _PLACEHOLDER.findall(path):
                if name not in args:
                    raise MalformedToolArguments(
                        function_name, message=f"missing path argument '{name}'"
                    )
                path = path.replace(f"{{{name}}}", quote(str(args.pop(name)), safe=""))
        else:
            path = args.get("path") or args.get("url") or args.get("endpoint") or kebab_case(function_name)
            method = args.get("method") or args.get("http_method") or "POST"

        forwarded = self.normalize_arguments(args)
        url = f"{self._config.base_url.rstrip('/')}/{str(path).lstrip('/')}"
        return ResolvedEndpoint(
            path=str(path),
            method=str(method).upper(),
            url=url,
            arguments=forwarded,
        )

    def normalize_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Strip routing keys and apply field name corrections.

        A rename only happens when the corrected name is not already present.
        """
        args = {key: value for key, value in arguments.items() if key not in ROUTING_KEYS}

        for source, target in self._config.field_aliases.items():
            if source in args and target not in args:
                args[target] = args.pop(source)

        for name in list(args):
            for suffix, replacement in self._config.suffix_aliases.items():
                if not name.endswith(suffix):
                    continue
                target = name[: -len(suffix)] + replacement
                if target != name and target not in args:
                    args[target] = args.pop(name)
                break

        return args

    def auth_headers(self, auth: AuthConfig) -> dict[str, str]:
        """Build headers for the configured auth scheme.

        Raises:
            ConfigurationError: Scheme requires a credential that is missing
        """
        if auth.scheme == AuthScheme.NONE:
            return {}

        if auth.scheme == AuthScheme.BASIC:
            if not auth.username or auth.password is None:
                raise ConfigurationError("Basic auth requires username and password")
            raw = f"{auth.username}:{auth.password.get_secret_value()}".encode()
            return {"Authorization": f"Basic {base64.b64encode(raw).decode()}"}

        if auth.token is None:
            raise ConfigurationError(f"Auth scheme '{auth.scheme.value}' requires a token")
        token = auth.token.get_secret_value()

        if auth.scheme == AuthScheme.BEARER:
            return {"Authorization": f"Bearer {token}"}
        return {auth.header_name: token}

    @staticmethod
    def cache_key(method: str, url: str, arguments: dict[str, Any]) -> str:
        body = json.dumps(arguments, sort_keys=True, default=str)
        body_hash = hashlib.sha256(body.encode()).hexdigest()
        return hashlib.sha256(f"{method}{url}{body_hash}".encode()).hexdigest()

    # =========================================================================
    # HTTP
    # =========================================================================

    async def call(self, function_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Send a call and return the successful result.

        Raises:
            ConfigurationError: Missing base URL or credentials
            MalformedToolArguments: Override path cannot be filled
            ClientRequestError: Upstream answered a non-retryable 4xx
            UpstreamError: 5xx/429 on every attempt
            TransientNetworkError: Transport failure on every attempt
        """
        endpoint = self.resolve_endpoint(function_name, arguments)
        override = self._config.endpoints.get(function_name)
        auth = override.auth if override is not None and override.auth else self._config.auth
        headers = {**self._config.default_headers, **self.auth_headers(auth)}

        cache_key = None
        if self._cache is not None and endpoint.method == "GET":
            cache_key = self.cache_key(endpoint.method, endpoint.url, endpoint.arguments)
            cached = await self._cache_get(cache_key)
            if cached is not None:
                logger.info(
                    "tool_call_cache_hit",
                    function_name=function_name,
                    path=endpoint.path,
                )
                return ToolResult.ok(cached["status"], cached.get("data"), cached=True)

        response = await self._send_with_retry(function_name, endpoint, headers)
        data = self._decode_body(response)

        if cache_key is not None:
            await self._cache_set(cache_key, {"status": response.status_code, "data": data})

        return ToolResult.ok(response.status_code, data)

    async def _send_with_retry(
        self,
        function_name: str,
        endpoint: ResolvedEndpoint,
        headers: dict[str, str],
    ) -> httpx.Response:
        client = await self._ensure_client()
        request_kwargs: dict[str, Any] = {"headers": headers}
        if endpoint.method in QUERY_METHODS:
            request_kwargs["params"] = self._query_params(endpoint.arguments)
        else:
            request_kwargs["json"] = endpoint.arguments

        max_attempts = self._config.max_attempts
        for attempt in range(1, max_attempts + 1):
            logger.debug(
                "tool_call_attempt",
                function_name=function_name,
                method=endpoint.method,
                path=endpoint.path,
                attempt=attempt,
            )
            try:
                response = await client.request(endpoint.method, endpoint.url, **request_kwargs)
            except httpx.TransportError as e:
                logger.warning(
                    "tool_call_transport_error",
                    function_name=function_name,
                    path=endpoint.path,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt == max_attempts:
                    TOOL_ATTEMPTS.observe(attempt)
                    raise TransientNetworkError(
                        f"No response from external API after {attempt} attempts: {e}",
                        cause=e,
                    ) from e
            else:
                status = response.status_code

                if response.is_success:
                    TOOL_ATTEMPTS.observe(attempt)
                    return response

                if status != 429 and status < 500:
                    TOOL_ATTEMPTS.observe(attempt)
                    detail = format_upstream_detail(response)
                    logger.warning(
                        "tool_call_client_error",
                        function_name=function_name,
                        path=endpoint.path,
                        status_code=status,
                        detail=detail,
                    )
                    message = f"External API rejected the request ({status})"
                    if detail:
                        message = f"{message}: {detail}"
                    raise ClientRequestError(message, status_code=status, detail=detail)

                logger.warning(
                    "tool_call_server_error",
                    function_name=function_name,
                    path=endpoint.path,
                    attempt=attempt,
                    status_code=status,
                    response_preview=response.text[:200],
                )
                if attempt == max_attempts:
                    TOOL_ATTEMPTS.observe(attempt)
                    raise UpstreamError(
                        f"External API failed with {status} after {attempt} attempts",
                        status_code=status,
                    )

            await self._clock.sleep(self._config.backoff_base_seconds * 2 ** (attempt - 1))

        raise AssertionError("unreachable")

    @staticmethod
    def _query_params(arguments: dict[str, Any]) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for key, value in arguments.items():
            if value is None:
                continue
            if isinstance(value, dict | list):
                params[key] = json.dumps(value)
            else:
                params[key] = value
        return params

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _cache_get(self, key: str) -> dict[str, Any] | None:
        try:
            return await self._cache.get(key)
        except StoreError as e:
            logger.warning("tool_cache_read_failed", error=str(e))
            return None

    async def _cache_set(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self._cache.set(key, value, ttl=self._config.cache_ttl_seconds)
        except StoreError as e:
            logger.warning("tool_cache_write_failed", error=str(e))

    # =========================================================================
    # Envelope API
    # =========================================================================

    async def execute(self, function_name: str, raw_arguments: str | dict[str, Any] | None) -> ToolResult:
        """Execute one function call and wrap the outcome in an envelope."""
        try:
            arguments = self.parse_arguments(function_name, raw_arguments)
            result = await self.call(function_name, arguments)
        except MalformedToolArguments as e:
            logger.warning("tool_call_malformed_arguments", function_name=function_name, error=e.message)
            result = ToolResult.fail(ToolErrorCode.FUNCTION_EXECUTION_ERROR, e.message)
        except ConfigurationError as e:
            logger.error("tool_call_misconfigured", function_name=function_name, error=e.message)
            result = ToolResult.fail(ToolErrorCode.CONFIGURATION_ERROR, e.message)
        except ClientRequestError as e:
            result = ToolResult.fail(ToolErrorCode.CLIENT_ERROR, e.message, status=e.status_code)
        except UpstreamError as e:
            result = ToolResult.fail(ToolErrorCode.UPSTREAM_ERROR, e.message, status=e.status_code)
        except TransientNetworkError as e:
            result = ToolResult.fail(ToolErrorCode.NETWORK_ERROR, e.message)
        except Exception as e:
            logger.error(
                "tool_call_failed",
                function_name=function_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = ToolResult.fail(ToolErrorCode.FUNCTION_EXECUTION_ERROR, str(e))

        outcome = "success" if result.success else result.error.code.value
        TOOL_CALLS.labels(function_name=function_name, outcome=outcome).inc()
        logger.info(
            "tool_call_completed",
            function_name=function_name,
            success=result.success,
            status_code=result.status,
            cached=result.cached,
        )
        return result

    async def tool_output(self, call: ToolCallRequest) -> ToolOutput:
        """Execute a requested call and encode it for submission."""
        result = await self.execute(call.function_name, call.arguments)
        return ToolOutput(call_id=call.call_id, output=result.to_output())

    async def clear_cache(self) -> int:
        if self._cache is None:
            return 0
        return await self._cache.clear()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
