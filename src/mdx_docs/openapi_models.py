"""Data models for normalized OpenAPI specifications."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

_NO_SCHEMAS: Mapping[str, "Schema"] = MappingProxyType({})

MAX_EXAMPLE_DEPTH = 5

_FORMAT_EXAMPLES = {
    "uuid": "550e8400-e29b-41d4-a716-446655440000",
    "date-time": "2024-01-15T09:30:00Z",
    "date": "2024-01-15",
    "uri": "https://example.com",
    "url": "https://example.com",
    "email": "user@example.com",
}


class HttpMethod(str, Enum):
    """HTTP method of an API operation."""

    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"
    PATCH = "PATCH"
    TRACE = "TRACE"

    @classmethod
    def parse(cls, value: str) -> "HttpMethod | None":
        """Parse a method name case-insensitively.

        Args:
            value: Method name such as ``get``.

        Returns:
            Matching method, or None.
        """
        try:
            return cls(value.upper())
        except ValueError:
            return None


class ParameterLocation(str, Enum):
    """Where a parameter is sent."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


@dataclass(frozen=True)
class Schema:
    """Normalized JSON schema.

    ``type`` is ``"unknown"`` for references that could not be resolved
    (missing, external or cyclic); ``ref_name`` then names the reference.
    """

    type: str = "any"
    format: str | None = None
    description: str | None = None
    ref_name: str | None = None
    properties: Mapping[str, "Schema"] = field(default_factory=lambda: _NO_SCHEMAS)
    required: tuple[str, ...] = ()
    items: "Schema | None" = None
    enum: tuple[str, ...] = ()
    one_of: tuple["Schema", ...] = ()
    any_of: tuple["Schema", ...] = ()
    all_of: tuple["Schema", ...] = ()
    nullable: bool = False
    default: str | None = None
    example: str | None = None

    @property
    def is_unknown(self) -> bool:
        """Whether this is the opaque unresolved-schema marker."""
        return self.type == "unknown"

    def type_label(self) -> str:
        """Short human-readable type, e.g. ``array<User>``.

        Returns:
            Type label.
        """
        if self.type == "array" and self.items is not None:
            return f"array<{self.items.type_label()}>"
        if self.ref_name and not self.is_unknown:
            return self.ref_name
        if self.format:
            return f"{self.type}({self.format})"
        return self.type

    def generate_example(self, depth: int = 0) -> Any:
        """Build a placeholder value for this schema.

        An explicit ``example`` wins; otherwise the value follows the type,
        format, enum and default. Nesting deeper than ``MAX_EXAMPLE_DEPTH``
        and unresolved references yield an empty object.

        Args:
            depth: Nesting depth of this schema within the example.

        Returns:
            JSON-compatible value.
        """
        if depth > MAX_EXAMPLE_DEPTH or self.is_unknown:
            return {}
        if self.example is not None:
            try:
                return json.loads(self.example)
            except ValueError:
                return self.example

        if self.type == "string":
            if self.enum:
                return self.enum[0]
            return _FORMAT_EXAMPLES.get(self.format or "", "string")
        if self.type == "integer":
            if self.default is not None and self.default.lstrip("-").isdigit():
                return int(self.default)
            return 0
        if self.type == "number":
            return 0.0
        if self.type == "boolean":
            return True
        if self.type == "null":
            return None
        if self.type == "array":
            return [] if self.items is None else [self.items.generate_example(depth + 1)]
        if self.type == "object":
            return {name: prop.generate_example(depth + 1) for name, prop in self.properties.items()}

        choices = self.one_of or self.any_of
        if choices:
            return choices[0].generate_example(depth)
        if self.all_of:
            merged: dict[str, Any] = {}
            for part in self.all_of:
                value = part.generate_example(depth)
                if isinstance(value, dict):
                    merged.update(value)
            return merged
        return "any"


UNKNOWN_SCHEMA = Schema(type="unknown")


def _example_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


@dataclass(frozen=True)
class Parameter:
    """Operation parameter."""

    name: str
    location: ParameterLocation
    required: bool = False
    schema: Schema | None = None
    description: str | None = None
    deprecated: bool = False


@dataclass(frozen=True)
class RequestBody:
    """Operation request body."""

    schema: Schema | None
    media_type: str | None = None
    required: bool = False
    description: str | None = None


@dataclass(frozen=True)
class ApiResponse:
    """Response declared for one status code (or ``default``)."""

    status: str
    description: str = ""
    schema: Schema | None = None
    media_type: str | None = None


@dataclass(frozen=True)
class Operation:
    """One HTTP method + path entry of an API specification."""

    operation_id: str
    method: HttpMethod
    path: str
    slug: str
    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    parameters: tuple[Parameter, ...] = ()
    request_body: RequestBody | None = None
    responses: Mapping[str, ApiResponse] = field(default_factory=lambda: MappingProxyType({}))
    deprecated: bool = False

    @property
    def title(self) -> str:
        """Display title: summary, or the slug with spaces."""
        return self.summary or self.slug.replace("-", " ")

    def response_for(self, status: int | str) -> ApiResponse | None:
        """Find the response for a status code.

        Exact codes win over ranges such as ``4XX``, which win over ``default``.

        Args:
            status: HTTP status code.

        Returns:
            Matching response, or None.
        """
        code = str(status)
        if code in self.responses:
            return self.responses[code]
        range_key = f"{code[:1]}XX"
        for key, response in self.responses.items():
            if key.upper() == range_key:
                return response
        return self.responses.get("default")

    def generate_curl(self, base_url: str) -> str:
        """Build an example ``curl`` command for this operation.

        Path parameters are substituted and query parameters appended with
        values generated from their schemas. A JSON request body is sent as
        a generated example payload.

        Args:
            base_url: Server URL the path is appended to.

        Returns:
            Multi-line shell command.
        """
        parts = ["curl"]
        if self.method is not HttpMethod.GET:
            parts.append(f"-X {self.method.value}")

        url = f"{base_url.rstrip('/')}{self.path}"
        query: list[str] = []
        for param in self.parameters:
            if param.location is ParameterLocation.PATH:
                placeholder = f"{{{param.name}}}"
                value = placeholder if param.schema is None else _example_text(param.schema.generate_example())
                url = url.replace(placeholder, value)
            elif param.location is ParameterLocation.QUERY and param.schema is not None:
                query.append(f"{param.name}={_example_text(param.schema.generate_example())}")
        if query:
            url = f"{url}?{'&'.join(query)}"
        parts.append(f'"{url}"')

        body = self.request_body
        if body is not None:
            parts.append(f'-H "Content-Type: {body.media_type or "application/json"}"')
            if body.schema is not None and body.media_type and "json" in body.media_type:
                parts.append(f"-d '{json.dumps(body.schema.generate_example(), indent=2)}'")
        return " \\\n  ".join(parts)

    def generate_response_example(self) -> tuple[str, str] | None:
        """Example payload of the first 2xx response that declares a schema.

        Returns:
            Status code and pretty-printed JSON, or None.
        """
        for status, response in self.responses.items():
            if status.startswith("2") and response.schema is not None:
                return status, json.dumps(response.schema.generate_example(), indent=2)
        return None


@dataclass(frozen=True)
class ApiInfo:
    """Title, version and description of an API."""

    title: str = ""
    version: str = ""
    description: str | None = None


@dataclass(frozen=True)
class ApiServer:
    """Server the API is served from."""

    url: str
    description: str | None = None


@dataclass(frozen=True)
class ApiTag:
    """Tag used to group operations."""

    name: str
    description: str | None = None


@dataclass(frozen=True)
class ApiEndpointEntry:
    """Sidebar entry for an API operation."""

    slug: str
    path: str
    title: str
    method: HttpMethod


@dataclass(frozen=True)
class ApiSidebarGroup:
    """Operations sharing one tag."""

    tag: ApiTag
    entries: tuple[ApiEndpointEntry, ...]


OTHER_TAG = ApiTag(name="Other")


@dataclass(frozen=True)
class NormalizedSpec:
    """Operations and metadata derived from one API specification."""

    info: ApiInfo
    operations: tuple[Operation, ...]
    tags: tuple[ApiTag, ...] = ()
    servers: tuple[ApiServer, ...] = ()
    schemas: Mapping[str, Schema] = field(default_factory=lambda: _NO_SCHEMAS)

    def operation(self, slug: str) -> Operation | None:
        """Find an operation by slug.

        Args:
            slug: Operation slug.

        Returns:
            Operation, or None if absent.
        """
        for op in self.operations:
            if op.slug == slug:
                return op
        return None

    def sidebar(self, prefix: str) -> tuple[ApiSidebarGroup, ...]:
        """Group operations by declared tag for the sidebar.

        Operations listed under several tags appear in each group. Operations
        without a known tag are collected under ``Other``.

        Args:
            prefix: Path prefix the specification is mounted under.

        Returns:
            Non-empty tag groups in tag order.
        """
        prefix = prefix.strip("/")
        groups: list[ApiSidebarGroup] = []
        for tag in self.tags:
            entries = tuple(_endpoint(op, prefix) for op in self.operations if tag.name in op.tags)
            if entries:
                groups.append(ApiSidebarGroup(tag=tag, entries=entries))

        known = {tag.name for tag in self.tags}
        untagged = tuple(
            _endpoint(op, prefix) for op in self.operations if not any(t in known for t in op.tags)
        )
        if untagged:
            groups.append(ApiSidebarGroup(tag=OTHER_TAG, entries=untagged))
        return tuple(groups)


def _endpoint(op: Operation, prefix: str) -> ApiEndpointEntry:
    return ApiEndpointEntry(slug=op.slug, path=f"{prefix}/{op.slug}", title=op.title, method=op.method)
