"""Normalizer for OpenAPI 3.x and Swagger 2.0 specifications."""

import json
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any

import yaml  # type: ignore[import-untyped]

from mdx_docs.errors import OpenApiParseError
from mdx_docs.openapi_models import (
    UNKNOWN_SCHEMA,
    ApiInfo,
    ApiResponse,
    ApiServer,
    ApiTag,
    HttpMethod,
    NormalizedSpec,
    Operation,
    Parameter,
    ParameterLocation,
    RequestBody,
    Schema,
)
from mdx_docs.slugs import SlugRegistry, kebab_case, path_slug

logger = logging.getLogger(__name__)

METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
MAX_SCHEMA_DEPTH = 32
MAX_REF_HOPS = 16


def parse_openapi(spec_text: str) -> NormalizedSpec:
    """Normalize an API specification with a default OpenApiNormalizer.

    Args:
        spec_text: YAML or JSON specification text.

    Returns:
        NormalizedSpec instance.
    """
    return OpenApiNormalizer().parse(spec_text)


def operation_slug(operation_id: str) -> str:
    """Kebab-case slug for an operation id.

    Args:
        operation_id: Operation id such as ``getUserById``.

    Returns:
        Slug such as ``get-user-by-id``.
    """
    return kebab_case(operation_id)


def fallback_operation_id(method: str, path: str) -> str:
    """Operation id used when a specification omits one.

    Args:
        method: HTTP method.
        path: Path template.

    Returns:
        ``<method>-<path-slug>``, e.g. ``get-users-id``.
    """
    slug = path_slug(path)
    return f"{method.lower()}-{slug}" if slug else method.lower()


class OpenApiNormalizer:
    """Parses API specifications into operation records."""

    def parse(self, spec_text: str) -> NormalizedSpec:
        """Parse and normalize a specification.

        Args:
            spec_text: YAML or JSON specification text.

        Returns:
            NormalizedSpec instance.

        Raises:
            OpenApiParseError: If the text is not structured data or has no
                top-level ``paths`` map.
        """
        document = self._load(spec_text)
        spec = _SpecReader(document).normalize()
        logger.info("Normalized API specification %r with %d operations", spec.info.title, len(spec.operations))
        return spec

    def _load(self, spec_text: str) -> dict[str, Any]:
        """Load specification text as JSON or YAML.

        Args:
            spec_text: Specification text.

        Returns:
            Parsed top-level mapping.

        Raises:
            OpenApiParseError: If the text cannot be parsed or lacks ``paths``.
        """
        text = spec_text.strip()
        if not text:
            msg = "API specification is empty"
            raise OpenApiParseError(msg)

        data: Any = None
        loaded = False
        if text.startswith("{"):
            try:
                data = json.loads(text)
                loaded = True
            except json.JSONDecodeError:
                loaded = False
        if not loaded:
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                msg = f"API specification is not valid YAML or JSON: {exc}"
                raise OpenApiParseError(msg) from exc

        if not isinstance(data, dict):
            msg = "API specification must be a mapping at the top level"
            raise OpenApiParseError(msg)
        if not isinstance(data.get("paths"), dict):
            msg = "API specification has no top-level 'paths' map"
            raise OpenApiParseError(msg)
        return data


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _format_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def _pick_media(content: Any) -> tuple[str | None, dict[str, Any]]:
    """Choose the media type to document, preferring JSON."""
    if not isinstance(content, dict) or not content:
        return None, {}
    media_types = [str(key) for key in content]
    chosen = next(
        (media for media in media_types if media == "application/json"),
        next((media for media in media_types if "json" in media), media_types[0]),
    )
    media = content.get(chosen)
    return chosen, media if isinstance(media, dict) else {}


class _SpecReader:
    """Walks one loaded specification document."""

    def __init__(self, document: dict[str, Any]) -> None:
        self.document = document
        self.swagger = "swagger" in document
        self._resolved: dict[str, Schema] = {}
        self._truncated: dict[tuple[str, int], Schema] = {}
        self._truncations = 0

    def normalize(self) -> NormalizedSpec:
        operations = self._operations()
        return NormalizedSpec(
            info=self._info(),
            operations=tuple(operations),
            tags=self._tags(operations),
            servers=self._servers(),
            schemas=self._component_schemas(),
        )

    # References

    def _pointer(self, ref: str) -> Any:
        """Resolve a local JSON pointer such as ``#/components/schemas/User``."""
        if not ref.startswith("#"):
            return None
        node: Any = self.document
        for part in ref[1:].split("/"):
            if not part:
                continue
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(node, dict) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return None
        return node

    def _deref(self, value: Any) -> dict[str, Any] | None:
        """Follow ``$ref`` chains for non-schema objects."""
        seen: set[str] = set()
        for _ in range(MAX_REF_HOPS):
            if not isinstance(value, dict):
                return None
            ref = value.get("$ref")
            if not isinstance(ref, str):
                return value
            if ref in seen:
                return None
            seen.add(ref)
            value = self._pointer(ref)
        return None

    # Schemas

    def _schema(self, raw: Any, stack: tuple[str, ...] = (), depth: int = 0) -> Schema:
        if raw is True or raw == {}:
            return Schema()
        if not isinstance(raw, dict):
            return UNKNOWN_SCHEMA
        if depth > MAX_SCHEMA_DEPTH:
            self._truncations += 1
            return UNKNOWN_SCHEMA

        ref = raw.get("$ref")
        if isinstance(ref, str):
            return self._resolve_ref(ref, stack, depth)

        nested = depth + 1
        declared = raw.get("type")
        types = [str(t) for t in declared] if isinstance(declared, list) else [str(declared)] if declared else []
        concrete = [t for t in types if t != "null"]
        if concrete:
            schema_type = concrete[0]
        elif isinstance(raw.get("properties"), dict):
            schema_type = "object"
        elif "items" in raw:
            schema_type = "array"
        else:
            schema_type = "any"

        properties = raw.get("properties")
        required = raw.get("required")
        enum = raw.get("enum")
        return Schema(
            type=schema_type,
            format=_text(raw.get("format")),
            description=_text(raw.get("description")),
            properties=MappingProxyType(
                {str(key): self._schema(value, stack, nested) for key, value in properties.items()}
            )
            if isinstance(properties, dict)
            else MappingProxyType({}),
            required=tuple(str(name) for name in required) if isinstance(required, list) else (),
            items=self._schema(raw["items"], stack, nested) if "items" in raw else None,
            enum=tuple("null" if value is None else str(_format_value(value)) for value in enum)
            if isinstance(enum, list)
            else (),
            one_of=self._schema_list(raw.get("oneOf"), stack, nested),
            any_of=self._schema_list(raw.get("anyOf"), stack, nested),
            all_of=self._schema_list(raw.get("allOf"), stack, nested),
            nullable=bool(raw.get("nullable")) or "null" in types,
            default=_format_value(raw.get("default")),
            example=_format_value(raw.get("example")),
        )

    def _resolve_ref(self, ref: str, stack: tuple[str, ...], depth: int) -> Schema:
        """Expand a schema reference once and reuse the expansion.

        A reference already on ``stack`` is cyclic and becomes the unknown
        marker. Expansions cut short by the depth limit are reused only at the
        same depth.
        """
        name = ref.rstrip("/").rsplit("/", 1)[-1] or ref
        if ref in stack:
            logger.debug("Cyclic schema reference %s", ref)
            return Schema(type="unknown", ref_name=name)
        if ref in self._resolved:
            return self._resolved[ref]
        if (ref, depth) in self._truncated:
            self._truncations += 1
            return self._truncated[(ref, depth)]

        target = self._pointer(ref)
        if not isinstance(target, dict):
            logger.debug("Unresolved schema reference %s", ref)
            return Schema(type="unknown", ref_name=name)

        before = self._truncations
        schema = replace(self._schema(target, (*stack, ref), depth + 1), ref_name=name)
        if self._truncations == before:
            self._resolved[ref] = schema
        else:
            self._truncated[(ref, depth)] = schema
        return schema

    def _schema_list(self, raw: Any, stack: tuple[str, ...], depth: int) -> tuple[Schema, ...]:
        if not isinstance(raw, list):
            return ()
        return tuple(self._schema(item, stack, depth) for item in raw)

    def _component_schemas(self) -> MappingProxyType:
        if self.swagger:
            prefix, raw = "#/definitions/", self.document.get("definitions")
        else:
            components = self.document.get("components")
            prefix, raw = "#/components/schemas/", components.get("schemas") if isinstance(components, dict) else None
        if not isinstance(raw, dict):
            return MappingProxyType({})
        return MappingProxyType(
            {str(name): self._schema({"$ref": f"{prefix}{name}"}) for name in raw}
        )

    # Metadata

    def _info(self) -> ApiInfo:
        info = self.document.get("info")
        if not isinstance(info, dict):
            return ApiInfo()
        return ApiInfo(
            title=_text(info.get("title")) or "",
            version=_text(info.get("version")) or "",
            description=_text(info.get("description")),
        )

    def _servers(self) -> tuple[ApiServer, ...]:
        if self.swagger:
            host = self.document.get("host")
            if not host:
                return ()
            schemes = self.document.get("schemes") or ["https"]
            base_path = self.document.get("basePath") or ""
            return tuple(ApiServer(url=f"{scheme}://{host}{base_path}") for scheme in schemes)
        servers = self.document.get("servers")
        if not isinstance(servers, list):
            return ()
        return tuple(
            ApiServer(url=str(server["url"]), description=_text(server.get("description")))
            for server in servers
            if isinstance(server, dict) and "url" in server
        )

    def _tags(self, operations: list[Operation]) -> tuple[ApiTag, ...]:
        tags: dict[str, ApiTag] = {}
        declared = self.document.get("tags")
        if isinstance(declared, list):
            for tag in declared:
                if isinstance(tag, dict) and tag.get("name"):
                    name = str(tag["name"])
                    tags[name] = ApiTag(name=name, description=_text(tag.get("description")))
        for op in operations:
            for name in op.tags:
                tags.setdefault(name, ApiTag(name=name))
        return tuple(tags.values())

    # Operations

    def _operations(self) -> list[Operation]:
        slugs = SlugRegistry(first_suffix=2)
        operations: list[Operation] = []
        for raw_path, raw_item in self.document["paths"].items():
            path = str(raw_path)
            item = self._deref(raw_item)
            if item is None:
                logger.debug("Skipping unresolved path item %s", path)
                continue
            path_parameters = item.get("parameters")
            for method in METHODS:
                raw_op = item.get(method)
                if not isinstance(raw_op, dict):
                    continue
                operation = self._operation(path, method, raw_op, path_parameters)
                slug = slugs.claim(operation.slug)
                if slug != operation.slug:
                    logger.warning(
                        "Duplicate operation slug %r for %s %s; using %r", operation.slug, method.upper(), path, slug
                    )
                    operation = replace(operation, slug=slug)
                operations.append(operation)
        return operations

    def _operation(self, path: str, method: str, raw: dict[str, Any], path_parameters: Any) -> Operation:
        operation_id = _text(raw.get("operationId")) or fallback_operation_id(method, path)
        parameters, body_parameter, form_parameters = self._parameters(path_parameters, raw.get("parameters"))
        tags = raw.get("tags")
        return Operation(
            operation_id=operation_id,
            method=HttpMethod(method.upper()),
            path=path,
            slug=operation_slug(operation_id) or fallback_operation_id(method, path),
            summary=_text(raw.get("summary")),
            description=_text(raw.get("description")),
            tags=tuple(str(tag) for tag in tags) if isinstance(tags, list) else (),
            parameters=parameters,
            request_body=self._request_body(raw, body_parameter, form_parameters),
            responses=self._responses(raw.get("responses")),
            deprecated=bool(raw.get("deprecated")),
        )

    def _parameters(
        self, path_level: Any, operation_level: Any
    ) -> tuple[tuple[Parameter, ...], dict[str, Any] | None, list[dict[str, Any]]]:
        """Merge path-level and operation-level parameters.

        Operation-level declarations replace path-level ones with the same name,
        keeping the original position. Swagger ``body`` and ``formData``
        parameters are returned separately for the request body.
        """
        merged: dict[str, Parameter] = {}
        body: dict[str, Any] | None = None
        form: dict[str, dict[str, Any]] = {}
        for declarations in (path_level, operation_level):
            if not isinstance(declarations, list):
                continue
            for declaration in declarations:
                raw = self._deref(declaration)
                if raw is None or "name" not in raw or "in" not in raw:
                    logger.debug("Skipping malformed parameter %r", declaration)
                    continue
                name, location = str(raw["name"]), str(raw["in"])
                if location == "body":
                    body = raw
                    continue
                if location == "formData":
                    form[name] = raw
                    continue
                try:
                    param_location = ParameterLocation(location)
                except ValueError:
                    logger.debug("Skipping parameter %s with unknown location %r", name, location)
                    continue
                merged[name] = Parameter(
                    name=name,
                    location=param_location,
                    required=param_location is ParameterLocation.PATH or bool(raw.get("required")),
                    schema=self._parameter_schema(raw),
                    description=_text(raw.get("description")),
                    deprecated=bool(raw.get("deprecated")),
                )
        return tuple(merged.values()), body, list(form.values())

    def _parameter_schema(self, raw: dict[str, Any]) -> Schema | None:
        if "schema" in raw:
            return self._schema(raw["schema"])
        if "content" in raw:
            _, media = _pick_media(raw["content"])
            return self._schema(media["schema"]) if "schema" in media else None
        if "type" in raw:
            # Swagger 2 declares the type inline on the parameter.
            inline = {key: raw[key] for key in ("type", "format", "items", "enum", "default") if key in raw}
            return self._schema(inline)
        return None

    def _request_body(
        self,
        raw: dict[str, Any],
        body_parameter: dict[str, Any] | None,
        form_parameters: list[dict[str, Any]],
    ) -> RequestBody | None:
        request_body = self._deref(raw.get("requestBody"))
        if request_body is not None:
            media_type, media = _pick_media(request_body.get("content"))
            return RequestBody(
                schema=self._schema(media["schema"]) if "schema" in media else None,
                media_type=media_type,
                required=bool(request_body.get("required")),
                description=_text(request_body.get("description")),
            )
        consumes = raw.get("consumes") or self.document.get("consumes")
        if not isinstance(consumes, list):
            consumes = []
        if body_parameter is not None:
            return RequestBody(
                schema=self._schema(body_parameter.get("schema")),
                media_type=str(consumes[0]) if consumes else "application/json",
                required=bool(body_parameter.get("required")),
                description=_text(body_parameter.get("description")),
            )
        if form_parameters:
            schema = Schema(
                type="object",
                properties=MappingProxyType(
                    {str(param["name"]): self._parameter_schema(param) or Schema() for param in form_parameters}
                ),
                required=tuple(str(param["name"]) for param in form_parameters if param.get("required")),
            )
            return RequestBody(
                schema=schema,
                media_type=str(consumes[0]) if consumes else "application/x-www-form-urlencoded",
                required=any(param.get("required") for param in form_parameters),
            )
        return None

    def _responses(self, raw: Any) -> MappingProxyType:
        responses: dict[str, ApiResponse] = {}
        if not isinstance(raw, dict):
            return MappingProxyType(responses)
        for raw_status, raw_response in raw.items():
            status = str(raw_status)
            response = self._deref(raw_response) or {}
            if "content" in response:
                media_type, media = _pick_media(response["content"])
                schema = self._schema(media["schema"]) if "schema" in media else None
            elif "schema" in response:
                media_type, schema = None, self._schema(response["schema"])
            else:
                media_type, schema = None, None
            responses[status] = ApiResponse(
                status=status,
                description=_text(response.get("description")) or "",
                schema=schema,
                media_type=media_type,
            )
        return MappingProxyType(responses)
