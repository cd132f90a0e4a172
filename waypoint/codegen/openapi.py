"""
OpenAPI document generation from model definitions.

Produces an OpenAPI 3.0.0 document with one tag, one component schema,
one example and the five CRUD operations per model::

    GET    /<Model>/<version>/        list (page, limit, sortBy, sortOrder)
    POST   /<Model>/<version>/        create
    GET    /<Model>/<version>/{id}    get by id
    PUT    /<Model>/<version>/{id}    update
    DELETE /<Model>/<version>/{id}    delete

The document can be written as static docs (``docs/swagger.json``,
``docs/index.html``, ``docs/README.md``) or served at runtime by
``mount_docs`` (``GET /api-docs``, ``GET /api-docs/swagger.json``,
``POST /api/refresh-docs``).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import orjson

from ..discovery import ProjectLayout
from ..response import Response
from .models import FieldDefinition, ModelDefinition, TIMESTAMP_FIELDS, load_models

logger = logging.getLogger("waypoint.codegen")

OPENAPI_VERSION = "3.0.0"
EXAMPLE_ID = "507f1f77bcf86cd799439011"
EXAMPLE_ID_2 = "507f1f77bcf86cd799439012"
EXAMPLE_TIMESTAMP = "2024-01-01T00:00:00.000Z"

_TYPE_MAP = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "date": "string",
    "objectid": "string",
    "array": "array",
    "object": "object",
}

_EXAMPLE_VALUES = {
    "string": None,  # "Sample <field>"
    "number": 42,
    "boolean": True,
    "date": EXAMPLE_TIMESTAMP,
    "array": [],
    "object": {},
    "objectid": EXAMPLE_ID,
}

_ENVELOPE_ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean"},
        "error": {"type": "string"},
    },
}


def _error_response(description: str, example_name: str, example: Dict[str, Any],
                    schema: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "description": description,
        "content": {
            "application/json": {
                "schema": schema or copy.deepcopy(_ENVELOPE_ERROR_SCHEMA),
                "examples": {example_name: {"value": example}},
            },
        },
    }


def shared_error_responses() -> Dict[str, Any]:
    """``components.responses`` shared by every generated operation."""
    validation_schema = copy.deepcopy(_ENVELOPE_ERROR_SCHEMA)
    validation_schema["properties"]["details"] = {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "field": {"type": "string"},
                "message": {"type": "string"},
            },
        },
    }
    return {
        "ValidationError": _error_response(
            "Validation error",
            "validationError",
            {
                "success": False,
                "error": "Validation failed",
                "details": [
                    {"field": "email", "message": "Email is required"},
                    {"field": "password", "message": "Password must be at least 6 characters"},
                ],
            },
            schema=validation_schema,
        ),
        "NotFound": _error_response(
            "Resource not found", "notFound", {"success": False, "error": "Item not found"},
        ),
        "ServerError": _error_response(
            "Internal server error", "serverError", {"success": False, "error": "Internal server error"},
        ),
    }


def _ref(kind: str, name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/{kind}/{name}"}


def _json_body(schema: Dict[str, Any], example: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    content: Dict[str, Any] = {"schema": schema}
    if example is not None:
        content["examples"] = {"success": {"value": example}}
    return {"application/json": content}


class OpenAPIGenerator:
    """
    OpenAPI 3.0.0 document builder.

    Usage::

        generator = OpenAPIGenerator(ProjectLayout.at("."), version="v1.0")
        document = generator.build()
        generator.write_static()
    """

    def __init__(
        self,
        layout: Union[ProjectLayout, str, Path],
        *,
        config: Any = None,
        version: str = "v1.0",
        title: str = "API Documentation",
        api_version: str = "1.0.0",
        description: str = "API Documentation",
    ):
        self.layout = layout if isinstance(layout, ProjectLayout) else ProjectLayout.at(layout)
        self.config = config
        self.version = version
        self.title = title
        self.api_version = api_version
        self.description = description
        self.document: Dict[str, Any] = self.base_document()

    # ========================================================================
    # Document skeleton
    # ========================================================================

    def server_url(self) -> str:
        api_url = os.environ.get("API_URL")
        if api_url:
            return api_url
        port = getattr(self.config, "port", None) or os.environ.get("PORT") or 3000
        return f"http://localhost:{port}"

    def base_document(self) -> Dict[str, Any]:
        return {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": self.title,
                "version": self.api_version,
                "description": self.description,
            },
            "servers": [{"url": self.server_url(), "description": "API Server"}],
            "components": {
                "schemas": {},
                "securitySchemes": {
                    "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
                },
                "examples": {},
                "responses": {},
            },
            "paths": {},
            "tags": [],
        }

    # ========================================================================
    # Models
    # ========================================================================

    @staticmethod
    def field_schema(definition: FieldDefinition) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": _TYPE_MAP[definition.type],
            "description": f"The {definition.name} field",
        }
        if definition.type == "date":
            schema["format"] = "date-time"
        if definition.name == "email":
            schema["format"] = "email"
        if definition.name == "password":
            schema["format"] = "password"
            schema["minLength"] = 6
        if definition.has_default:
            schema["default"] = definition.default
        return schema

    def model_schema(self, model: ModelDefinition) -> Dict[str, Any]:
        properties = {f.name: self.field_schema(f) for f in model.fields}
        if model.timestamps:
            for name in TIMESTAMP_FIELDS:
                properties[name] = {
                    "type": "string",
                    "format": "date-time",
                    "description": f"The {name} field",
                    "readOnly": True,
                }
        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if model.required_fields:
            schema["required"] = model.required_fields
        return schema

    @staticmethod
    def example_value(definition: FieldDefinition) -> Any:
        if definition.name == "email":
            return "user@example.com"
        if definition.name == "name":
            return "John Doe"
        if definition.name == "password":
            return "password123"
        value = _EXAMPLE_VALUES[definition.type]
        return f"Sample {definition.name}" if value is None else copy.deepcopy(value)

    def model_example(self, model: ModelDefinition) -> Dict[str, Any]:
        example = {f.name: self.example_value(f) for f in model.fields}
        if model.timestamps:
            for name in TIMESTAMP_FIELDS:
                example[name] = EXAMPLE_TIMESTAMP
        return example

    @staticmethod
    def id_parameter() -> Dict[str, Any]:
        return {
            "name": "id",
            "in": "path",
            "required": True,
            "schema": {"type": "string", "format": "mongodb-id"},
            "description": "The ID of the resource",
        }

    @staticmethod
    def list_parameters() -> List[Dict[str, Any]]:
        return [
            {"in": "query", "name": "page", "schema": {"type": "integer", "minimum": 1, "default": 1}},
            {"in": "query", "name": "limit",
             "schema": {"type": "integer", "minimum": 1, "maximum": 100, "default": 10}},
            {"in": "query", "name": "sortBy", "schema": {"type": "string", "default": "createdAt"}},
            {"in": "query", "name": "sortOrder",
             "schema": {"type": "string", "enum": ["asc", "desc"], "default": "desc"}},
        ]

    def add_model(self, model: ModelDefinition, version: Optional[str] = None) -> None:
        """Add schema, example, tag and CRUD paths for ``model``."""
        version = version or self.version
        name = model.name
        components = self.document["components"]

        example = self.model_example(model)
        components["examples"][name] = {"value": example}
        components["schemas"][name] = self.model_schema(model)

        if not any(tag["name"] == name for tag in self.document["tags"]):
            self.document["tags"].append({"name": name, "description": f"Operations for {name}"})

        item_schema = {
            "type": "object",
            "properties": {"success": {"type": "boolean"}, "data": _ref("schemas", name)},
        }
        item_example = {"success": True, "data": {"_id": EXAMPLE_ID, **example}}
        list_schema = {
            "type": "object",
            "properties": {
                "success": {"type": "boolean"},
                "data": {
                    "type": "object",
                    "properties": {
                        "items": {"type": "array", "items": _ref("schemas", name)},
                        "pagination": {
                            "type": "object",
                            "properties": {
                                key: {"type": "integer"} for key in ("page", "limit", "total", "pages")
                            },
                        },
                    },
                },
            },
        }
        list_example = {
            "success": True,
            "data": {
                "items": [{"_id": EXAMPLE_ID, **example}, {"_id": EXAMPLE_ID_2, **example}],
                "pagination": {"page": 1, "limit": 10, "total": 2, "pages": 1},
            },
        }
        request_body = {"required": True, "content": _json_body(_ref("schemas", name))}
        bad_request = _ref("responses", "ValidationError")
        not_found = _ref("responses", "NotFound")
        server_error = _ref("responses", "ServerError")

        base = f"/{name}/{version}"
        self.document["paths"][f"{base}/"] = {
            "get": {
                "tags": [name],
                "summary": f"Get all {name}",
                "parameters": self.list_parameters(),
                "responses": {
                    "200": {"description": "Successful operation",
                            "content": _json_body(list_schema, list_example)},
                    "400": bad_request,
                    "500": server_error,
                },
            },
            "post": {
                "tags": [name],
                "summary": f"Create a new {name}",
                "requestBody": request_body,
                "responses": {
                    "201": {"description": "Created successfully",
                            "content": _json_body(item_schema, item_example)},
                    "400": bad_request,
                    "409": {"description": "Duplicate entry found",
                            "content": _json_body(copy.deepcopy(_ENVELOPE_ERROR_SCHEMA))},
                    "500": server_error,
                },
            },
        }
        self.document["paths"][f"{base}/{{id}}"] = {
            "get": {
                "tags": [name],
                "summary": f"Get a {name} by ID",
                "parameters": [self.id_parameter()],
                "responses": {
                    "200": {"description": "Successful operation",
                            "content": _json_body(item_schema, item_example)},
                    "404": not_found,
                    "500": server_error,
                },
            },
            "put": {
                "tags": [name],
                "summary": f"Update a {name}",
                "parameters": [self.id_parameter()],
                "requestBody": copy.deepcopy(request_body),
                "responses": {
                    "200": {"description": "Updated successfully",
                            "content": _json_body(item_schema, item_example)},
                    "400": bad_request,
                    "404": not_found,
                    "500": server_error,
                },
            },
            "delete": {
                "tags": [name],
                "summary": f"Delete a {name}",
                "parameters": [self.id_parameter()],
                "responses": {
                    "200": {
                        "description": "Deleted successfully",
                        "content": _json_body(
                            {"type": "object",
                             "properties": {"success": {"type": "boolean"}, "message": {"type": "string"}}},
                            {"success": True, "message": "Item deleted successfully"},
                        ),
                    },
                    "404": not_found,
                    "500": server_error,
                },
            },
        }

    def add_custom_endpoint(
        self,
        path: str,
        method: str,
        *,
        tags: Optional[List[str]] = None,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[List[Dict[str, Any]]] = None,
        request_body: Optional[Dict[str, Any]] = None,
        responses: Optional[Dict[str, Any]] = None,
        security: Optional[List[Dict[str, Any]]] = None,
        examples: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Document an endpoint that was not generated from a model."""
        path = path if path.startswith("/") else f"/{path}"
        operation: Dict[str, Any] = {
            "tags": tags or [],
            "summary": summary or "",
            "description": description or "",
            "parameters": parameters or [],
            "responses": responses or {},
        }
        if request_body:
            operation["requestBody"] = request_body
        if security:
            operation["security"] = security
        self.document["paths"].setdefault(path, {})[method.lower()] = operation

        for key, value in (examples or {}).items():
            self.document["components"]["examples"][key] = {"value": value}

    # ========================================================================
    # Build & merge
    # ========================================================================

    def build(self, models: Optional[List[ModelDefinition]] = None) -> Dict[str, Any]:
        """Regenerate paths, schemas and tags from the model definitions."""
        self.document["paths"] = {}
        self.document["components"]["schemas"] = {}
        self.document["tags"] = []
        self.document["components"]["responses"] = shared_error_responses()

        models = models if models is not None else load_models(self.layout.models_dir)
        for model in models:
            self.add_model(model)
        return self.document

    def merge(self, existing: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a previously written document over the generated one.

        Top-level keys, component maps and paths from ``existing`` win; tags
        are concatenated and de-duplicated by name (last one wins).
        """
        current = self.document
        components = existing.get("components") or {}
        merged = {**current, **existing}
        merged["components"] = {
            **current["components"],
            **components,
            "schemas": {**current["components"]["schemas"], **(components.get("schemas") or {})},
            "examples": {**current["components"]["examples"], **(components.get("examples") or {})},
            "responses": {**current["components"]["responses"], **(components.get("responses") or {})},
        }
        merged["paths"] = {**current["paths"], **(existing.get("paths") or {})}

        tags: Dict[str, Dict[str, Any]] = {}
        for tag in current["tags"] + list(existing.get("tags") or []):
            tags[tag["name"]] = tag
        merged["tags"] = list(tags.values())

        self.document = merged
        return merged

    def load_existing(self, path: Optional[Path] = None) -> bool:
        """Merge ``docs/swagger.json`` if it exists; returns whether it did."""
        path = path or self.layout.docs_dir / "swagger.json"
        if not path.is_file():
            logger.info("No existing swagger.json found, starting with default configuration")
            return False
        try:
            existing = orjson.loads(path.read_bytes())
        except (orjson.JSONDecodeError, OSError) as e:
            logger.error("Error loading existing swagger documentation: %s", e)
            return False
        if not isinstance(existing, dict):
            logger.error("Error loading existing swagger documentation: expected an object in %s", path)
            return False
        self.merge(existing)
        logger.info("Successfully loaded existing Swagger documentation")
        return True

    def refresh(self) -> Dict[str, Any]:
        self.document = self.base_document()
        self.build()
        self.load_existing()
        return self.document

    # ========================================================================
    # Output
    # ========================================================================

    def to_json(self) -> bytes:
        return orjson.dumps(self.document, option=orjson.OPT_INDENT_2)

    def write_static(self, docs_dir: Optional[Path] = None) -> Path:
        """Write swagger.json, a Swagger UI index.html and hosting notes."""
        docs_dir = Path(docs_dir or self.layout.docs_dir)
        docs_dir.mkdir(parents=True, exist_ok=True)
        (docs_dir / "swagger.json").write_bytes(self.to_json())
        (docs_dir / "index.html").write_text(
            swagger_html(self.title, "./swagger.json"), encoding="utf-8",
        )
        (docs_dir / "README.md").write_text(DOCS_README, encoding="utf-8")
        logger.info("Static documentation generated in %s", docs_dir)
        return docs_dir


# ============================================================================
# Swagger UI
# ============================================================================

SWAGGER_UI_VERSION = "5.18.2"

_SWAGGER_UI_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title}</title>
    <link rel="stylesheet"
          href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{version}/swagger-ui.css">
    <style>
        body {{ margin: 0; padding: 0; }}
        #swagger-ui {{ max-width: 1460px; margin: 0 auto; padding: 20px; background: white; }}
        .topbar {{ display: none; }}
    </style>
</head>
<body>
    <div id="swagger-ui"></div>
    <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{version}/swagger-ui-bundle.js"></script>
    <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{version}/swagger-ui-standalone-preset.js"></script>
    <script>
        window.onload = () => {{
            window.ui = SwaggerUIBundle({{
                url: '{spec_url}',
                dom_id: '#swagger-ui',
                deepLinking: true,
                presets: [
                    SwaggerUIBundle.presets.apis,
                    SwaggerUIStandalonePreset,
                ],
                plugins: [
                    SwaggerUIBundle.plugins.DownloadUrl,
                ],
                layout: 'StandaloneLayout',
                persistAuthorization: true,
                defaultModelsExpandDepth: 3,
                defaultModelExpandDepth: 3,
                defaultModelRendering: 'model',
                displayRequestDuration: true,
                docExpansion: 'list',
                filter: true,
                showExtensions: true,
            }});
        }};
    </script>
</body>
</html>"""


def swagger_html(title: str, spec_url: str) -> str:
    """Swagger UI page loading the document from ``spec_url``."""
    return _SWAGGER_UI_HTML.format(title=title, version=SWAGGER_UI_VERSION, spec_url=spec_url)


DOCS_README = """# API Documentation

## Hosting Instructions

You can host this documentation in multiple ways:

1. **Using Python's built-in HTTP server**
   ```bash
   cd docs
   python -m http.server 8000
   ```
   Then visit: http://localhost:8000

2. **Using any static file hosting service**
   - Upload the contents of this directory to your hosting service
   - Access the index.html file

3. **Using GitHub Pages**
   - Push this docs folder to a GitHub repository
   - Enable GitHub Pages in repository settings
   - Access via: https://[username].github.io/[repo-name]

Regenerate with `wp docs build` whenever your models change.
"""


# ============================================================================
# Runtime routes
# ============================================================================

def mount_docs(dispatcher: Any, layout: ProjectLayout, config: Any, versions: Any) -> OpenAPIGenerator:
    """Serve the live document and Swagger UI from the dispatcher."""
    generator = OpenAPIGenerator(layout, config=config, version=versions.default)
    generator.refresh()

    async def docs_page(request):
        return Response.html(swagger_html(generator.title, "/api-docs/swagger.json"))

    async def docs_json(request):
        return Response(generator.to_json(), media_type="application/json; charset=utf-8")

    async def refresh_docs(request):
        try:
            generator.refresh()
        except Exception as e:
            logger.error("Error refreshing API docs: %s", e, exc_info=True)
            return Response.error("Failed to refresh API documentation", status=500)
        return Response.json({"success": True, "message": "API documentation refreshed"})

    dispatcher.add_route("get", "/api-docs", docs_page)
    dispatcher.add_route("get", "/api-docs/swagger.json", docs_json)
    dispatcher.add_route("post", "/api/refresh-docs", refresh_docs)
    logger.info("API documentation served at /api-docs")
    return generator
