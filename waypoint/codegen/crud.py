"""
CRUD generator - validation schema, validation middleware, controller and
service files for every model definition.

Files that already exist are never overwritten, so generated code can be
edited freely and the generator re-run after adding a model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..discovery import ProjectLayout
from .models import FieldDefinition, ModelDefinition, load_models

logger = logging.getLogger("waypoint.codegen")


SCHEMA_TEMPLATE = '''"""
Validation schemas for {model}.
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from waypoint.validation import Email, Password, TrimmedStr


class {model}Create(BaseModel):
{create_fields}


class {model}Update(BaseModel):
{update_fields}


class {model}Query(BaseModel):
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    sortBy: Optional[Literal[{sortable}]] = None
    sortOrder: Optional[Literal["asc", "desc"]] = None
{query_fields}


create = {model}Create
update = {model}Update
query = {model}Query
'''


MIDDLEWARE_TEMPLATE = '''"""
{lower}Validate - Validation middleware for {model}.
"""

from waypoint.discovery import load_sibling
from waypoint.validation import validation_middleware

schemas = load_sibling(__file__, "validations", "{model}Schema")

middleware = validation_middleware(schemas)
'''


CONTROLLER_TEMPLATE = '''"""
Controller for {model}.

Mounted at /{model}/<version>/.
"""

from waypoint import ConflictFault, NotFoundFault, Response
from waypoint.store import DuplicateKeyError

global_middlewares = []


async def list_{lower}(request, ctx):
    query = request.validated if request.validated is not None else request.query
    items = await ctx.services.{model}Service.find_all(query)
    return {{"success": True, "data": items}}


async def get_{lower}(request, ctx):
    item = await ctx.services.{model}Service.find_by_id(request.params["id"])
    if item is None:
        raise NotFoundFault()
    return {{"success": True, "data": item}}


async def create_{lower}(request, ctx):
    data = request.validated if request.validated is not None else await request.json()
    try:
        item = await ctx.services.{model}Service.create(data)
    except DuplicateKeyError:
        raise ConflictFault()
    return Response.json({{"success": True, "data": item}}, status=201)


async def update_{lower}(request, ctx):
    data = request.validated if request.validated is not None else await request.json()
    try:
        item = await ctx.services.{model}Service.update(request.params["id"], data)
    except DuplicateKeyError:
        raise ConflictFault()
    if item is None:
        raise NotFoundFault()
    return {{"success": True, "data": item}}


async def delete_{lower}(request, ctx):
    result = await ctx.services.{model}Service.delete(request.params["id"])
    if result is None:
        raise NotFoundFault()
    return {{"success": True, "message": "Item deleted successfully"}}


def routes(ctx):
    return {{
        "/": {{
            "method": "get",
            "handler": list_{lower},
            "local_middlewares": ["{lower}Validate"],
        }},
        "/:id": {{
            "method": "get",
            "handler": get_{lower},
        }},
        "POST /": {{
            "handler": create_{lower},
            "local_middlewares": ["{lower}Validate"],
        }},
        "PUT /:id": {{
            "handler": update_{lower},
            "local_middlewares": ["{lower}Validate"],
        }},
        "DELETE /:id": {{
            "handler": delete_{lower},
        }},
    }}
'''


SERVICE_TEMPLATE = '''"""
{model}Service - persistence operations for {model}.
"""

import math

depends_on = ["Database"]


class {model}Service:
    def __init__(self, collection):
        self.collection = collection

    async def find_all(self, query=None):
        query = dict(query or {{}})
        page = int(query.pop("page", None) or 1)
        limit = int(query.pop("limit", None) or 10)
        sort_by = query.pop("sortBy", None) or "createdAt"
        sort_order = query.pop("sortOrder", None) or "desc"
        filters = {{key: value for key, value in query.items() if value is not None}}

        items = await self.collection.find(
            filters,
            sort=[(sort_by, -1 if sort_order == "desc" else 1)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = await self.collection.count(filters)
        return {{
            "items": items,
            "pagination": {{
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            }},
        }}

    async def find_by_id(self, object_id):
        return await self.collection.find_by_id(object_id)

    async def create(self, data):
        return await self.collection.insert_one({defaults_expr}data)

    async def update(self, object_id, data):
        return await self.collection.update_by_id(object_id, data)

    async def delete(self, object_id):
        return await self.collection.delete_by_id(object_id)


async def provide(ctx):
    collection = ctx.services.Database.collection(
        "{collection}", unique={unique!r}, timestamps={timestamps!r},
    )
    return {model}Service(collection)
'''


DATABASE_TEMPLATE = '''"""
Database - document store shared by the generated services.

Swap MemoryDocumentStore for a driver-backed DocumentStore in production.
"""

from waypoint.store import MemoryDocumentStore


async def provide(ctx):
    return MemoryDocumentStore()
'''


# ============================================================================
# Field rendering
# ============================================================================

_BASE_TYPES = {
    "string": "str",
    "number": "Union[int, float]",
    "boolean": "bool",
    "date": "datetime",
    "array": "list",
    "object": "dict",
    "objectid": "str",
}

_QUERY_TYPES = {
    "string": "str",
    "number": "Union[int, float]",
    "boolean": "bool",
    "date": "str",
    "objectid": "str",
}


def field_annotation(definition: FieldDefinition) -> str:
    """pydantic annotation for a body field."""
    if definition.type == "string":
        if definition.name == "email":
            return "Email"
        if definition.name == "password":
            return "Password"
        if definition.trim:
            return "TrimmedStr"
    return _BASE_TYPES[definition.type]


def render_create_field(definition: FieldDefinition) -> str:
    annotation = field_annotation(definition)
    if definition.required:
        return f"    {definition.name}: {annotation}"
    if definition.has_default:
        return f"    {definition.name}: {annotation} = {definition.default!r}"
    return f"    {definition.name}: Optional[{annotation}] = None"


def render_update_field(definition: FieldDefinition) -> str:
    return f"    {definition.name}: Optional[{field_annotation(definition)}] = None"


def render_query_field(definition: FieldDefinition) -> Optional[str]:
    query_type = _QUERY_TYPES.get(definition.type)
    if query_type is None:
        return None
    return f"    {definition.name}: Optional[{query_type}] = None"


# ============================================================================
# Generator
# ============================================================================

@dataclass
class GenerationResult:
    written: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)


class CRUDGenerator:
    """
    Generates CRUD scaffolding for every ``models/*.py`` definition.

    Example:
        >>> result = CRUDGenerator("path/to/project").generate()
        >>> [p.name for p in result.written]
        ['UserSchema.py', 'userValidate.py', 'User.py', 'UserService.py', 'Database.py']
    """

    def __init__(self, root: Union[str, Path, ProjectLayout]):
        self.layout = root if isinstance(root, ProjectLayout) else ProjectLayout.at(root)

    # Renderers

    def render_schema(self, model: ModelDefinition) -> str:
        query_fields = [line for line in map(render_query_field, model.fields) if line]
        return SCHEMA_TEMPLATE.format(
            model=model.name,
            create_fields="\n".join(render_create_field(f) for f in model.fields),
            update_fields="\n".join(render_update_field(f) for f in model.fields),
            sortable=", ".join(f'"{name}"' for name in model.field_names),
            query_fields="\n".join(query_fields),
        )

    def render_middleware(self, model: ModelDefinition) -> str:
        return MIDDLEWARE_TEMPLATE.format(model=model.name, lower=model.lower_name)

    def render_controller(self, model: ModelDefinition) -> str:
        return CONTROLLER_TEMPLATE.format(model=model.name, lower=model.lower_name)

    def render_service(self, model: ModelDefinition) -> str:
        defaults = {f.name: f.default for f in model.fields if f.has_default}
        return SERVICE_TEMPLATE.format(
            model=model.name,
            collection=f"{model.lower_name}s",
            unique=model.unique_fields,
            timestamps=model.timestamps,
            defaults_expr=f"{defaults!r} | " if defaults else "",
        )

    # Writing

    def _write(self, path: Path, content: str, result: GenerationResult) -> None:
        if path.exists():
            logger.debug("Skipping %s (already exists)", path)
            result.skipped.append(path)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("Generated %s", path.relative_to(self.layout.root))
        result.written.append(path)

    def generate_model(self, model: ModelDefinition, result: Optional[GenerationResult] = None) -> GenerationResult:
        result = result if result is not None else GenerationResult()
        layout = self.layout
        self._write(layout.validations_dir / f"{model.name}Schema.py", self.render_schema(model), result)
        self._write(layout.middlewares_dir / f"{model.lower_name}Validate.py", self.render_middleware(model), result)
        self._write(layout.controllers_dir / f"{model.name}.py", self.render_controller(model), result)
        self._write(layout.services_dir / f"{model.name}Service.py", self.render_service(model), result)
        return result

    def generate(self, models: Optional[List[ModelDefinition]] = None) -> GenerationResult:
        """Generate files for ``models`` (default: every definition in ``models/``)."""
        models = models if models is not None else load_models(self.layout.models_dir)
        result = GenerationResult()
        for model in models:
            self.generate_model(model, result)
        if models:
            self._write(self.layout.services_dir / "Database.py", DATABASE_TEMPLATE, result)
        logger.info("CRUD generation completed: %d written, %d skipped",
                    len(result.written), len(result.skipped))
        return result
