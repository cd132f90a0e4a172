"""
Code and documentation generation from model definitions.
"""

from .crud import CRUDGenerator, GenerationResult
from .models import FieldDefinition, ModelDefinition, load_model, load_models
from .openapi import OpenAPIGenerator, mount_docs, swagger_html

__all__ = [
    "CRUDGenerator",
    "GenerationResult",
    "FieldDefinition",
    "ModelDefinition",
    "load_model",
    "load_models",
    "OpenAPIGenerator",
    "mount_docs",
    "swagger_html",
]
