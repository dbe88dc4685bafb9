"""Data input schema derivation for serverless workflows."""

from .arguments import ArgumentKind, classify_argument, requires_user_input
from .service import DataInputSchemaService
from .templates import TemplateScanner

__all__ = [
    "ArgumentKind",
    "DataInputSchemaService",
    "TemplateScanner",
    "classify_argument",
    "requires_user_input",
]
