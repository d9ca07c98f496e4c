"""Normalization layer: canonical entities over either backend."""

from .codecs import AttachmentListCodec, FieldCodec, LookupCodec, PassThroughCodec
from .fieldmap import FieldMap, FieldRule
from .gateway import BackendSelector, DataGateway, HealthStatus, create_gateway
from .mappings import ANNOUNCEMENT_MAP, DOCUMENT_MAP, STUDENT_MAP
from .repository import EntityRepository, StudentRepository

__all__ = [
    "ANNOUNCEMENT_MAP",
    "AttachmentListCodec",
    "BackendSelector",
    "DOCUMENT_MAP",
    "DataGateway",
    "EntityRepository",
    "FieldCodec",
    "FieldMap",
    "FieldRule",
    "HealthStatus",
    "LookupCodec",
    "PassThroughCodec",
    "STUDENT_MAP",
    "StudentRepository",
    "create_gateway",
]
