"""Mapping layer - decode rows into typed records."""

from __future__ import annotations

from typed_query.mapping.builder import DecoderBuilder, decoder
from typed_query.mapping.model import RecordDecoder
from typed_query.mapping.plan import DecoderPlan, FieldPlan
from typed_query.mapping.protocol import RecordMapper
from typed_query.mapping.registry import DecoderRegistry

__all__ = [
    "RecordDecoder",
    "RecordMapper",
    "DecoderBuilder",
    "decoder",
    "DecoderPlan",
    "FieldPlan",
    "DecoderRegistry",
]
