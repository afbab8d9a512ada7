# ==============================================
# TOPIC 2: SCHEMA ANALYSIS
# ==============================================
#
# This package infers a relational-friendly schema for a
# schema-less collection by sampling some of its documents.
#
# Modules:
# --------
# - schema_sampler.py → FieldDescriptor, CollectionSchema, SchemaSampler
#
# ==============================================

from .schema_sampler import (
    FieldDescriptor,
    CollectionSchema,
    SchemaSampler,
    infer_schema_from_documents,
)

__all__ = [
    "FieldDescriptor",
    "CollectionSchema",
    "SchemaSampler",
    "infer_schema_from_documents",
]
