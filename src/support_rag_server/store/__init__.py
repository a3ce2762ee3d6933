"""
Vector Store Package

Store contract, the Pinecone REST client, and the batch index writer.
"""

from .base import IndexConfig, IndexStats, RerankRequest, UpsertRecord, VectorStoreClient
from .pinecone import PineconeClient
from .writer import BatchError, BatchResult, IndexWriter, convert_to_upsert_records

__all__ = [
    "IndexConfig",
    "IndexStats",
    "RerankRequest",
    "UpsertRecord",
    "VectorStoreClient",
    "PineconeClient",
    "BatchError",
    "BatchResult",
    "IndexWriter",
    "convert_to_upsert_records",
]
