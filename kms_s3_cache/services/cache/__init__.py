"""
Cache Services

Retrieval pipeline and the cache facade built on it.
"""

from .cache_manager import KmsS3Cache
from .retrieval_pipeline import PipelineState, RetrievalPipeline

__all__ = ["KmsS3Cache", "PipelineState", "RetrievalPipeline"]
