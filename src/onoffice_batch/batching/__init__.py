from .core import BatchState as BatchState
from .core import RequestBatch as RequestBatch

__all__ = ["BatchState", "RequestBatch"]
