from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dynamo_crud.entities.transaction import ItemKey


@dataclass
class BatchWriteResult:
    """
    Outcome of a best-effort batch write.

    ``failed_puts`` and ``failed_deletes`` list the keys DynamoDB left
    unprocessed so the caller can resubmit them.
    """

    success_count: int = 0
    failed_puts: List[ItemKey] = field(default_factory=list)
    failed_deletes: List[ItemKey] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed_puts) + len(self.failed_deletes)


@dataclass
class BatchGetResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    unprocessed_keys: List[ItemKey] = field(default_factory=list)


@dataclass
class TransactionGetResult:
    """Items in request order, ``None`` where the key had no record."""

    success_count: int = 0
    items: List[Optional[Dict[str, Any]]] = field(default_factory=list)
