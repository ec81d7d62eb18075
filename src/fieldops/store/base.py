"""Contract for the remote activity store consumed by the sync engine."""
from typing import List, Protocol, Sequence

from fieldops.models.activity import StoredActivity


class StoreError(RuntimeError):
    """Raised when a read or write against the store fails.

    The message is the underlying transport/database message.
    """


class ActivityStore(Protocol):
    """
    Row-level access to the `atividades` table.

    Implementations must return pages ordered by activity date descending
    with a stable tiebreak, so consecutive pages neither skip nor repeat rows
    while the table is not being written.
    """

    async def fetch_page(self, offset: int, limit: int) -> List[StoredActivity]:
        ...

    async def upsert(
        self,
        rows: Sequence[StoredActivity],
        *,
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> None:
        ...
