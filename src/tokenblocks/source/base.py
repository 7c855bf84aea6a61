from datetime import datetime
from typing import Protocol, Sequence

from tokenblocks.models import UsageRecord


class RecordSource(Protocol):
    """
    RecordSource stands as a common protocol that all
    usage record suppliers must satisfy.

    Sources return the usage records that fall inside a time
    range, in any order. Records without a valid timestamp are
    dropped by the source, never handed to the aggregator.
    """

    @property
    def name(self) -> "str": ...

    async def fetch_records(
        self,
        start_time: "datetime",
        end_time: "datetime",
    ) -> "Sequence[UsageRecord]": ...

    async def close(self) -> "None": ...
