"""Contract reader protocols — remote ledger reads returning wire integers."""
from typing import Optional, Protocol

from ..models import SnapshotRecord, TroveRecord
from .events import EventFilter


class ProtocolReader(Protocol):
    """Scalar and structured reads. ``block=None`` reads the latest block."""

    def event_filter(self, event: str, account: Optional[str] = None) -> EventFilter: ...

    async def get_block_number(self) -> int: ...

    async def get_trove_record(
        self, address: str, block: Optional[int] = None
    ) -> TroveRecord: ...

    async def get_reward_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord: ...

    async def get_total_redistributed_collateral(
        self, block: Optional[int] = None
    ) -> int: ...

    async def get_total_redistributed_debt(self, block: Optional[int] = None) -> int: ...

    async def get_number_of_troves(self, block: Optional[int] = None) -> int: ...

    async def get_price(self, block: Optional[int] = None) -> int: ...

    async def get_deposit(self, address: str, block: Optional[int] = None) -> int: ...

    async def get_deposit_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord: ...

    async def get_pool_collateral_gain_per_unit(
        self, block: Optional[int] = None
    ) -> int: ...

    async def get_pool_loss_per_unit(self, block: Optional[int] = None) -> int: ...

    async def get_total_deposits(self, block: Optional[int] = None) -> int: ...

    async def get_active_collateral(self, block: Optional[int] = None) -> int: ...

    async def get_active_debt(self, block: Optional[int] = None) -> int: ...

    async def get_liquidated_collateral(self, block: Optional[int] = None) -> int: ...

    async def get_closed_debt(self, block: Optional[int] = None) -> int: ...


class HintReader(Protocol):
    """Reads the insertion-hint resolver depends on."""

    async def get_number_of_troves(self, block: Optional[int] = None) -> int: ...

    async def get_approx_hint(self, collateral_ratio: int, trials: int) -> str: ...

    async def find_insert_position(
        self, collateral_ratio: int, prev_id: str, next_id: str
    ) -> tuple[str, str]: ...
