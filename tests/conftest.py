"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Optional

import pytest

from liquity_mirror.config import (
    AbiConfig,
    AppConfig,
    ChainConfig,
    ContractsConfig,
    HintConfig,
    WatchConfig,
)
from liquity_mirror.interfaces.events import ContractEvent, EventFilter, EventListener
from liquity_mirror.models import SnapshotRecord, TransactionRequest, TroveRecord, TroveStatus

E18 = 10**18

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20

CDP_MANAGER = "0x" + "11" * 20
SORTED_CDPS = "0x" + "22" * 20
PRICE_FEED = "0x" + "33" * 20
POOL_MANAGER = "0x" + "44" * 20

METHODS = (
    "CDPManager.CDPs",
    "CDPManager.rewardSnapshots",
    "CDPManager.L_ETH",
    "CDPManager.L_CLVDebt",
    "CDPManager.getCDPOwnersCount",
    "CDPManager.getApproxHint",
    "CDPManager.openLoan",
    "CDPManager.addColl",
    "CDPManager.withdrawColl",
    "CDPManager.withdrawCLV",
    "CDPManager.repayCLV",
    "CDPManager.liquidateCDPs",
    "SortedCDPs.findInsertPosition",
    "PriceFeed.getPrice",
    "PriceFeed.setPrice",
    "PoolManager.deposit",
    "PoolManager.snapshot",
    "PoolManager.S_ETH",
    "PoolManager.S_CLV",
    "PoolManager.getStabilityPoolCLV",
    "PoolManager.getActiveColl",
    "PoolManager.getActiveDebt",
    "PoolManager.getLiquidatedColl",
    "PoolManager.getClosedDebt",
    "PoolManager.provideToSP",
    "PoolManager.withdrawFromSP",
)
SELECTORS = {name: f"0x{i:08x}" for i, name in enumerate(METHODS, start=1)}

EVENTS = (
    "CDPCreated",
    "CDPUpdated",
    "CDPClosed",
    "CDPLiquidated",
    "UserDepositChanged",
    "PriceUpdated",
)
EVENT_TOPICS = {name: f"0x{i:064x}" for i, name in enumerate(EVENTS, start=1)}


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
        poll_interval=0.01,
    )


@pytest.fixture()
def sample_contracts_config() -> ContractsConfig:
    return ContractsConfig(
        cdp_manager=CDP_MANAGER,
        sorted_cdps=SORTED_CDPS,
        price_feed=PRICE_FEED,
        pool_manager=POOL_MANAGER,
    )


@pytest.fixture()
def sample_abi_config() -> AbiConfig:
    return AbiConfig(selectors=dict(SELECTORS), event_topics=dict(EVENT_TOPICS))


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    sample_contracts_config: ContractsConfig,
    sample_abi_config: AbiConfig,
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        contracts=sample_contracts_config,
        abi=sample_abi_config,
        hints=HintConfig(),
        watch=WatchConfig(debounce_ms=20),
        account=ALICE,
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    chain:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
      poll_interval: 2.5
    account: "{ALICE}"
    contracts:
      cdp_manager: "{CDP_MANAGER}"
      sorted_cdps: "{SORTED_CDPS}"
      price_feed: "{PRICE_FEED}"
      pool_manager: "{POOL_MANAGER}"
    abi:
      selectors:
        PriceFeed.getPrice: "0x98d5fdca"
        CDPManager.L_ETH: "0x00000003"
      event_topics:
        PriceUpdated: "0x{'ab' * 32}"
    hints:
      enabled: true
      trials_multiplier: 10
      max_trials: 500
    watch:
      debounce_ms: 75
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeLedger:
    """In-memory stand-in for the remote contracts, keyed by wire integers.

    Every read records the block it was asked for in ``blocks_read``.
    """

    def __init__(self) -> None:
        self.block_number = 100
        self.price = 200 * E18
        self.troves: dict[str, TroveRecord] = {}
        self.reward_snapshots: dict[str, SnapshotRecord] = {}
        self.total_redistributed_collateral = 0
        self.total_redistributed_debt = 0
        self.deposits: dict[str, int] = {}
        self.deposit_snapshots: dict[str, SnapshotRecord] = {}
        self.pool_collateral_gain_per_unit = 0
        self.pool_loss_per_unit = 0
        self.total_deposits = 0
        self.active_collateral = 0
        self.active_debt = 0
        self.liquidated_collateral = 0
        self.closed_debt = 0
        self.number_of_troves = 0
        self.approx_hint = BOB
        self.insert_position: tuple[str, str] = (BOB, CAROL)
        self.blocks_read: list[Optional[int]] = []
        self.hint_calls: list[tuple] = []

    def _read(self, block: Optional[int], value):
        self.blocks_read.append(block)
        return value

    def event_filter(self, event: str, account: Optional[str] = None) -> EventFilter:
        return EventFilter(address=CDP_MANAGER, event=event, account=account)

    async def get_block_number(self) -> int:
        return self.block_number

    async def get_trove_record(self, address: str, block: Optional[int] = None) -> TroveRecord:
        record = self.troves.get(address, TroveRecord(0, 0, 0, TroveStatus.NON_EXISTENT))
        return self._read(block, record)

    async def get_reward_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord:
        return self._read(block, self.reward_snapshots.get(address, SnapshotRecord(0, 0)))

    async def get_total_redistributed_collateral(self, block: Optional[int] = None) -> int:
        return self._read(block, self.total_redistributed_collateral)

    async def get_total_redistributed_debt(self, block: Optional[int] = None) -> int:
        return self._read(block, self.total_redistributed_debt)

    async def get_number_of_troves(self, block: Optional[int] = None) -> int:
        return self._read(block, self.number_of_troves)

    async def get_price(self, block: Optional[int] = None) -> int:
        return self._read(block, self.price)

    async def get_deposit(self, address: str, block: Optional[int] = None) -> int:
        return self._read(block, self.deposits.get(address, 0))

    async def get_deposit_snapshot(
        self, address: str, block: Optional[int] = None
    ) -> SnapshotRecord:
        return self._read(block, self.deposit_snapshots.get(address, SnapshotRecord(0, 0)))

    async def get_pool_collateral_gain_per_unit(self, block: Optional[int] = None) -> int:
        return self._read(block, self.pool_collateral_gain_per_unit)

    async def get_pool_loss_per_unit(self, block: Optional[int] = None) -> int:
        return self._read(block, self.pool_loss_per_unit)

    async def get_total_deposits(self, block: Optional[int] = None) -> int:
        return self._read(block, self.total_deposits)

    async def get_active_collateral(self, block: Optional[int] = None) -> int:
        return self._read(block, self.active_collateral)

    async def get_active_debt(self, block: Optional[int] = None) -> int:
        return self._read(block, self.active_debt)

    async def get_liquidated_collateral(self, block: Optional[int] = None) -> int:
        return self._read(block, self.liquidated_collateral)

    async def get_closed_debt(self, block: Optional[int] = None) -> int:
        return self._read(block, self.closed_debt)

    async def get_approx_hint(self, collateral_ratio: int, trials: int) -> str:
        self.hint_calls.append(("get_approx_hint", collateral_ratio, trials))
        return self.approx_hint

    async def find_insert_position(
        self, collateral_ratio: int, prev_id: str, next_id: str
    ) -> tuple[str, str]:
        self.hint_calls.append(("find_insert_position", collateral_ratio, prev_id, next_id))
        return self.insert_position

    def populate(self, method: str, args: tuple = (), value: int = 0) -> TransactionRequest:
        return TransactionRequest(to=method, data=repr(tuple(args)), value=value)


class FakeEventSource:
    """Synchronous event source; ``emit`` dispatches straight to listeners."""

    def __init__(self) -> None:
        self.listeners: dict[EventFilter, list[EventListener]] = {}

    def on(self, event_filter: EventFilter, listener: EventListener) -> None:
        self.listeners.setdefault(event_filter, []).append(listener)

    def remove_listener(self, event_filter: EventFilter, listener: EventListener) -> None:
        listeners = self.listeners.get(event_filter, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self.listeners.pop(event_filter, None)

    @property
    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self.listeners.values())

    def emit(self, event_filter: EventFilter, block_number: int) -> None:
        event = ContractEvent(
            event=event_filter.event,
            address=event_filter.address,
            block_number=block_number,
            account=event_filter.account,
        )
        for listener in list(self.listeners.get(event_filter, ())):
            listener(event)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def event_source() -> FakeEventSource:
    return FakeEventSource()
