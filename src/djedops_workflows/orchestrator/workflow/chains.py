"""Supported chains and their static metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Chain(str, Enum):
    ETHEREUM = "ethereum"
    WEILCHAIN = "weilchain"
    SOLANA = "solana"


@dataclass(frozen=True, slots=True)
class ChainInfo:
    chain: Chain
    name: str
    native_token: str
    block_time_seconds: float
    bridge_enabled: bool


CHAIN_INFO: dict[Chain, ChainInfo] = {
    Chain.ETHEREUM: ChainInfo(
        chain=Chain.ETHEREUM,
        name="Ethereum",
        native_token="ETH",
        block_time_seconds=12.0,
        bridge_enabled=True,
    ),
    Chain.WEILCHAIN: ChainInfo(
        chain=Chain.WEILCHAIN,
        name="WeilChain",
        native_token="WEIL",
        block_time_seconds=2.0,
        bridge_enabled=True,
    ),
    Chain.SOLANA: ChainInfo(
        chain=Chain.SOLANA,
        name="Solana",
        native_token="SOL",
        block_time_seconds=0.4,
        bridge_enabled=True,
    ),
}


def chain_info(chain: Chain) -> ChainInfo:
    return CHAIN_INFO[chain]
