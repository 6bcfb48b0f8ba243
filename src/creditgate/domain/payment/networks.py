"""Network environments and payable tokens per chain family.

Each ``NetworkKind`` owns a table of environments. An environment knows the
identifiers facilitators settle it under (legacy x402 name and CAIP-2 id), the
tokens payable on it and the syntax of a valid payee address.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .entities import NetworkKind, TokenInfo


SOLANA_ADDRESS_REGEX = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
EVM_ADDRESS_REGEX = re.compile(r"^0x[0-9a-fA-F]{40}$")


class UnknownNetworkError(ValueError):
    """Raised when a network environment or token is not in the registry."""


@dataclass(frozen=True)
class NetworkEnvironment:
    kind: NetworkKind
    name: str
    settlement_networks: Tuple[str, ...]
    tokens: Mapping[str, TokenInfo] = field(default_factory=dict)

    def token(self, symbol: str) -> TokenInfo:
        try:
            return self.tokens[symbol.upper()]
        except KeyError:
            raise UnknownNetworkError(
                f"Token {symbol} is not available on {self.kind.value}:{self.name}"
            ) from None


def _solana_usdc(address: str) -> Dict[str, TokenInfo]:
    return {
        "USDC": TokenInfo(symbol="USDC", address=address, decimals=6, name="USD Coin")
    }


def _evm_usdc(address: str, name: str) -> Dict[str, TokenInfo]:
    return {
        "USDC": TokenInfo(
            symbol="USDC", address=address, decimals=6, name=name, version="2"
        )
    }


_SOLANA_MAINNET = NetworkEnvironment(
    kind=NetworkKind.SOLANA,
    name="mainnet-beta",
    settlement_networks=("solana", "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"),
    tokens=_solana_usdc("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"),
)
_SOLANA_DEVNET = NetworkEnvironment(
    kind=NetworkKind.SOLANA,
    name="devnet",
    settlement_networks=("solana-devnet", "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"),
    tokens=_solana_usdc("4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"),
)

SOLANA_ENVIRONMENTS: Dict[str, NetworkEnvironment] = {
    "mainnet-beta": _SOLANA_MAINNET,
    "mainnet": _SOLANA_MAINNET,
    "devnet": _SOLANA_DEVNET,
}

EVM_ENVIRONMENTS: Dict[str, NetworkEnvironment] = {
    "base": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="base",
        settlement_networks=("base", "eip155:8453"),
        tokens=_evm_usdc("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USD Coin"),
    ),
    "base-sepolia": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="base-sepolia",
        settlement_networks=("base-sepolia", "eip155:84532"),
        tokens=_evm_usdc("0x036CbD53842c5426634e7929541eC2318f3dCF7e", "USDC"),
    ),
    "polygon": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="polygon",
        settlement_networks=("polygon", "eip155:137"),
        tokens=_evm_usdc("0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", "USD Coin"),
    ),
    "polygon-amoy": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="polygon-amoy",
        settlement_networks=("polygon-amoy", "eip155:80002"),
        tokens=_evm_usdc("0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582", "USDC"),
    ),
    "avalanche": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="avalanche",
        settlement_networks=("avalanche", "eip155:43114"),
        tokens=_evm_usdc("0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", "USD Coin"),
    ),
    "avalanche-fuji": NetworkEnvironment(
        kind=NetworkKind.EVM,
        name="avalanche-fuji",
        settlement_networks=("avalanche-fuji", "eip155:43113"),
        tokens=_evm_usdc("0x5425890298aed601595a70AB815c96711a31Bc65", "USD Coin"),
    ),
}

_ENVIRONMENTS: Dict[NetworkKind, Dict[str, NetworkEnvironment]] = {
    NetworkKind.SOLANA: SOLANA_ENVIRONMENTS,
    NetworkKind.EVM: EVM_ENVIRONMENTS,
}

DEFAULT_ENVIRONMENTS: Dict[NetworkKind, str] = {
    NetworkKind.SOLANA: "devnet",
    NetworkKind.EVM: "base-sepolia",
}

_ADDRESS_PATTERNS = {
    NetworkKind.SOLANA: SOLANA_ADDRESS_REGEX,
    NetworkKind.EVM: EVM_ADDRESS_REGEX,
}


def get_environment(kind: NetworkKind, name: str) -> NetworkEnvironment:
    """Look up an environment by chain family and name (case-insensitive)."""
    try:
        return _ENVIRONMENTS[kind][name.strip().lower()]
    except KeyError:
        raise UnknownNetworkError(
            f"Unknown {kind.value} network: {name!r}"
        ) from None


def is_valid_address(kind: NetworkKind, address: str) -> bool:
    return bool(_ADDRESS_PATTERNS[kind].match(address))


def find_environment(kind: NetworkKind, network: str) -> Optional[NetworkEnvironment]:
    """Return the environment that settles under the wire identifier ``network``."""
    for env in _ENVIRONMENTS[kind].values():
        if network in env.settlement_networks:
            return env
    return None
