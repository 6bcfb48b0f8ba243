"""Translate configuration into the set of payment terms the gate accepts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Tuple

from ..domain.payment.entities import (
    SCHEME_EXACT,
    NetworkKind,
    PaymentAcceptanceSet,
    PaymentDescriptor,
    SupportedKind,
)
from ..domain.payment.networks import (
    DEFAULT_ENVIRONMENTS,
    NetworkEnvironment,
    UnknownNetworkError,
    find_environment,
    get_environment,
    is_valid_address,
)
from ..domain.shared.errors import ConfigurationError

if TYPE_CHECKING:
    from ..envs.gateway_env import Settings


@dataclass(frozen=True)
class NetworkTerms:
    """Per-network input to the builder. A network is enabled iff ``pay_to`` is set."""

    kind: NetworkKind
    pay_to: Optional[str]
    environment: Optional[str] = None


@dataclass(frozen=True)
class PaymentTermsConfig:
    top_up_cost: int
    networks: Tuple[NetworkTerms, ...]
    asset: str = "USDC"


def _solana_descriptors(
    env: NetworkEnvironment, asset: str, amount: int, pay_to: str
) -> List[PaymentDescriptor]:
    token = env.token(asset)
    return [
        PaymentDescriptor(
            network_kind=NetworkKind.SOLANA,
            network=network,
            scheme=SCHEME_EXACT,
            asset=token.symbol,
            asset_address=token.address,
            amount=amount,
            pay_to=pay_to,
        )
        for network in env.settlement_networks
    ]


def _evm_descriptors(
    env: NetworkEnvironment, asset: str, amount: int, pay_to: str
) -> List[PaymentDescriptor]:
    token = env.token(asset)
    # EIP-3009 authorizations are signed against the token's EIP-712 domain.
    extra = {"name": token.name, "version": token.version}
    return [
        PaymentDescriptor(
            network_kind=NetworkKind.EVM,
            network=network,
            scheme=SCHEME_EXACT,
            asset=token.symbol,
            asset_address=token.address,
            amount=amount,
            pay_to=pay_to,
            extra=extra,
        )
        for network in env.settlement_networks
    ]


DescriptorFactory = Callable[
    [NetworkEnvironment, str, int, str], List[PaymentDescriptor]
]

DESCRIPTOR_FACTORIES: Dict[NetworkKind, DescriptorFactory] = {
    NetworkKind.SOLANA: _solana_descriptors,
    NetworkKind.EVM: _evm_descriptors,
}


def build_acceptance_set(config: PaymentTermsConfig) -> PaymentAcceptanceSet:
    """Build the ordered acceptance set for every enabled network.

    Raises:
        ConfigurationError: The cost is not positive, an address is malformed,
            a network or token is unknown, or no network is enabled.
    """
    if config.top_up_cost <= 0:
        raise ConfigurationError("Top-up cost must be a positive integer")

    descriptors: List[PaymentDescriptor] = []
    for terms in config.networks:
        if not terms.pay_to:
            continue

        if not is_valid_address(terms.kind, terms.pay_to):
            raise ConfigurationError(
                f"Invalid {terms.kind.value} receiving address: {terms.pay_to}"
            )

        env_name = terms.environment or DEFAULT_ENVIRONMENTS[terms.kind]
        try:
            env = get_environment(terms.kind, env_name)
            factory = DESCRIPTOR_FACTORIES[terms.kind]
            descriptors.extend(
                factory(env, config.asset, config.top_up_cost, terms.pay_to)
            )
        except UnknownNetworkError as e:
            raise ConfigurationError(str(e)) from e

    if not descriptors:
        raise ConfigurationError(
            "No payment network is enabled; configure at least one receiving address"
        )

    return PaymentAcceptanceSet(descriptors=tuple(descriptors))


def _fee_payer_for(
    descriptor: PaymentDescriptor, fee_payers: Dict[Tuple[str, str], str]
) -> Optional[str]:
    # A facilitator may list only one of the identifiers an environment settles
    # under; the fee payer account is the same for all of them.
    env = find_environment(descriptor.network_kind, descriptor.network)
    aliases = env.settlement_networks if env else ()
    for network in (descriptor.network, *aliases):
        fee_payer = fee_payers.get((descriptor.scheme, network))
        if fee_payer:
            return fee_payer
    return None


def apply_fee_payers(
    acceptance_set: PaymentAcceptanceSet, supported_kinds: Iterable[SupportedKind]
) -> PaymentAcceptanceSet:
    """Add the facilitator's ``feePayer`` to every Solana descriptor.

    Solana "exact" payments are built as transactions the facilitator co-signs
    and pays fees for, so clients cannot construct a proof without it.

    Raises:
        ConfigurationError: The facilitator offers no fee payer for an
            enabled Solana network.
    """
    fee_payers = {
        (kind.scheme, kind.network): kind.extra["feePayer"]
        for kind in supported_kinds
        if kind.extra.get("feePayer")
    }

    descriptors: List[PaymentDescriptor] = []
    for descriptor in acceptance_set.descriptors:
        if descriptor.network_kind is not NetworkKind.SOLANA:
            descriptors.append(descriptor)
            continue
        fee_payer = _fee_payer_for(descriptor, fee_payers)
        if fee_payer is None:
            raise ConfigurationError(
                f"Facilitator offers no fee payer for {descriptor.scheme} on {descriptor.network}"
            )
        descriptors.append(
            descriptor.model_copy(
                update={"extra": {**descriptor.extra, "feePayer": fee_payer}}
            )
        )
    return PaymentAcceptanceSet(descriptors=tuple(descriptors))


class PaymentTermsBuilder:
    """Builds the acceptance set from service settings."""

    def build(self, settings: Settings) -> PaymentAcceptanceSet:
        config = PaymentTermsConfig(
            top_up_cost=settings.top_up_cost,
            asset=settings.payment_asset,
            networks=(
                NetworkTerms(
                    kind=NetworkKind.SOLANA,
                    pay_to=settings.solana_receiving_address,
                    environment=settings.solana_network,
                ),
                NetworkTerms(
                    kind=NetworkKind.EVM,
                    pay_to=settings.evm_receiving_address,
                    environment=settings.evm_network,
                ),
            ),
        )
        return build_acceptance_set(config)
