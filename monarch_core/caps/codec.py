"""VaultV2 cap identifier codec.

A cap is keyed on-chain by ``id = keccak256(idParams)`` where ``idParams``
is one of three ABI encodings::

    adapter     abi.encode("this", adapter)
    collateral  abi.encode("collateralToken", token)
    market      abi.encode("this/marketParams", adapter,
                           (loanToken, collateralToken, oracle, irm, lltv))

Encoders are pure and deterministic. ``parse_cap_id_params`` is the
inverse: it tries each shape (market first) and returns a tagged result,
falling back to :class:`UnknownCapParams` instead of raising.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_checksum_address

from ..models import MarketParams

logger = logging.getLogger(__name__)

ADAPTER_TAG = "this"
COLLATERAL_TAG = "collateralToken"
MARKET_TAG = "this/marketParams"

_MARKET_PARAMS_TYPE = "(address,address,address,address,uint256)"
_TAGGED_ADDRESS_TYPES = ["string", "address"]
_MARKET_CAP_TYPES = ["string", "address", _MARKET_PARAMS_TYPE]


@dataclass(frozen=True)
class CapId:
    params: str
    id: str


@dataclass(frozen=True)
class AdapterCapParams:
    type: ClassVar[str] = "adapter"
    adapter: str


@dataclass(frozen=True)
class CollateralCapParams:
    type: ClassVar[str] = "collateral"
    collateral_token: str


@dataclass(frozen=True)
class MarketCapParams:
    type: ClassVar[str] = "market"
    adapter: str
    market_params: MarketParams
    market_id: str

    @property
    def collateral_token(self) -> str:
        return self.market_params.collateral_token


@dataclass(frozen=True)
class UnknownCapParams:
    type: ClassVar[str] = "unknown"


ParsedCapParams = Union[
    AdapterCapParams, CollateralCapParams, MarketCapParams, UnknownCapParams
]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def _from_hex(value: str) -> bytes:
    text = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(text)


def _market_params_tuple(params: MarketParams) -> tuple[str, str, str, str, int]:
    return (
        to_checksum_address(params.loan_token),
        to_checksum_address(params.collateral_token),
        to_checksum_address(params.oracle),
        to_checksum_address(params.irm),
        int(params.lltv),
    )


def _cap_id(encoded: bytes) -> CapId:
    return CapId(params=_to_hex(encoded), id=_to_hex(keccak(encoded)))


def cap_id_from_params(params: str) -> str:
    """Hash an already encoded ``idParams`` blob into its cap id."""
    return _to_hex(keccak(_from_hex(params)))


def get_adapter_cap_id(adapter_address: str) -> CapId:
    encoded = encode(
        _TAGGED_ADDRESS_TYPES, [ADAPTER_TAG, to_checksum_address(adapter_address)]
    )
    return _cap_id(encoded)


def get_collateral_cap_id(collateral_token: str) -> CapId:
    encoded = encode(
        _TAGGED_ADDRESS_TYPES, [COLLATERAL_TAG, to_checksum_address(collateral_token)]
    )
    return _cap_id(encoded)


def get_market_cap_id(adapter_address: str, market_params: MarketParams) -> CapId:
    encoded = encode(
        _MARKET_CAP_TYPES,
        [
            MARKET_TAG,
            to_checksum_address(adapter_address),
            _market_params_tuple(market_params),
        ],
    )
    return _cap_id(encoded)


def market_id(market_params: MarketParams) -> str:
    """Morpho Blue market id: keccak256 of the encoded market params."""
    encoded = encode([_MARKET_PARAMS_TYPE], [_market_params_tuple(market_params)])
    return _to_hex(keccak(encoded))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

_DECODE_ERRORS = (DecodingError, ValueError, OverflowError, TypeError)


def _try_market(data: bytes) -> MarketCapParams | None:
    try:
        tag, adapter, raw_params = decode(_MARKET_CAP_TYPES, data)
    except _DECODE_ERRORS:
        return None
    if tag != MARKET_TAG:
        return None
    loan, collateral, oracle, irm, lltv = raw_params
    params = MarketParams(
        loan_token=to_checksum_address(loan),
        collateral_token=to_checksum_address(collateral),
        oracle=to_checksum_address(oracle),
        irm=to_checksum_address(irm),
        lltv=int(lltv),
    )
    return MarketCapParams(
        adapter=to_checksum_address(adapter),
        market_params=params,
        market_id=market_id(params),
    )


def _try_tagged_address(
    data: bytes,
) -> AdapterCapParams | CollateralCapParams | None:
    try:
        tag, address = decode(_TAGGED_ADDRESS_TYPES, data)
    except _DECODE_ERRORS:
        return None
    if tag == COLLATERAL_TAG:
        return CollateralCapParams(collateral_token=to_checksum_address(address))
    if tag == ADAPTER_TAG:
        return AdapterCapParams(adapter=to_checksum_address(address))
    return None


def parse_cap_id_params(params: str | None) -> ParsedCapParams:
    """Recover the structured key of a cap from its ``idParams`` blob."""
    if not params:
        return UnknownCapParams()
    try:
        data = _from_hex(params)
    except ValueError:
        logger.debug("Cap idParams is not valid hex: %s", params)
        return UnknownCapParams()

    parsed = _try_market(data) or _try_tagged_address(data)
    if parsed is None:
        logger.debug("Unrecognized cap idParams shape: %s", params[:74])
        return UnknownCapParams()
    return parsed
