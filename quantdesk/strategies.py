"""Catalog of the strategy templates the service knows about."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Manifest:
    """Identity and description of a strategy template."""

    id: str
    name: str
    version: str
    symbol: str
    description: str
    is_spot: bool


CORE_BTC_V1 = Manifest(
    id="core-btc-v1",
    name="Core BTC v1",
    version="0.1.0",
    symbol="BTCUSDT",
    description="Conservative DCA-enhanced core BTC strategy built for completed 1h bars.",
    is_spot=True,
)

CORE_ETH_V1 = Manifest(
    id="core-eth-v1",
    name="Core ETH v1",
    version="0.1.0",
    symbol="ETHUSDT",
    description="Conservative DCA-enhanced core ETH strategy built for completed 1h bars.",
    is_spot=True,
)

_CATALOG = (CORE_BTC_V1, CORE_ETH_V1)


def catalog() -> list[Manifest]:
    """All known templates, in a fixed order."""
    return list(_CATALOG)


def lookup(template_id: str) -> Manifest:
    """The template with ``template_id``; ValueError if there is none."""
    for manifest in _CATALOG:
        if manifest.id == template_id:
            return manifest
    raise ValueError(f"unknown template_id {template_id!r}")


def validate_manifest(manifest: Manifest) -> Manifest:
    """Return ``manifest`` unchanged if it has an id and a symbol."""
    if not manifest.id or not manifest.symbol:
        raise ValueError("manifest id and symbol are required")
    return manifest