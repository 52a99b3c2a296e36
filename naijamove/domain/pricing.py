"""
Fare Calculator  (Strategy Pattern)
===================================

Formula
-------
Ride / delivery booking:

    Price = ceil(Base + Per_KM x Distance)

Logistics quote:

    Price = ceil((Base_Fare + Per_KG x Weight + Per_KM x Distance) x Interstate_Multiplier)

All arithmetic runs on ``Decimal`` so that ceiling rounding never charges an
extra unit because of binary float noise.  Rounding is always up: a fare
never under-charges a fractional unit.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import ROUND_CEILING, Decimal
from typing import Mapping

from .enums import VehicleType
from .errors import PricingConfigError, ValidationError


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def _ceil(amount: Decimal) -> Decimal:
    return amount.to_integral_value(rounding=ROUND_CEILING)


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_km: float) -> Decimal: ...


class DistancePricing(PricingStrategy):
    """Per-vehicle base fare plus a per-km rate."""

    def __init__(self, base: float, per_km: float):
        self.base = _dec(base)
        self.per_km = _dec(per_km)

    def calculate(self, distance_km: float) -> Decimal:
        return _ceil(self.base + self.per_km * _dec(distance_km))


class LogisticsPricing(PricingStrategy):
    """Parcel schedule: weight and distance, optionally interstate."""

    def __init__(
        self,
        base_fare: float,
        per_kg: float,
        per_km: float,
        interstate_multiplier: float = 1.0,
        weight_kg: float = 0.0,
        interstate: bool = False,
    ):
        self.base_fare = _dec(base_fare)
        self.per_kg = _dec(per_kg)
        self.per_km = _dec(per_km)
        self.multiplier = _dec(interstate_multiplier) if interstate else Decimal(1)
        self.weight_kg = _dec(weight_kg)

    def calculate(self, distance_km: float) -> Decimal:
        raw = self.base_fare + self.per_kg * self.weight_kg + self.per_km * _dec(distance_km)
        return _ceil(raw * self.multiplier)


# ── Engine facade ─────────────────────────────────────────────────────


class FareCalculator:
    """High-level API used by the dispatch engine and the quote endpoint.

    The pricing table is owned by the settings collaborator and treated as
    read-only here.
    """

    def __init__(self, vehicle_pricing: Mapping, logistics_pricing=None):
        self.vehicle_pricing = vehicle_pricing
        self.logistics_pricing = logistics_pricing

    @classmethod
    def from_settings(cls, settings) -> "FareCalculator":
        return cls(settings.vehicle_pricing, settings.logistics_pricing)

    def strategy_for(self, vehicle_type: VehicleType) -> DistancePricing:
        try:
            rate = self.vehicle_pricing[VehicleType(vehicle_type)]
        except (KeyError, ValueError):
            raise PricingConfigError(
                f"No pricing configured for vehicle type {vehicle_type!r}",
                vehicle_type=getattr(vehicle_type, "value", vehicle_type),
            ) from None
        return DistancePricing(rate.base, rate.per_km)

    def calculate_fare(self, vehicle_type: VehicleType, distance_km: float) -> Decimal:
        if distance_km < 0:
            raise ValidationError("distance_km must be >= 0", distance_km=distance_km)
        return self.strategy_for(vehicle_type).calculate(distance_km)

    def calculate_logistics_fare(
        self, distance_km: float, weight_kg: float, interstate: bool = False
    ) -> Decimal:
        if distance_km < 0 or weight_kg < 0:
            raise ValidationError(
                "distance_km and weight_kg must be >= 0",
                distance_km=distance_km,
                weight_kg=weight_kg,
            )
        if self.logistics_pricing is None:
            raise PricingConfigError("No logistics pricing schedule configured")
        rate = self.logistics_pricing
        strategy = LogisticsPricing(
            rate.base_fare,
            rate.per_kg,
            rate.per_km,
            rate.interstate_multiplier,
            weight_kg=weight_kg,
            interstate=interstate,
        )
        return strategy.calculate(distance_km)
