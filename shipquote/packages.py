"""Consolidate resolved cart items into parcels and detect freight."""

import logging
from dataclasses import dataclass, field
from typing import Any

from shipquote.config import EngineConfig
from shipquote.metadata import Dimensions, ResolvedItem

logger = logging.getLogger(__name__)

INSTALL_ONLY_PREFIX = "install"


@dataclass
class Package:
    weight_value: float
    dimensions: Dimensions
    weight_unit: str = "pound"
    origin_item_ref: str | None = None

    @property
    def ounces(self) -> float:
        return self.weight_value * 16

    def to_dict(self) -> dict[str, Any]:
        return {
            "weightValue": self.weight_value,
            "weightUnit": self.weight_unit,
            "dimensions": self.dimensions.to_dict(),
            "originItemRef": self.origin_item_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Package":
        dims = data["dimensions"]
        return cls(
            weight_value=float(data["weightValue"]),
            weight_unit=data.get("weightUnit", "pound"),
            dimensions=Dimensions(
                length=float(dims["length"]),
                width=float(dims["width"]),
                height=float(dims["height"]),
                unit=dims.get("unit", "inch"),
            ),
            origin_item_ref=data.get("originItemRef"),
        )


@dataclass
class PackagePlan:
    packages: list[Package] = field(default_factory=list)
    freight: bool = False
    freight_reason: str | None = None
    freight_item: str | None = None
    install_only: bool = False
    install_only_items: list[str] = field(default_factory=list)

    @property
    def primary(self) -> Package | None:
        return self.packages[0] if self.packages else None


def is_install_only(resolved: ResolvedItem) -> bool:
    profile = resolved.profile
    if not profile.requires_shipping:
        return True
    return profile.shipping_class.strip().lower().startswith(INSTALL_ONLY_PREFIX)


class PackagePlanner:
    """Turns resolved items into an ordered list of parcels.

    The first package is the combined parcel when one exists, followed by
    one solo parcel per unit of every ships-alone item.
    """

    def __init__(self, config: EngineConfig):
        self.config = config

    def default_dimensions(self) -> Dimensions:
        return Dimensions(
            length=self.config.default_length_in,
            width=self.config.default_width_in,
            height=self.config.default_height_in,
        )

    def default_package(self) -> Package:
        return Package(
            weight_value=self.config.default_weight_lbs,
            dimensions=self.default_dimensions(),
        )

    def freight_reason(self, resolved: ResolvedItem) -> str | None:
        """Return why an item must ship freight, or None."""
        profile = resolved.profile
        if profile.shipping_class.strip().lower() == "freight":
            return "shipping_class"
        unit_weight = profile.weight or 0.0
        if unit_weight >= self.config.freight_unit_weight_lbs:
            return "unit_weight"
        if profile.dimensions and profile.dimensions.longest() >= self.config.freight_max_dimension_in:
            return "dimension"
        if unit_weight * resolved.item.quantity >= self.config.freight_total_weight_lbs:
            return "total_weight"
        return None

    def plan(self, items: list[ResolvedItem]) -> PackagePlan:
        plan = PackagePlan()
        shippable: list[ResolvedItem] = []

        for resolved in items:
            if is_install_only(resolved):
                plan.install_only_items.append(resolved.item.identifier)
                continue
            reason = self.freight_reason(resolved)
            if reason:
                logger.info(
                    "Freight required for %s (reason=%s)", resolved.item.identifier, reason
                )
                return PackagePlan(
                    freight=True,
                    freight_reason=reason,
                    freight_item=resolved.item.identifier,
                    install_only_items=plan.install_only_items,
                )
            shippable.append(resolved)

        if not shippable:
            if plan.install_only_items:
                plan.install_only = True
            else:
                # Nothing resolved; quote the default parcel.
                plan.packages.append(self.default_package())
            return plan

        combined_weight = 0.0
        combined_dims: Dimensions | None = None
        solo: list[Package] = []

        for resolved in shippable:
            profile = resolved.profile
            qty = resolved.item.quantity
            if profile.ships_alone:
                for _ in range(qty):
                    solo.append(Package(
                        weight_value=profile.weight or self.config.default_weight_lbs,
                        dimensions=profile.dimensions or self.default_dimensions(),
                        origin_item_ref=resolved.item.identifier,
                    ))
                continue

            combined_weight += qty * (profile.weight or 0.0)
            dims = profile.dimensions or self.default_dimensions()
            if combined_dims is None:
                combined_dims = Dimensions(dims.length, dims.width, dims.height)
            else:
                combined_dims = Dimensions(
                    length=max(combined_dims.length, dims.length),
                    width=max(combined_dims.width, dims.width),
                    height=max(combined_dims.height, dims.height),
                )

        if combined_weight > 0:
            plan.packages.append(Package(
                weight_value=round(combined_weight, 2),
                dimensions=combined_dims or self.default_dimensions(),
            ))
        elif not solo:
            plan.packages.append(self.default_package())
        plan.packages.extend(solo)
        return plan
