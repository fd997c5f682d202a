"""Catalog of detailing services and their photo checklists."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    description: str
    icon: str
    checklist: Tuple[str, ...]


SERVICES: List[Service] = [
    Service(
        id="full_detail",
        name="Full Detail",
        description="Complete interior and exterior rejuvenation for the ultimate shine.",
        icon="✨",
        checklist=(
            "Front 3/4 angle",
            "Side profile",
            "Rear 3/4 angle",
            "Wheels close-up",
            "Dashboard",
            "Seats",
            "Floor mats",
            "Trunk",
            "Final glam shot",
        ),
    ),
    Service(
        id="interior_detail",
        name="Interior Detail",
        description="Deep clean of carpets, seats, and dashboard.",
        icon="💺",
        checklist=(
            "Dashboard before & after",
            "Seat textures",
            "Floor mat comparison",
            "Center console details",
            "Door panels",
            "Ceiling/Headliner",
        ),
    ),
    Service(
        id="exterior_detail",
        name="Exterior Detail",
        description="Clay bar, wax, and paint decontamination.",
        icon="🚗",
        checklist=(
            "Front hood reflection",
            "Side door panels",
            "Wheel & tire shine",
            "Grille details",
            "Glass clarity",
            "Paint depth profile",
        ),
    ),
    Service(
        id="ceramic_coating",
        name="Ceramic Coating",
        description="Long-term paint protection and hydrophobic properties.",
        icon="🛡️",
        checklist=(
            "Full body gloss",
            "Water beading close-up",
            "Applicator bottle shot",
            "Mirror cap reflection",
            "Wheel coating detail",
        ),
    ),
    Service(
        id="paint_correction",
        name="Paint Correction",
        description="Swirl mark and scratch removal.",
        icon="🪄",
        checklist=(
            "Swirl marks (Halogen light)",
            "50/50 split shot",
            "Hood clarity",
            "Fender scratch removal",
            "Finished gloss levels",
        ),
    ),
    Service(
        id="engine_bay",
        name="Engine Bay",
        description="Degreasing and dressing the engine compartment.",
        icon="⚙️",
        checklist=(
            "Main engine overview",
            "Hoses & plastics",
            "Valve cover close-up",
            "Firewall area",
            "Underside of hood",
        ),
    ),
]


def get_service(service_id: Optional[str]) -> Optional[Service]:
    for service in SERVICES:
        if service.id == service_id:
            return service
    return None


def service_name(service_id: Optional[str], default: str = "Unknown") -> str:
    service = get_service(service_id)
    return service.name if service else default
