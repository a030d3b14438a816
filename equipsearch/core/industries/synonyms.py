"""Free-form industry equipment labels -> category slug / index ``primaryType``.

Labels come straight from the industry catalog, so new entries are added
here as the catalog grows.
"""

from __future__ import annotations

from typing import NamedTuple


class LabelMapping(NamedTuple):
    category_slug: str | None = None
    primary_type: str | None = None


INDUSTRY_SYNONYMS: dict[str, LabelMapping] = {
    # Earthmoving
    "hydraulic excavator": LabelMapping("excavator", "Excavator"),
    "compact excavator": LabelMapping("mini-excavator", "Mini Excavator"),
    "bulldozer": LabelMapping("dozer", "Dozer"),
    "motor grader": LabelMapping("motor-grader", "Motor Grader"),
    "wheel loader": LabelMapping("wheel-loader", "Wheel Loader"),
    "track loader": LabelMapping("track-loader", "Track Loader"),
    # Site and hauling
    "dump truck": LabelMapping("dump-truck", "Dump Truck"),
    "concrete mixer truck": LabelMapping("concrete-mixer", "Concrete Mixer"),
    "concrete pump truck": LabelMapping(None, "Concrete Pump"),
    "asphalt paver": LabelMapping("paver", "Paver"),
    "vibratory roller": LabelMapping("smooth-drum-roller", "Smooth Drum Roller"),
    "road roller": LabelMapping("smooth-drum-roller", "Smooth Drum Roller"),
    "compactor": LabelMapping("compactor", "Compactor"),
    # Aerial & material handling
    "scissor lift": LabelMapping("scissor-lift", "Scissor Lift"),
    "boom lift": LabelMapping("articulated-boom-lift", "Boom Lift"),
    "telescopic boom lift": LabelMapping("articulated-boom-lift", "Boom Lift"),
    "telehandler": LabelMapping("telehandler", "Telehandler"),
    "forklift": LabelMapping("forklift", "Forklift"),
    "rough-terrain forklift": LabelMapping("forklift", "Forklift"),
    # Small machines
    "skid steer loader": LabelMapping("skid-steer", "Skid Steer"),
    "compact track loader": LabelMapping("track-loader", "Track Loader"),
    "mini excavator": LabelMapping("mini-excavator", "Mini Excavator"),
    # Power & lighting
    "diesel generator": LabelMapping("generator", "Generator"),
    "mobile lighting tower": LabelMapping("light-tower", "Light Tower"),
    # No dedicated category page
    "pipeline trencher": LabelMapping("trencher", "Trencher"),
    "tower crane": LabelMapping(None, "Tower Crane"),
    "crawler crane": LabelMapping(None, "Crawler Crane"),
    "land drilling rig": LabelMapping(None, "Drilling Rig"),
    "hvac lifting crane": LabelMapping(None, "Crane"),
    "all-terrain crane": LabelMapping(None, "Crane"),
    "overhead gantry crane": LabelMapping(None, "Crane"),
    "overhead bridge crane": LabelMapping(None, "Crane"),
    "container reach stacker": LabelMapping(None, "Reach Stacker"),
    "irrigation pump unit": LabelMapping("water-pump", "Water Pump"),
    "utility utv": LabelMapping("utility-vehicle", "Utility Vehicle"),
    "fuel tanker truck": LabelMapping(None, "Fuel Truck"),
}


def normalize_label(label: str) -> str:
    return label.lower().strip()


def map_label_to_internal(label: str) -> LabelMapping:
    return INDUSTRY_SYNONYMS.get(normalize_label(label), LabelMapping())
