"""
Derived View Model Package.

Turns engine output into consumer-facing units: clamped fuel,
normalized ratios, per-player share, totals and display strings.

Components:
- models: BucketView, GalaxyView
- builder: Prediction to view mapping
- formatting: Unit conversion and compact notation
- leave: Payout estimate for leaving a bucket
"""

from .models import BucketView, GalaxyView
from .builder import build_galaxy_view, build_bucket_view, clamp_fuel, player_share
from .formatting import to_display_units, format_tokens, format_compact
from .leave import LeaveEstimate, estimate_leave

__all__ = [
    "BucketView",
    "GalaxyView",
    "build_galaxy_view",
    "build_bucket_view",
    "clamp_fuel",
    "player_share",
    "to_display_units",
    "format_tokens",
    "format_compact",
    "LeaveEstimate",
    "estimate_leave",
]
