"""
Pydantic schemas for Dashboard API responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# =======================
# COMMON
# =======================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str = "0.1.0"
    uptime_seconds: float = 0
    games_loaded: int = 0
    active_game: Optional[str] = None
    source: Optional[Dict[str, Any]] = None

class ErrorResponse(BaseModel):
    detail: str

# =======================
# 1. GAMES
# =======================

class GameSummary(BaseModel):
    game_id: str
    version: int
    bucket_count: int
    entry_fee: int
    spill_rate: int
    max_players: int
    total_players: int
    total_balance: int
    as_of: float

class GamesResponse(BaseModel):
    data: List[GameSummary]

# =======================
# 2. PREDICTION
# =======================

class BucketFlowSchema(BaseModel):
    index: int
    role: str  # holding, playable
    occupancy: int
    snapshot_balance: int
    predicted_balance: int
    expected_spill: int
    realized_outflow: int
    inflow: int
    net_flow: int
    direction: int  # -1, 0, 1
    rate_per_second: float
    out_of_bounds: bool

class PredictionResponse(BaseModel):
    game_id: str
    version: int
    as_of: float
    now: float
    elapsed_seconds: int
    stale: bool
    max_fuel: int
    snapshot_total: int
    predicted_total: int
    truncation_loss: int
    balances: List[int]
    directions: List[int]
    buckets: List[BucketFlowSchema]

# =======================
# 3. VIEW
# =======================

class BucketViewSchema(BaseModel):
    index: int
    role: str
    balance: int
    fuel: int
    fuel_ratio: float
    occupancy: int
    occupancy_ratio: float
    player_share: Optional[int] = None
    player_share_display: Optional[str] = None
    direction: int
    direction_glyph: str
    fuel_display: str

class GalaxyViewResponse(BaseModel):
    game_id: str
    version: int
    as_of: float
    now: float
    stale: bool
    buckets: List[BucketViewSchema]
    total_balance: int
    total_players: int
    total_occupancy: int
    max_fuel: int
    total_display: str
    mint_decimals: Optional[int] = None

# =======================
# 4. LEAVE ESTIMATE
# =======================

class LeaveEstimateResponse(BaseModel):
    game_id: str
    bucket_index: int
    gross_winnings: int
    burn: int
    net_winnings: int
    net_display: str
    entry_fee: int
    is_last_player: bool
    is_loss: bool

# =======================
# 5. PARITY
# =======================

class BucketMismatchSchema(BaseModel):
    bucket_index: int
    expected: int
    confirmed: int
    difference: int
    allowed: int
    severity: str

class ParityReportSchema(BaseModel):
    game_id: str
    event_type: str
    from_version: int
    to_version: int
    from_as_of: float
    to_as_of: float
    expected_balances: List[int]
    confirmed_balances: List[int]
    mismatches: List[BucketMismatchSchema]
    effect: str
    is_match: bool
    highest_severity: str
    checked_at: datetime

class ParityResponse(BaseModel):
    game_id: str
    summary: Dict[str, Any]
    reports: List[ParityReportSchema] = Field(default_factory=list)
