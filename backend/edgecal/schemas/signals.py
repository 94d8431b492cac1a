"""Edge signal payloads carried on every prediction."""

from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

logger = structlog.get_logger()


class EdgeType(str, Enum):
    """Signal types written by the edge generators. Anything else is rejected at the store boundary."""

    WEATHER_WIND = "weather_wind"
    WEATHER_PRECIP = "weather_precip"
    WEATHER_COLD = "weather_cold"
    WEATHER_DOME = "weather_dome"
    TRAVEL_TIMEZONE = "travel_timezone"
    TRAVEL_SHORT_WEEK = "travel_short_week"
    TRAVEL_LONDON = "travel_london"
    TRAVEL_ALTITUDE = "travel_altitude"
    OL_INJURY_LT = "ol_injury_lt"
    OL_INJURY_RT = "ol_injury_rt"
    OL_INJURY_C = "ol_injury_c"
    OL_INJURY_MULTIPLE = "ol_injury_multiple"
    BETTING_LINE_MOVE = "betting_line_move"
    BETTING_IMPLIED_TOTAL = "betting_implied_total"
    USAGE_TARGET_SHARE = "usage_target_share"
    USAGE_CARRY_SHARE = "usage_carry_share"
    USAGE_TREND = "usage_trend"
    USAGE_SNAPS = "usage_snaps"
    USAGE_REDZONE = "usage_redzone"
    MATCHUP_DEFENSE = "matchup_defense"
    MATCHUP_DEF_INJURY = "matchup_def_injury"
    SCHEME_NEW_COORDINATOR = "scheme_new_coordinator"
    SCHEME_PACE_CHANGE = "scheme_pace_change"
    SCHEME_PASS_RATE_CHANGE = "scheme_pass_rate_change"
    HOME_AWAY_SPLIT = "home_away_split"
    PRIMETIME_PERFORMANCE = "primetime_performance"
    DIVISION_RIVALRY = "division_rivalry"
    REST_ADVANTAGE = "rest_advantage"
    INDOOR_OUTDOOR_SPLIT = "indoor_outdoor_split"
    COVERAGE_MATCHUP = "coverage_matchup"

    # Older names still present in stored payloads and weight rows
    WEATHER_RAIN = "weather_rain"
    WEATHER_SNOW = "weather_snow"
    TRAVEL_DISTANCE = "travel_distance"
    REST_SHORT_WEEK = "rest_short_week"
    OL_INJURY = "ol_injury"
    BETTING_SPREAD = "betting_spread"
    BETTING_TOTAL = "betting_total"
    USAGE_SNAP_COUNT = "usage_snap_count"
    USAGE_OPPORTUNITY = "usage_opportunity"
    CONTRACT_INCENTIVE = "contract_incentive"
    REVENGE_GAME = "revenge_game"
    REDZONE_USAGE = "redzone_usage"
    INDOOR_OUTDOOR = "indoor_outdoor"


KNOWN_EDGE_TYPES = frozenset(e.value for e in EdgeType)


class EdgeSignal(BaseModel):
    """One quantified factor behind a prediction."""

    type: EdgeType
    magnitude: float
    confidence: float = Field(default=50, ge=0, le=100)
    description: str | None = None

    @property
    def edge_type(self) -> str:
        return self.type.value


def parse_signals(payload: Any, prediction_id: int | None = None) -> list[EdgeSignal]:
    """
    Validate a stored signal payload.

    Accepts the ``{"signals": [...], "summary": {...}}`` envelope written by the
    signal generators or a bare list. Malformed entries are dropped, not raised.
    """
    if isinstance(payload, dict):
        raw = payload.get("signals") or []
    elif isinstance(payload, list):
        raw = payload
    else:
        return []

    signals: list[EdgeSignal] = []
    for item in raw:
        try:
            signals.append(EdgeSignal.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Dropping invalid edge signal",
                prediction_id=prediction_id,
                signal_type=item.get("type") if isinstance(item, dict) else None,
                errors=e.error_count(),
            )
    return signals
