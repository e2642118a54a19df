"""Load the match-engine configuration from a TOML file."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any
import tomllib

from domain.events import EVENT_TIMINGS, PhaseTimings, get_event_timings
from domain.matchmaking.search import DEFAULT_MATCHMAKING_PARAMETERS, MatchmakingParameters
from domain.rating import DEFAULT_RATING_PARAMETERS, RatingParameters
from domain.scoring import DEFAULT_SCORING_PARAMETERS, ScoringParameters, ScoringVariant

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "default.toml"


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for one engine deployment."""

    name: str = "default"
    description: str | None = None
    file_path: Path | None = None
    matchmaking: MatchmakingParameters = DEFAULT_MATCHMAKING_PARAMETERS
    rating: RatingParameters = DEFAULT_RATING_PARAMETERS
    scoring: ScoringParameters = DEFAULT_SCORING_PARAMETERS
    event_timings: Mapping[str, PhaseTimings] = field(default_factory=lambda: EVENT_TIMINGS)

    def timings_for(self, event_type: str | None) -> PhaseTimings:
        return get_event_timings(event_type, self.event_timings)

    def as_config_json(self) -> dict[str, Any]:
        return {
            "matchmaking": {
                "base_range": self.matchmaking.base_range,
                "expansion_rate": self.matchmaking.expansion_rate,
                "max_range": self.matchmaking.max_range,
                "interval_seconds": self.matchmaking.interval_seconds,
                "candidate_limit": self.matchmaking.candidate_limit,
                "wait_discount": self.matchmaking.wait_discount,
                "stale_after_seconds": self.matchmaking.stale_after_seconds,
                "poll_interval_seconds": self.matchmaking.poll_interval_seconds,
            },
            "rating": {
                "initial_rating": self.rating.initial_rating,
                "scale_factor": self.rating.scale_factor,
                "rating_floor": self.rating.rating_floor,
                "master_threshold": self.rating.master_threshold,
                "provisional_games": self.rating.provisional_games,
                "k_master": self.rating.k_master,
                "k_provisional": self.rating.k_provisional,
                "k_standard": self.rating.k_standard,
                "max_deviation": self.rating.max_deviation,
                "deviation_constant": self.rating.deviation_constant,
                "peak_floor_margin": self.rating.peak_floor_margin,
            },
            "scoring": {
                "digits_per_row": self.scoring.digits_per_row,
                "rows_per_page": self.scoring.rows_per_page,
                "pages": self.scoring.pages,
                "millennium_standard": self.scoring.millennium_standard,
                "variant": self.scoring.variant.value,
            },
            "events": {name: timings.as_config_json() for name, timings in self.event_timings.items()},
        }


def default_engine_config() -> EngineConfig:
    return EngineConfig()


def load_engine_config(file_path: Path | None = None) -> EngineConfig:
    """Load and validate an engine config; a missing default file yields built-in defaults."""
    path = DEFAULT_CONFIG_PATH if file_path is None else file_path
    if not path.exists():
        if file_path is None:
            return default_engine_config()
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("rb") as file:
        raw = tomllib.load(file)
    return _parse_engine_config(raw, path)


def _parse_engine_config(raw: dict[str, Any], file_path: Path) -> EngineConfig:
    engine_raw = raw.get("engine", {})
    matchmaking_raw = raw.get("matchmaking", {})
    rating_raw = raw.get("rating", {})
    scoring_raw = raw.get("scoring", {})
    events_raw = raw.get("events", {})

    name = str(engine_raw.get("name", "default")).strip()
    if not name:
        raise ValueError(f"{file_path}: [engine].name must not be empty")

    description_value = engine_raw.get("description")
    description = None if description_value is None else str(description_value)

    matchmaking = MatchmakingParameters(
        base_range=int(matchmaking_raw.get("base_range", 100)),
        expansion_rate=int(matchmaking_raw.get("expansion_rate", 10)),
        max_range=int(matchmaking_raw.get("max_range", 500)),
        interval_seconds=float(matchmaking_raw.get("interval_seconds", 5.0)),
        candidate_limit=int(matchmaking_raw.get("candidate_limit", 10)),
        wait_discount=float(matchmaking_raw.get("wait_discount", 2.0)),
        stale_after_seconds=int(matchmaking_raw.get("stale_after_seconds", 300)),
        poll_interval_seconds=float(matchmaking_raw.get("poll_interval_seconds", 2.0)),
    )
    _validate_matchmaking(file_path=file_path, parameters=matchmaking)

    rating = RatingParameters(
        initial_rating=int(rating_raw.get("initial_rating", 1500)),
        scale_factor=float(rating_raw.get("scale_factor", 400.0)),
        rating_floor=int(rating_raw.get("rating_floor", 100)),
        master_threshold=int(rating_raw.get("master_threshold", 2400)),
        provisional_games=int(rating_raw.get("provisional_games", 30)),
        k_master=int(rating_raw.get("k_master", 10)),
        k_provisional=int(rating_raw.get("k_provisional", 40)),
        k_standard=int(rating_raw.get("k_standard", 20)),
        max_deviation=float(rating_raw.get("max_deviation", 350.0)),
        deviation_constant=float(rating_raw.get("deviation_constant", 34.6)),
        peak_floor_margin=int(rating_raw.get("peak_floor_margin", 200)),
    )
    _validate_rating(file_path=file_path, parameters=rating)

    variant_value = str(scoring_raw.get("variant", ScoringVariant.WMC.value)).strip().lower()
    try:
        variant = ScoringVariant(variant_value)
    except ValueError as exc:
        raise ValueError(f"{file_path}: [scoring].variant must be one of wmc, usa") from exc

    scoring = ScoringParameters(
        digits_per_row=int(scoring_raw.get("digits_per_row", 40)),
        rows_per_page=int(scoring_raw.get("rows_per_page", 12)),
        pages=int(scoring_raw.get("pages", 3)),
        millennium_standard=int(scoring_raw.get("millennium_standard", 3234)),
        variant=variant,
    )
    _validate_scoring(file_path=file_path, parameters=scoring)

    return EngineConfig(
        name=name,
        description=description,
        file_path=file_path,
        matchmaking=matchmaking,
        rating=rating,
        scoring=scoring,
        event_timings=_parse_event_timings(events_raw, file_path),
    )


def _parse_event_timings(events_raw: dict[str, Any], file_path: Path) -> Mapping[str, PhaseTimings]:
    timings = dict(EVENT_TIMINGS)
    for raw_name, values in events_raw.items():
        name = str(raw_name).strip().lower()
        if not isinstance(values, dict):
            raise ValueError(f"{file_path}: [events.{raw_name}] must be a table")
        base = timings.get(name)
        event = PhaseTimings(
            countdown_duration=int(
                values.get("countdown_duration", base.countdown_duration if base else 5)
            ),
            memorization_duration=int(
                values.get("memorization_duration", base.memorization_duration if base else 0)
            ),
            recall_duration=int(values.get("recall_duration", base.recall_duration if base else 0)),
        )
        if event.countdown_duration < 0:
            raise ValueError(f"{file_path}: [events.{name}].countdown_duration must be >= 0")
        if event.memorization_duration <= 0:
            raise ValueError(f"{file_path}: [events.{name}].memorization_duration must be > 0")
        if event.recall_duration <= 0:
            raise ValueError(f"{file_path}: [events.{name}].recall_duration must be > 0")
        timings[name] = event
    return MappingProxyType(timings)


def _validate_matchmaking(*, file_path: Path, parameters: MatchmakingParameters) -> None:
    if parameters.base_range <= 0:
        raise ValueError(f"{file_path}: [matchmaking].base_range must be > 0")
    if parameters.expansion_rate < 0:
        raise ValueError(f"{file_path}: [matchmaking].expansion_rate must be >= 0")
    if parameters.max_range < parameters.base_range:
        raise ValueError(f"{file_path}: [matchmaking].max_range must be >= base_range")
    if parameters.interval_seconds <= 0.0:
        raise ValueError(f"{file_path}: [matchmaking].interval_seconds must be > 0")
    if parameters.candidate_limit <= 0:
        raise ValueError(f"{file_path}: [matchmaking].candidate_limit must be > 0")
    if parameters.wait_discount < 0.0:
        raise ValueError(f"{file_path}: [matchmaking].wait_discount must be >= 0")
    if parameters.stale_after_seconds <= 0:
        raise ValueError(f"{file_path}: [matchmaking].stale_after_seconds must be > 0")
    if parameters.poll_interval_seconds <= 0.0:
        raise ValueError(f"{file_path}: [matchmaking].poll_interval_seconds must be > 0")


def _validate_rating(*, file_path: Path, parameters: RatingParameters) -> None:
    if parameters.initial_rating <= 0:
        raise ValueError(f"{file_path}: [rating].initial_rating must be > 0")
    if parameters.scale_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].scale_factor must be > 0")
    if parameters.rating_floor < 0:
        raise ValueError(f"{file_path}: [rating].rating_floor must be >= 0")
    if parameters.initial_rating < parameters.rating_floor:
        raise ValueError(f"{file_path}: [rating].initial_rating must be >= rating_floor")
    if parameters.master_threshold <= 0:
        raise ValueError(f"{file_path}: [rating].master_threshold must be > 0")
    if parameters.provisional_games < 0:
        raise ValueError(f"{file_path}: [rating].provisional_games must be >= 0")
    if parameters.k_master <= 0:
        raise ValueError(f"{file_path}: [rating].k_master must be > 0")
    if parameters.k_provisional <= 0:
        raise ValueError(f"{file_path}: [rating].k_provisional must be > 0")
    if parameters.k_standard <= 0:
        raise ValueError(f"{file_path}: [rating].k_standard must be > 0")
    if parameters.max_deviation <= 0.0:
        raise ValueError(f"{file_path}: [rating].max_deviation must be > 0")
    if parameters.deviation_constant < 0.0:
        raise ValueError(f"{file_path}: [rating].deviation_constant must be >= 0")
    if parameters.peak_floor_margin < 0:
        raise ValueError(f"{file_path}: [rating].peak_floor_margin must be >= 0")


def _validate_scoring(*, file_path: Path, parameters: ScoringParameters) -> None:
    if parameters.digits_per_row <= 0:
        raise ValueError(f"{file_path}: [scoring].digits_per_row must be > 0")
    if parameters.rows_per_page <= 0:
        raise ValueError(f"{file_path}: [scoring].rows_per_page must be > 0")
    if parameters.pages <= 0:
        raise ValueError(f"{file_path}: [scoring].pages must be > 0")
    if parameters.millennium_standard <= 0:
        raise ValueError(f"{file_path}: [scoring].millennium_standard must be > 0")


__all__ = ["DEFAULT_CONFIG_PATH", "EngineConfig", "default_engine_config", "load_engine_config"]
