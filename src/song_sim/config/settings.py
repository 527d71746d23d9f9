from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class DBSettings:
    host: str
    port: int
    name: str
    user: str
    password: str

    @property
    def dsn(self) -> str:
        return (
            f"dbname={self.name} user={self.user} password={self.password} "
            f"host={self.host} port={self.port}"
        )


@dataclass(frozen=True)
class KnowledgeSettings:
    """Fidelity thresholds and the setlist transmission model."""

    lost_threshold: float = 0.1
    """Below this a verse no longer counts as held at all."""
    garble_threshold: float = 0.3
    """At or above this a verse is known well enough to teach and gate prerequisites."""
    carve_threshold: float = 0.7
    """A carver must hold the verse at least this well."""
    writing_fidelity: float = 0.5
    """Flat fidelity a literate singer reads a carved verse at."""
    focused_rate: float = 0.25
    """Per-power gain of one-on-one teaching."""
    absorb_gap_rate: float = 0.3
    """Share of the gap between target and current a youth closes per season."""
    position_open: float = 0.95
    position_close: float = 0.55
    position_single: float = 0.90
    repetition_step: float = 0.02
    repetition_cap: float = 0.10
    blood_absorb_weight: float = 0.5
    blood_memory_chance: float = 0.02
    """Chance per unit of blood affinity that an eased verse surfaces."""
    blood_memory_step: float = 0.1
    literacy_verse: str = "writing"
    carving_verse: str = "tree_song"
    memory_aids: tuple[tuple[str, int], ...] = (("rune", 2), ("ledger", 1))
    """Verses that add setlist slots when anyone knows them past garble."""


@dataclass(frozen=True)
class EmergenceSettings:
    shadow_decay: float = 0.05
    crystallize_ratio: float = 0.8
    redemption_chance: float = 0.08
    redemption_ratio: float = 0.4
    adjacency_base: float = 0.05
    adjacency_step: float = 0.03
    adjacency_ratio: float = 0.7
    adjacency_traditions: tuple[str, ...] = ("mixed", "ash")


@dataclass(frozen=True)
class HeritageSettings:
    drift: float = 0.005
    floor: float = 0.01
    """Traits below this vanish from the blood map."""
    allergy_floor: float = 0.05
    """A trait must reach this level to sensitize its carrier or ease its verses."""
    sink_threshold: float = 0.5
    sink_amount: float = 0.03


@dataclass(frozen=True)
class TreeSettings:
    growth_per_verse: int = 1
    sun_blocked_height: int = 6
    sun_dead_height: int = 12
    sunlight_floor: float = 0.1
    scatter_chance: float = 0.4
    fragment_min: float = 0.3
    fragment_span: float = 0.4
    felling_spirit_penalty: float = 0.15
    carried_floor: float = 0.5
    """Carved verses survive a crossing at no less than this fidelity."""
    felling_verse: str = "blade"
    study_gain: float = 0.3
    study_cap: float = 0.6
    study_known: float = 0.5
    """Holders at or above this have nothing left to learn from the ash."""


@dataclass(frozen=True)
class PopulationSettings:
    youth_max_age: int = 4
    adult_max_age: int = 16
    elder_max_age: int = 24
    max_population: int = 15
    birth_food_min: int = 3
    starting_food: int = 14
    encounter_chance: float = 0.15
    emigration_rate: float = 0.08
    seasonal_gather: tuple[int, ...] = (3, 5, 4, 1)
    birth_seasons: tuple[int, ...] = (0, 1)
    encounter_seasons: tuple[int, ...] = (1, 2)


@dataclass(frozen=True)
class RuleSettings:
    """Everything the simulation core needs to resolve a season."""

    knowledge: KnowledgeSettings = field(default_factory=KnowledgeSettings)
    emergence: EmergenceSettings = field(default_factory=EmergenceSettings)
    heritage: HeritageSettings = field(default_factory=HeritageSettings)
    tree: TreeSettings = field(default_factory=TreeSettings)
    population: PopulationSettings = field(default_factory=PopulationSettings)


@dataclass(frozen=True)
class SimulationSettings:
    seed: int = 42
    seasons: int = 80
    start_era: str = "stone"
    log_tick_interval: int = 10


@dataclass(frozen=True)
class StoreSettings:
    backend: str = "file"
    """One of memory, file or postgres."""
    state_path: Path = Path("state.json")
    slot: str = "default"


@dataclass(frozen=True)
class AppSettings:
    db: DBSettings
    simulation: SimulationSettings
    rules: RuleSettings
    store: StoreSettings
    output_dir: Path

    @staticmethod
    def from_env() -> "AppSettings":
        return AppSettings(
            db=DBSettings(
                host=os.getenv("DB_HOST", "localhost"),
                port=int(os.getenv("DB_PORT", "5432")),
                name=os.getenv("DB_NAME", "song"),
                user=os.getenv("DB_USER", "song_user"),
                password=os.getenv("DB_PASSWORD", "song_pass"),
            ),
            simulation=SimulationSettings(
                seed=int(os.getenv("SEED", "42")),
                seasons=int(os.getenv("SEASONS", "80")),
                start_era=os.getenv("START_ERA", "stone"),
                log_tick_interval=int(os.getenv("LOG_TICK_INTERVAL", "10")),
            ),
            rules=RuleSettings(
                knowledge=KnowledgeSettings(
                    lost_threshold=float(os.getenv("LOST_THRESHOLD", "0.1")),
                    garble_threshold=float(os.getenv("GARBLE_THRESHOLD", "0.3")),
                    carve_threshold=float(os.getenv("CARVE_THRESHOLD", "0.7")),
                    writing_fidelity=float(os.getenv("WRITING_FIDELITY", "0.5")),
                    focused_rate=float(os.getenv("FOCUSED_RATE", "0.25")),
                ),
                emergence=EmergenceSettings(
                    redemption_chance=float(os.getenv("REDEMPTION_CHANCE", "0.08")),
                    adjacency_base=float(os.getenv("ADJACENCY_BASE", "0.05")),
                ),
                heritage=HeritageSettings(
                    drift=float(os.getenv("BLOOD_DRIFT", "0.005")),
                    sink_amount=float(os.getenv("SONG_SINK_AMOUNT", "0.03")),
                ),
                tree=TreeSettings(
                    sun_blocked_height=int(os.getenv("SUN_BLOCKED_HEIGHT", "6")),
                    sun_dead_height=int(os.getenv("SUN_DEAD_HEIGHT", "12")),
                    scatter_chance=float(os.getenv("FELLING_SCATTER_CHANCE", "0.4")),
                ),
                population=PopulationSettings(
                    max_population=int(os.getenv("MAX_POPULATION", "15")),
                    starting_food=int(os.getenv("STARTING_FOOD", "14")),
                    encounter_chance=float(os.getenv("ENCOUNTER_CHANCE", "0.15")),
                ),
            ),
            store=StoreSettings(
                backend=os.getenv("STORE_BACKEND", "file"),
                state_path=Path(os.getenv("STATE_PATH", "state.json")),
                slot=os.getenv("SAVE_SLOT", "default"),
            ),
            output_dir=Path(os.getenv("OUTPUT_DIR", "outputs")),
        )
