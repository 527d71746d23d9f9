from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable

from song_sim.config.settings import AppSettings
from song_sim.metrics.engine import MetricsEngine
from song_sim.persistence.codec import dumps
from song_sim.persistence.store import InMemorySnapshotStore
from song_sim.utils.rng import make_rng
from song_sim.world.simulator import WorldSimulator


@dataclass
class ExperimentSpec:
    era: str
    seed: int


class ExperimentRunner:
    """Headless seeded runs: advance only, no player intents."""

    def __init__(self, settings: AppSettings) -> None:
        self.logger = logging.getLogger("song_sim.runner")
        self.settings = settings
        self.metrics_engine = MetricsEngine(settings.rules)

    def run_many(self, specs: Iterable[ExperimentSpec]) -> list[dict]:
        rows: list[dict] = []
        specs_list = list(specs)
        self.logger.info("Starting batch execution: run_count=%d", len(specs_list))
        batch_start = time.perf_counter()
        for idx, spec in enumerate(specs_list, start=1):
            self.logger.info(
                "Run queued: index=%d/%d era=%s seed=%d",
                idx,
                len(specs_list),
                spec.era,
                spec.seed,
            )
            rows.append(self.run_one(spec.era, spec.seed))
        metrics_path = self.metrics_engine.write_metrics_csv(
            self.settings.output_dir, rows, filename="metrics.csv"
        )
        self.logger.info(
            "Batch completed in %.2fs. Aggregate metrics at %s",
            time.perf_counter() - batch_start,
            metrics_path,
        )
        return rows

    def run_one(self, era: str, seed: int) -> dict:
        run_id = self._run_id(era, seed)
        run_start = time.perf_counter()
        seasons = self.settings.simulation.seasons
        interval = max(1, self.settings.simulation.log_tick_interval)
        self.logger.info("Starting run: %s seasons=%d", run_id, seasons)

        sim = WorldSimulator(
            rules=self.settings.rules,
            store=InMemorySnapshotStore(),
            rng=make_rng(seed),
            slot=run_id,
            autosave=False,
        )
        sim.new_game(era)
        events: list[dict] = []
        for season in range(1, seasons + 1):
            report = sim.advance()
            events.extend(e.as_dict() for e in report.events)
            world = sim.world
            if season % interval == 0:
                self.logger.info(
                    "Run progress: %s season=%d/%d people=%d food=%d",
                    run_id, season, seasons, len(world.people), world.food,
                )
            if world.collapsed:
                self.logger.info("Band collapsed: %s season=%d", run_id, season)
                break

        world = sim.world
        run_metrics = self.metrics_engine.compute(events, world)
        self.logger.info("Metrics computed for run: %s -> %s", run_id, run_metrics)
        self._write_run_artifacts(run_id, events, run_metrics, dumps(world))
        self.logger.info(
            "Completed run: %s in %.2fs", run_id, time.perf_counter() - run_start
        )
        return {"run_id": run_id, "era": era, "seed": seed, **run_metrics}

    def _write_run_artifacts(
        self, run_id: str, events: list[dict], run_metrics: dict, snapshot: str
    ) -> None:
        run_dir = self.settings.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        (run_dir / "events.json").write_text(
            json.dumps(events, indent=2, ensure_ascii=True), encoding="utf-8"
        )
        (run_dir / "metrics.json").write_text(
            json.dumps(run_metrics, indent=2, ensure_ascii=True), encoding="utf-8"
        )
        (run_dir / "snapshot.json").write_text(snapshot, encoding="utf-8")

    def _run_id(self, era: str, seed: int) -> str:
        ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        return f"{ts}_{era}_seed{seed}"


def parse_seed_list(raw: str) -> list[int]:
    out: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        out.append(int(part))
    return out


def build_specs(eras: list[str], seeds: list[int]) -> list[ExperimentSpec]:
    specs: list[ExperimentSpec] = []
    for era in eras:
        for seed in seeds:
            specs.append(ExperimentSpec(era=era, seed=seed))
    return specs

