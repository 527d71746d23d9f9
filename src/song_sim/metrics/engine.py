from __future__ import annotations

import csv
from collections import Counter
from pathlib import Path
from statistics import mean
from typing import Any

from song_sim.config.settings import RuleSettings
from song_sim.spirits.effects import ATTACK_KIND
from song_sim.utils.types import WorldState

EMERGENCE_KINDS = ("shadow", "redemption", "adjacency", "blood_memory")


class MetricsEngine:
    def __init__(self, rules: RuleSettings) -> None:
        self.rules = rules

    def compute(self, events: list[dict[str, Any]], world: WorldState) -> dict[str, float]:
        """Summarize one run from its chronicle events and final world."""
        knowledge = self.rules.knowledge
        counts = Counter(e["kind"] for e in events)

        # ---- population ----
        births = counts["birth"]
        deaths = counts["death"]
        starvations = counts["starvation"]
        emigrations = counts["emigration"]
        spirit_attacks = counts[ATTACK_KIND]

        # ---- knowledge ----
        best: dict[str, float] = {}
        for person in world.people:
            for verse_id, fidelity in person.verses.items():
                if fidelity >= knowledge.lost_threshold:
                    best[verse_id] = max(best.get(verse_id, 0.0), fidelity)
        sound = [f for f in best.values() if f >= knowledge.garble_threshold]
        garbled = [f for f in best.values() if f < knowledge.garble_threshold]

        seasons = len({e["turn"] for e in events if e["kind"] == "season"})
        return {
            "seasons": float(seasons),
            "final_population": float(len(world.people)),
            "births": float(births),
            "deaths": float(deaths),
            "starvations": float(starvations),
            "emigrations": float(emigrations),
            "spirit_attacks": float(spirit_attacks),
            **{f"emergence_{kind}": float(counts[kind]) for kind in EMERGENCE_KINDS},
            "verses_alive": float(len(best)),
            "verses_sound": float(len(sound)),
            "verses_garbled": float(len(garbled)),
            "verses_lost": float(len(world.total_lost)),
            "mean_sound_fidelity": round(mean(sound), 4) if sound else 0.0,
            "carved": float(len(world.tree.carved)),
            "tree_height": float(world.tree.height),
            "fellings": float(world.fellings),
            "final_food": float(world.food),
            "collapsed": 1.0 if world.collapsed else 0.0,
        }

    def write_metrics_csv(
        self,
        output_dir: Path,
        rows: list[dict[str, Any]],
        filename: str = "metrics.csv",
    ) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / filename
        if not rows:
            return path
        keys = list(rows[0].keys())
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=keys)
            writer.writeheader()
            writer.writerows(rows)
        return path
