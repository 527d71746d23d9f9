from __future__ import annotations

import logging
import os
from collections import defaultdict
from statistics import mean

from song_sim.config.settings import AppSettings
from song_sim.experiments.runner import ExperimentRunner, build_specs, parse_seed_list


def summarize_by_era(rows: list[dict]) -> dict[str, dict[str, float]]:
    """Collapse rate, mean survivors and mean verses alive per starting era."""
    grouped: dict[str, list[dict]] = defaultdict(list)
    for row in rows:
        grouped[row["era"]].append(row)
    return {
        era: {
            "runs": float(len(era_rows)),
            "collapse_rate": round(mean(r["collapsed"] for r in era_rows), 4),
            "mean_final_population": round(mean(r["final_population"] for r in era_rows), 2),
            "mean_verses_alive": round(mean(r["verses_alive"] for r in era_rows), 2),
        }
        for era, era_rows in grouped.items()
    }


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logger = logging.getLogger("song_sim.entrypoint")

    settings = AppSettings.from_env()
    settings.output_dir.mkdir(parents=True, exist_ok=True)

    eras_raw = os.getenv("START_ERAS", settings.simulation.start_era)
    seeds_raw = os.getenv("EXPERIMENT_SEEDS", "11,42,97")
    eras = [e.strip() for e in eras_raw.split(",") if e.strip()]
    seeds = parse_seed_list(seeds_raw)
    logger.info(
        "Loaded experiment plan: eras=%s seeds=%s seasons=%d total_runs=%d",
        eras,
        seeds,
        settings.simulation.seasons,
        len(eras) * len(seeds),
    )

    runner = ExperimentRunner(settings)
    rows = runner.run_many(build_specs(eras, seeds))
    for era, summary in summarize_by_era(rows).items():
        logger.info("Era summary: era=%s %s", era, summary)


if __name__ == "__main__":
    main()
