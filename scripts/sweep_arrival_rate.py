from __future__ import annotations

import sys
from itertools import product
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lbsim import AdmissionSim, SimConfig
from lbsim.strategies import POLICIES


def run_single_simulation(
    policy: str,
    rate: float,
    seed: int,
    server_count: int,
    run_seconds: float,
) -> Dict[str, float]:
    cfg = SimConfig(
        arrival_rate=rate,
        server_count=server_count,
        policy=policy,
        run_seconds=run_seconds,
        arrival_process="poisson",
        seed=seed,
        record_history=True,
    )
    metrics = AdmissionSim(cfg).run(verbose=False)
    return {k: v for k, v in metrics.items() if isinstance(v, (int, float))}


def aggregate_metrics(metrics: List[Dict[str, float]]) -> Dict[str, float]:
    df = pd.DataFrame(metrics)
    means = df.mean()
    return {f"{k}_mean": float(means[k]) for k in df.columns}


def main() -> None:
    n_repeat = 20
    global_seed = 42
    server_count = 4
    run_seconds = 60.0
    output_csv = ROOT / "results" / "arrival_rate_sweep.csv"
    n_jobs = -1

    rate_values = [1, 5, 10, 20, 40, 80, 120, 160]
    seeds = (np.arange(n_repeat) + global_seed).astype(int)

    results: List[Dict[str, float]] = []
    grid = list(product(sorted(POLICIES), rate_values))

    with tqdm(total=len(grid) * n_repeat, desc="Simulations", ncols=80) as sim_pbar:
        for policy, rate in tqdm(grid, desc="Rate grid", ncols=80):
            metrics_per_seed = Parallel(n_jobs=n_jobs)(
                delayed(run_single_simulation)(
                    policy=policy,
                    rate=float(rate),
                    seed=int(seed),
                    server_count=server_count,
                    run_seconds=run_seconds,
                )
                for seed in seeds
            )
            sim_pbar.update(n_repeat)

            avg_metrics = aggregate_metrics(list(metrics_per_seed))
            avg_metrics.update({"policy": policy, "rate": float(rate)})
            results.append(avg_metrics)
            tqdm.write(
                f"Completed policy={policy}, rate={rate}: "
                f"rejection_rate={avg_metrics['rejection_rate_mean']:.4f}"
            )

    df_results = pd.DataFrame(results)
    column_order = ["policy", "rate"] + sorted(
        [col for col in df_results.columns if col not in {"policy", "rate"}]
    )
    df_results = df_results[column_order]
    output_csv.parent.mkdir(parents=True, exist_ok=True)
    df_results.to_csv(output_csv, index=False)


if __name__ == "__main__":
    main()
