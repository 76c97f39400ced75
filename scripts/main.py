from __future__ import annotations

import sys
import argparse
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lbsim import AdmissionSim, SimConfig, load_config
from lbsim.strategies import POLICIES, POLICY_LABELS, normalize_policy_name

LIST_FIELDS = ("completed_per_server",)


# ------------------- Single run: returns sim and metrics -------------------
def run_sim_and_metrics(
    base_config: SimConfig,
    policy: str,
    seed: int,
) -> Tuple[AdmissionSim, Dict[str, object]]:
    cfg = SimConfig.from_dict({**base_config.to_dict(), "policy": policy, "seed": int(seed)})
    sim = AdmissionSim(cfg)
    metrics = sim.run(verbose=False)
    return sim, metrics


def run_metrics_only(base_config: SimConfig, policy: str, seed: int) -> Dict[str, object]:
    _, metrics = run_sim_and_metrics(base_config, policy, seed)
    return {k: v for k, v in metrics.items() if k not in LIST_FIELDS}


# ------------------- Plotting functions -------------------
def plot_policy_subplot(ax_bal, ax_cpu, sim: AdmissionSim, title: str = "", metrics: Optional[Dict[str, object]] = None):
    """Balance score trend on the top axis, per-server CPU load on the bottom axis."""
    times = np.array(sim.stats.hist_times) / 1000.0
    ax_bal.plot(times, sim.stats.hist_cpu_balance, color="#4CAF50", linewidth=1.6, label="CPU balance")
    ax_bal.plot(times, sim.stats.hist_memory_balance, color="#FF6B6B", linewidth=1.6, label="Memory balance")
    ax_bal.set_ylim(-2, 102)
    ax_bal.set_ylabel("Balance score", fontsize=12, fontweight="semibold", color="#1f1f2e")
    ax_bal.set_title(title, fontsize=14, fontweight="bold", color="#1f1f2e", pad=8)
    ax_bal.legend(fontsize=9, loc="lower right", frameon=True, framealpha=0.9)

    if sim.stats.hist_cpu_loads:
        hist = np.vstack(sim.stats.hist_cpu_loads)   # (num_ticks, n_servers)
        colors = plt.cm.viridis(np.linspace(0.1, 0.95, hist.shape[1]))
        for gid in range(hist.shape[1]):
            ax_cpu.plot(times, hist[:, gid], color=colors[gid], linewidth=1.2, alpha=0.85, label=f"Server {gid+1}")
        ax_cpu.legend(fontsize=8, loc="upper right", ncol=2, frameon=True, framealpha=0.9)
    ax_cpu.set_xlabel("Simulated time (s)", fontsize=12, fontweight="semibold", color="#1f1f2e")
    ax_cpu.set_ylabel("CPU load (%)", fontsize=12, fontweight="semibold", color="#1f1f2e")

    for ax in (ax_bal, ax_cpu):
        ax.grid(True, which="major", linestyle="--", linewidth=0.5, alpha=0.3, color="#7c8aa6")
        for spine in ["top", "right"]:
            ax.spines[spine].set_visible(False)
        ax.set_facecolor("#f4f6fb")

    if metrics is not None:
        metrics_text = (
            f"Rejected: {metrics['rejected']}/{metrics['arrivals']}\n"
            f"Avg CPU balance: {metrics['avg_cpu_balance']:.1f}\n"
            f"Avg MEM balance: {metrics['avg_memory_balance']:.1f}\n"
            f"Avg latency: {metrics['avg_response_time']:.0f} ms"
        )
        ax_bal.text(
            0.02, 0.04, metrics_text,
            transform=ax_bal.transAxes,
            fontsize=9,
            verticalalignment="bottom",
            bbox=dict(boxstyle="round", facecolor="white", alpha=0.8, edgecolor="gray"),
            family="monospace",
        )


def plot_policies_comparison(sims: Dict[str, Tuple[AdmissionSim, Dict[str, object]]]):
    """One column per policy: balance trend over per-server CPU load."""
    n = len(sims)
    fig, axes = plt.subplots(2, n, figsize=(5.5 * n, 9), squeeze=False)
    for col, (name, (sim, metrics)) in enumerate(sims.items()):
        plot_policy_subplot(axes[0, col], axes[1, col], sim, title=name, metrics=metrics)

    fig.patch.set_facecolor("#eef1f7")
    fig.tight_layout(rect=[0, 0, 1, 0.98], h_pad=2, w_pad=2)

    out_dir = ROOT / "results" / "figures"
    out_dir.mkdir(parents=True, exist_ok=True)
    out_file = out_dir / "policies_comparison.jpg"
    fig.savefig(out_file, dpi=200, format="jpg")
    plt.close(fig)
    return out_file


# ------------------- Main program -------------------
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run admission-control load balancing simulations")
    parser.add_argument("--config", type=str, default=None, help="JSON config file (flags below override it)")
    parser.add_argument("--rate", type=float, default=None, help="Arrival rate in requests per simulated second (default: 1.0)")
    parser.add_argument("--servers", type=int, default=None, help="Number of servers (default: 4)")
    parser.add_argument("--policy", type=str, default=None, choices=sorted(POLICIES),
                        help="Run only this policy (default: all five)")
    parser.add_argument("--duration", type=float, default=None, help="Simulated run time in seconds (default: 60)")
    parser.add_argument("--tick_ms", type=float, default=None, help="Simulated ms per tick (default: 50)")
    parser.add_argument("--arrival_process", type=str, default=None, choices=["uniform", "poisson"],
                        help="Arrival spacing (default: uniform)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--n_repeat", type=int, default=20, help="Number of repetitions per policy (default: 20)")
    parser.add_argument("--n_jobs", type=int, default=-1, help="Number of parallel jobs, -1 means use all cores (default: -1)")
    parser.add_argument("--skip_plot", action="store_true", help="Skip plotting, only run statistical experiments")
    parser.add_argument("--log_level", type=str, default="WARNING", help="Logging level (default: WARNING)")

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    base = load_config(args.config) if args.config else SimConfig()
    overrides = {
        "arrival_rate": args.rate,
        "server_count": args.servers,
        "run_seconds": args.duration,
        "tick_ms": args.tick_ms,
        "arrival_process": args.arrival_process,
    }
    base = SimConfig.from_dict({**base.to_dict(), **{k: v for k, v in overrides.items() if v is not None}})

    policies = [normalize_policy_name(args.policy)] if args.policy else list(POLICIES)
    seeds = np.arange(args.n_repeat) + args.seed

    print(f"\n### rate={base.arrival_rate} req/s, servers={base.server_count}, "
          f"duration={base.run_seconds}s, tick={base.tick_ms}ms ###")

    # 1) One visualisation run per policy
    if not args.skip_plot:
        print("Generating policy comparison plots...")
        sims = {}
        for policy in policies:
            label = POLICY_LABELS[policy]
            print(f"  Running {label}...")
            sim_vis, metrics_vis = run_sim_and_metrics(base, policy, int(seeds[0]))
            sims[label] = (sim_vis, metrics_vis)
            print(f"    Rejected: {metrics_vis['rejected']}/{metrics_vis['arrivals']}")
            print(f"    Avg CPU balance: {metrics_vis['avg_cpu_balance']:.2f}")
            print(f"    Avg MEM balance: {metrics_vis['avg_memory_balance']:.2f}")
            print(f"    Avg response time: {metrics_vis['avg_response_time']:.1f} ms")
        out_file = plot_policies_comparison(sims)
        print(f"Figure saved to: {out_file}")

    # 2) Parallel repetitions + summary
    rows = []
    for policy in policies:
        label = POLICY_LABELS[policy]
        results = Parallel(n_jobs=args.n_jobs)(
            delayed(run_metrics_only)(base, policy, int(seed))
            for seed in tqdm(seeds, desc=label, ncols=80)
        )
        df = pd.DataFrame(results).drop(columns=["policy"])

        print("\n" + "=" * 60)
        print(f"{label} (n={len(df)})".center(60))
        print("=" * 60)
        for k in df.columns:
            print(f"{k:>24s}: {df[k].mean():.4f} ± {df[k].std():.4f}")

        row = {"policy": label, "rate": base.arrival_rate, "servers": base.server_count}
        row.update({k: float(df[k].mean()) for k in df.columns})
        rows.append(row)

    result_dir = ROOT / "results"
    result_dir.mkdir(parents=True, exist_ok=True)
    csv_file = result_dir / "policy_results.csv"
    pd.DataFrame(rows).to_csv(csv_file, mode="a", header=not csv_file.exists(), index=False)
    print(f"\nResults saved to: {csv_file}")
