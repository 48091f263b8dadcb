from __future__ import annotations

import argparse
import os
import sys
import tempfile
from pathlib import Path

_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from countsim.config import (  # noqa: E402
    CI_ALPHA,
    INTERCEPT,
    INTERCEPT_TERM,
    MONTE_CARLO_REPS,
    MONTE_CARLO_SEED,
    N_OBS,
    NB_SIZES,
    OUTPUTS_DIR,
    PROCESS_LABELS,
    PROCESSES,
    PSEUDO_R2_PRIMARY,
    REPORT_TITLE,
    SEED,
    SLOPE,
    SLOPE_TERM,
)
from countsim.data.simulate import describe_responses, simulate_dataset  # noqa: E402
from countsim.evaluation.monte_carlo import (  # noqa: E402
    monte_carlo_draws,
    pseudo_r2_decreasing_share,
    summarize_coverage,
    summarize_pseudo_r2,
)
from countsim.evaluation.pseudo_r2 import pseudo_r2_table  # noqa: E402
from countsim.evaluation.recovery import parameter_comparison_table, recovery_error_summary  # noqa: E402
from countsim.models.glm import fit_models, fit_summary_table  # noqa: E402
from countsim.reporting.figures import (  # noqa: E402
    figure_to_base64,
    plot_count_histograms,
    plot_parameter_recovery,
    plot_pseudo_r2_spread,
    save_figure,
)
from countsim.reporting.html import Section, render_html_report  # noqa: E402
from countsim.utils.logging import package_versions, run_metadata, write_json  # noqa: E402


def _with_labels(df: pd.DataFrame, col: str = "model") -> pd.DataFrame:
    out = df.copy()
    out[col] = out[col].map(lambda p: PROCESS_LABELS.get(p, p))
    return out


def _emit_figure(section: Section, fig, path: Path, caption: str) -> None:
    save_figure(fig, path)
    section.figure(figure_to_base64(fig), caption=caption)
    plt.close(fig)


def main() -> None:
    parser = argparse.ArgumentParser(description="Render the pseudo-R² vs. overdispersion simulation report (HTML).")
    parser.add_argument("--seed", type=int, default=SEED, help="Simulation seed.")
    parser.add_argument("--n-obs", type=int, default=N_OBS, help="Observations per generating process.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    parser.add_argument(
        "--mc-reps",
        type=int,
        default=MONTE_CARLO_REPS,
        help="Repeated simulations for the coverage section (0 skips it).",
    )
    parser.add_argument("--mc-seed", type=int, default=MONTE_CARLO_SEED, help="Seed for the repeated simulations.")
    args = parser.parse_args()

    if args.n_obs <= 0:
        raise SystemExit("--n-obs must be a positive integer.")
    if args.mc_reps < 0:
        raise SystemExit("--mc-reps must be >= 0.")

    outdir = args.outdir
    figures_dir = outdir / "figures"
    logs_dir = outdir / "logs"
    report_path = outdir / "report.html"

    truth = {INTERCEPT_TERM: INTERCEPT, SLOPE_TERM: SLOPE}
    level = int(round(100 * (1 - CI_ALPHA)))

    # 1) Simulate
    dataset = simulate_dataset(n_obs=args.n_obs, intercept=INTERCEPT, slope=SLOPE, nb_sizes=NB_SIZES, seed=args.seed)
    sim_table = dataset.to_long()
    print(f"Simulated {len(sim_table)} rows ({dataset.n_obs} per process, seed={args.seed}).")

    # 2) Fit
    fits = fit_models(dataset, alpha=CI_ALPHA)
    for process, fit in fits.items():
        if not fit.converged:
            print(f"WARNING: fit for {process} did not report convergence.")
    fit_summary = fit_summary_table(fits, true_sizes=dataset.nb_sizes)

    # 3) Pseudo-R²
    r2 = pseudo_r2_table(fits, true_sizes=dataset.nb_sizes)
    for _, row in r2.iterrows():
        print(f"  {row['model']:<12s} {PSEUDO_R2_PRIMARY} pseudo-R² = {row[PSEUDO_R2_PRIMARY]:.4f}")

    # 4) Report
    comparison = parameter_comparison_table(fits, truth, alpha=CI_ALPHA)

    setup = Section("Simulation setup")
    setup.text(
        f"A single covariate x is drawn from N(0, 1) (n = {dataset.n_obs}, seed = {args.seed}). "
        f"The true mean is mu = exp({INTERCEPT:g} + ({SLOPE:g}) * x). One outcome is Poisson(mu); "
        "the others are negative binomial with the same mean and a fixed size parameter, "
        "so their variance is mu + mu^2 / size."
    )
    settings_rows = []
    for p in dataset.processes:
        size = dataset.size_for(p)
        settings_rows.append(
            {
                "process": PROCESS_LABELS.get(p, p),
                "distribution": "Poisson" if size is None else "Negative binomial",
                "size": size,
            }
        )
    settings = pd.DataFrame(settings_rows)
    setup.table(settings, caption="Generating processes")

    outcomes = Section("Simulated outcomes")
    outcomes.text(
        "All three outcomes share the same mean structure. They differ only in how much "
        "variance surrounds that mean."
    )
    _emit_figure(
        outcomes,
        plot_count_histograms(sim_table),
        figures_dir / "count_histograms.png",
        "Distribution of simulated counts by generating process.",
    )
    outcomes.table(_with_labels(describe_responses(dataset), col="process"), caption="Observed vs. implied moments")

    fitting = Section("Model fits")
    fitting.text(
        "Each outcome is fitted with a correctly specified GLM (log link): a Poisson GLM for the "
        "Poisson outcome and negative-binomial GLMs, with the dispersion estimated by maximum "
        "likelihood, for the others."
    )
    fitting.table(_with_labels(fit_summary), caption="Fit summary (theta is the estimated NB size)")

    recovery = Section("Parameter recovery")
    recovery.text(
        f"Point estimates and {level}% confidence intervals. Dashed lines mark the true values."
    )
    _emit_figure(
        recovery,
        plot_parameter_recovery(comparison),
        figures_dir / "parameter_recovery.png",
        f"Coefficient estimates with {level}% CIs by model.",
    )
    recovery.table(_with_labels(comparison), caption="Parameter comparison")
    recovery.table(
        _with_labels(recovery_error_summary(comparison)),
        caption="Absolute error and interval width (comparable across dispersion levels)",
    )

    r2_section = Section("Pseudo-R²")
    r2_section.text(
        "Every model recovers its coefficients, yet pseudo-R² drops as the injected overdispersion grows. "
        "A low pseudo-R² says the outcome is noisy around its mean, not that the model is miscalibrated."
    )
    r2_section.table(_with_labels(r2), caption=f"Pseudo-R² by model (headline: {PSEUDO_R2_PRIMARY})")

    sections = [setup, outcomes, fitting, recovery, r2_section]

    mc_summary = None
    if args.mc_reps > 0:
        print(f"Running {args.mc_reps} repeated simulations (seed={args.mc_seed})...")
        coef_draws, r2_draws = monte_carlo_draws(
            n_reps=args.mc_reps,
            n_obs=args.n_obs,
            intercept=INTERCEPT,
            slope=SLOPE,
            nb_sizes=NB_SIZES,
            seed=args.mc_seed,
            alpha=CI_ALPHA,
        )
        coverage = summarize_coverage(coef_draws)
        r2_summary = summarize_pseudo_r2(r2_draws)
        share = pseudo_r2_decreasing_share(r2_draws, PROCESSES, PSEUDO_R2_PRIMARY)
        mc_summary = {"n_reps": args.mc_reps, "seed": args.mc_seed, "decreasing_share": share}

        mc = Section("Repeated simulations")
        mc.text(
            f"The scenario is repeated {args.mc_reps} times with independent seeds. Coverage of the "
            f"{level}% intervals stays near nominal for every model while pseudo-R² falls with the "
            f"dispersion ({PSEUDO_R2_PRIMARY} decreased across the three processes in {share:.0%} of replicates)."
        )
        mc.table(_with_labels(coverage), caption="Coverage, bias and precision of coefficient estimates")
        mc.table(_with_labels(r2_summary), caption="Pseudo-R² across replicates")
        _emit_figure(
            mc,
            plot_pseudo_r2_spread(r2_draws, PSEUDO_R2_PRIMARY),
            figures_dir / "pseudo_r2_spread.png",
            f"{PSEUDO_R2_PRIMARY} pseudo-R² across repeated simulations.",
        )
        sections.append(mc)

    session = Section("Session info")
    versions = package_versions()
    session.table(pd.DataFrame([{"package": k, "version": v or "not installed"} for k, v in versions.items()]))
    sections.append(session)

    render_html_report(
        REPORT_TITLE,
        sections,
        report_path,
        subtitle="Simulated Poisson and negative-binomial counts, fitted GLMs, and pseudo-R².",
    )

    write_json(
        logs_dir / "report_run_metadata.json",
        run_metadata(
            seed=args.seed,
            n_obs=args.n_obs,
            intercept=INTERCEPT,
            slope=SLOPE,
            nb_sizes=dataset.nb_sizes,
            outdir=str(outdir),
            pseudo_r2={row["model"]: float(row[PSEUDO_R2_PRIMARY]) for _, row in r2.iterrows()},
            pseudo_r2_kind=PSEUDO_R2_PRIMARY,
            converged={p: f.converged for p, f in fits.items()},
            monte_carlo=mc_summary,
        ),
    )

    print(f"Wrote report to {report_path}")


if __name__ == "__main__":
    main()
