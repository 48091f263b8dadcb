from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

OUTPUTS_DIR = PROJECT_ROOT / "outputs"
FIGURES_DIR = OUTPUTS_DIR / "figures"
TABLES_DIR = OUTPUTS_DIR / "tables"
LOGS_DIR = OUTPUTS_DIR / "logs"
REPORT_PATH = OUTPUTS_DIR / "report.html"

REPORT_TITLE = "Pseudo-R² is not a calibration diagnostic: count models under overdispersion"

# Simulation scenario (end-to-end report defaults)
SEED = 123456
N_OBS = 1000
INTERCEPT = 0.5
SLOPE = -1.0

# Negative-binomial size parameters; smaller size = stronger overdispersion.
NB_SIZES = {
    "nb_moderate": 0.5,
    "nb_strong": 0.05,
}

POISSON_PROCESS = "poisson"
PROCESSES = [POISSON_PROCESS] + list(NB_SIZES)

PROCESS_LABELS = {
    "poisson": "Poisson",
    "nb_moderate": "NB (size = 0.5)",
    "nb_strong": "NB (size = 0.05)",
}

# Model terms as they appear in the fitted coefficient tables.
INTERCEPT_TERM = "Intercept"
SLOPE_TERM = "x"
TRUE_COEFFICIENTS = {INTERCEPT_TERM: INTERCEPT, SLOPE_TERM: SLOPE}

# Inference
CI_ALPHA = 0.05
PSEUDO_R2_KINDS = ["mcfadden", "cox_snell", "nagelkerke"]
PSEUDO_R2_PRIMARY = "nagelkerke"

# NB dispersion (alpha) estimation: Nelder-Mead search from moment start values,
# then a gradient polish.
NB_START_METHOD = "nm"
NB_START_MAXITER = 2000
NB_ALPHA_START_FLOOR = 0.05
NB_FIT_METHOD = "bfgs"
NB_FIT_MAXITER = 500

# Repeated-simulation study
MONTE_CARLO_REPS = 100
MONTE_CARLO_SEED = 2026

# Figures
FIGURE_DPI = 150
HIST_MAX_BINS = 60
