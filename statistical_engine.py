import numpy as np
from scipy import stats
from typing import List, Sequence, Tuple
from math import sqrt, exp, log, floor


# Abramowitz & Stegun 7.1.26 coefficients
_ERF_P = 0.3275911
_ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)

NORMAL_APPROXIMATION_DF = 30


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r; 0 for mismatched lengths, fewer than 2 points or zero variance"""
    n = len(x)
    if n < 2 or len(y) != n:
        return 0.0

    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    dx = x_arr - x_arr.mean()
    dy = y_arr - y_arr.mean()

    denom_x = sqrt(float(np.sum(dx * dx)))
    denom_y = sqrt(float(np.sum(dy * dy)))
    if denom_x == 0 or denom_y == 0:
        return 0.0

    r = float(np.sum(dx * dy)) / (denom_x * denom_y)
    # Rounding can push |r| marginally past 1
    return max(-1.0, min(1.0, r))


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) > 0 else 0.0


def index_percentile_bounds(
    values: Sequence[float],
    lower: float = 0.05,
    upper: float = 0.95
) -> Tuple[float, float]:
    """Percentile bounds by indexing a sorted copy at floor(n*p)"""
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return (0.0, 0.0)
    lower_idx = min(int(floor(n * lower)), n - 1)
    upper_idx = min(int(floor(n * upper)), n - 1)
    return (float(ordered[lower_idx]), float(ordered[upper_idx]))


def winsorize(values: Sequence[float], lower: float = 0.05, upper: float = 0.95) -> List[float]:
    low, high = index_percentile_bounds(values, lower, upper)
    return [min(max(v, low), high) for v in values]


def remove_outliers(values: Sequence[float]) -> List[float]:
    """Drop values outside 1.5 IQR of the index-based quartiles"""
    if len(values) < 4:
        return list(values)
    ordered = sorted(values)
    q1 = ordered[int(floor(len(ordered) * 0.25))]
    q3 = ordered[int(floor(len(ordered) * 0.75))]
    iqr = q3 - q1
    lower_bound = q1 - 1.5 * iqr
    upper_bound = q3 + 1.5 * iqr
    return [v for v in values if lower_bound <= v <= upper_bound]


def erf_approximation(x: float) -> float:
    """Abramowitz-Stegun 7.1.26 error function, max abs error ~1.5e-7"""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _ERF_P * x)
    a1, a2, a3, a4, a5 = _ERF_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    return sign * (1.0 - poly * exp(-x * x))


def normal_cdf(z: float) -> float:
    return 0.5 * (1.0 + erf_approximation(z / sqrt(2.0)))


def t_cdf_approximation(t: float, df: int) -> float:
    """Approximate Student-t CDF.

    For df >= 30 the normal CDF is used directly. Below that, t is mapped to
    x = t / sqrt(df) and converted to an equivalent normal deviate
    z = sign(x) * sqrt(df * ln(1 + x^2)). This is not an exact Student-t CDF;
    significance thresholds downstream are calibrated against it.
    """
    if df >= NORMAL_APPROXIMATION_DF:
        return normal_cdf(t)
    if df <= 0:
        return 0.5

    x = t / sqrt(df)
    sign = 1.0 if x >= 0 else -1.0
    z = sign * sqrt(df * log(1.0 + x * x))
    return normal_cdf(z)


def two_tailed_p_value(t: float, df: int) -> float:
    p_value = 2 * (1 - t_cdf_approximation(abs(t), df))
    return min(max(p_value, 0.0), 1.0)


def correlation_p_value(correlation: float, n: int) -> float:
    """Two-tailed p-value of a Pearson r via its t-statistic and the normal CDF"""
    if n <= 2:
        return 1.0
    if abs(correlation) >= 1.0:
        return 0.0

    t_statistic = correlation * sqrt((n - 2) / (1 - correlation * correlation))
    if not np.isfinite(t_statistic):
        return 1.0

    return float(2 * (1 - stats.norm.cdf(abs(t_statistic))))


def significance_label(p_value: float) -> str:
    if p_value < 0.001:
        return "highly significant (p<0.001)"
    elif p_value < 0.01:
        return "significant (p<0.01)"
    elif p_value < 0.05:
        return "significant (p<0.05)"
    elif p_value < 0.1:
        return "marginally significant (p<0.1)"
    return "not significant"


def correlation_strength(correlation: float) -> str:
    magnitude = abs(correlation)
    if magnitude >= 0.7:
        return "Very Strong"
    elif magnitude >= 0.5:
        return "Strong"
    elif magnitude >= 0.3:
        return "Moderate"
    elif magnitude >= 0.1:
        return "Weak"
    return "Very Weak"
