"""
Standard normal distribution helpers.

The CDF goes through the Abramowitz & Stegun 7.1.26 rational approximation
of erf (maximum absolute error 1.5e-7). Every pricer in the package uses
these functions so that closed-form and Monte-Carlo valuations share one
definition of N(x).
"""

import math

import numpy as np

# Abramowitz & Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

_SQRT2 = math.sqrt(2.0)
_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)


def erf(x):
    """Error function, A&S 5-term polynomial approximation."""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def cnd(x):
    """Cumulative standard normal distribution N(x)."""
    return 0.5 * (1.0 + erf(x / _SQRT2))


def norm_pdf(x):
    """Standard normal density."""
    return math.exp(-0.5 * x * x) * _INV_SQRT_2PI


def erf_array(x):
    """Vectorised erf over a numpy array (same polynomial as :func:`erf`)."""
    x = np.asarray(x, dtype=np.float64)
    sign = np.sign(x)
    ax = np.abs(x)
    t = 1.0 / (1.0 + _P * ax)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * np.exp(-ax * ax)
    return sign * y


def cnd_array(x):
    """Vectorised N(x)."""
    return 0.5 * (1.0 + erf_array(np.asarray(x, dtype=np.float64) / _SQRT2))
