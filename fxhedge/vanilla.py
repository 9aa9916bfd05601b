"""
Garman-Kohlhagen pricing for FX vanillas, plus forward and swap valuation.

All functions return the value of one unit of base-currency notional in
quote currency. Expired trades (t <= 0) are worth 0.
"""

import math

from .errors import PricingDomainError
from .instruments import OptionType
from .normal import cnd


def check_domain(S, K, sigma):
    if S <= 0:
        raise PricingDomainError(f"spot must be positive, got {S}")
    if K is None or K <= 0:
        raise PricingDomainError(f"strike must be positive, got {K}")
    if sigma <= 0:
        raise PricingDomainError(f"volatility must be positive, got {sigma}")


def garman_kohlhagen(option_type, S, K, r_d, r_f, t, sigma):
    """
    Garman-Kohlhagen price of a European FX option.

    Parameters
    ----------
    option_type : OptionType
    S, K        : spot and strike (quote per base)
    r_d, r_f    : domestic (quote) and foreign (base) rates, decimal
    t           : time to expiry in years
    sigma       : volatility, decimal

    Raises PricingDomainError when S, K or sigma is not positive.
    """
    if t <= 0:
        return 0.0
    check_domain(S, K, sigma)

    sqrt_t = math.sqrt(t)
    d1 = (math.log(S / K) + (r_d - r_f + 0.5 * sigma * sigma) * t) / (sigma * sqrt_t)
    d2 = d1 - sigma * sqrt_t
    df_d = math.exp(-r_d * t)
    df_f = math.exp(-r_f * t)

    if option_type is OptionType.CALL:
        return S * df_f * cnd(d1) - K * df_d * cnd(d2)
    return K * df_d * cnd(-d2) - S * df_f * cnd(-d1)


def forward_rate(S, r_d, r_f, t):
    return S * math.exp((r_d - r_f) * t)


def forward_value(S, K, r_d, r_f, t):
    """Discounted value of buying base at ``K`` on the forward date (signed)."""
    if t <= 0:
        return 0.0
    return (forward_rate(S, r_d, r_f, t) - K) * math.exp(-r_d * t)


def swap_value(S, r_d, r_f, t):
    """Swap legs are carried at the outright forward rate, without strike netting."""
    if t <= 0:
        return 0.0
    return forward_rate(S, r_d, r_f, t)
