"""
Closed-form barrier option pricing.

Single barriers use the Reiner-Rubinstein decomposition into the terms
f1..f6 (Haug, "The Complete Guide to Option Pricing Formulas", 4.17.1).
Double barriers use the Ikeda-Kunitomo series, truncated to
``n in [-terms, terms]``, with flat barriers. Knock-ins are derived from
knock-outs through in-out parity wherever the decomposition allows it.

Cash rebates on knock events are not modelled: f5 and f6 are always zero.
"""

import logging
import math
from collections import namedtuple

from .errors import BarrierFormulaError, PricingDomainError
from .instruments import KnockDirection, OptionType
from .normal import cnd
from .vanilla import check_domain, garman_kohlhagen

logger = logging.getLogger("fxhedge.pricing")

DOUBLE_BARRIER_SERIES_TERMS = 5

BarrierFlag = namedtuple("BarrierFlag", ["flag", "eta", "phi"])


# ── Single barrier ───────────────────────────────────────────────────────

def single_barrier_flag(option_type, knock, S, H, reverse=False):
    """
    Resolve the Reiner-Rubinstein type flag, e.g. ``"cdo"``.

    The barrier side (down/up, hence eta) always comes from H against S.
    A reverse knock-out is priced as the knock-out of the opposite payoff
    class: a reverse knock-out call resolves to ``pdo``/``puo`` and a reverse
    knock-out put to ``cdo``/``cuo``. For reverse barriers a barrier sitting
    exactly on spot takes the down branch.
    """
    if reverse:
        option_type = option_type.opposite()
        knock = KnockDirection.OUT
        up = H > S
    else:
        if H == S:
            raise BarrierFormulaError(f"barrier {H} equals spot; barrier side undefined")
        up = H > S

    flag = (
        ("c" if option_type is OptionType.CALL else "p")
        + ("u" if up else "d")
        + ("i" if knock is KnockDirection.IN else "o")
    )
    return BarrierFlag(flag, -1 if up else 1, option_type.phi)


# Term combinations keyed by flag, for strike above / below the barrier
_COMBOS_X_ABOVE_H = {
    "cdi": (0, 0, 1, 0),
    "cui": (1, 0, 0, 0),
    "pdi": (0, 1, -1, 1),
    "pui": (1, -1, 0, 1),
    "cdo": (1, 0, -1, 0),
    "cuo": (0, 0, 0, 0),
    "pdo": (1, -1, 1, -1),
    "puo": (0, 1, 0, -1),
}

_COMBOS_X_BELOW_H = {
    "cdi": (1, -1, 0, 1),
    "cui": (0, 1, -1, 1),
    "pdi": (1, 0, 0, 0),
    "pui": (0, 0, 1, 0),
    "cdo": (0, 1, 0, -1),
    "cuo": (1, -1, 1, -1),
    "pdo": (0, 0, 0, 0),
    "puo": (1, 0, -1, 0),
}


def reiner_rubinstein(flag, S, X, H, r_d, r_f, t, sigma):
    """Unfloored Reiner-Rubinstein value for a resolved :class:`BarrierFlag`."""
    if X == H:
        raise BarrierFormulaError(f"strike {X} equals barrier {H}")

    r = r_d
    b = r_d - r_f
    v = sigma
    eta, phi = flag.eta, flag.phi
    vs = v * math.sqrt(t)

    mu = (b - v * v / 2.0) / (v * v)
    lam = math.sqrt(mu * mu + 2.0 * r / (v * v))

    x1 = math.log(S / X) / vs + (1 + mu) * vs
    x2 = math.log(S / H) / vs + (1 + mu) * vs
    y1 = math.log(H * H / (S * X)) / vs + (1 + mu) * vs
    y2 = math.log(H / S) / vs + (1 + mu) * vs
    z = math.log(H / S) / vs + lam * vs  # used by the rebate terms only

    carry_df = math.exp((b - r) * t)
    df = math.exp(-r * t)
    try:
        hs_up = (H / S) ** (2 * (mu + 1))
        hs = (H / S) ** (2 * mu)
    except OverflowError:
        raise BarrierFormulaError(f"reflection term (H/S)^(2mu) overflows at sigma={v}") from None

    f1 = phi * S * carry_df * cnd(phi * x1) - phi * X * df * cnd(phi * x1 - phi * vs)
    f2 = phi * S * carry_df * cnd(phi * x2) - phi * X * df * cnd(phi * x2 - phi * vs)
    f3 = (phi * S * carry_df * hs_up * cnd(eta * y1)
          - phi * X * df * hs * cnd(eta * y1 - eta * vs))
    f4 = (phi * S * carry_df * hs_up * cnd(eta * y2)
          - phi * X * df * hs * cnd(eta * y2 - eta * vs))
    f5 = f6 = 0.0

    combos = _COMBOS_X_ABOVE_H if X > H else _COMBOS_X_BELOW_H
    a1, a2, a3, a4 = combos[flag.flag]
    rebate_term = f5 if flag.flag.endswith("i") else f6

    logger.debug(
        f"RR {flag.flag}: eta={eta} phi={phi} S={S} X={X} H={H} "
        f"b={b} r={r} sigma={v} t={t} z={z:.6f}"
    )
    value = a1 * f1 + a2 * f2 + a3 * f3 + a4 * f4 + rebate_term
    if not math.isfinite(value):
        raise BarrierFormulaError(f"non-finite {flag.flag} value at sigma={v}")
    return value


def single_barrier_price(option_type, knock, S, K, H, r_d, r_f, t, sigma, reverse=False):
    """
    Price a single-barrier option in closed form.

    Parameters
    ----------
    option_type : OptionType
    knock       : KnockDirection
    S, K, H     : spot, strike and barrier
    r_d, r_f    : domestic and foreign rates
    t, sigma    : time to expiry (years) and volatility
    reverse     : reverse-barrier structure (see :func:`single_barrier_flag`)

    Returns max(0, value). Raises BarrierFormulaError when the type flag
    cannot be resolved and PricingDomainError for non-positive inputs.
    """
    if t <= 0:
        return 0.0
    check_domain(S, K, sigma)
    if H is None or H <= 0:
        raise PricingDomainError(f"barrier must be positive, got {H}")

    if reverse and knock is KnockDirection.IN:
        out_flag = single_barrier_flag(option_type, KnockDirection.OUT, S, H, reverse=True)
        knock_out = max(0.0, reiner_rubinstein(out_flag, S, K, H, r_d, r_f, t, sigma))
        vanilla = garman_kohlhagen(option_type.opposite(), S, K, r_d, r_f, t, sigma)
        return max(0.0, vanilla - knock_out)

    flag = single_barrier_flag(option_type, knock, S, H, reverse=reverse)
    return max(0.0, reiner_rubinstein(flag, S, K, H, r_d, r_f, t, sigma))


# ── Double barrier ───────────────────────────────────────────────────────

def double_barrier_knock_out(option_type, S, K, L, U, r_d, r_f, t, sigma,
                             terms=DOUBLE_BARRIER_SERIES_TERMS):
    """Unfloored Ikeda-Kunitomo knock-out value with flat barriers."""
    r = r_d
    b = r_d - r_f
    v = sigma
    vs = v * math.sqrt(t)
    drift = (b + v * v / 2.0) * t
    # flat barriers: F = U and E = L, delta1 = delta2 = 0
    F, E = U, L

    if option_type is OptionType.CALL:
        k1, k2 = K, F
    else:
        k1, k2 = E, K

    mu1 = 2.0 * b / (v * v) + 1.0
    mu2 = 0.0
    mu3 = 2.0 * b / (v * v) + 1.0

    sum1 = 0.0
    sum2 = 0.0
    try:
        for n in range(-terms, terms + 1):
            u2n = U ** (2 * n)
            l2n = L ** (2 * n)
            d1 = (math.log(S * u2n / (k1 * l2n)) + drift) / vs
            d2 = (math.log(S * u2n / (k2 * l2n)) + drift) / vs
            d3 = (math.log(L ** (2 * n + 2) / (k1 * S * u2n)) + drift) / vs
            d4 = (math.log(L ** (2 * n + 2) / (k2 * S * u2n)) + drift) / vs

            ratio = U ** n / L ** n
            mirror = L ** (n + 1) / (U ** n * S)
            lead = (L / S) ** mu2

            sum1 += (ratio ** mu1 * lead * (cnd(d1) - cnd(d2))
                     - mirror ** mu3 * (cnd(d3) - cnd(d4)))
            sum2 += (ratio ** (mu1 - 2) * lead * (cnd(d1 - vs) - cnd(d2 - vs))
                     - mirror ** (mu3 - 2) * (cnd(d3 - vs) - cnd(d4 - vs)))
    except OverflowError:
        raise BarrierFormulaError(f"double barrier series overflows at sigma={v}") from None

    carry_df = math.exp((b - r) * t)
    df = math.exp(-r * t)
    if option_type is OptionType.CALL:
        value = S * carry_df * sum1 - K * df * sum2
    else:
        value = K * df * sum2 - S * carry_df * sum1
    if not math.isfinite(value):
        raise BarrierFormulaError(f"non-finite double barrier value at sigma={v}")
    return value


def double_barrier_price(option_type, knock, S, K, barrier1, barrier2, r_d, r_f, t, sigma,
                         terms=DOUBLE_BARRIER_SERIES_TERMS):
    """
    Price a double knock-out / knock-in option in closed form.

    The barriers may be given in either order. When spot already sits on or
    outside the corridor the knock-out is worth 0 and the knock-in is the
    vanilla. Knock-in = vanilla - knock-out.
    """
    if t <= 0:
        return 0.0
    check_domain(S, K, sigma)
    if barrier1 is None or barrier2 is None or min(barrier1, barrier2) <= 0:
        raise PricingDomainError(f"barriers must be positive, got {barrier1}, {barrier2}")

    L, U = min(barrier1, barrier2), max(barrier1, barrier2)
    if L == U:
        raise BarrierFormulaError(f"double barrier needs distinct levels, got {L}")

    vanilla = garman_kohlhagen(option_type, S, K, r_d, r_f, t, sigma)
    if S <= L or S >= U:
        knock_out = 0.0
    else:
        knock_out = max(0.0, double_barrier_knock_out(option_type, S, K, L, U, r_d, r_f, t, sigma, terms))

    if knock is KnockDirection.OUT:
        return knock_out
    return max(0.0, vanilla - knock_out)
