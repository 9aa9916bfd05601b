"""
Monte Carlo valuation for FX options.

One ``PathSimulator`` generates GBM paths in batches for every simulated
product: the barrier fallback, the digital/touch pricer and the optional
vanilla Monte Carlo mode. Paths drift at the cost of carry r_d - r_f and
payoffs are discounted at r_d. A cancel event is checked between batches;
a batch in flight always completes.
"""

import logging
import math
import zlib

import numpy as np

from .errors import PricingCancelled
from .instruments import DigitalSubtype, KnockDirection, OptionType

logger = logging.getLogger("fxhedge.pricing")


def make_rng(seed, *keys):
    """
    Seeded generator, optionally specialised by string keys.

    ``make_rng(42, "HDG-1")`` is stable across processes (crc32 rather than
    ``hash``), so one instrument sees the same paths on every run. A
    ``None`` seed gives an unseeded generator.
    """
    if seed is None:
        return np.random.default_rng()
    entropy = [int(seed)] + [zlib.crc32(str(k).encode("utf-8")) for k in keys]
    return np.random.default_rng(entropy)


def n_steps_for(t, steps_per_year, min_steps):
    return max(int(round(steps_per_year * t)), min_steps)


# ── PathSimulator ────────────────────────────────────────────────────────

class PathSimulator:
    """
    Batched GBM path generator.

    S_{k+1} = S_k * exp((drift - 0.5*sigma^2)*dt + sigma*sqrt(dt)*Z)
    """

    def __init__(self, rng=None, batch_size=2000, cancel_event=None):
        self.rng = rng if rng is not None else np.random.default_rng(42)
        self.batch_size = max(1, int(batch_size))
        self.cancel_event = cancel_event

    def _check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PricingCancelled("Monte Carlo run cancelled")

    def _batch_sizes(self, n_paths):
        remaining = int(n_paths)
        while remaining > 0:
            m = min(self.batch_size, remaining)
            remaining -= m
            yield m

    def iter_batches(self, S, drift, sigma, t, n_paths, n_steps):
        """
        Yield path batches of shape [m, n_steps] (spot after each step).

        Parameters
        ----------
        S       : initial spot
        drift   : risk-neutral drift (r_d - r_f)
        sigma   : volatility
        t       : horizon in years
        n_paths : total number of paths across all batches
        n_steps : monitoring steps per path
        """
        dt = t / n_steps
        inc_mean = (drift - 0.5 * sigma * sigma) * dt
        inc_vol = sigma * math.sqrt(dt)
        for m in self._batch_sizes(n_paths):
            self._check_cancelled()
            Z = self.rng.standard_normal((m, n_steps))
            log_paths = np.cumsum(inc_mean + inc_vol * Z, axis=1)
            yield S * np.exp(log_paths)

    def terminal(self, S, drift, sigma, t, n_paths):
        """Terminal spots only, shape [n_paths]."""
        out = []
        for m in self._batch_sizes(n_paths):
            self._check_cancelled()
            Z = self.rng.standard_normal(m)
            out.append(S * np.exp((drift - 0.5 * sigma * sigma) * t + sigma * math.sqrt(t) * Z))
        return np.concatenate(out) if out else np.empty(0)


def _vanilla_payoff(option_type, S_T, K):
    if option_type is OptionType.CALL:
        return np.maximum(S_T - K, 0.0)
    return np.maximum(K - S_T, 0.0)


# ── Vanilla ──────────────────────────────────────────────────────────────

def vanilla_monte_carlo(option_type, S, K, r_d, r_f, t, sigma, n_paths=10_000, simulator=None):
    """European option by terminal-only simulation."""
    if t <= 0:
        return 0.0
    simulator = simulator or PathSimulator()
    S_T = simulator.terminal(S, r_d - r_f, sigma, t, n_paths)
    price = math.exp(-r_d * t) * float(_vanilla_payoff(option_type, S_T, K).mean())
    return max(0.0, price)


# ── Barrier ──────────────────────────────────────────────────────────────

def barrier_monte_carlo(option_type, knock, S, K, barrier1, r_d, r_f, t, sigma,
                        barrier2=None, reverse=False, n_paths=1000,
                        steps_per_year=252, min_steps=50, simulator=None):
    """
    Single or double barrier option by path simulation with discrete
    (per-step) monitoring.

    A single barrier above spot is hit when the path reaches >= H, one
    below spot when it reaches <= H. With ``barrier2`` the corridor
    [L, U] is hit on <= L or >= U. Reverse barriers pay the opposite
    payoff class, matching the closed form.
    """
    if t <= 0:
        return 0.0
    simulator = simulator or PathSimulator()
    if reverse:
        option_type = option_type.opposite()

    n_steps = n_steps_for(t, steps_per_year, min_steps)
    if barrier2 is not None:
        L, U = min(barrier1, barrier2), max(barrier1, barrier2)
        start_hit = S <= L or S >= U
    else:
        up = barrier1 > S
        start_hit = S == barrier1

    total = 0.0
    count = 0
    for paths in simulator.iter_batches(S, r_d - r_f, sigma, t, n_paths, n_steps):
        if barrier2 is not None:
            hit = ((paths <= L) | (paths >= U)).any(axis=1)
        elif up:
            hit = (paths >= barrier1).any(axis=1)
        else:
            hit = (paths <= barrier1).any(axis=1)
        if start_hit:
            hit[:] = True

        payoff = _vanilla_payoff(option_type, paths[:, -1], K)
        alive = ~hit if knock is KnockDirection.OUT else hit
        total += float(np.where(alive, payoff, 0.0).sum())
        count += paths.shape[0]

    price = math.exp(-r_d * t) * total / count
    logger.debug(f"MC barrier {option_type.value}/{knock.value}: {count} paths, {n_steps} steps -> {price:.6f}")
    return max(0.0, price)


# ── Digital ──────────────────────────────────────────────────────────────

def _touch_mask(subtype, paths, K, upper, lower):
    """Per-path touch flag for ``subtype`` over all monitoring steps."""
    if subtype in (DigitalSubtype.ONE_TOUCH, DigitalSubtype.NO_TOUCH):
        return (paths >= upper).any(axis=1)
    if subtype in (DigitalSubtype.DOUBLE_TOUCH, DigitalSubtype.DOUBLE_NO_TOUCH):
        return ((paths >= upper) | (paths <= lower)).any(axis=1)
    if subtype is DigitalSubtype.RANGE_BINARY:
        return ((paths >= K) & (paths <= upper)).any(axis=1)
    if subtype is DigitalSubtype.OUTSIDE_BINARY:
        return ((paths <= K) | (paths >= upper)).any(axis=1)
    raise ValueError(f"Unsupported digital subtype: {subtype}")


_PAYS_ON_TOUCH = {
    DigitalSubtype.ONE_TOUCH: True,
    DigitalSubtype.NO_TOUCH: False,
    DigitalSubtype.DOUBLE_TOUCH: True,
    DigitalSubtype.DOUBLE_NO_TOUCH: False,
    DigitalSubtype.RANGE_BINARY: True,
    DigitalSubtype.OUTSIDE_BINARY: True,
}


def digital_monte_carlo(subtype, S, barrier1, r_d, r_f, t, sigma, rebate,
                        K=None, barrier2=None, n_paths=10_000,
                        steps_per_day=4, steps_per_year=252, min_steps=50,
                        simulator=None):
    """
    Touch / binary option paying ``rebate`` (fraction of notional).

    Touch conditions, tested at every step (4 per trading day by default):

    - one-touch / no-touch: spot >= barrier1
    - double-touch / double-no-touch: spot >= upper or <= lower barrier
    - range binary: K <= spot <= barrier1
    - outside binary: spot <= K or spot >= barrier1

    Price = exp(-r_d t) * rebate * P(pay).
    """
    if t <= 0:
        return 0.0
    simulator = simulator or PathSimulator()
    n_steps = n_steps_for(t, steps_per_year * steps_per_day, min_steps)

    if subtype.needs_second_barrier:
        upper, lower = max(barrier1, barrier2), min(barrier1, barrier2)
    else:
        upper, lower = barrier1, None

    pays_on_touch = _PAYS_ON_TOUCH[subtype]
    paid = 0
    count = 0
    for paths in simulator.iter_batches(S, r_d - r_f, sigma, t, n_paths, n_steps):
        touched = _touch_mask(subtype, paths, K, upper, lower)
        paid += int(touched.sum() if pays_on_touch else (~touched).sum())
        count += paths.shape[0]

    price = math.exp(-r_d * t) * rebate * paid / count
    logger.debug(f"MC digital {subtype.value}: {count} paths, {n_steps} steps -> {price:.6f}")
    return price
