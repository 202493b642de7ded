"""
Particle filter for 6-DOF pose estimation.

The posterior over the vehicle pose is represented by a fixed-size set of
weighted particles, each a pose [x, y, z, roll, pitch, yaw]. One filter step
follows the recursive Bayes update:

    - Propagation: x_k⁽ⁱ⁾ ~ p(x_k | x_{k-1}⁽ⁱ⁾, u_k)   (motion model)
    - Weighting:   w_k⁽ⁱ⁾ ∝ w_{k-1}⁽ⁱ⁾ p(z_k | x_k⁽ⁱ⁾)  (observation model)
    - Resampling:  systematic, only when N_eff drops below a threshold

The published estimate is the maximum-weight particle (a mode estimate);
the weighted mean and covariance are available as diagnostics.
"""

from enum import Enum
from typing import Callable, Optional

import numpy as np

from aeroloc.coords.transforms import wrap_angle
from aeroloc.errors import WeightCollapse

STATE_DIM = 6


class ResamplingMode(Enum):
    """When a filter step resamples the population.

    Attributes:
        NEVER: Never resample.
        ALWAYS: Resample after every weighting step.
        NEFF: Resample only when the effective sample size falls below the
            threshold (half the population by default).
    """

    NEVER = "never"
    ALWAYS = "always"
    NEFF = "neff"


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Effective sample size of a normalized weight vector.

    N_eff = 1 / Σ(wᵢ²), which lies in [1, N]: N for uniform weights and 1
    when a single particle holds all the weight.
    """
    weights = np.asarray(weights, dtype=np.float64)
    return float(1.0 / np.sum(weights**2))


def systematic_resample(
    weights: np.ndarray,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Systematic (low-variance) resampling.

    Draws N ordered sample points u_i = u_0 + i/N with a single random
    offset u_0 ~ U[0, 1/N), and walks the cumulative weight staircase once.
    Every particle with weight ≥ 1/N is selected at least once.

    Args:
        weights: Normalized weights of shape (N,).
        rng: Random generator (a fresh default generator if None).

    Returns:
        Indices of the selected particles, shape (N,), non-decreasing.

    Example:
        >>> idx = systematic_resample(np.array([0.0, 1.0, 0.0]))
        >>> idx.tolist()
        [1, 1, 1]
    """
    rng = np.random.default_rng() if rng is None else rng
    weights = np.asarray(weights, dtype=np.float64)
    n = len(weights)

    cumsum = np.cumsum(weights)
    cumsum[-1] = 1.0  # guard against round-off below 1

    u = (rng.uniform(0.0, 1.0 / n) + np.arange(n) / n)
    return np.searchsorted(cumsum, u, side="right").clip(max=n - 1)


class ParticleSet:
    """
    Fixed-size weighted particle population.

    The set owns one contiguous (N, 6) state array and one (N,) weight
    array. N is fixed at construction. Weights are renormalized after every
    weighting and resampling step.

    Attributes:
        states: Particle poses, shape (N, 6).
        weights: Normalized weights, shape (N,).
        best_index: Index of the maximum-weight particle.
        last_weighting_time: Time of the last weighting step (None before any).
    """

    def __init__(self, n_particles: int, rng: Optional[np.random.Generator] = None):
        if n_particles < 1:
            raise ValueError(f"n_particles must be >= 1, got {n_particles}")
        self.rng = np.random.default_rng() if rng is None else rng
        self.states = np.zeros((n_particles, STATE_DIM))
        self.weights = np.full(n_particles, 1.0 / n_particles)
        self.best_index = 0
        self.last_weighting_time: Optional[float] = None

    @property
    def n_particles(self) -> int:
        return self.states.shape[0]

    def __len__(self) -> int:
        return self.n_particles

    def initialize(self, distribution, n_particles: Optional[int] = None) -> None:
        """
        Draw every particle from a state distribution and reset weights to 1/N.

        All samples are drawn before anything is assigned, so a failed draw
        leaves the previous population untouched.

        Args:
            distribution: Object with sample(n, rng) -> (n, 6) array.
            n_particles: Must equal the set size if given (N never changes).

        Raises:
            InvalidDistribution: If the distribution cannot produce samples.
            ValueError: If n_particles differs from the set size.
        """
        n = self.n_particles
        if n_particles is not None and n_particles != n:
            raise ValueError(
                f"Particle count is fixed at {n}, cannot initialize with {n_particles}"
            )

        samples = np.asarray(distribution.sample(n, self.rng), dtype=np.float64)
        if samples.shape != (n, STATE_DIM):
            raise ValueError(
                f"Distribution returned shape {samples.shape}, expected {(n, STATE_DIM)}"
            )

        self.states[:] = samples
        self.states[:, 3:] = wrap_angle(self.states[:, 3:])
        self.weights[:] = 1.0 / n
        self.best_index = 0
        self.last_weighting_time = None

    def predict(self, delta: np.ndarray, motion_model, dt: float) -> None:
        """Propagate every particle through the motion model; weights are untouched."""
        self.states[:] = motion_model.predict(self.states, delta, dt)

    def drift(self, motion_model, dt: float, delta: Optional[np.ndarray] = None) -> None:
        """Grow motion uncertainty without a sensor update; weights are untouched."""
        self.states[:] = motion_model.drift(self.states, dt, delta)

    def _set_weights(self, unnormalized: np.ndarray, stamp: Optional[float]) -> None:
        total = float(np.sum(unnormalized))
        if not np.isfinite(total) or total <= 0.0:
            raise WeightCollapse(
                f"Sum of particle weights is {total}; observation rejected every particle"
            )
        self.weights[:] = unnormalized / total
        self.best_index = int(np.argmax(self.weights))
        self.last_weighting_time = stamp

    def reweight(
        self,
        likelihood_fn: Callable[[np.ndarray], np.ndarray],
        stamp: Optional[float] = None,
    ) -> None:
        """
        Multiply each weight by the likelihood of its state and renormalize.

        Args:
            likelihood_fn: Maps states (N, 6) to non-negative likelihoods (N,).
            stamp: Time of the observation, recorded as last_weighting_time.

        Raises:
            WeightCollapse: If the unnormalized weights sum to zero (or are not
                finite). Weights are left unchanged.
            ValueError: If likelihoods have the wrong shape or are negative.
        """
        likelihood = np.asarray(likelihood_fn(self.states), dtype=np.float64)
        if likelihood.shape != (self.n_particles,):
            raise ValueError(
                f"Likelihood must have shape ({self.n_particles},), got {likelihood.shape}"
            )
        if np.any(likelihood < 0):
            raise ValueError("Likelihoods must be non-negative")
        self._set_weights(self.weights * likelihood, stamp)

    def reweight_log(
        self,
        log_likelihood_fn: Callable[[np.ndarray], np.ndarray],
        stamp: Optional[float] = None,
    ) -> None:
        """
        Log-space variant of reweight.

        log wᵢ + log p(z | xᵢ) is shifted by its maximum before
        exponentiation, so products of many small per-point likelihoods do
        not underflow.

        Raises:
            WeightCollapse: If every particle has log-likelihood -inf (or NaN).
        """
        log_likelihood = np.asarray(log_likelihood_fn(self.states), dtype=np.float64)
        if log_likelihood.shape != (self.n_particles,):
            raise ValueError(
                f"Log-likelihood must have shape ({self.n_particles},), "
                f"got {log_likelihood.shape}"
            )

        with np.errstate(divide="ignore"):
            log_w = np.log(self.weights) + log_likelihood
        log_w[np.isnan(log_w)] = -np.inf
        peak = np.max(log_w)
        if not np.isfinite(peak):
            raise WeightCollapse("Observation assigned zero likelihood to every particle")
        self._set_weights(np.exp(log_w - peak), stamp)

    def effective_sample_size(self) -> float:
        """N_eff = 1 / Σ(wᵢ²) of the current weights."""
        return effective_sample_size(self.weights)

    def resample(self) -> None:
        """
        Systematic resampling; weights become exactly 1/N.

        best_index keeps pointing at a copy of the pre-resampling best
        particle, which systematic resampling always retains.
        """
        best = self.best_index
        indices = systematic_resample(self.weights, self.rng)
        self.states[:] = self.states[indices]
        self.weights[:] = 1.0 / self.n_particles
        copies = np.flatnonzero(indices == best)
        self.best_index = int(copies[0]) if len(copies) else 0

    def resample_if_needed(self, threshold: Optional[float] = None) -> bool:
        """
        Resample only if N_eff is below threshold (default N/2).

        Returns:
            True if the population was resampled.
        """
        if threshold is None:
            threshold = self.n_particles / 2.0
        if self.effective_sample_size() < threshold:
            self.resample()
            return True
        return False

    def best_state(self) -> np.ndarray:
        """State of the maximum-weight particle."""
        return self.states[self.best_index].copy()

    def estimate(self) -> np.ndarray:
        """Point estimate published by the localizer: the best particle's state."""
        return self.best_state()

    def weighted_mean(self) -> np.ndarray:
        """Weighted mean state; angles use the circular mean."""
        w = self.weights
        mean = np.empty(STATE_DIM)
        mean[:3] = w @ self.states[:, :3]
        mean[3:] = np.arctan2(w @ np.sin(self.states[:, 3:]), w @ np.cos(self.states[:, 3:]))
        return mean

    def covariance(self) -> np.ndarray:
        """Weighted covariance (6x6) around the weighted mean; angle residuals wrapped."""
        diff = self.states - self.weighted_mean()
        diff[:, 3:] = wrap_angle(diff[:, 3:])
        return (self.weights[:, np.newaxis] * diff).T @ diff


class ParticleFilter:
    """
    Particle filter binding a ParticleSet to motion and observation models.

    The observation model can be swapped between steps (one per accepted
    scan) without rebuilding the filter.

    Attributes:
        particles: The owned ParticleSet.
        motion_model: Object with predict(states, delta, dt) and
            drift(states, dt, delta).
        observation_model: Object with log_likelihood(states), or None.
        resampling_mode: ResamplingMode policy.
        resample_threshold: Fraction of N below which NEFF mode resamples.
        time: Filter clock in seconds; advanced by every filter and drift step.
    """

    def __init__(
        self,
        n_particles: int,
        motion_model,
        observation_model=None,
        resampling_mode: ResamplingMode = ResamplingMode.NEFF,
        resample_threshold: float = 0.5,
        rng: Optional[np.random.Generator] = None,
    ):
        if not 0.0 < resample_threshold <= 1.0:
            raise ValueError(
                f"resample_threshold must be in (0, 1], got {resample_threshold}"
            )
        self.particles = ParticleSet(n_particles, rng=rng)
        self.motion_model = motion_model
        self.observation_model = observation_model
        self.resampling_mode = resampling_mode
        self.resample_threshold = resample_threshold
        self.time = 0.0

    @property
    def n_particles(self) -> int:
        return self.particles.n_particles

    def draw_all_from_distribution(self, distribution) -> None:
        """Re-seed the whole population from a state distribution."""
        self.particles.initialize(distribution)

    def set_observation_model(self, observation_model) -> None:
        self.observation_model = observation_model

    def set_resampling_mode(self, mode: ResamplingMode) -> None:
        self.resampling_mode = mode

    def reset_timer(self, stamp: float = 0.0) -> None:
        self.time = float(stamp)

    def filter(self, delta: np.ndarray, dt: float) -> bool:
        """
        Run one full filter step: predict, weight, resample per policy.

        Args:
            delta: Odometry motion since the last step (6,).
            dt: Elapsed time in seconds.

        Returns:
            True if the population was resampled.

        Raises:
            RuntimeError: If no observation model is set.
            WeightCollapse: If the observation rejects every particle. The
                prediction has been applied; the prior weights are kept.
        """
        if self.observation_model is None:
            raise RuntimeError("No observation model set. Call set_observation_model() first.")

        self.time += max(dt, 0.0)
        self.particles.predict(delta, self.motion_model, dt)
        self.particles.reweight_log(self.observation_model.log_likelihood, stamp=self.time)

        if self.resampling_mode is ResamplingMode.ALWAYS:
            self.particles.resample()
            return True
        if self.resampling_mode is ResamplingMode.NEFF:
            return self.particles.resample_if_needed(
                self.resample_threshold * self.n_particles
            )
        return False

    def drift(self, delta: Optional[np.ndarray], dt: float) -> None:
        """Time update without a sensor update; the clock still advances."""
        self.time += max(dt, 0.0)
        self.particles.drift(self.motion_model, dt, delta)

    def best_state(self) -> np.ndarray:
        return self.particles.best_state()

    def get_particles(self):
        """
        Get current particles and weights.

        Returns:
            Tuple of (states, weights) copies.
        """
        return self.particles.states.copy(), self.particles.weights.copy()
