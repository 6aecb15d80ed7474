# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation orchestrator.

This module provides the MonteCarloSimulator class which runs the
single-trajectory runner many times and collects the trajectories.
"""

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Tuple

from .config import InputParameters, MonteCarloConfig
from .return_generator import NormalSampler, PortfolioReturnGenerator
from .results import MonteCarloResults
from .trajectory import Trajectory, run_single_simulation

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# (chunk_index, start, end) with end exclusive
Chunk = Tuple[int, int, int]


class MonteCarloSimulator:
    """Runs many independent trajectories of the tax regime comparison.

    Trajectories are split into fixed-size chunks. Each chunk owns its own
    random stream (seeded as ``seed + chunk_index`` when a seed is given), so
    a seeded run reproduces the same trajectories whatever the worker count.
    With more than one worker, chunks run in a process pool and are merged
    back in index order.

    Example:
        >>> params = InputParameters.create_default(simulation_count=500, seed=7)
        >>> simulator = MonteCarloSimulator(MonteCarloConfig(num_workers=4))
        >>> results = simulator.run(params, on_progress=print)
        >>> stats = results.statistics()
        >>> print(stats.median.scenarios["ISK"].liquidation_value)
    """

    def __init__(self, config: Optional[MonteCarloConfig] = None):
        """Initialize the simulator.

        Args:
            config: Execution configuration. If None, uses defaults.
        """
        self.config = config or MonteCarloConfig()

    def run(self,
            params: InputParameters,
            on_progress: Optional[ProgressCallback] = None,
            cancel_event: Optional[threading.Event] = None) -> MonteCarloResults:
        """Run the Monte Carlo simulation.

        Args:
            params: Validated simulation parameters
            on_progress: Called with a non-decreasing percentage in [0, 100]
                from the thread that called run(). Advisory only.
            cancel_event: When set, no further work is started and the
                trajectories finished so far are returned. A single worker
                checks it between trajectories, a process pool between chunks.

        Returns:
            MonteCarloResults over the completed trajectories
        """
        chunks = self._chunks(params.simulation_count)
        workers = min(self.config.resolved_workers, len(chunks))

        def should_stop() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        logger.info("Running %d simulations over %d years in %d chunk(s) on %d worker(s)",
                    params.simulation_count, params.years_later, len(chunks), workers)
        logger.debug("Base seed: %s, scenarios: %s", params.seed, params.scenario_names)

        progress = _ProgressReporter(params.simulation_count, self.config.progress_interval,
                                     on_progress)
        completed: Dict[int, List[Trajectory]] = {}

        if workers <= 1:
            for chunk in chunks:
                if should_stop():
                    break
                completed[chunk[0]] = _run_chunk(params, chunk, should_stop)
                progress.advance(len(completed[chunk[0]]))
        else:
            pending = deque(chunks)
            with ProcessPoolExecutor(max_workers=workers) as executor:
                futures: Dict[Future, int] = {}
                try:
                    while pending or futures:
                        # Cancellation stops new submissions; running chunks finish
                        while pending and len(futures) < workers * 2 and not should_stop():
                            chunk = pending.popleft()
                            futures[executor.submit(_run_chunk, params, chunk)] = chunk[0]
                        if not futures:
                            break
                        done, _ = wait(futures, return_when=FIRST_COMPLETED)
                        for future in done:
                            chunk_index = futures.pop(future)
                            trajectories = future.result()
                            completed[chunk_index] = trajectories
                            progress.advance(len(trajectories))
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise

        trajectories = [t for chunk_index in sorted(completed) for t in completed[chunk_index]]
        cancelled = len(trajectories) < params.simulation_count
        if cancelled:
            logger.info("Simulation cancelled after %d of %d trajectories",
                        len(trajectories), params.simulation_count)
        else:
            progress.finish()
            logger.info("Completed %d simulations", len(trajectories))

        return MonteCarloResults(trajectories, params=params, cancelled=cancelled)

    def run_single(self, params: InputParameters, chunk_index: int = 0) -> Trajectory:
        """Run a single trajectory using the stream of the given chunk.

        Useful for debugging or detailed analysis of a single run.
        """
        sampler = _sampler_for_chunk(params.seed, chunk_index)
        return run_single_simulation(params, sampler, index=chunk_index * self.config.chunk_size)

    def _chunks(self, simulation_count: int) -> List[Chunk]:
        """Split the run into (chunk_index, start, end) ranges."""
        size = self.config.chunk_size
        return [
            (i, start, min(start + size, simulation_count))
            for i, start in enumerate(range(0, simulation_count, size))
        ]


def _sampler_for_chunk(seed: Optional[int], chunk_index: int) -> NormalSampler:
    if seed is None:
        return NormalSampler()
    return NormalSampler.from_seed(seed + chunk_index)


def _run_chunk(params: InputParameters,
               chunk: Chunk,
               should_stop: Optional[Callable[[], bool]] = None) -> List[Trajectory]:
    """Run one chunk of trajectories on its own random stream.

    Module-level so a process pool can pickle it.
    """
    chunk_index, start, end = chunk
    sampler = _sampler_for_chunk(params.seed, chunk_index)
    return_gen = None
    if params.portfolio is not None:
        return_gen = PortfolioReturnGenerator(params.portfolio)
    trajectories = []
    for index in range(start, end):
        if should_stop is not None and should_stop():
            break
        trajectories.append(run_single_simulation(params, sampler, return_gen, index=index))
    return trajectories


class _ProgressReporter:
    """Reports completed percentage at a bounded cadence."""

    def __init__(self, total: int, interval: int, callback: Optional[ProgressCallback]):
        self.total = total
        self.interval = interval
        self.callback = callback
        self.completed = 0
        self._last_reported = 0

    def advance(self, count: int):
        self.completed += count
        if self.callback is None:
            return
        if self.completed - self._last_reported >= self.interval and self.completed < self.total:
            self._last_reported = self.completed
            self.callback(self.completed / self.total * 100)

    def finish(self):
        if self.callback is not None:
            self.callback(100.0)


def run_monte_carlo_simulation(params: InputParameters,
                               on_progress: Optional[ProgressCallback] = None,
                               cancel_event: Optional[threading.Event] = None,
                               config: Optional[MonteCarloConfig] = None) -> List[Trajectory]:
    """Run the simulation and return the trajectory list."""
    return MonteCarloSimulator(config).run(params, on_progress, cancel_event).trajectories
