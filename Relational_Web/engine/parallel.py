"""Colour-class parallel sweeps over node updates."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

import networkx as nx

from ..config import Config
from .logging import flush_metrics, log_model, log_record
from .logging_models import ColoringLog, ColoringPayload
from .scheduler import CausalEventScheduler

logger = logging.getLogger(__name__)


class ParallelEventEngine:
    """Update independent sets of nodes concurrently.

    A greedy colouring assigns different colours to adjacent nodes. Nodes of
    one colour share no edge, so their updates read only neighbours of other
    colours and write only their own entries. Each sweep visits the colour
    classes in order with a barrier between classes. Random draws are made
    on the calling thread before a class is dispatched and signals produced
    by a class are scheduled after it completes, which keeps sweeps
    deterministic for a fixed seed.

    Parameters
    ----------
    scheduler:
        Scheduler whose graph, state machine and random source are used.
    worker_count:
        Thread pool size. Defaults to ``Config.thread_count``.
    """

    def __init__(
        self, scheduler: CausalEventScheduler, worker_count: Optional[int] = None
    ) -> None:
        self.scheduler = scheduler
        self.graph = scheduler.graph
        if worker_count is None:
            worker_count = getattr(Config, "thread_count", None) or 1
        self.worker_count = max(1, int(worker_count))
        self._executor: Optional[ThreadPoolExecutor] = None
        self._classes: List[List[int]] = []
        self._coloring: Dict[int, int] = {}
        self._colored_version = -1
        self.parallel_updates = 0
        self.sequential_updates = 0
        self.sweeps = 0

    # ------------------------------------------------------------------
    @property
    def needs_recoloring(self) -> bool:
        return self._colored_version != self.graph.topology_version

    @property
    def color_count(self) -> int:
        if self.needs_recoloring:
            self.compute_graph_coloring()
        return len(self._classes)

    @property
    def color_classes(self) -> List[List[int]]:
        if self.needs_recoloring:
            self.compute_graph_coloring()
        return self._classes

    def color_of(self, node: int) -> int:
        if self.needs_recoloring:
            self.compute_graph_coloring()
        return self._coloring[node]

    def compute_graph_coloring(self) -> List[List[int]]:
        """Recompute colour classes for the current topology."""

        coloring = nx.greedy_color(self.graph.to_networkx(), strategy="largest_first")
        count = max(coloring.values(), default=-1) + 1
        classes: List[List[int]] = [[] for _ in range(count)]
        for node, colour in coloring.items():
            classes[colour].append(node)
        for members in classes:
            members.sort()
        self._coloring = coloring
        self._classes = classes
        self._colored_version = self.graph.topology_version
        log_model(
            "event",
            ColoringLog(
                payload=ColoringPayload(
                    color_count=count,
                    class_sizes=[len(c) for c in classes],
                    topology_version=self.graph.topology_version,
                )
            ),
        )
        return classes

    # ------------------------------------------------------------------
    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.worker_count)
        return self._executor

    def _update_node(self, item: Tuple[int, float, float]) -> Tuple[int, List[int]]:
        node, u, dt = item
        g = self.graph
        targets = self.scheduler.state_machine.update(node, u)
        g.proper_time[node] += dt * g.time_dilation[node]
        return node, targets

    def _run_class(self, members: List[int], dt: float) -> List[Tuple[int, List[int]]]:
        rng = self.scheduler.rng
        items = [(node, rng.random(), dt) for node in members]
        if len(items) > 1 and self.worker_count > 1:
            results = list(self._get_executor().map(self._update_node, items))
            self.parallel_updates += len(items)
        else:
            results = [self._update_node(item) for item in items]
            self.sequential_updates += len(items)
        return results

    def process_parallel_sweep(self, dt: float) -> int:
        """Update every node once, one colour class at a time.

        Returns the number of processed nodes.
        """

        processed = 0
        for members in self.color_classes:
            results = self._run_class(members, dt)
            for node, targets in results:
                for target in targets:
                    self.scheduler.propagate_signal(node, target)
            processed += len(results)
        self.sweeps += 1
        return processed

    def process_batched_sweeps(
        self, sweep_count: int, dt: float, sync_interval: int = 1
    ) -> int:
        """Run ``sweep_count`` sweeps, resynchronising every ``sync_interval``.

        Time dilation factors and the scheduler's global clock are refreshed
        only at synchronisation points.
        """

        sync_interval = max(1, int(sync_interval))
        total = 0
        pending = 0
        for s in range(sweep_count):
            total += self.process_parallel_sweep(dt)
            pending += 1
            if (s + 1) % sync_interval == 0 or s == sweep_count - 1:
                self.scheduler.update_time_dilation_factors()
                self.scheduler.global_time += dt * pending
                pending = 0
                log_record(
                    "tick",
                    "sweep",
                    frame=self.sweeps,
                    value={
                        "nodes": total,
                        "colors": len(self._classes),
                        "parallel": self.parallel_updates,
                        "sequential": self.sequential_updates,
                    },
                )
                flush_metrics(self.sweeps)
        return total

    # ------------------------------------------------------------------
    def stats_summary(self) -> str:
        total = self.parallel_updates + self.sequential_updates
        ratio = self.parallel_updates / total if total else 0.0
        return (
            f"colors={len(self._classes)} workers={self.worker_count} "
            f"parallel={self.parallel_updates} sequential={self.sequential_updates} "
            f"parallel_ratio={ratio:.2f}"
        )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "ParallelEventEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


__all__ = ["ParallelEventEngine"]
