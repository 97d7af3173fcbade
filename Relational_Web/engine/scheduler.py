"""Causal event scheduler driving asynchronous node updates."""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional

import numpy as np

from ..config import Config
from ..geometry.curvature import forman_ricci
from .events import Event, EventKind, EventQueue
from .fields import FieldModule
from .graph import SpacetimeGraph
from .logging import log_record
from .node_state import NodeStateMachine

logger = logging.getLogger(__name__)


class CausalEventScheduler:
    """Priority-queue scheduler with per-node proper time.

    Events are dispatched in non-decreasing coordinate time; events sharing
    a timestamp run in the order they were scheduled. Each node accumulates
    proper time at a rate given by its time dilation factor, and signals
    travel at a finite speed along the weighted graph so no node can be
    influenced before light could reach it.

    Parameters
    ----------
    graph:
        Arena holding node and edge state.
    state_machine:
        Node update rule. Created from ``graph`` and ``fields`` if omitted.
    fields:
        Optional field collaborator supplying curvature and masses.
    rng:
        Random source for excitation draws. Defaults to a generator seeded
        from ``Config.random_seed``.
    """

    def __init__(
        self,
        graph: SpacetimeGraph,
        state_machine: Optional[NodeStateMachine] = None,
        fields: Optional[FieldModule] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.graph = graph
        self.fields = fields
        self.state_machine = state_machine or NodeStateMachine(graph, fields)
        self.rng = rng or random.Random(Config.random_seed)
        self.queue = EventQueue()
        self.current_time = 0.0
        self.last_dispatched_time = -math.inf
        self.global_time = 0.0
        self.events_processed = 0
        self._initialized = False

    # ------------------------------------------------------------------
    # parameters
    @property
    def base_step(self) -> float:
        return float(Config.scheduler.get("base_step", 0.01))

    @property
    def min_dilation(self) -> float:
        return float(Config.scheduler.get("min_dilation", 0.1))

    @property
    def max_dilation(self) -> float:
        return float(Config.scheduler.get("max_dilation", 1.0))

    @property
    def speed_of_light(self) -> float:
        c = float(Config.scheduler.get("speed_of_light", 1.0))
        return c if c > 0 else 1.0

    def _clamp_step(self, dtau: float) -> float:
        lo = self.base_step * self.min_dilation
        hi = self.base_step / self.min_dilation
        return min(max(dtau, lo), hi)

    # ------------------------------------------------------------------
    # scheduling
    def schedule_initial(self) -> None:
        """Reset node clocks and enqueue an update for every node at ``t = 0``."""

        g = self.graph
        self.queue.clear()
        self.current_time = 0.0
        self.global_time = 0.0
        self.last_dispatched_time = -math.inf
        self.events_processed = 0
        g.proper_time[:] = 0.0
        g.next_update_time[:] = 0.0
        g.time_dilation[:] = 1.0
        for node in range(g.n):
            self.queue.push(Event(0.0, node, EventKind.UPDATE))
        self._initialized = True

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.schedule_initial()

    def schedule(
        self,
        node_id: int,
        time: float,
        kind: EventKind = EventKind.UPDATE,
        source_node: int = -1,
    ) -> bool:
        """Enqueue an event. Invalid node ids are ignored.

        Times before ``current_time`` would violate causal ordering and are
        ignored as well. Returns ``True`` if the event was queued. Identical
        events may be queued more than once.
        """

        if (
            not self.graph.valid_node(node_id)
            or not math.isfinite(time)
            or time < self.current_time
        ):
            logger.debug("ignoring schedule(%r, %r)", node_id, time)
            return False
        self.queue.push(Event(float(time), int(node_id), kind, int(source_node)))
        return True

    def signal_arrival_time(self, source: int, target: int) -> float:
        """Return when a signal sent now from ``source`` reaches ``target``.

        Unreachable targets yield ``inf``.
        """

        dist = self.graph.weighted_distances(source)[target]
        return self.current_time + dist / self.speed_of_light

    def propagate_signal(self, source: int, target: int) -> bool:
        """Schedule a signal from ``source`` at ``target``'s light-cone time."""

        if not self.graph.valid_pair(source, target):
            return False
        arrival = self.signal_arrival_time(source, target)
        if not math.isfinite(arrival):
            return False
        return self.schedule(target, arrival, EventKind.SIGNAL, source)

    def pending(self) -> int:
        return len(self.queue)

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self.queue)

    def peek_time(self) -> float:
        return self.queue.peek_time()

    def clear(self) -> None:
        self.queue.clear()
        self._initialized = False

    # ------------------------------------------------------------------
    # dispatch
    def _dispatch(self, event: Event) -> None:
        if event.time < self.last_dispatched_time:
            logger.warning(
                "event at %.6f dispatched after %.6f", event.time, self.last_dispatched_time
            )
        self.last_dispatched_time = max(self.last_dispatched_time, event.time)
        self.current_time = max(self.current_time, event.time)
        self.events_processed += 1

    def _update_node(self, node: int, dtau: float) -> List[int]:
        """Run one node update with proper-time step ``dtau``."""

        g = self.graph
        targets = self.state_machine.update(node, self.rng.random())
        nbrs = g.neighbors(node)
        if len(nbrs):
            diff = (g.local_potential[nbrs] - g.local_potential[node]) * g.weights[node, nbrs]
            g.local_potential[node] += 0.1 * dtau * float(np.mean(diff * g.time_dilation[nbrs]))
        for target in targets:
            self.propagate_signal(node, target)
        return targets

    def process_event(self, event: Event) -> None:
        """Handle ``event`` according to its kind."""

        if not self.graph.valid_node(event.node_id):
            logger.debug("dropping event for invalid node %r", event.node_id)
            return
        self._dispatch(event)
        node = event.node_id
        match event.kind:
            case EventKind.UPDATE:
                dtau = self.base_step * self.graph.time_dilation[node]
                self._update_node(node, dtau)
                self.graph.proper_time[node] += dtau
                next_time = self.current_time + self.base_step
                self.graph.next_update_time[node] = next_time
                self.schedule(node, next_time)
            case EventKind.SIGNAL:
                fired = self.state_machine.on_signal(node, event.source_node, self.rng.random())
                for target in fired:
                    self.propagate_signal(node, target)
            case EventKind.MEASUREMENT:
                if self.fields is not None:
                    self.fields.measure(node)

    def run(self, duration: float, max_events: int = 100_000) -> int:
        """Process events until ``duration`` has elapsed.

        Stops when the queue is empty, ``max_events`` have been processed or
        the next event lies beyond ``current_time + duration``. Returns the
        number of events processed.
        """

        self._ensure_initialized()
        end_time = self.current_time + duration
        count = 0
        while self.queue and count < max_events:
            if self.queue.peek_time() > end_time:
                break
            self.process_event(self.queue.pop())
            count += 1
        return count

    def run_relational_loop(self, max_events: int = 100_000) -> int:
        """Process updates with curvature-driven proper-time steps.

        Each node reschedules itself after ``1 / sqrt(|R| + eps)`` clamped to
        the allowed dilation range. Strongly curved regions therefore take
        shorter steps and are revisited sooner in coordinate time.
        """

        self._ensure_initialized()
        eps = Config.scheduler.get("curvature_epsilon", 1e-6)
        count = 0
        while self.queue and count < max_events:
            event = self.queue.pop()
            if event.kind is not EventKind.UPDATE:
                self.process_event(event)
                count += 1
                continue
            self._dispatch(event)
            node = event.node_id
            curvature = self._local_curvature(node)
            dtau = self._clamp_step(1.0 / math.sqrt(abs(curvature) + eps))
            self._update_node(node, dtau)
            self.graph.proper_time[node] += dtau
            self.graph.next_update_time[node] = self.current_time + dtau
            self.schedule(node, self.current_time + dtau)
            count += 1
        return count

    def compute_local_proper_time_step(self, node: int) -> float:
        """Return the proper-time step for ``node`` from dilation and curvature."""

        if not self.graph.valid_node(node):
            return self.base_step
        eps = Config.scheduler.get("curvature_epsilon", 1e-6)
        dtau = self.base_step * self.graph.time_dilation[node]
        factor = 1.0 / math.sqrt(abs(self._local_curvature(node)) + eps)
        dtau *= min(max(factor, 0.1), 10.0)
        return self._clamp_step(dtau)

    def step_event_based(self) -> bool:
        """Process a single event. Returns ``False`` when the queue is empty."""

        self._ensure_initialized()
        if not self.queue:
            return False
        event = self.queue.pop()
        if event.kind is not EventKind.UPDATE:
            self.process_event(event)
            return True
        self._dispatch(event)
        node = event.node_id
        dtau = self.compute_local_proper_time_step(node)
        self._update_node(node, dtau)
        self.graph.proper_time[node] += dtau
        self.graph.next_update_time[node] = self.current_time + dtau
        self.schedule(node, self.current_time + dtau)
        return True

    def step_event_based_batch(self, events_per_step: int) -> int:
        """Process up to ``events_per_step`` events and refresh dilation."""

        count = 0
        for _ in range(events_per_step):
            if not self.step_event_based():
                break
            count += 1
        if self.queue:
            self.update_time_dilation_factors()
            if self.fields is not None:
                self.fields.relax(self.base_step)
        log_record(
            "tick",
            "proper_time",
            frame=self.events_processed,
            value={
                "time": self.current_time,
                "mean_proper_time": float(self.graph.proper_time.mean()) if self.graph.n else 0.0,
                "events": count,
            },
        )
        return count

    # ------------------------------------------------------------------
    # time dilation
    def _local_curvature(self, node: int) -> float:
        if self.fields is not None:
            return self.fields.local_curvature(node)
        nbrs = self.graph.neighbors(node)
        if len(nbrs) == 0:
            return 0.0
        return float(np.mean([forman_ricci(self.graph, node, int(k)) for k in nbrs]))

    def update_time_dilation_factors(self) -> None:
        """Recompute every node's lapse from local mass and curvature."""

        g = self.graph
        cfg = Config.scheduler
        alpha = cfg.get("mass_coupling", 0.1)
        beta = cfg.get("curvature_coupling", 0.05)
        masses = self.fields.node_mass() if self.fields is not None else None
        for i in range(g.n):
            nbrs = g.neighbors(i)
            local_mass = 0.0
            if masses is not None and len(masses) == g.n:
                local_mass = float(masses[i] + np.dot(masses[nbrs], g.weights[i, nbrs]))
            curvature = 0.0
            if len(nbrs):
                curvature = float(np.mean([forman_ricci(g, i, int(k)) for k in nbrs]))
            factor = math.sqrt(max(0.01, 1.0 - alpha * local_mass - beta * curvature))
            g.time_dilation[i] = min(max(factor, self.min_dilation), self.max_dilation)

    def step_asynchronous(self) -> int:
        """Advance a global clock by one base step.

        Every node whose next update time has been reached is updated with
        ``dτ = base_step * dilation``. Returns the number of updated nodes.
        """

        g = self.graph
        self.update_time_dilation_factors()
        now = self.global_time
        updated = 0
        for i in range(g.n):
            if g.next_update_time[i] <= now:
                self.current_time = now
                dtau = self.base_step * g.time_dilation[i]
                self._update_node(i, dtau)
                g.proper_time[i] += dtau
                g.next_update_time[i] = now + self.base_step
                updated += 1
        self.global_time = now + self.base_step
        return updated


__all__ = ["CausalEventScheduler"]
