# config.py

import json
import os

import yaml


def _read_mapping(path: str) -> dict:
    """Parse ``path`` as YAML or JSON depending on its suffix."""
    with open(path) as f:
        if path.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f) or {}
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"configuration in {path} must be a mapping")
    return data


class Config:
    """Global configuration for the relational core.

    Attributes
    ----------
    scheduler:
        Event scheduling and proper-time parameters. ``base_step`` is the
        coordinate-time interval between node updates, ``min_dilation`` and
        ``max_dilation`` bound the lapse factor and ``speed_of_light`` converts
        graph distance into signal delay. ``mass_coupling`` and
        ``curvature_coupling`` weight local mass and curvature when computing
        time dilation.
    node_state:
        Excitable-medium parameters. ``base_refractory_steps`` is the minimum
        number of updates a node stays refractory after firing.
    topology:
        Metropolis-Hastings parameters for edge mutation including the ledger
        costs ``rng_step_cost`` and ``edge_creation_cost``, the weight quantum,
        the causal horizon ``max_hops`` and the action couplings.
    gauge:
        Gauge invariance settings. ``tolerance`` is the flux magnitude below
        which a removed edge is considered trivial.
    ledger:
        Vacuum energy pool parameters. ``initial_vacuum_energy`` seeds the
        pool, ``landauer_limit`` and ``temperature`` price random bits and
        ``max_violations`` caps the constraint violation history.
    thread_count:
        Worker threads used for colour-class sweeps and parallel scans.
        ``None`` lets :class:`concurrent.futures.ThreadPoolExecutor` decide.
    backend:
        Compute backend to use: ``"cpu"`` (default) or ``"cupy"``.
    """

    base_dir = os.path.abspath(os.path.dirname(__file__))
    input_dir = os.path.join(base_dir, "input")
    config_file = os.path.join(input_dir, "config.json")
    output_root = os.path.join(base_dir, "output")
    output_dir = output_root

    @staticmethod
    def input_path(*parts: str) -> str:
        """Return absolute path under the ``input`` directory."""
        return os.path.join(Config.input_dir, *parts)

    #: Seed shared by the scheduler and topology engine random sources
    random_seed: int | None = None
    thread_count: int | None = 1
    #: Compute backend; ``"cpu"`` or ``"cupy"``
    backend = "cpu"

    scheduler = {
        "base_step": 0.01,
        "min_dilation": 0.1,
        "max_dilation": 1.0,
        "speed_of_light": 1.0,
        "curvature_epsilon": 1e-6,
        "mass_coupling": 0.1,
        "curvature_coupling": 0.05,
        "signal_excitation_probability": 0.1,
        "signal_strength_factor": 1.0,
    }
    node_state = {"base_refractory_steps": 2}
    topology = {
        "max_hops": 3,
        "edge_weight_quantum": 0.01,
        "rng_step_cost": 0.001,
        "edge_creation_cost": 0.1,
        "temperature": 1.0,
        "gravitational_coupling": 0.1,
        "cosmological_constant": 1e-4,
        "curvature_term_scale": 0.05,
        "volume_lambda": 0.0,
        "target_volume": 0.0,
        "edge_count_lambda": 0.0,
        "target_edge_count": 0,
        "chirality_penalty": 1.0 / 137.0,
        "weight_lower_soft_wall": 0.01,
        "stress_ema_alpha": 0.05,
    }
    gauge = {"tolerance": 0.1}
    ledger = {
        "initial_vacuum_energy": 1000.0,
        "landauer_limit": 0.693,
        "temperature": 1.0,
        "max_violations": 1000,
        "strict_conservation": False,
    }

    # Log files grouped by category. Keys are file names without extension,
    # values toggle whether records for that file are written.
    DEFAULT_LOG_FILES = {
        "event": {
            "topology_change": True,
            "ledger_refusal": True,
            "coloring": True,
        },
        "tick": {
            "sweep": True,
            "proper_time": True,
        },
    }

    # Default runtime copy
    log_files = {k: dict(v) for k, v in DEFAULT_LOG_FILES.items()}

    #: Allowed logging modes. ``diagnostic`` enables all logs, ``tick``
    #: enables per-sweep metrics and ``event`` enables event driven logs.
    logging_mode = ["diagnostic"]

    @classmethod
    def is_category_enabled(cls, category: str) -> bool:
        """Return ``True`` if ``category`` should be written based on mode."""
        mode = set(getattr(cls, "logging_mode", ["diagnostic"]))
        return "diagnostic" in mode or category in mode

    @classmethod
    def is_log_enabled(cls, category: str, label: str | None = None) -> bool:
        """Return ``True`` if a log entry should be written."""

        cfg = cls.log_files.get(category, {})
        if label is not None and not cfg.get(label, True):
            return False
        return cls.is_category_enabled(category)

    @classmethod
    def snapshot(cls) -> dict:
        """Return a deep copy of the mutable parameter groups."""

        return {
            "scheduler": dict(cls.scheduler),
            "node_state": dict(cls.node_state),
            "topology": dict(cls.topology),
            "gauge": dict(cls.gauge),
            "ledger": dict(cls.ledger),
            "log_files": {k: dict(v) for k, v in cls.log_files.items()},
            "logging_mode": list(cls.logging_mode),
            "thread_count": cls.thread_count,
            "random_seed": cls.random_seed,
            "backend": cls.backend,
            "output_dir": cls.output_dir,
        }

    @classmethod
    def restore(cls, snapshot: dict) -> None:
        """Restore values previously captured by :meth:`snapshot`."""

        for key, value in snapshot.items():
            current = getattr(cls, key)
            if isinstance(current, dict) and isinstance(value, dict):
                current.clear()
                current.update(value)
            else:
                setattr(cls, key, value)

    @classmethod
    def load_from_file(cls, path: str) -> None:
        """Load configuration values from a JSON or YAML file.

        Only keys that already exist as attributes on ``Config`` will be
        assigned. Nested dictionaries are merged when the existing attribute
        is also a ``dict``.

        Parameters
        ----------
        path:
            Path to the configuration file. ``.yaml`` and ``.yml`` files are
            parsed with PyYAML, anything else as JSON.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        data = _read_mapping(path)
        cls.config_file = os.path.abspath(path)
        base_dir = os.path.dirname(cls.config_file)

        for key, value in data.items():
            if not hasattr(cls, key):
                continue
            if key == "output_dir" and not os.path.isabs(value):
                value = os.path.abspath(os.path.join(base_dir, value))
            current = getattr(cls, key)
            if isinstance(current, dict) and isinstance(value, dict):
                current.update(value)
            else:
                setattr(cls, key, value)


def load_config(path: str | None = None) -> dict:
    """Load configuration from ``path`` and return the data."""
    if path is None:
        path = Config.input_path("config.json")
    Config.load_from_file(path)
    return _read_mapping(path)
