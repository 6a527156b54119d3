import copy
import threading
import time


class CounterState:
    """
    References shared between the host loop thread and the web server.

    Counts themselves live in the engine's aggregator; this only holds the
    engine, the loaded config and loop liveness stats for the status page.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self.engine = None
        self.config = None
        self.config_path = None
        self.system_stats = {"start_time": 0, "cycles": 0, "last_cycle_ts": None}

    def set_engine(self, engine):
        self.engine = engine

    def set_config(self, config, config_path):
        with self._guard:
            self.config, self.config_path = config, config_path

    def get_config_copy(self):
        with self._guard:
            return copy.deepcopy(self.config) if self.config is not None else None

    def get_snapshot(self):
        """Current counts snapshot, or None before the engine is attached."""
        engine = self.engine
        if engine is None:
            return None
        return engine.aggregator.snapshot(engine.ctx.clock())

    def update_system_stats(self, stats):
        with self._guard:
            self.system_stats.update(stats)

    def get_system_stats_copy(self):
        with self._guard:
            return dict(self.system_stats)

    def uptime_seconds(self):
        start = self.get_system_stats_copy().get("start_time")
        return time.time() - start if start else None


state = CounterState()
