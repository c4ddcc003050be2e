from updown_monitor.metrics.latency import RollingLatency

__all__ = ["RollingLatency"]
