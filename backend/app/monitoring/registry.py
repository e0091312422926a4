"""Lightweight metrics registry for Prometheus compatible exports."""

from __future__ import annotations

from typing import Sequence


def _format_value(value: float) -> str:
    return str(int(value)) if value.is_integer() else f"{value:.6f}".rstrip("0").rstrip(".")


def _format_labels(names: Sequence[str], values: Sequence[str]) -> str:
    if not names:
        return ""
    pairs = []
    for name, value in zip(names, values, strict=True):
        escaped = value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")
        pairs.append(f'{name}="{escaped}"')
    return "{" + ",".join(pairs) + "}"


class MetricsRegistry:
    """In-memory registry that collects metric samples."""

    def __init__(self) -> None:
        self._metrics: dict[str, _MetricBase] = {}

    def register(self, metric: "_MetricBase") -> None:
        if metric.name in self._metrics:
            raise ValueError(f"Metric '{metric.name}' already registered")
        self._metrics[metric.name] = metric

    def counter(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> "CounterMetric":
        metric = CounterMetric(name, description, label_names)
        self.register(metric)
        return metric

    def gauge(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> "GaugeMetric":
        metric = GaugeMetric(name, description, label_names)
        self.register(metric)
        return metric

    def reset(self) -> None:
        """Drop every recorded sample while keeping the metric definitions."""

        for metric in self._metrics.values():
            metric.clear()

    def render(self) -> str:
        """Render all registered metrics using the Prometheus text format."""

        lines: list[str] = []
        for name in sorted(self._metrics):
            lines.extend(self._metrics[name].render())
        return "\n".join(lines) + "\n"


class _MetricBase:
    metric_type: str = "untyped"

    def __init__(self, name: str, description: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._samples: dict[tuple[str, ...], float] = {}

    def _key(self, values: Sequence[object]) -> tuple[str, ...]:
        if len(values) != len(self.label_names):
            expected = ", ".join(self.label_names) or "<none>"
            raise ValueError(
                f"Metric '{self.name}' expected {len(self.label_names)} label values [{expected}] "
                f"but received {len(values)}"
            )
        return tuple(str(value) for value in values)

    def labels(self, *values: object) -> "_BoundMetric":
        return _BoundMetric(self, self._key(values))

    def value(self, *values: object) -> float:
        return self._samples.get(self._key(values), 0.0)

    def clear(self) -> None:
        self._samples.clear()

    def _add(self, key: tuple[str, ...], amount: float) -> None:
        self._samples[key] = self._samples.get(key, 0.0) + amount

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.metric_type}"]
        if not self._samples:
            lines.append(f"{self.name} 0")
            return lines
        for key in sorted(self._samples):
            label_block = _format_labels(self.label_names, key)
            lines.append(f"{self.name}{label_block} {_format_value(self._samples[key])}")
        return lines


class CounterMetric(_MetricBase):
    metric_type = "counter"

    def inc(self, amount: float = 1.0) -> None:
        self.labels().inc(amount)


class GaugeMetric(_MetricBase):
    metric_type = "gauge"

    def set(self, value: float) -> None:
        self.labels().set(value)


class _BoundMetric:
    """Metric bound to concrete label values: ``metric.labels("foo").inc()``."""

    def __init__(self, metric: _MetricBase, key: tuple[str, ...]) -> None:
        self._metric = metric
        self._key = key

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Increment amount must be non-negative")
        self._metric._add(self._key, amount)

    def dec(self, amount: float = 1.0) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support dec()")
        if amount < 0:
            raise ValueError("Decrement amount must be non-negative")
        self._metric._add(self._key, -amount)

    def set(self, value: float) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support set()")
        self._metric._samples[self._key] = float(value)


# Shared registry instance used across the client.
registry = MetricsRegistry()
