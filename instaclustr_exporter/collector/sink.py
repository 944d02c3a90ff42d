#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Accumulates observations of a scrape and renders them in the Prometheus text format."""

import threading
from collections import OrderedDict
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from ..commons import logging
from .mapper import METRIC_DEFINITIONS, MetricDefinition
from .schemas import MetricKind, Observation


logger = logging.get_logger(__name__)


class ObservationSink:
    """Thread-safe accumulator for the observations of one scrape.

    Writers may run concurrently; `extend` appends a batch under a single lock so the
    observations derived from one upstream response are never interleaved with others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observations: List[Observation] = []

    def add(self, observation: Observation) -> None:
        """Append a single observation."""
        with self._lock:
            self._observations.append(observation)

    def extend(self, observations: Iterable[Observation]) -> None:
        """Append a batch of observations as one contiguous block."""
        batch = list(observations)
        with self._lock:
            self._observations.extend(batch)

    def snapshot(self) -> List[Observation]:
        """Return a copy of the observations written so far."""
        with self._lock:
            return list(self._observations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._observations)


def _new_family(definition: MetricDefinition) -> Metric:
    if definition.kind == MetricKind.COUNTER:
        return CounterMetricFamily(definition.name, definition.documentation, labels=definition.label_names)
    return GaugeMetricFamily(definition.name, definition.documentation, labels=definition.label_names)


class SinkCollector(Collector):
    """Prometheus collector exposing the observations held by a sink."""

    def __init__(self, sink: ObservationSink, definitions: Optional[Dict[str, MetricDefinition]] = None) -> None:
        self.sink = sink
        self.definitions = definitions if definitions is not None else METRIC_DEFINITIONS

    def describe(self) -> Iterator[Metric]:
        """Yield an empty family for every known metric."""
        for definition in self.definitions.values():
            yield _new_family(definition)

    def collect(self) -> Iterator[Metric]:
        """Group the observations of the sink into metric families.

        Only the first observation of a series (metric name and label values) is kept.
        """
        families: "OrderedDict[str, Metric]" = OrderedDict()
        seen: Set[Tuple[str, Tuple[str, ...]]] = set()
        for observation in self.sink.snapshot():
            definition = self.definitions.get(observation.name)
            if definition is None:
                logger.warning(f"No definition for metric {observation.name}, dropping observation")
                continue

            label_values = tuple(observation.labels.get(label, "") for label in definition.label_names)
            if (observation.name, label_values) in seen:
                logger.warning(f"Duplicate series {observation.name}{observation.labels}, keeping the first value")
                continue
            seen.add((observation.name, label_values))

            family = families.get(observation.name)
            if family is None:
                family = families[observation.name] = _new_family(definition)
            family.add_metric(list(label_values), observation.value)
        yield from families.values()


def render_exposition(sink: ObservationSink) -> bytes:
    """Render the observations of a sink in the Prometheus text exposition format."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SinkCollector(sink))
    return generate_latest(registry)
