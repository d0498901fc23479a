# This file is a part of Coordis.
#
# Copyright (C) 2017,2018 WIREMIND SAS <dev@wiremind.fr>
#
# Coordis is free software; you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or (at
# your option) any later version.
#
# Coordis is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranty of MERCHANTABILITY or
# FITNESS FOR A PARTICULAR PURPOSE. See the GNU Lesser General Public
# License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import prometheus_client as prom

#: Label values of the ``primitive`` label.
LOCK = "lock"
SEMAPHORE_SIMPLE = "semaphore_simple"
SEMAPHORE_FAIR = "semaphore_fair"


class Metrics:
    """Prometheus_ metrics about locks and semaphores.

    Hand the same instance to every :class:`Lock` and :class:`Semaphore`
    of a process, then expose ``registry`` the way the process already
    exposes its metrics.

    Parameters:
      registry(CollectorRegistry): the prometheus registry to use, if None, use a new registry.
      namespace(str): Prefix of every metric name.

    .. _Prometheus: https://prometheus.io
    """

    def __init__(self, *, registry: prom.CollectorRegistry | None = None, namespace: str = "coordis") -> None:
        if registry is None:
            registry = prom.CollectorRegistry()
        self.registry = registry

        self.acquisitions = prom.Counter(
            f"{namespace}_acquisitions_total",
            "The total number of acquisition attempts, by outcome (acquired or rejected).",
            ["primitive", "outcome"],
            registry=registry,
        )
        self.releases = prom.Counter(
            f"{namespace}_releases_total",
            "The total number of releases, by outcome (released or mismatch).",
            ["primitive", "outcome"],
            registry=registry,
        )
        self.refreshes = prom.Counter(
            f"{namespace}_refreshes_total",
            "The total number of refreshes, by outcome (refreshed or lost).",
            ["primitive", "outcome"],
            registry=registry,
        )
        self.acquire_durations = prom.Summary(
            f"{namespace}_acquire_duration_milliseconds",
            "The time spent acquiring, retries included.",
            ["primitive"],
            registry=registry,
        )

    def acquired(self, primitive: str, ok: bool, duration_ms: float) -> None:
        self.acquisitions.labels(primitive, "acquired" if ok else "rejected").inc()
        self.acquire_durations.labels(primitive).observe(duration_ms)

    def released(self, primitive: str, ok: bool) -> None:
        self.releases.labels(primitive, "released" if ok else "mismatch").inc()

    def refreshed(self, primitive: str, ok: bool) -> None:
        self.refreshes.labels(primitive, "refreshed" if ok else "lost").inc()
