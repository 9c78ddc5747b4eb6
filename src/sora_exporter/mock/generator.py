"""
Mock Sora stats generator.

Produces fake but plausible GetStatsReport bodies so we can develop and
test without a running Sora. Numbers loosely follow a mid-sized SFU
with a mix of direct and TURN connections.
"""

import math
import random

from sora_exporter.metrics import StatsReport


class MockSoraServer:

    def __init__(self, seed: int = 42):
        self._rng = random.Random(seed)
        self._tick = 0
        self._created = 0
        self._updated = 0
        self._destroyed = 0
        self._failed = 0
        self._duration_sec = 0
        self._turn_udp = 0
        self._turn_tcp = 0

    def snapshot(self) -> StatsReport:
        """Generate one report, advancing the simulation clock."""
        self._tick += 1
        t = self._tick

        # Sinusoidal arrivals with occasional bursts
        arrivals = max(1, int(20 + 12 * math.sin(t * 0.05)))
        if self._rng.random() > 0.9:
            arrivals += self._rng.randint(5, 25)

        failed = int(arrivals * self._rng.uniform(0.0, 0.05))
        self._created += arrivals
        self._failed += failed
        self._updated += arrivals * self._rng.randint(1, 3)

        # Connections leave a little slower than they arrive
        ongoing_before = self._created - self._destroyed - self._failed
        leaving = min(ongoing_before, int(arrivals * self._rng.uniform(0.6, 1.0)))
        self._destroyed += leaving

        # Roughly a fifth of clients need TURN, mostly over UDP
        turn = int(arrivals * 0.2)
        tcp_share = int(turn * self._rng.uniform(0.1, 0.3))
        self._turn_udp += turn - tcp_share
        self._turn_tcp += tcp_share

        avg_duration = max(1, int(self._rng.gauss(300, 60)))
        self._duration_sec += leaving * avg_duration

        successful = self._created - self._failed
        ongoing = max(0, successful - self._destroyed)

        return StatsReport(
            total_connection_created=self._created,
            total_connection_updated=self._updated,
            total_connection_destroyed=self._destroyed,
            total_successful_connections=successful,
            total_ongoing_connections=ongoing,
            total_failed_connections=self._failed,
            total_duration_sec=self._duration_sec,
            total_turn_udp_connections=self._turn_udp,
            total_turn_tcp_connections=self._turn_tcp,
            average_duration_sec=avg_duration,
            average_setup_time_msec=max(50, int(self._rng.gauss(400, 80))),
        )
