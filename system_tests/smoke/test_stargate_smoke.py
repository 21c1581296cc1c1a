"""
Stargate Smoke Test - Cassandra + Stargate end to end.

Starts Cassandra, waits for its superuser role to be created, starts
Stargate seeded with Cassandra's address, waits for its bundles, connects
over authenticated gRPC and runs SELECT * FROM system.local.

Run with: pytest system_tests/smoke/ -v -s
"""

from __future__ import annotations

from stargate_smoke.orchestration.driver import SmokeTestDriver, Stage


class TestStargateSmoke:
    """Bring up the full stack and query it once."""

    def test_query_system_local(self, docker_runtime, smoke_settings):
        """SELECT * FROM system.local returns the local node row."""
        driver = SmokeTestDriver(docker_runtime, smoke_settings)

        result = driver.run()

        assert result is not None
        assert result.count >= 1
        assert result.columns

        # Both containers are gone once the driver returns
        assert driver.history[-1] == Stage.TEARDOWN
        assert [s.name for s in driver.services] == ["cassandra", "stargate"]
        assert all(s.stopped for s in driver.services)
