"""
Docker-backed smoke tests.

These tests start real Cassandra and Stargate containers through the local
docker daemon. They are skipped when no daemon is reachable.

Run with: pytest system_tests/ -v
"""
