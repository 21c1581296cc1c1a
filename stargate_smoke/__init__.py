"""
Cassandra + Stargate smoke test harness.

Starts service containers, waits for readiness markers in their logs, retries
connections within a budget and runs one example query through the gateway.
"""

__version__ = "0.1.0"
