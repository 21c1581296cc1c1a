"""Run the smoke test: python -m stargate_smoke"""

from __future__ import annotations

import sys

from stargate_smoke.core.config import get_settings
from stargate_smoke.core.exceptions import HarnessError
from stargate_smoke.core.logging import get_logger, setup_logging
from stargate_smoke.orchestration.driver import run_smoke_test


def main() -> int:
    settings = get_settings()
    setup_logging(settings)
    logger = get_logger("main")

    try:
        result = run_smoke_test(settings)
    except HarnessError as e:
        logger.error(f"Smoke test failed: {e.to_dict()}")
        return 1

    logger.info(f"Smoke test passed: {result.count} row(s) from {result.query!r}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
