"""
cadence.api.__main__ — Entry point for ``python -m cadence.api``
================================================================

Serves the read-only API on ``api_port`` from ``config.yaml``.
"""

from __future__ import annotations

import uvicorn

from cadence.api.deps import get_config


def main() -> None:
    uvicorn.run("cadence.api.main:app", host="0.0.0.0", port=get_config().api_port)


if __name__ == "__main__":
    main()
