"""Run the OpsLens service with ``python -m opslens``."""

from __future__ import annotations

import asyncio

from opslens.app import main

if __name__ == "__main__":
    asyncio.run(main())
