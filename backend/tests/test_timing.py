"""StepTimer tests."""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

from competitive_intel.agents.competitive_intel.timing import StepTimer


class TestStepTimer:
    def test_async_step_records_duration(self):
        timer = StepTimer("evidence")

        async def _run():
            async with timer.async_step("providers"):
                await asyncio.sleep(0)

        asyncio.run(_run())
        assert list(timer.steps) == ["providers"]
        assert timer.steps["providers"] >= 0
        assert timer.summary() >= timer.steps["providers"]
