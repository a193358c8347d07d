import asyncio

from swift_responder.scheduler import PeriodicTask


def test_periodic_task_runs_until_cancelled() -> None:
    calls = []

    async def callback() -> None:
        calls.append(len(calls))

    async def scenario() -> None:
        task = PeriodicTask(0.01, callback)
        task.start()
        assert task.running
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        task.cancel()
        assert not task.running
        seen = len(calls)
        await asyncio.sleep(0.05)
        assert len(calls) == seen

    asyncio.run(scenario())


def test_callback_can_cancel_its_own_timer() -> None:
    calls = []

    async def scenario() -> None:
        task = None

        async def callback() -> None:
            calls.append(1)
            task.cancel()

        task = PeriodicTask(0.01, callback)
        task.start()
        await asyncio.sleep(0.1)
        assert not task.running

    asyncio.run(scenario())

    assert calls == [1]


def test_first_call_waits_one_interval() -> None:
    calls = []

    async def callback() -> None:
        calls.append(1)

    async def scenario() -> None:
        task = PeriodicTask(0.2, callback)
        task.start()
        await asyncio.sleep(0.05)
        assert calls == []
        task.cancel()

    asyncio.run(scenario())

    assert calls == []
