"""Tests for client.orchestrator -- phase sequencing, cancellation, and failures."""

import asyncio
import unittest

from client.errors import CancellationError, MalformedResponseError, NetworkError
from client.session import Phase, Progress, TestSession

from fakes import make_orchestrator, spin


class OrchestratorCase(unittest.IsolatedAsyncioTestCase):
    settle_seconds = 0.0

    async def asyncSetUp(self):
        self.client, self.orch = make_orchestrator(self.settle_seconds)
        self.phases = []
        self.orch.on_change = lambda s: self.phases.append(s.phase)

    async def asyncTearDown(self):
        await self.orch.aclose()

    async def _complete_run(self, download=50.0, upload=20.0, ping=15.0):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(download)
        await spin(lambda: self.client.uploads)
        self.client.resolve_upload(upload, ping)
        await task
        return self.orch.session


class TestHappyPath(OrchestratorCase):
    async def test_phase_order(self):
        await self._complete_run()
        self.assertEqual(
            self.phases,
            [
                Phase.DOWNLOAD,
                Phase.DOWNLOAD_COMPLETE,
                Phase.UPLOAD,
                Phase.UPLOAD_COMPLETE,
                Phase.IDLE,
            ],
        )

    async def test_final_idle_retains_results(self):
        session = await self._complete_run(download=50.0, upload=20.0, ping=15.0)
        self.assertIs(session.phase, Phase.IDLE)
        self.assertIsNone(session.error)
        self.assertEqual(session.progress, Progress(50.0, 20.0, 15.0))
        self.assertTrue(session.completed)
        self.assertFalse(TestSession().completed)
        self.assertNotEqual(session, TestSession())

    async def test_token_released_after_run(self):
        await self._complete_run()
        self.assertFalse(self.orch.active)

    async def test_start_clears_previous_results(self):
        await self._complete_run()
        self.orch.start()
        self.assertIs(self.orch.session.phase, Phase.DOWNLOAD)
        self.assertEqual(self.orch.session.progress, Progress())

    async def test_run_returns_final_snapshot(self):
        async def drive():
            await spin(lambda: self.client.downloads)
            self.client.resolve_download(10.0)
            await spin(lambda: self.client.uploads)
            self.client.resolve_upload(5.0, 30.0)

        driver = asyncio.ensure_future(drive())
        session = await self.orch.run()
        await driver
        self.assertEqual(session.progress, Progress(10.0, 5.0, 30.0))


class TestSettle(OrchestratorCase):
    settle_seconds = 0.1

    async def test_download_result_then_upload_after_settle(self):
        self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(87.5)
        await spin(lambda: self.orch.session.phase is Phase.DOWNLOAD_COMPLETE)

        self.assertEqual(self.orch.session.progress.download_mbps, 87.5)
        self.assertEqual(self.client.calls, ["download"])

        await spin(lambda: self.orch.session.phase is Phase.UPLOAD)
        self.assertEqual(self.client.calls, ["download", "upload_ping"])
        self.assertEqual(self.orch.session.progress.download_mbps, 87.5)

    async def test_cancel_during_settle_skips_upload(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(40.0)
        await spin(lambda: self.orch.session.phase is Phase.DOWNLOAD_COMPLETE)

        self.orch.cancel()
        await task
        await asyncio.sleep(0.15)

        self.assertEqual(self.client.calls, ["download"])
        self.assertEqual(self.orch.session, TestSession())


class TestCancellation(OrchestratorCase):
    async def test_cancel_before_download_resolves(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)

        self.orch.cancel()
        # Same tick: idle, zeroed, no error.
        self.assertEqual(self.orch.session, TestSession())
        self.assertFalse(self.orch.active)

        await task
        self.assertEqual(self.client.calls, ["download"])
        self.assertEqual(self.orch.session, TestSession())

    async def test_late_response_is_discarded(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.orch.cancel()
        self.client.resolve_download(999.0)
        await task
        await asyncio.sleep(0.01)
        self.assertEqual(self.orch.session.progress.download_mbps, 0.0)

    async def test_cancel_during_upload(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(60.0)
        await spin(lambda: self.client.uploads)

        self.orch.cancel()
        await task
        self.assertEqual(self.orch.session, TestSession())

    async def test_cancellation_error_from_client_is_silent(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.fail_download(CancellationError())
        await task
        self.assertEqual(self.orch.session, TestSession())
        self.assertEqual(self.client.calls, ["download"])

    async def test_cancel_without_run_is_safe(self):
        self.orch.cancel()
        self.assertEqual(self.orch.session, TestSession())

    async def test_restart_after_cancel_runs_fresh(self):
        first = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.orch.cancel()
        await first

        session = await self._complete_run(download=12.0, upload=3.0, ping=8.0)
        self.assertEqual(session.progress, Progress(12.0, 3.0, 8.0))


class TestReentrancy(OrchestratorCase):
    async def test_start_is_noop_while_active(self):
        task = self.orch.start()
        self.assertIsNotNone(task)
        self.assertIsNone(self.orch.start())
        await spin(lambda: self.client.downloads)
        self.assertEqual(len(self.client.downloads), 1)
        self.assertEqual(self.phases, [Phase.DOWNLOAD])


class TestFailures(OrchestratorCase):
    async def test_download_failure_stops_run(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.fail_download(NetworkError("connection reset"))
        await task

        session = self.orch.session
        self.assertIs(session.phase, Phase.IDLE)
        self.assertEqual(session.error.phase, "download")
        self.assertIn("download", session.error.message)
        self.assertEqual(self.client.calls, ["download"])
        self.assertFalse(self.orch.active)

    async def test_upload_failure_keeps_download_result(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(50.0)
        await spin(lambda: self.client.uploads)
        self.client.fail_upload(NetworkError("503"))
        await task

        session = self.orch.session
        self.assertIs(session.phase, Phase.IDLE)
        self.assertIs(session.error.phase, Phase.UPLOAD)
        self.assertIn("upload and ping", session.error.message)
        self.assertEqual(session.progress.download_mbps, 50.0)
        self.assertFalse(session.completed)

    async def test_malformed_response_is_surfaced(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.fail_download(MalformedResponseError("missing 'download'"))
        await task
        self.assertEqual(self.orch.session.error.phase, Phase.DOWNLOAD)

    async def test_unexpected_exception_leaves_idle_error(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.resolve_download(50.0)
        await spin(lambda: self.client.uploads)
        with self.assertLogs("client.orchestrator", level="ERROR"):
            self.client.fail_upload(RuntimeError("boom"))
            with self.assertRaises(RuntimeError):
                await task

        session = self.orch.session
        self.assertIs(session.phase, Phase.IDLE)
        self.assertFalse(session.running)
        self.assertIs(session.error.phase, Phase.UPLOAD)
        self.assertEqual(session.progress.download_mbps, 50.0)
        self.assertFalse(self.orch.active)

    async def test_start_clears_error(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.client.fail_download(NetworkError("down"))
        await task

        self.orch.start()
        self.assertIsNone(self.orch.session.error)
        self.assertIs(self.orch.session.phase, Phase.DOWNLOAD)

    async def test_progress_never_negative(self):
        seen = []
        self.orch.on_change = seen.append
        await self._complete_run()
        for s in seen:
            self.assertGreaterEqual(s.progress.download_mbps, 0)
            self.assertGreaterEqual(s.progress.upload_mbps, 0)
            self.assertGreaterEqual(s.progress.ping_ms, 0)


class TestResetAndDispose(OrchestratorCase):
    async def test_reset_clears_rotation(self):
        self.orch.view.rotation_angle = 123.0
        self.orch.reset()
        self.assertEqual(self.orch.view.rotation_angle, 0.0)
        self.assertEqual(self.orch.session, TestSession())

    async def test_reset_cancels_active_run(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        self.orch.reset()
        await task
        self.assertEqual(self.client.calls, ["download"])

    async def test_aclose_waits_for_run(self):
        task = self.orch.start()
        await spin(lambda: self.client.downloads)
        await self.orch.aclose()
        self.assertTrue(task.done())
        self.assertFalse(self.orch.active)


if __name__ == "__main__":
    unittest.main()
