"""Background service that refreshes quotes periodically."""

import asyncio
from typing import Dict, Any, Optional, Callable, Awaitable
from datetime import datetime, timedelta
import threading
import time

from shared.logging import get_logger, timed_operation

REFRESH_TASK = 'quote_refresh'


class QuoteRefreshService:
    """Runs periodic async tasks on an event loop in a daemon thread.

    The quote refresh task is registered on construction; other periodic
    tasks can be added with ``add_task``.
    """

    def __init__(self, trading_service, interval_seconds: float = 300, run_immediately: bool = True):
        self.logger = get_logger(__name__)
        self.trading_service = trading_service
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.running = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self.last_alert_count = 0
        self.last_refresh_seconds: Optional[float] = None

        self.add_task(REFRESH_TASK, self.refresh_once, interval_seconds, run_immediately)

    def add_task(
        self,
        name: str,
        coro_func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_immediately: bool = False
    ):
        """Add a periodic task.

        Args:
            name: Unique task name
            coro_func: Async function to execute
            interval_seconds: Interval between executions in seconds
            run_immediately: Whether to run the task immediately on start
        """
        if interval_seconds <= 0:
            raise ValueError("Task interval must be positive")
        self.tasks[name] = {
            'coro_func': coro_func,
            'interval_seconds': interval_seconds,
            'run_immediately': run_immediately,
            'last_run': None,
            'next_run': None,
            'running': False,
            'error_count': 0,
            'success_count': 0
        }
        self.logger.info(f"Added background task '{name}' with {interval_seconds}s interval")

    async def refresh_once(self) -> int:
        """Refresh quotes and run the watchlist monitors once. Returns the number of alerts."""
        with timed_operation(self.logger, "quote refresh") as timer:
            raised = await self.trading_service.refresh_quotes()
        self.last_refresh_seconds = timer.duration_seconds
        self.last_alert_count = sum(len(alerts) for alerts in raised.values())
        return self.last_alert_count

    def start(self):
        """Start the background loop."""
        if self.running:
            self.logger.warning("Quote refresh service is already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run_event_loop, daemon=True)
        self.thread.start()
        self.logger.info("Quote refresh service started")

    def stop(self):
        """Stop the background loop."""
        if not self.running:
            return

        self.running = False
        if self.loop and not self.loop.is_closed():
            asyncio.run_coroutine_threadsafe(self._shutdown(), self.loop)

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=5)

        self.logger.info("Quote refresh service stopped")

    def _run_event_loop(self):
        """Run the asyncio event loop in a separate thread."""
        try:
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)

            for name, task_info in self.tasks.items():
                self.loop.create_task(self._run_task(name, task_info))

            self.loop.run_forever()
        except Exception as e:
            self.logger.error(f"Error in quote refresh event loop: {e}")
        finally:
            if self.loop and not self.loop.is_closed():
                self.loop.close()

    async def _shutdown(self):
        """Cancel running tasks and stop the loop."""
        current = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks(self.loop) if not task.done() and task is not current]
        if tasks:
            self.logger.info(f"Cancelling {len(tasks)} running tasks")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        self.loop.stop()

    async def _execute(self, name: str, task_info: Dict[str, Any]):
        try:
            task_info['running'] = True
            task_info['last_run'] = datetime.now()
            start_time = time.time()

            await task_info['coro_func']()

            task_info['success_count'] += 1
            self.logger.info(
                f"Task '{name}' completed in {time.time() - start_time:.2f}s "
                f"(success: {task_info['success_count']}, errors: {task_info['error_count']})"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            task_info['error_count'] += 1
            self.logger.error(
                f"Error in background task '{name}': {e} "
                f"(success: {task_info['success_count']}, errors: {task_info['error_count']})"
            )
        finally:
            task_info['running'] = False
            task_info['next_run'] = datetime.now() + timedelta(seconds=task_info['interval_seconds'])

    async def _run_task(self, name: str, task_info: Dict[str, Any]):
        """Run a single periodic task until the service stops."""
        interval_seconds = task_info['interval_seconds']
        initial_delay = 0 if task_info['run_immediately'] else interval_seconds
        task_info['next_run'] = datetime.now() + timedelta(seconds=initial_delay)
        self.logger.info(f"Scheduled task '{name}' - next run: {task_info['next_run']}")

        try:
            if initial_delay > 0:
                await asyncio.sleep(initial_delay)

            while self.running:
                await self._execute(name, task_info)
                if self.running:
                    await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            self.logger.info(f"Task '{name}' was cancelled")

    def get_task_status(self) -> Dict[str, Any]:
        """Get status of all background tasks."""
        status = {
            'service_running': self.running,
            'last_alert_count': self.last_alert_count,
            'last_refresh_seconds': self.last_refresh_seconds,
            'tasks': {}
        }

        for name, task_info in self.tasks.items():
            status['tasks'][name] = {
                'interval_seconds': task_info['interval_seconds'],
                'last_run': task_info['last_run'].isoformat() if task_info['last_run'] else None,
                'next_run': task_info['next_run'].isoformat() if task_info['next_run'] else None,
                'currently_running': task_info['running'],
                'success_count': task_info['success_count'],
                'error_count': task_info['error_count']
            }

        return status

    def force_run_task(self, task_name: str = REFRESH_TASK) -> bool:
        """Schedule immediate execution of a task on the running loop."""
        if not self.running or not self.loop:
            self.logger.error("Quote refresh service is not running")
            return False

        if task_name not in self.tasks:
            self.logger.error(f"Task '{task_name}' not found")
            return False

        task_info = self.tasks[task_name]
        if task_info['running']:
            self.logger.warning(f"Task '{task_name}' is already running")
            return False

        asyncio.run_coroutine_threadsafe(self._execute(task_name, task_info), self.loop)
        self.logger.info(f"Scheduled immediate execution of task '{task_name}'")
        return True
