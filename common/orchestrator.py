# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Sequential stage runner for the bootstrap process.

Stages run strictly in the order they were added. The first failure
ends the process with that failure's exit status.
"""

import logging
import subprocess
import sys
from typing import Any, Callable, Dict, List, Optional

from common.exceptions import BootstrapError

SUCCESS_MARKER = "✨ BOOTSTRAP COMPLETE"
FAILURE_MARKER = "🔥 BOOTSTRAP FAILED"


def exit_status_for(error: BaseException) -> int:
    """
    Maps a stage failure to the process exit status: the failing command's
    own status when known, otherwise 1.
    """
    returncode: Optional[int] = None
    if isinstance(error, BootstrapError):
        returncode = error.returncode
        if returncode is None and error.original_error is not None:
            return exit_status_for(error.original_error)
    elif isinstance(error, subprocess.CalledProcessError):
        returncode = error.returncode
    if not returncode or returncode < 0:
        return 1
    return returncode


class Orchestrator:
    """Runs the bootstrap stages in sequence and reports the outcome."""

    def __init__(
        self,
        app_settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the Orchestrator.

        Args:
            app_settings: The bootstrap settings handed to every stage.
            orchestrator_logger: An optional logger instance.
        """
        self.app_settings = app_settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.tasks: List[Dict[str, Any]] = []
        # Shared context passed to every stage; holds each stage's result.
        self.context: Dict[str, Any] = {}

    def add_task(
        self,
        name: str,
        func: Callable,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ):
        """
        Adds a stage to the execution list.

        Args:
            name: Stage name used in progress and failure messages.
            func: Callable run for the stage. It receives `context` and
                `app_settings` as keyword arguments.
            args: Positional arguments for the callable.
            kwargs: Keyword arguments for the callable.
        """
        self.tasks.append({
            "name": name,
            "func": func,
            "args": args or [],
            "kwargs": kwargs or {},
        })
        self.logger.debug(f"Stage '{name}' added to the queue.")

    def run(self) -> bool:
        """
        Executes all added stages in sequence.

        Returns:
            True once every stage has completed. A failure never
            returns: the process exits with the failure's status.
        """
        self.logger.info("Bootstrap sequence started.")
        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            self.logger.info(
                f"--- Stage {i + 1}/{len(self.tasks)}: '{task_name}' ---"
            )

            try:
                task["kwargs"]["context"] = self.context
                task["kwargs"]["app_settings"] = self.app_settings

                result = task["func"](*task["args"], **task["kwargs"])
                self.context[f"{task_name}_result"] = result

                self.logger.info(f"✅ Stage '{task_name}' completed.")

            except Exception as e:
                self.fail(task_name, e)

        self.logger.info(
            f"{SUCCESS_MARKER}: all {len(self.tasks)} stages finished successfully."
        )
        return True

    def fail(self, task_name: str, error: BaseException) -> None:
        """Logs the failure marker and exits with the failure's status."""
        stage_name = task_name
        if isinstance(error, BootstrapError) and error.stage:
            stage_name = error.stage
        returncode = exit_status_for(error)
        self.logger.critical(
            f"{FAILURE_MARKER} at stage '{stage_name}' (exit status {returncode}): {error}",
            exc_info=not isinstance(error, BootstrapError),
        )
        sys.exit(returncode)
