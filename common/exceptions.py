# common/exceptions.py
# -*- coding: utf-8 -*-
"""
Exception raised by bootstrap stages for fatal conditions.
"""

from typing import Optional


class BootstrapError(Exception):
    """
    A fatal bootstrap failure.

    Attributes:
        stage: Name of the stage (or sub-step) that failed.
        returncode: Exit status of the external process that triggered the
            failure, when there was one.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        returncode: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.stage = stage
        self.returncode = returncode
        self.original_error = original_error
        super().__init__(message)
