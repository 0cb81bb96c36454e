# common/host_state.py
# -*- coding: utf-8 -*-
from enum import Enum


class HostState(str, Enum):
    """Result of a precondition query against the host."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    # Installed but not fully set up, e.g. a binary without its enabled service.
    PARTIAL = "PARTIAL"
