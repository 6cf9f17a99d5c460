"""Toggl report dashboard backend."""

import logging

__version__ = "0.1.0"

# Custom TRACE level, available to every module logger
logging.TRACE = 5
logging.addLevelName(logging.TRACE, "TRACE")


def _trace(self, msg, *args, **kwargs):
    if self.isEnabledFor(logging.TRACE):
        self._log(logging.TRACE, msg, args, **kwargs)


logging.Logger.trace = _trace
