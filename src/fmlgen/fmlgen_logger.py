"""
Multi-level logger for the fmlgen framework.
"""

import logging

LOG_FORMAT = "%(levelname)s: %(message)s"


class FmlLogger:
    """
    Logger class
    """

    def __init__(self, verbose: bool = False) -> None:
        self.logger = logging.getLogger("fmlgen")
        self.set_verbose(verbose)

    def set_verbose(self, verbose: bool) -> None:
        """
        Switch between INFO and DEBUG output.
        """
        self.logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    def log(self, message: str, level: int) -> None:
        """
        Log the message at the given level
        """
        self.logger.log(level=level, msg=message)
