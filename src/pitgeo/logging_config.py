"""
logging_config.py

Set up the ``pitgeo`` namespace logger for applications embedding the
engine. Library modules only ever call ``logging.getLogger(__name__)``.
"""
from typing import Optional
import logging
import sys


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the 'pitgeo' logger with a console handler and optional file.

    Existing handlers are cleared first so repeated calls do not duplicate
    output.
    """
    log = logging.getLogger('pitgeo')
    log.setLevel(level)
    if log.hasHandlers():
        log.handlers.clear()

    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s', datefmt='%H:%M:%S')

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(level)
    sh.setFormatter(formatter)
    log.addHandler(sh)

    if log_file:
        # delay=True: the file is not opened until the first record
        fh = logging.FileHandler(log_file, mode='w', encoding='utf-8', delay=True)
        fh.setLevel(level)
        fh.setFormatter(formatter)
        log.addHandler(fh)

    # quiet noisy dependencies
    logging.getLogger('pyproj').setLevel(logging.WARNING)
    log.debug('Logging initialized (level=%s, file=%s)', logging.getLevelName(level), log_file)
    return log
