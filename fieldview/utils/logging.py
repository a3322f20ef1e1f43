import logging
import os

import coloredlogs

# Frame-level chatter from the websocket library
NOISY_LOGGERS = ('websockets.client', 'websockets.server', 'websockets.protocol')


def init_logging(level: str | int = 'INFO', *, wire_level: str | int = 'WARNING'):
    """Configure console logging for fieldview processes.

    ``LOG_LEVEL`` in the environment overrides ``level``. Records carry the thread name,
    since the service receives and polls on background threads. The websockets loggers
    are held at ``wire_level`` so DEBUG output stays readable.
    """
    if isinstance(level, int):
        level = logging.getLevelName(level)

    log_level = os.getenv('LOG_LEVEL', level).upper()
    fmt = '%(asctime)s.%(msecs)03d [%(levelname)s] %(threadName)s (%(name)s) %(message)s'
    datefmt = '%H:%M:%S'
    logging.basicConfig(level=log_level, format=fmt, datefmt=datefmt, force=True)
    coloredlogs.install(level=log_level, fmt=fmt, datefmt=datefmt)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(wire_level)
