"""Log what the AI module reports.

    python -m fieldview.monitor --host=192.168.1.20 --port=5000
"""

import logging
import threading

import configuronic as cfn

from fieldview import commands
from fieldview.service import DataService
from fieldview.utils.logging import init_logging
from fieldview.wire import DataResponse

logger = logging.getLogger(__name__)


def _summary(response: DataResponse) -> str:
    parts = []
    if response.position is not None:
        p = response.position
        parts.append(f'pos=({p.x}, {p.y}, {p.z}) connected={p.connected}')
    if response.detections:
        parts.append(f'detections={len(response.detections)}')
    if response.stats is not None:
        parts.append(f'fps={response.stats.fps} cpu={response.stats.cpu_temp}')
    if response.command is not None:
        parts.append(f'command={response.command!r}')
    return ' '.join(parts) or 'empty snapshot'


@cfn.config(host='127.0.0.1', port=5000, command=commands.GET_DATA, polling_interval=1.0, log_responses=False)
def main(host: str, port: int, command: str | None, polling_interval: float, log_responses: bool):
    """Connect to the module, poll it with ``command`` and log every snapshot until interrupted."""
    service = DataService(host, port, polling_interval=polling_interval, log_responses=log_responses)
    service.command = command

    closed = threading.Event()
    service.on('message', lambda response: logger.info(_summary(response)))
    service.on('camera_offset', lambda offset: logger.info(f'Camera offset: {offset}'))
    service.on('gps_offset', lambda offset: logger.info(f'GPS offset: {offset}'))
    service.on('color_correction', lambda correction: logger.info(f'Color correction: {correction}'))
    service.on('closed', closed.set)

    with service:
        try:
            closed.wait()
        except KeyboardInterrupt:
            logger.info('Monitor stopped by user')


if __name__ == '__main__':
    init_logging(logging.INFO)
    cfn.cli(main)
