from typing import Callable, Optional

import signal
import logging

__all__ = (
    'install_stop_handlers',
)

logger = logging.getLogger(__name__)

def install_stop_handlers(stop: Callable[[], None]) -> None:
    """
    Calls `stop` on SIGTERM (and SIGBREAK on Windows). SIGINT is left alone,
    it surfaces as `KeyboardInterrupt`.
    """
    def handle_stop_signal(signum: int, frame) -> None:
        signame: str
        try:
            signame = signal.Signals(signum).name
        except ValueError:
            signame = f'signal {signum}'
        logger.info(f'Shutting down on {signame}...')
        stop()

    signal.signal(signal.SIGTERM, handle_stop_signal)

    SIGBREAK: Optional[int] = getattr(signal, 'SIGBREAK', None)
    if SIGBREAK is not None:
        signal.signal(SIGBREAK, handle_stop_signal)
