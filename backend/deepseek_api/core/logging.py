import logging
import sys
from typing import Optional

def setup_logger(level: Optional[str] = None):
    logger = logging.getLogger('deepseek_api')
    # setup_logger is called from every module; attach the handler only once
    if not logger.handlers:
        formatter = logging.Formatter('%(levelname)s - [%(asctime)s] - %(message)s', datefmt='%d/%b/%Y %H:%M:%S')
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    if level:
        logger.setLevel(level.upper())
    return logger
