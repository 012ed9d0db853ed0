import logging

import pytest


@pytest.fixture(autouse=True)
def reset_sampler_logger():
    """Drop the handlers the CLI installs so they do not leak between tests."""
    yield
    logger = logging.getLogger("extant_sampler")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
