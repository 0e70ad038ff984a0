"""
Service context for log lines.

Identifies which process wrote a line when several replicas share a log sink.
"""

import os
from functools import lru_cache

from src.platform.config.core_setting import settings


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'reservation')
    deploy_env = settings.DEPLOY_ENV
    hostname = os.getenv('HOSTNAME', '')
    instance = hostname[:12] if hostname else str(os.getpid())
    return f'{service_name}@{deploy_env}:{instance}'
