"""
Service context for log lines.

Identifies which process wrote a line when several registration workers
(API pods, promotion sweepers, scanners) ship to the same log sink.
"""

from functools import lru_cache
import os
import socket


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'registration')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')
    host = os.getenv('HOSTNAME') or socket.gethostname()
    return f'{service_name}@{deploy_env}:{host[:12]}:{os.getpid()}'
