from .authorization import AuthorizationCache, TrustCachePolicy
from .checks import CheckRunner, run_command
from .pipeline import CheckPipeline
from .publisher import ResultPublisher
from .run_queue import RunQueue

__all__ = [
    "AuthorizationCache",
    "CheckPipeline",
    "CheckRunner",
    "ResultPublisher",
    "RunQueue",
    "TrustCachePolicy",
    "run_command",
]
