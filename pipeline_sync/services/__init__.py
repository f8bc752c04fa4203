"""Business logic services package."""

from pipeline_sync.services.build_monitor import BuildMonitor, MonitoringFailure, MonitorTimings
from pipeline_sync.services.container import ServiceContainer
from pipeline_sync.services.coordinator import PipelineCoordinator, SyncResult
from pipeline_sync.services.errors import (
    BoardClientError,
    CIClientError,
    CollaboratorUnavailable,
    ContainerRuntimeError,
    GitHubClientError,
)
from pipeline_sync.services.identity import IdentityUnresolvable, resolve_identity
from pipeline_sync.services.normalizer import MalformedPayload, WebhookNormalizer
from pipeline_sync.services.reconciler import BoardReconciler, ReconciliationFailure
from pipeline_sync.services.redis_client import RedisClient, RedisConnectionError

__all__ = [
    'BuildMonitor',
    'MonitoringFailure',
    'MonitorTimings',
    'ServiceContainer',
    'PipelineCoordinator',
    'SyncResult',
    'CollaboratorUnavailable',
    'GitHubClientError',
    'CIClientError',
    'BoardClientError',
    'ContainerRuntimeError',
    'IdentityUnresolvable',
    'resolve_identity',
    'MalformedPayload',
    'WebhookNormalizer',
    'BoardReconciler',
    'ReconciliationFailure',
    'RedisClient',
    'RedisConnectionError',
]
