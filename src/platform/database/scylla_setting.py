"""
ScyllaDB connection management

Sessions are kept per event loop (pytest creates one loop per test), owned by a
``ScyllaSessionManager`` instance that the DI container creates and shuts down.

Usage:
    session = await manager.get_session()
    rows = await anyio.to_thread.run_sync(partial(session.execute, query, params))
"""

import asyncio
from functools import partial

import anyio
from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, Session
from cassandra.policies import ExponentialReconnectionPolicy, WhiteListRoundRobinPolicy
from cassandra.query import SimpleStatement

from src.platform.config.core_setting import Settings
from src.platform.logging.loguru_io import Logger


class ScyllaSessionManager:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._sessions: dict[int, Session] = {}

    @property
    def keyspace(self) -> str:
        return self._settings.SCYLLA_KEYSPACE

    def _create_cluster(self) -> Cluster:
        """
        Cluster with:
        - WhiteList policy: only the configured contact points (no Docker-internal IPs)
        - LOCAL_QUORUM default profile; lightweight transactions use SERIAL on top of it
        """
        settings = self._settings
        load_balancing_policy = WhiteListRoundRobinPolicy(settings.SCYLLA_CONTACT_POINTS)
        auth_provider = PlainTextAuthProvider(
            username=settings.SCYLLA_USERNAME,
            password=settings.SCYLLA_PASSWORD.get_secret_value(),
        )
        default_profile = ExecutionProfile(
            load_balancing_policy=load_balancing_policy,
            consistency_level=ConsistencyLevel.LOCAL_QUORUM,
            serial_consistency_level=ConsistencyLevel.LOCAL_SERIAL,
            request_timeout=settings.SCYLLA_REQUEST_TIMEOUT,
        )
        return Cluster(
            contact_points=settings.SCYLLA_CONTACT_POINTS,
            port=settings.SCYLLA_PORT,
            auth_provider=auth_provider,
            protocol_version=4,
            compression=True,
            executor_threads=8,
            connect_timeout=settings.SCYLLA_CONNECT_TIMEOUT,
            control_connection_timeout=settings.SCYLLA_CONTROL_TIMEOUT,
            reconnection_policy=ExponentialReconnectionPolicy(base_delay=1, max_delay=30),
            execution_profiles={EXEC_PROFILE_DEFAULT: default_profile},
        )

    async def get_session(self) -> Session:
        loop_id = id(asyncio.get_running_loop())
        session = self._sessions.get(loop_id)
        if session is not None:
            return session

        Logger.base.info(f'🔌 [ScyllaDB] Creating new session (loop={loop_id})...')
        cluster = self._create_cluster()
        session = await anyio.to_thread.run_sync(cluster.connect, self.keyspace)
        self._sessions[loop_id] = session
        Logger.base.info(f'✅ [ScyllaDB] Session created (loop={loop_id}, keyspace={self.keyspace})')
        return session

    async def create_keyspace(self, *, replication_factor: int = 1) -> None:
        cluster = self._create_cluster()
        try:
            session = await anyio.to_thread.run_sync(cluster.connect)
            await anyio.to_thread.run_sync(
                partial(
                    session.execute,
                    f'CREATE KEYSPACE IF NOT EXISTS {self.keyspace} WITH replication = '
                    f"{{'class': 'SimpleStrategy', 'replication_factor': {replication_factor}}}",
                )
            )
        finally:
            await anyio.to_thread.run_sync(cluster.shutdown)

    async def warmup(self) -> bool:
        try:
            session = await self.get_session()
            query = SimpleStatement(
                'SELECT * FROM system.local', consistency_level=ConsistencyLevel.ONE
            )
            await anyio.to_thread.run_sync(session.execute, query)
            Logger.base.info('✅ [ScyllaDB Warmup] Completed: connections ready')
            return True
        except Exception as e:
            Logger.base.error(f'❌ [ScyllaDB Warmup] Failed: {e}')
            return False

    async def close_all(self) -> None:
        for loop_id, session in list(self._sessions.items()):
            try:
                await anyio.to_thread.run_sync(session.cluster.shutdown)
                Logger.base.info(f'🔌 [ScyllaDB] Session closed (loop={loop_id})')
            except Exception as e:
                Logger.base.error(f'❌ [ScyllaDB] Error closing session (loop={loop_id}): {e}')
        self._sessions.clear()
