"""アプリケーションのエントリポイント"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from lmsbridge.application.handlers import (
    ChannelSyncTaskHandler,
    ResyncTaskHandler,
    UnenrolUserTaskHandler,
    UserSyncTaskHandler,
)
from lmsbridge.application.services import (
    ChannelLocks,
    EventRouter,
    MembershipSynchronizer,
)
from lmsbridge.application.use_cases import ChannelProvisioner
from lmsbridge.config import ConfigError, LoggingConfig, load_config
from lmsbridge.infrastructure.http import BridgeServer
from lmsbridge.infrastructure.mattermost import (
    MattermostChannelService,
    MattermostClient,
)
from lmsbridge.infrastructure.moodle import MoodleGateway
from lmsbridge.infrastructure.persistence import (
    DatabaseManager,
    SQLiteChannelBindingRepository,
    SQLiteIdentityMappingRepository,
)
from lmsbridge.infrastructure.tasks import (
    InMemoryTaskQueue,
    TaskDispatcher,
    TaskLoop,
    TaskScheduler,
)

# Default logging for early startup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "LMSBRIDGE_CONFIG"


def configure_logging(config: LoggingConfig | None) -> None:
    """Configure logging based on config.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    if config is None:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    if root_logger.handlers:
        formatter = logging.Formatter(config.format)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)

    for logger_name, logger_level in (config.loggers or {}).items():
        logging.getLogger(logger_name).setLevel(
            getattr(logging, logger_level.upper(), logging.INFO)
        )
        logger.debug("Set logger '%s' to level %s", logger_name, logger_level.upper())


async def main() -> None:
    """アプリケーションを起動する"""
    config_path = Path(os.environ.get(CONFIG_PATH_ENV, "config.yaml"))
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        logger.error("%s not found", config_path)
        sys.exit(1)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.logging)

    # Initialize database
    db_manager = DatabaseManager(config.database.path)
    await db_manager.create_tables()

    identity_repository = SQLiteIdentityMappingRepository(db_manager.get_session)
    binding_repository = SQLiteChannelBindingRepository(db_manager.get_session)

    try:
        mattermost_client = MattermostClient(config.mattermost)
    except ConfigError as e:
        logger.error("Invalid Mattermost configuration: %s", e)
        sys.exit(1)
    remote = MattermostChannelService(
        mattermost_client, identity_repository, config.mattermost
    )
    lms = MoodleGateway(config.moodle)

    # Build services
    queue = InMemoryTaskQueue()
    synchronizer = MembershipSynchronizer(
        remote=remote,
        lms=lms,
        binding_repository=binding_repository,
        identity_repository=identity_repository,
        locks=ChannelLocks(),
    )
    provisioner = ChannelProvisioner(
        remote=remote,
        lms=lms,
        binding_repository=binding_repository,
        synchronizer=synchronizer,
        queue=queue,
        naming=config.naming,
        roles=config.roles,
        moodle=config.moodle,
    )
    router = EventRouter(
        synchronizer=synchronizer,
        provisioner=provisioner,
        remote=remote,
        queue=queue,
        background=config.background,
    )

    # Task infrastructure
    dispatcher = TaskDispatcher()
    dispatcher.register_handler(ChannelSyncTaskHandler(synchronizer).handle)
    dispatcher.register_handler(UserSyncTaskHandler(synchronizer).handle)
    dispatcher.register_handler(UnenrolUserTaskHandler(synchronizer, remote).handle)
    dispatcher.register_handler(ResyncTaskHandler(synchronizer).handle)
    task_loop = TaskLoop(queue, dispatcher)
    scheduler = TaskScheduler(queue, config.sync.resync_interval_seconds)

    server = BridgeServer(
        task_loop=task_loop,
        task_scheduler=scheduler,
        db_manager=db_manager,
        router=router,
        remote=remote,
        binding_repository=binding_repository,
        host=config.server.host,
        port=config.server.port,
        token=config.server.token,
    )

    logger.info("Starting task loop and scheduler...")
    loop_task = asyncio.create_task(task_loop.start())
    scheduler_task = asyncio.create_task(scheduler.start())
    await server.start()

    # Setup signal handlers for graceful shutdown
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def shutdown_handler() -> None:
        logger.info("Received shutdown signal...")
        stop_event.set()

    loop.add_signal_handler(signal.SIGINT, shutdown_handler)
    loop.add_signal_handler(signal.SIGTERM, shutdown_handler)

    await stop_event.wait()

    logger.info("Shutting down...")
    await server.stop()
    await scheduler.stop()
    await task_loop.stop()
    await asyncio.gather(loop_task, scheduler_task, return_exceptions=True)

    await mattermost_client.close()
    await lms.close()
    await db_manager.close()

    logger.info("Shutdown complete")


def run() -> None:
    """Run the async main function."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    run()
