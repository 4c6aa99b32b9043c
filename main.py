# main.py
"""Main entry point for the Earned Visibility Index engine."""
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.config.settings import Settings
from src.engine import EVIEngine, ScoringPipeline, SnapshotComputed, SnapshotEventBus, TickScheduler
from src.providers import JsonFileSignalProvider
from src.storage import ProfileStore, SnapshotStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

CONFIG_PATH = Path("config/settings.yaml")


def create_data_dirs(settings: Settings) -> None:
    """Create required data directories if they don't exist."""
    data_dir = Path(settings.storage.data_dir)
    dirs = [
        data_dir / settings.storage.snapshots_subdir,
        data_dir / settings.storage.profiles_subdir,
        Path(settings.providers.signals_dir),
    ]

    for dir_path in dirs:
        dir_path.mkdir(parents=True, exist_ok=True)

    logger.info("Data directories verified")


def print_startup_banner(settings: Settings) -> None:
    """Print system startup banner."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name}")
    logger.info(f"Version: {settings.system.version}")
    logger.info(f"Orgs: {', '.join(settings.orgs) or '(none)'}")
    logger.info("=" * 60)


def load_and_validate_config(config_path: Path = CONFIG_PATH) -> Settings:
    """Load and validate configuration.

    Returns:
        Settings object loaded from YAML.

    Raises:
        SystemExit: If the config file is missing or fails validation.
    """
    load_dotenv()
    logger.info("✓ Loaded environment variables")

    if not config_path.exists():
        logger.error(f"{config_path} not found")
        sys.exit(1)

    try:
        settings = Settings.from_yaml(config_path)
        logger.info(f"✓ Settings loaded from {config_path}")
    except Exception as e:
        logger.error(f"Failed to parse {config_path}: {e}")
        sys.exit(1)

    create_data_dirs(settings)

    return settings


def log_snapshot(event: SnapshotComputed) -> None:
    """Default SnapshotComputed consumer."""
    change = event.change
    if change is not None and abs(change) >= 5.0:
        logger.info(f"{event.org_id}: EVI moved {change:+.1f} to {event.snapshot.evi:.1f}")


def build_engine(settings: Settings) -> tuple[EVIEngine, TickScheduler, JsonFileSignalProvider]:
    """Wire stores, provider, pipeline, engine and scheduler.

    Args:
        settings: Loaded settings object.

    Returns:
        Tuple of (EVIEngine, TickScheduler, signal provider).
    """
    data_dir = Path(settings.storage.data_dir)
    snapshot_store = SnapshotStore(data_dir / settings.storage.snapshots_subdir)
    profile_store = ProfileStore(data_dir / settings.storage.profiles_subdir)
    provider = JsonFileSignalProvider(Path(settings.providers.signals_dir))

    event_bus = SnapshotEventBus()
    event_bus.add_callback(log_snapshot)

    engine = EVIEngine(
        pipeline=ScoringPipeline(settings.evi),
        snapshot_store=snapshot_store,
        profile_store=profile_store,
        provider=provider,
        event_bus=event_bus,
    )
    logger.info("✓ EVIEngine initialized")

    org_ids = settings.orgs or profile_store.list_orgs()
    scheduler = TickScheduler(engine, org_ids, settings.scheduler)
    logger.info(f"✓ TickScheduler initialized ({len(org_ids)} orgs)")

    return engine, scheduler, provider


async def main() -> None:
    """Run the scheduler until interrupted."""
    settings = load_and_validate_config()
    print_startup_banner(settings)

    engine, scheduler, provider = build_engine(settings)
    await provider.connect()

    if not settings.scheduler.enabled:
        logger.info("Scheduler disabled, running a single tick cycle")
        await scheduler.run_once()
        await provider.disconnect()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    await scheduler.start()
    try:
        await stop_event.wait()
    finally:
        await scheduler.stop()
        await provider.disconnect()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
