"""AWS Lambda handlers for protest event ingestion and duplicate cleanup."""
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from processor.event_processor import EventProcessor
from processor.geocoder import Geocoder
from processor.locales import ConfigurationError
from scraper.base_adapter import DEFAULT_USER_AGENT
from scraper.registry import build_adapters
from storage.duplicate_cleanup import DuplicateCleaner
from storage.dynamodb_manager import DynamoDBManager
from storage.reconciler import EventReconciler

# Attributes every LogRecord has; anything else came in through `extra`
RESERVED_RECORD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime'
}

TRUE_VALUES = ('1', 'true', 'yes', 'on')


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including fields passed via extra."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in RESERVED_RECORD_ATTRS and not key.startswith('_'):
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class RunConfig:
    """Settings for one ingestion or cleanup run."""
    table_name: str = 'protest-events'
    log_level: str = 'INFO'
    days_ahead: int = 40
    timeout_seconds: int = 30
    geocode_cache_file: str = 'geocode-cache.json'
    enabled_sources: Optional[List[str]] = None
    user_agent: str = DEFAULT_USER_AGENT
    dry_run: bool = False
    region_name: Optional[str] = None


def _flag(value: Any) -> bool:
    """Truthiness of a flag that may arrive as a string ("false", "0", ...)."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def parse_source_list(raw: Optional[str]) -> Optional[List[str]]:
    """Split a comma separated source id list; empty means all enabled sources."""
    if not raw:
        return None
    sources = [part.strip() for part in raw.split(',') if part.strip()]
    return sources or None


def load_config(env: Optional[Mapping[str, str]] = None) -> RunConfig:
    """
    Read run configuration from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Returns:
        RunConfig

    Raises:
        ConfigurationError: If a numeric setting is not a positive integer
    """
    if env is None:
        env = os.environ

    return RunConfig(
        table_name=env.get('TABLE_NAME', 'protest-events'),
        log_level=env.get('LOG_LEVEL', 'INFO'),
        days_ahead=_int_setting(env, 'DAYS_AHEAD', 40),
        timeout_seconds=_int_setting(env, 'TIMEOUT_SECONDS', 30),
        geocode_cache_file=env.get('GEOCODE_CACHE_FILE', 'geocode-cache.json'),
        enabled_sources=parse_source_list(env.get('ENABLED_SOURCES')),
        user_agent=env.get('USER_AGENT') or DEFAULT_USER_AGENT,
        dry_run=_flag(env.get('DRY_RUN', 'false')),
        region_name=env.get('AWS_REGION') or None,
    )


def run_ingestion(config: RunConfig) -> Dict[str, Any]:
    """
    Run one ingestion: fetch all sources, dedup, geocode, reconcile.

    Args:
        config: Run configuration

    Returns:
        Summary statistics

    Raises:
        ConfigurationError: If the source selection is invalid
    """
    logger = logging.getLogger(__name__)
    start_time = time.time()

    adapters = build_adapters(
        timeout=config.timeout_seconds,
        user_agent=config.user_agent,
        source_ids=config.enabled_sources
    )
    processor = EventProcessor()
    geocoder = Geocoder(
        cache_file=config.geocode_cache_file,
        user_agent=config.user_agent
    )
    reconciler = EventReconciler(
        DynamoDBManager(table_name=config.table_name, region_name=config.region_name)
    )

    raw_events = []
    source_counts = {}
    for adapter in adapters:
        events = adapter.fetch_events(days_ahead=config.days_ahead)
        source_counts[adapter.source_id] = len(events)
        raw_events.extend(events)
    logger.info(
        f"Fetched {len(raw_events)} raw events from {len(adapters)} sources",
        extra={'source_counts': source_counts}
    )

    processed_events = processor.process_events(raw_events, config.days_ahead)
    geocode_stats = geocoder.geocode_events(processed_events)
    sync_result = reconciler.sync_events(processed_events)

    duration = time.time() - start_time
    return {
        'raw_events_fetched': len(raw_events),
        'events_processed': len(processed_events),
        'source_counts': source_counts,
        'geocoding': geocode_stats,
        **sync_result.to_dict(),
        'range_days': config.days_ahead,
        'duration_seconds': round(duration, 2),
    }


def run_cleanup(config: RunConfig, dry_run: Optional[bool] = None) -> Dict[str, Any]:
    """
    Run one duplicate cleanup pass.

    Args:
        config: Run configuration
        dry_run: Overrides config.dry_run when given

    Returns:
        Cleanup summary
    """
    if dry_run is None:
        dry_run = config.dry_run
    store = DynamoDBManager(table_name=config.table_name, region_name=config.region_name)
    return DuplicateCleaner(store).cleanup(dry_run=dry_run).to_dict()


def _error_response(message: str, error: Exception, start_time: float) -> Dict[str, Any]:
    duration = time.time() - start_time
    return {
        'statusCode': 500,
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(duration, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for protest event ingestion.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    start_time = time.time()
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    try:
        config = load_config()
        logger.info(
            "Ingestion started",
            extra={
                'table_name': config.table_name,
                'days_ahead': config.days_ahead,
                'timeout_seconds': config.timeout_seconds,
                'sources': config.enabled_sources or 'all'
            }
        )

        statistics = run_ingestion(config)

        logger.info("Ingestion completed successfully", extra=statistics)
        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Ingestion completed successfully',
                'statistics': statistics
            })
        }

    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}", extra={'error_type': type(e).__name__})
        return _error_response('Invalid configuration', e, start_time)

    except Exception as e:
        logger.error(
            f"Ingestion failed: {e}",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response('Ingestion failed', e, start_time)


def cleanup_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for the duplicate cleanup maintenance pass.

    A "dry_run" flag (boolean or string) in the event payload overrides the DRY_RUN
    environment variable.

    Args:
        event: Invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and cleanup summary
    """
    start_time = time.time()
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    try:
        config = load_config()
        dry_run = None
        if isinstance(event, dict) and 'dry_run' in event:
            dry_run = _flag(event['dry_run'])

        summary = run_cleanup(config, dry_run=dry_run)
        summary['duration_seconds'] = round(time.time() - start_time, 2)

        logger.info("Cleanup completed successfully", extra=summary)
        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Cleanup completed successfully',
                'statistics': summary
            })
        }

    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}", extra={'error_type': type(e).__name__})
        return _error_response('Invalid configuration', e, start_time)

    except Exception as e:
        logger.error(
            f"Cleanup failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response('Cleanup failed', e, start_time)
