"""
Command Line Interface for photovault.
"""

import argparse
import logging
import os
import threading
from contextlib import ExitStack
from typing import List, Optional, Tuple

from .blob_placer import BlobPlacer, LocalBlobPlacer
from .catalog import PhotoCatalog
from .config import AppConfig, S3Config, StorageConfig, StoreConfig
from .errors import PhotoVaultError
from .ingest_pipeline import IngestPipeline
from .metadata_store import InMemoryMetadataStore, MetadataStore
from .photo_record import UploadFile
from .thumbnail_generator import ThumbnailGenerator
from .upload_coordinator import STATUS_SUCCESS, UploadCoordinator


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('mysql.connector').setLevel(logging.WARNING)

    return logging.getLogger('photovault')


def get_storage_config(args: argparse.Namespace) -> StorageConfig:
    """Get storage configuration from environment and CLI overrides."""
    config = StorageConfig.from_env()
    if getattr(args, 'root', None):
        config.root_path = args.root
    if getattr(args, 'backend', None):
        config.backend = args.backend
    return config


def get_store_config(args: argparse.Namespace) -> StoreConfig:
    """Get metadata store configuration from environment and CLI overrides."""
    config = StoreConfig.from_env()
    if getattr(args, 'store', None):
        config.kind = args.store
    return config


def get_app_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_env()
    if getattr(args, 'concurrency', None):
        config.concurrency = args.concurrency
    if getattr(args, 'port', None):
        config.port = args.port
    return config


def build_placer(config: StorageConfig, logger: logging.Logger) -> BlobPlacer:
    if config.backend == 's3':
        from .s3_blob_placer import S3BlobPlacer

        s3_config = S3Config.from_env()
        errors = s3_config.validate()
        if errors:
            for error in errors:
                logger.error(error)
            raise ValueError("S3 configuration invalid")
        return S3BlobPlacer(s3_config, staging_dir=os.path.join(config.root_path, '.staging'), logger=logger)
    return LocalBlobPlacer(config.root_path, logger=logger)


def build_store(config: StoreConfig, logger: logging.Logger) -> MetadataStore:
    if config.kind == 'memory':
        logger.warning("Using in-memory metadata store; records are lost on exit")
        return InMemoryMetadataStore(logger)

    from .mysql_store import MySQLMetadataStore

    store = MySQLMetadataStore(config, logger)
    store.connect()
    store.create_tables()
    return store


def build_services(
    args: argparse.Namespace,
    logger: logging.Logger
) -> Tuple[PhotoCatalog, UploadCoordinator, AppConfig]:
    """
    Wire store, placer, pipeline and coordinator from configuration.

    Raises:
        ValueError: configuration invalid
    """
    storage_config = get_storage_config(args)
    store_config = get_store_config(args)
    app_config = get_app_config(args)

    errors = storage_config.validate() + store_config.validate() + app_config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("Configuration invalid")

    placer = build_placer(storage_config, logger)
    store = build_store(store_config, logger)
    pipeline = IngestPipeline(
        store=store,
        placer=placer,
        thumbnail_generator=ThumbnailGenerator(app_config.thumbnail_size, logger=logger),
        logger=logger,
    )
    coordinator = UploadCoordinator(pipeline, concurrency=app_config.concurrency, logger=logger)
    return PhotoCatalog(store, placer, logger), coordinator, app_config


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage and store configuration arguments to a parser."""
    group = parser.add_argument_group('Storage')
    group.add_argument('--root', metavar='PATH', help='Override PHOTOVAULT_ROOT')
    group.add_argument('--backend', choices=StorageConfig.BACKENDS, help='Override PHOTOVAULT_BACKEND')
    group.add_argument('--store', choices=StoreConfig.KINDS, help='Override PHOTOVAULT_STORE')


def add_page_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--last-id', help='Cursor: return photos older than this id')
    parser.add_argument('--limit', type=int, default=50, help='Page size (default: 50)')


def print_records(records) -> None:
    for record in records:
        print(record.format_status())
    if not records:
        print("No photos found")


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP server."""
    logger = setup_logging(args.verbose)
    try:
        catalog, coordinator, app_config = build_services(args, logger)
    except ValueError:
        return 1

    from .server import create_app, run_server

    if isinstance(catalog.placer, LocalBlobPlacer):
        removed = catalog.placer.clean_staging()
        if removed:
            logger.info(f"Removed {removed} leftover staging files")

    app = create_app(catalog, coordinator, app_config, logger)
    try:
        run_server(app, app_config, logger)
    finally:
        catalog.store.close()
    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    """Ingest files from disk."""
    logger = setup_logging(args.verbose)
    try:
        catalog, coordinator, _ = build_services(args, logger)
    except ValueError:
        return 1

    cancel_event = threading.Event()
    try:
        with ExitStack() as stack:
            files = []
            for path in args.files:
                stream = stack.enter_context(open(path, 'rb'))
                files.append(UploadFile(
                    filename=os.path.basename(path),
                    content_type='',
                    size=os.path.getsize(path),
                    stream=stream,
                ))
            result = coordinator.upload(files, cancel_event)
    except OSError as e:
        logger.error(f"Cannot read upload: {e}")
        return 1
    except KeyboardInterrupt:
        cancel_event.set()
        logger.info("Interrupted by user")
        return 130
    finally:
        catalog.store.close()

    for outcome in result.outcomes:
        if outcome.success:
            print(f"  [OK] {outcome.filename} -> {outcome.record_id}")
        else:
            print(f"  [ERROR] {outcome.filename} -> {outcome.error}")
    print()
    print(f"Saved: {result.success_count}")
    print(f"Failed: {len(result.failed)}")
    print(f"Time: {result.elapsed_seconds:.1f}s")

    return 0 if result.status == STATUS_SUCCESS else 1


def _run_query(args: argparse.Namespace, query) -> int:
    logger = setup_logging(args.verbose)
    try:
        catalog, _, _ = build_services(args, logger)
    except ValueError:
        return 1
    try:
        records = query(catalog)
    except PhotoVaultError as e:
        logger.error(str(e))
        return 1
    finally:
        catalog.store.close()
    print_records(records)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    return _run_query(args, lambda catalog: catalog.list(args.last_id, args.limit))


def cmd_search(args: argparse.Namespace) -> int:
    return _run_query(args, lambda catalog: catalog.search_by_box(
        args.lat_min, args.lat_max, args.lon_min, args.lon_max,
        last_id=args.last_id, limit=args.limit,
    ))


def cmd_near(args: argparse.Namespace) -> int:
    return _run_query(args, lambda catalog: catalog.search_near(
        args.lon, args.lat, args.distance,
        last_id=args.last_id, limit=args.limit,
    ))


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete photos by id."""
    logger = setup_logging(args.verbose)
    try:
        catalog, _, _ = build_services(args, logger)
    except ValueError:
        return 1
    try:
        result = catalog.delete_many(args.ids)
    finally:
        catalog.store.close()

    for photo_id in result.deleted:
        print(f"  [OK] {photo_id} deleted")
    for photo_id, error in result.failed.items():
        print(f"  [ERROR] {photo_id} -> {error}")
    return 0 if result.ok else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='photovault',
        description='Photo ingestion and metadata search',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m photovault serve --port 8080
  python -m photovault upload IMG_0001.jpg IMG_0002.png
  python -m photovault list --limit 20
  python -m photovault search --lat-min 35 --lat-max 36 --lon-min 139 --lon-max 140
  python -m photovault near --lon 139.75 --lat 35.68 --distance 5000
  python -m photovault delete 65f0c1a2b3c4d5e6f7a8b9c0

Configuration comes from environment variables (PHOTOVAULT_ROOT, SQL_HOST, S3_ENDPOINT...).
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP server')
    serve_parser.add_argument('-p', '--port', type=int, help='Override PORT')
    serve_parser.add_argument('-c', '--concurrency', type=int, help='Override PHOTOVAULT_CONCURRENCY')
    serve_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(serve_parser)

    upload_parser = subparsers.add_parser('upload', help='Ingest image files from disk')
    upload_parser.add_argument('files', nargs='+', metavar='FILE', help='Image files to ingest')
    upload_parser.add_argument('-c', '--concurrency', type=int, help='Override PHOTOVAULT_CONCURRENCY')
    upload_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(upload_parser)

    list_parser = subparsers.add_parser('list', help='List photos, newest first')
    add_page_arguments(list_parser)
    list_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(list_parser)

    search_parser = subparsers.add_parser('search', help='Find photos inside a bounding box')
    search_parser.add_argument('--lat-min', type=float, required=True)
    search_parser.add_argument('--lat-max', type=float, required=True)
    search_parser.add_argument('--lon-min', type=float, required=True)
    search_parser.add_argument('--lon-max', type=float, required=True)
    add_page_arguments(search_parser)
    search_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(search_parser)

    near_parser = subparsers.add_parser('near', help='Find photos within a distance of a point')
    near_parser.add_argument('--lon', type=float, required=True)
    near_parser.add_argument('--lat', type=float, required=True)
    near_parser.add_argument('--distance', type=float, required=True, help='Radius in metres')
    add_page_arguments(near_parser)
    near_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(near_parser)

    delete_parser = subparsers.add_parser('delete', help='Delete photos and their files')
    delete_parser.add_argument('ids', nargs='+', metavar='ID', help='Photo ids')
    delete_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(delete_parser)

    return parser


COMMANDS = {
    'serve': cmd_serve,
    'upload': cmd_upload,
    'list': cmd_list,
    'search': cmd_search,
    'near': cmd_near,
    'delete': cmd_delete,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    return COMMANDS[parsed_args.command](parsed_args)
