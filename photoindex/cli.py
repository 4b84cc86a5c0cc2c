"""
Command Line Interface for the content index and variant optimizer.
"""

import argparse
import json
import logging
from typing import List, Optional

import urllib3

from .codec import PillowCodec
from .config import LocalConfig, OptimizerConfig, S3Config, parse_widths
from .errors import PhotoIndexError
from .index_cache import ContentIndexCache
from .local_storage import LocalStorage
from .optimizer import OptimizationCoordinator
from .s3_storage import S3Storage


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
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logging.getLogger('photoindex')


def get_s3_config(args: argparse.Namespace) -> S3Config:
    """Get S3 configuration from environment and CLI overrides."""
    config = S3Config.from_env()

    if getattr(args, 's3_endpoint', None):
        config.endpoint = args.s3_endpoint
    if getattr(args, 's3_bucket', None):
        config.bucket = args.s3_bucket
    if getattr(args, 's3_prefix', None):
        config.prefix = args.s3_prefix
    if getattr(args, 's3_access_key', None):
        config.access_key = args.s3_access_key
    if getattr(args, 's3_secret_key', None):
        config.secret_key = args.s3_secret_key

    return config


def get_local_config(args: argparse.Namespace) -> LocalConfig:
    """Get local configuration from environment and CLI overrides."""
    config = LocalConfig.from_env()
    if getattr(args, 'local_root', None):
        config.root_path = args.local_root
    if getattr(args, 'local_prefix', None) is not None:
        config.prefix = args.local_prefix
    return config


def get_optimizer_config(args: argparse.Namespace) -> OptimizerConfig:
    """Get optimizer configuration from environment and CLI overrides."""
    config = OptimizerConfig.from_env()
    if getattr(args, 'widths', None):
        config = OptimizerConfig(
            widths=parse_widths(args.widths),
            retired_widths=config.retired_widths,
            quality=config.quality,
            workers=config.workers,
            batch_limit=config.batch_limit,
            sample_size=config.sample_size,
        )
    if getattr(args, 'quality', None) is not None:
        config.quality = args.quality
    if getattr(args, 'workers', None) is not None:
        config.workers = args.workers
    if getattr(args, 'limit', None) is not None:
        config.batch_limit = args.limit
    return config


def get_storage(args: argparse.Namespace, logger: logging.Logger):
    """
    Get the storage backend selected by the arguments.

    --local-root (or CONTENT_ROOT) selects the filesystem, otherwise S3.

    Raises:
        ValueError: if the selected configuration is invalid
    """
    local_config = get_local_config(args)

    if local_config.root_path:
        errors = local_config.validate()
        if errors:
            for error in errors:
                logger.error(error)
            raise ValueError("Local configuration invalid")
        logger.info(f"Storage: Local filesystem ({local_config.base_path})")
        return LocalStorage(local_config, logger)

    config = get_s3_config(args)
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("S3 configuration invalid")
    logger.info(f"Storage: S3 ({config.endpoint or 'default endpoint'}, {config.bucket}/{config.prefix})")
    return S3Storage(config, logger)


def build_services(args: argparse.Namespace, logger: logging.Logger):
    """Wire storage, index cache and coordinator together."""
    storage = get_storage(args, logger)
    optimizer_config = get_optimizer_config(args)
    errors = optimizer_config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("Optimizer configuration invalid")

    cache = ContentIndexCache(storage, logger=logger)
    coordinator = OptimizationCoordinator(
        storage,
        cache,
        PillowCodec(logger=logger),
        config=optimizer_config,
        logger=logger,
    )
    return storage, cache, coordinator


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage configuration arguments to a parser."""
    local_group = parser.add_argument_group('Local Storage')
    local_group.add_argument('--local-root', metavar='PATH',
                             help='Use local filesystem instead of S3 (overrides CONTENT_ROOT)')
    local_group.add_argument('--local-prefix', metavar='DIR',
                             help='Sub-directory within local root (overrides CONTENT_PREFIX)')

    s3_group = parser.add_argument_group('S3 Storage')
    s3_group.add_argument('--s3-endpoint', help='Override S3_ENDPOINT')
    s3_group.add_argument('--s3-bucket', help='Override S3_BUCKET')
    s3_group.add_argument('--s3-prefix', help='Override S3_PREFIX')
    s3_group.add_argument('--s3-access-key', help='Override S3_ACCESS_KEY')
    s3_group.add_argument('--s3-secret-key', help='Override S3_SECRET_KEY')


def _start(args: argparse.Namespace):
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return logger


def cmd_index(args: argparse.Namespace) -> int:
    """Execute index command (build / show / invalidate)."""
    logger = _start(args)
    try:
        _, cache, _ = build_services(args, logger)
    except ValueError:
        return 1

    try:
        if args.action == 'build':
            index = cache.build()
            print(json.dumps(index.summary(), indent=2))
        elif args.action == 'show':
            index = cache.get()
            if args.full:
                print(index.to_json())
            else:
                summary = dict(index.summary())
                summary['generated_at'] = index.generated_at
                summary['age_seconds'] = round(index.age_seconds, 1)
                print(json.dumps(summary, indent=2))
        elif args.action == 'invalidate':
            cache.invalidate()
        return 0
    except PhotoIndexError as e:
        logger.error(f"Index {args.action} failed: {e}")
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    logger = _start(args)
    try:
        _, _, coordinator = build_services(args, logger)
    except ValueError:
        return 1

    try:
        print(json.dumps(coordinator.status(), indent=2))
        return 0
    except PhotoIndexError as e:
        logger.error(f"Status failed: {e}")
        return 1


def cmd_optimize(args: argparse.Namespace) -> int:
    """Execute optimize command: run chunks until the job is complete."""
    logger = _start(args)
    try:
        _, _, coordinator = build_services(args, logger)
    except ValueError:
        return 1

    logger.info(f"Widths: {coordinator.config.widths}")
    if args.image or args.gallery:
        return _optimize_one(args, coordinator, logger)
    logger.info(f"Chunk size: {coordinator.config.batch_limit}, workers: {coordinator.config.workers}")

    failed = 0
    try:
        result = coordinator.optimize_batch(args.offset, cleanup=args.cleanup, run_id=args.run_id)
        failed += result.failed
        while result.has_more:
            if args.max_chunks and (result.next_offset - args.offset) >= args.max_chunks * result.limit:
                logger.info(f"Stopping after {args.max_chunks} chunks; resume with "
                            f"--offset {result.next_offset} --run-id {result.run_id}")
                break
            result = coordinator.optimize_batch(
                result.next_offset, cleanup=args.cleanup, run_id=result.run_id
            )
            failed += result.failed
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except PhotoIndexError as e:
        logger.error(f"Optimization failed: {e}")
        return 1

    if not args.quiet:
        print()
        print(f"Run: {result.run_id}")
        print(f"Progress: {result.processed_so_far}/{result.total_images} ({result.percent_complete}%)")
        print(f"Failed: {failed}")

    return 0 if failed == 0 else 1


def _optimize_one(
    args: argparse.Namespace,
    coordinator: OptimizationCoordinator,
    logger: logging.Logger
) -> int:
    """Optimize a single image (--image) or a single gallery (--gallery)."""
    try:
        if args.image:
            result = coordinator.optimize_image(args.image)
            summary = f"Variants: {len(result.variants)}"
            failed = 0
        else:
            result = coordinator.optimize_gallery(args.gallery, cleanup=args.cleanup)
            summary = (f"Processed: {result.processed}, skipped: {result.skipped}, "
                       f"variants: {result.variants_created}")
            failed = result.failed
    except PhotoIndexError as e:
        logger.error(f"Optimization failed: {e}")
        return 1

    if not args.quiet:
        print(summary)
        print(f"Failed: {failed}")
    return 0 if failed == 0 else 1


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Execute cleanup command (delete variants at retired widths)."""
    logger = _start(args)
    try:
        _, _, coordinator = build_services(args, logger)
    except ValueError:
        return 1

    try:
        deleted = coordinator.cleanup_old_sizes()
    except PhotoIndexError as e:
        logger.error(f"Cleanup failed: {e}")
        return 1
    print(f"Deleted: {deleted}")
    return 0


def cmd_check_storage(args: argparse.Namespace) -> int:
    """Execute check-storage command."""
    logger = _start(args)
    try:
        storage = get_storage(args, logger)
    except ValueError:
        return 1

    check = storage.check_access()
    print(json.dumps(check.to_dict(), indent=2))
    return 0 if check.ok else 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Execute serve command (bottle HTTP server)."""
    from bottle import run

    from .server import create_app

    logger = _start(args)
    try:
        _, cache, coordinator = build_services(args, logger)
    except ValueError:
        return 1

    logger.info(f"Serving on {args.host}:{args.port}")
    run(app=create_app(cache, coordinator), host=args.host, port=args.port, quiet=not args.verbose)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='photoindex',
        description='Content index and WebP variant generation for photo sites',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Typical workflow:
  1. Index:    python -m photoindex index build --local-root ./content
  2. Status:   python -m photoindex status --local-root ./content
  3. Optimize: python -m photoindex optimize --local-root ./content

Storage options:
  Use --local-root (or CONTENT_ROOT) for a local content tree, or S3
  environment variables for S3 / R2 / MinIO.
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    index_parser = subparsers.add_parser('index', help='Build, show or invalidate the content index')
    index_parser.add_argument('action', choices=['build', 'show', 'invalidate'])
    index_parser.add_argument('--full', action='store_true', help='Print the whole index document (show)')
    index_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(index_parser)

    status_parser = subparsers.add_parser('status', help='Show variant optimization status')
    status_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(status_parser)

    opt_parser = subparsers.add_parser('optimize', help='Generate missing WebP variants')
    opt_parser.add_argument('--offset', type=int, default=0, help='Candidate offset to start at')
    opt_parser.add_argument('--run-id', help='Run id to resume (required when --offset > 0)')
    opt_parser.add_argument('--limit', type=int, metavar='N', help='Images per chunk')
    opt_parser.add_argument('--max-chunks', type=int, metavar='N', help='Stop after N chunks')
    target = opt_parser.add_mutually_exclusive_group()
    target.add_argument('--gallery', metavar='SLUG', help='Only optimize this gallery folder')
    target.add_argument('--image', metavar='PATH', help='Only (re)generate variants of this image')
    opt_parser.add_argument('--cleanup', action='store_true',
                            help='Delete all existing variants before regenerating')
    opt_parser.add_argument('--widths', help='Comma separated width ladder (overrides VARIANT_WIDTHS)')
    opt_parser.add_argument('--quality', type=int, help='WebP quality (overrides WEBP_QUALITY)')
    opt_parser.add_argument('--workers', type=int, help='Concurrent images per chunk')
    opt_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    opt_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(opt_parser)

    cleanup_parser = subparsers.add_parser('cleanup', help='Delete variants at retired widths')
    cleanup_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(cleanup_parser)

    check_parser = subparsers.add_parser('check-storage', help='Check storage permissions')
    check_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(check_parser)

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
    serve_parser.add_argument('--host', default='0.0.0.0', help='Bind address (default: 0.0.0.0)')
    serve_parser.add_argument('--port', type=int, default=8080, help='Port (default: 8080)')
    serve_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(serve_parser)

    return parser


COMMANDS = {
    'index': cmd_index,
    'status': cmd_status,
    'optimize': cmd_optimize,
    'cleanup': cmd_cleanup,
    'check-storage': cmd_check_storage,
    'serve': cmd_serve,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    return COMMANDS[parsed_args.command](parsed_args)
