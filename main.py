import asyncio
import argparse
import logging
import sys
from pathlib import Path

import yaml

from chunkup.exceptions import ChunkupError, ConfigError
from chunkup.transfer import LocalFile, UploadQueue
from chunkup.upload import FileUploader, UploadConfig, UploadState

logger = logging.getLogger("chunkup")


def setup_logging(log_file: str = 'chunkup.log'):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def parse_pairs(pairs, separator):
    """Turn ['k=v', ...] into a dict"""
    result = {}
    for pair in pairs or []:
        key, sep, value = pair.partition(separator)
        if not sep or not key.strip():
            raise ConfigError(f"Expected KEY{separator}VALUE, got {pair!r}")
        result[key.strip()] = value.strip()
    return result


def build_options(args) -> dict:
    """Merge config file and command line into one option bag"""
    config = UploadConfig.from_yaml(Path(args.config)) if args.config else UploadConfig()

    overrides = {}
    if args.url:
        overrides['url'] = args.url
    if args.chunk_size is not None:
        overrides['chunk_size'] = args.chunk_size
    if args.method:
        overrides['http_method'] = args.method
    if args.raw:
        overrides['multipart'] = False
    if args.field:
        overrides['file_data_name'] = args.field
    if args.param:
        overrides['params'] = {**config.params, **parse_pairs(args.param, '=')}
    if args.header:
        overrides['headers'] = {**(config.headers or {}), **parse_pairs(args.header, ':')}
    if args.no_send_file_name:
        overrides['send_file_name'] = False
    if args.no_stop_on_fail:
        overrides['stop_on_fail'] = False

    return config.merge(overrides).to_dict()


async def run_upload(args) -> bool:
    """Upload one file and wait for the outcome"""
    options = build_options(args)
    if not options['url']:
        raise ChunkupError("No upload url given (use --url or a config file)")

    queue = UploadQueue(max_slots=args.slots)
    uploader = FileUploader(LocalFile(args.file), queue)
    outcome = asyncio.get_running_loop().create_future()
    attempts = {}

    def on_progress(loaded, total):
        percent = 100.0 * loaded / total if total else 100.0
        logger.info(f"{uploader.name}: {loaded}/{total} bytes ({percent:.1f}%)")

    def on_chunk_failed(chunk):
        seq = chunk['seq']
        if uploader.options.stop_on_fail or uploader.state is not UploadState.RUNNING:
            return

        attempts[seq] = attempts.get(seq, 0) + 1
        if attempts[seq] > args.retries:
            logger.error(f"Chunk #{seq} failed {attempts[seq]} time(s), giving up")
            uploader.failed(chunk)
            return

        logger.info(f"Retrying chunk #{seq} ({attempts[seq]}/{args.retries})")
        uploader.defer(retry, seq)

    def retry(seq):
        # The upload may have finished or failed while the retry was pending
        if uploader.state is UploadState.RUNNING:
            uploader.upload_chunk(seq, None, True)

    def settle(ok, result):
        if not outcome.done():
            outcome.set_result((ok, result))

    uploader.bind('progress', on_progress)
    uploader.bind('chunkuploadfailed', on_chunk_failed)
    uploader.bind('done', lambda result: settle(True, result))
    uploader.bind('failed', lambda result: settle(False, result))

    try:
        uploader.start(options)
        ok, result = await outcome
    finally:
        uploader.destroy()
        await queue.close()

    if ok:
        logger.info(f"Upload complete: HTTP {result.get('status')}")
    else:
        logger.error(f"Upload failed: HTTP {result.get('status')} {result.get('response', '')}")
    return ok


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {value}")
    return number


def create_parser():
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        description='chunkup - chunked HTTP file upload',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload whole file as multipart/form-data
  chunkup video.mp4 --url http://localhost:8000/upload

  # 5MB chunks, 4 in parallel, raw request bodies
  chunkup video.mp4 --url http://localhost:8000/upload --chunk-size 5mb --slots 4 --raw

  # Options from a YAML file, keep going on chunk failures with retries
  chunkup video.mp4 --config upload.yaml --no-stop-on-fail --retries 3
        """
    )

    parser.add_argument('file', help='File to upload')
    parser.add_argument('--url', help='Upload endpoint')
    parser.add_argument('--config', help='YAML file with upload options')
    parser.add_argument(
        '--chunk-size',
        help='Chunk size, e.g. 512kb or 5mb (default: 0, no chunking)'
    )
    parser.add_argument(
        '--slots',
        type=positive_int,
        default=3,
        help='Concurrent requests (default: 3)'
    )
    parser.add_argument('--method', help='HTTP method (default: POST)')
    parser.add_argument(
        '--raw',
        action='store_true',
        help='Send raw bytes instead of multipart/form-data'
    )
    parser.add_argument('--field', help='Form field name of the file (default: file)')
    parser.add_argument(
        '--param',
        action='append',
        help='Extra request parameter KEY=VALUE (repeatable)'
    )
    parser.add_argument(
        '--header',
        action='append',
        help='Extra request header KEY:VALUE (repeatable)'
    )
    parser.add_argument(
        '--no-send-file-name',
        action='store_true',
        help='Do not send the file name as the "name" parameter'
    )
    parser.add_argument(
        '--no-stop-on-fail',
        action='store_true',
        help='Keep uploading other chunks when one fails'
    )
    parser.add_argument(
        '--retries',
        type=non_negative_int,
        default=0,
        help='Retries per failed chunk with --no-stop-on-fail (default: 0)'
    )

    # Logging
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Minimal output'
    )

    return parser


async def main_async(args) -> int:
    try:
        return 0 if await run_upload(args) else 1
    except KeyboardInterrupt:
        logger.info("\nUpload interrupted by user")
        return 130
    except (ChunkupError, OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Fatal error: {e}", exc_info=args.debug)
        return 1


def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging()

    # Adjust logging level
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
