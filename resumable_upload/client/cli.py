"""
Command line uploader

    resumable-upload archive.zip
    resumable-upload archive.zip --resume <upload_id>
"""
import argparse
import logging
import sys

from .api import API_BASE_URL, UploadApiClient
from .scheduler import CHUNK_SIZE, ProgressSnapshot, TransferScheduler, TransferState

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload a file in resumable chunks")
    parser.add_argument("file", help="Path of the file to upload")
    parser.add_argument("--resume", metavar="UPLOAD_ID", help="Continue an existing upload session")
    parser.add_argument("--url", default=API_BASE_URL, help=f"Upload API base URL (default: {API_BASE_URL})")
    parser.add_argument("--chunk-size", type=int, default=CHUNK_SIZE, help="Chunk size in bytes")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def print_progress(snapshot: ProgressSnapshot) -> None:
    sys.stdout.write(
        f"\r  {snapshot.percent:5.1f}%  "
        f"{snapshot.uploaded_bytes / (1024 * 1024):.2f}/{snapshot.total_bytes / (1024 * 1024):.2f} MB  "
        f"{snapshot.speed / (1024 * 1024):.2f} MB/s  ETA {snapshot.eta:.0f}s"
    )
    sys.stdout.flush()


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    scheduler = TransferScheduler(
        api=UploadApiClient(args.url),
        chunk_size=args.chunk_size,
        on_progress=print_progress,
    )

    try:
        scheduler.select_file(args.file)
        if args.resume:
            scheduler.adopt_session(args.resume)
        state = scheduler.start()
    except KeyboardInterrupt:
        scheduler.pause()
        print(f"\nPaused. Resume with: resumable-upload {args.file} --resume {scheduler.upload_id}")
        return 130
    except Exception as e:
        logger.error(f"Upload failed: {e}")
        return 1

    print()
    if state is TransferState.COMPLETED:
        print(f"✓ Upload completed: {scheduler.upload_id}")
        print(f"  Fingerprint: {scheduler.final_hash}")
        for name in scheduler.files_in_container:
            print(f"  - {name}")
        return 0

    print(f"✗ Upload {state.value.lower()}: {scheduler.error}")
    if scheduler.upload_id:
        print(f"  Resume with: resumable-upload {args.file} --resume {scheduler.upload_id}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
