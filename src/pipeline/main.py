"""
Command-line entry point: translate one audio file.

python -m pipeline.main input.opus --source en --target es --output-dir out/
"""

import argparse
import asyncio
import logging
import sys

from .config import PipelineConfig
from .controller import PipelineController
from .jobs import ProgressEvent, TranslationJob

logger = logging.getLogger(__name__)


class LoggingObserver:
    """Reports job events through the log."""

    def __init__(self):
        self.failed = False

    def on_progress(self, event: ProgressEvent) -> None:
        logger.info(f"{event.type.capitalize()}: {event.data}")

    def on_complete(self, output_path: str) -> None:
        logger.info(f"Successfully created file at: {output_path}")

    def on_error(self, message: str) -> None:
        self.failed = True
        logger.error(f"Translation failed: {message}")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Translate the speech in an audio file into another language")
    parser.add_argument("input", help="Source audio file")
    parser.add_argument("--source", required=True, help="Source language id (e.g. en)")
    parser.add_argument("--target", required=True, help="Target language id (e.g. es)")
    parser.add_argument("--output-dir", required=True, help="Directory for the translated file")
    parser.add_argument("--model", default=None, help="Transcription model size (default: from config)")
    parser.add_argument("--log-level", default=None, help="Log level (e.g. INFO, DEBUG)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = PipelineConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    observer = LoggingObserver()
    job = TranslationJob(
        input_path=args.input,
        source_language=args.source,
        target_language=args.target,
        output_dir=args.output_dir,
        observer=observer,
        model=args.model,
        output_extension=config.output_extension,
    )
    controller = PipelineController(config)
    asyncio.run(controller.process(job))
    return 1 if observer.failed else 0


if __name__ == "__main__":
    sys.exit(main())
