"""
Live Transcription Filter
Command-line host: feeds a live input device through the transcription filter.
"""

import argparse
import logging
import os
import signal
import sys
import threading
import time
from typing import Optional

# Local imports
sys.path.append(os.path.dirname(__file__))

from transcription_filter.config import FilterConfig, LANGUAGE_HINTS
from transcription_filter.errors import ShutdownError
from transcription_filter.output import ConsoleTextTarget
from transcription_filter.transcription_filter import TranscriptionFilter

CREDENTIAL_ENV_VAR = "TRANSCRIPTION_CORRECTION_API_KEY"
CONSOLE_TARGET_NAME = "Transcription"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class LiveTranscriber:
    """Runs one TranscriptionFilter on a live input device."""

    def __init__(
        self,
        config: FilterConfig,
        device: Optional[int] = None,
        channels: int = 2,
        sample_rate: int = 48000,
        encoding: str = "float32",
    ):
        self.config = config
        self.device = device
        self.channels = channels
        self.sample_rate = sample_rate
        self.encoding = encoding

        # Components
        self.audio_capture = None
        self.filter: Optional[TranscriptionFilter] = None
        self.console = ConsoleTextTarget()

        # Control
        self.is_running = False
        self.shutdown_event = threading.Event()

        # Setup signal handlers
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.session_start = None

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.shutdown()

    def start(self):
        """Start the filter and the audio feed."""
        if self.is_running:
            logger.warning("System already running")
            return

        from transcription_filter.audio_capture import AudioCapture

        logger.info("Starting live transcription...")
        self.session_start = time.time()

        try:
            self.filter = TranscriptionFilter(self.config, sample_rate=self.sample_rate)
            self.filter.targets.register(CONSOLE_TARGET_NAME, self.console)

            self.audio_capture = AudioCapture(
                sample_rate=self.sample_rate,
                channels=self.channels,
                encoding=self.encoding,
                device=self.device,
            )
            self.audio_capture.set_callback(self.filter.filter_audio)

            self.filter.start()
            self.audio_capture.start()
            self.is_running = True

            print("\n" + "=" * 60)
            print("LIVE TRANSCRIPTION ACTIVE")
            print("=" * 60)
            print(f"Model: {self.config.model_reference} ({self.config.language_hint})")
            print(f"Input device: {self.device} ({self.channels} ch, {self.sample_rate} Hz, {self.encoding})")
            print(f"Interval: {self.config.interval_ms} ms, real-time mode: {self.config.real_time_mode}")
            if self.config.persist_enabled:
                print(f"Transcript file: {self.config.persist_path}")
            if self.config.use_correction:
                print(f"Correction endpoint: {self.config.correction_endpoint}")
            print("Press Ctrl+C to stop transcription")
            print("=" * 60)

            logger.info("System started successfully")

        except Exception as e:
            logger.error(f"Failed to start system: {e}")
            # Release whatever did start
            self.is_running = True
            self.shutdown()
            raise

    def run(self):
        """Wait for shutdown, logging buffer stats periodically."""
        if not self.is_running:
            logger.error("System not started")
            return

        try:
            while self.is_running and not self.shutdown_event.is_set():
                self.shutdown_event.wait(5.0)

                if not self.is_running:
                    break

                if self.audio_capture and not self.audio_capture.is_healthy()['running']:
                    logger.error("Audio capture stopped unexpectedly")
                    break

                if self.filter:
                    stats = self.filter.get_stats()
                    logger.info(f"Stats: {stats['transcriptions']} transcriptions, "
                                f"buffer: {stats['buffer_seconds']:.1f}s, "
                                f"skipped: {stats['skipped_cycles']}")

        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        except Exception as e:
            logger.error(f"Runtime error: {e}")
        finally:
            self.shutdown()

    def shutdown(self):
        """Stop the audio feed first, then the filter."""
        if not self.is_running:
            return

        logger.info("Shutting down transcription system...")
        self.is_running = False
        self.shutdown_event.set()

        if self.audio_capture:
            self.audio_capture.stop()

        if self.filter:
            stats = self.filter.get_stats()
            logger.info(f"Final stats: {stats}")
            try:
                self.filter.stop()
            except ShutdownError as e:
                logger.error(f"Error during shutdown: {e}")

        runtime = time.time() - self.session_start if self.session_start else 0
        logger.info(f"Session completed in {runtime:.1f}s")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


def list_audio_devices():
    """List available input devices."""
    from transcription_filter.audio_capture import AudioCapture

    print("Scanning audio devices...")
    devices = AudioCapture.list_audio_devices()

    print("\n=== INPUT DEVICES ===")
    if not devices['input']:
        print("  No input devices found")
    for device in devices['input']:
        print(f"  [{device['id']:2d}] {device['name']}")
        print(f"       {device['channels']} channels, {device['sample_rate']:.0f} Hz")


def build_config(args) -> FilterConfig:
    """Turn parsed arguments into a filter configuration."""
    credential = os.environ.get(CREDENTIAL_ENV_VAR, "")
    settings = {
        "enabled": True,
        "real_time_mode": not args.no_real_time,
        "interval_ms": args.interval_ms,
        "model_reference": args.model,
        "language_hint": args.lang,
        "use_correction": bool(args.correction_endpoint),
        "correction_endpoint": args.correction_endpoint or "",
        "credential": credential,
        "display_enabled": True,
        "output_target_name": CONSOLE_TARGET_NAME,
        "show_confidence": not args.no_confidence,
        "persist_enabled": bool(args.output),
        "persist_path": args.output or "",
    }
    if args.context_prompt:
        settings["context_prompt"] = args.context_prompt
    return FilterConfig.from_settings(settings)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Live Transcription Filter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # List available input devices
  python main.py --list-devices

  # Transcribe the default input with the small model
  python main.py --model small

  # Stereo 16-bit input, Spanish, transcript appended to a file
  python main.py --channels 2 --encoding int16 --lang es --output call.txt

  # Refine low-confidence text through a chat-completions endpoint
  export {CREDENTIAL_ENV_VAR}=...
  python main.py --correction-endpoint https://api.openai.com/v1/chat/completions
        """
    )

    # Device selection
    parser.add_argument('--list-devices', '-l', action='store_true',
                        help='List available input devices and exit')
    parser.add_argument('--device', '-d', type=int,
                        help='Input device ID (use --list-devices to see options)')
    parser.add_argument('--channels', '-c', type=int, default=2,
                        help='Number of input channels (default: 2)')
    parser.add_argument('--sample-rate', '-r', type=int, default=48000,
                        help='Audio sample rate in Hz (default: 48000)')
    parser.add_argument('--encoding', type=str, default='float32',
                        choices=['float32', 'int16', 'int32'],
                        help='Sample encoding delivered by the device (default: float32)')

    # Transcription settings
    parser.add_argument('--model', type=str, default='small',
                        help='Whisper model name or path (default: small)')
    parser.add_argument('--lang', type=str, default='auto', choices=list(LANGUAGE_HINTS),
                        help='Language hint (default: auto)')
    parser.add_argument('--interval-ms', type=int, default=1000,
                        help='Milliseconds between transcription cycles, 500-5000 (default: 1000)')
    parser.add_argument('--no-real-time', action='store_true',
                        help='Keep transcribed audio in the buffer (overlapping windows)')

    # Correction settings
    parser.add_argument('--correction-endpoint', type=str,
                        help=f'Chat-completions URL; credential is read from {CREDENTIAL_ENV_VAR}')
    parser.add_argument('--context-prompt', type=str,
                        help='System prompt for the correction service')

    # Output options
    parser.add_argument('--output', '-o', type=str,
                        help='Append transcriptions to this file')
    parser.add_argument('--no-confidence', action='store_true',
                        help='Do not show confidence next to displayed text')

    # Debug options
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.list_devices:
        list_audio_devices()
        return 0

    try:
        config = build_config(args)

        with LiveTranscriber(
            config,
            device=args.device,
            channels=args.channels,
            sample_rate=args.sample_rate,
            encoding=args.encoding,
        ) as transcriber:
            transcriber.run()

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Application failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
