"""
Tests for main module.
"""

import pytest
import sys
import os
from unittest.mock import patch, MagicMock

# Add main module to path for testing
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from main import LiveTranscriber, list_audio_devices, main, CREDENTIAL_ENV_VAR
from transcription_filter.config import FilterConfig
from transcription_filter.errors import ShutdownError

try:
    import transcription_filter.audio_capture  # noqa: F401
    HAS_PORTAUDIO = True
except OSError:  # sounddevice loads PortAudio at import time
    HAS_PORTAUDIO = False

needs_portaudio = pytest.mark.skipif(not HAS_PORTAUDIO, reason="PortAudio library not available")


@pytest.fixture
def audio_device_list():
    """Mock audio device list for testing."""
    return {
        'input': [
            {'id': 0, 'name': 'Default Microphone', 'channels': 1, 'sample_rate': 44100.0},
            {'id': 1, 'name': 'USB Audio Interface', 'channels': 2, 'sample_rate': 48000.0},
        ]
    }


class TestLiveTranscriber:
    """Test cases for LiveTranscriber class."""

    def test_initialization(self):
        config = FilterConfig(enabled=True)
        transcriber = LiveTranscriber(config, device=3, channels=1, sample_rate=16000, encoding="int16")

        assert transcriber.config is config
        assert transcriber.device == 3
        assert transcriber.channels == 1
        assert transcriber.sample_rate == 16000
        assert transcriber.encoding == "int16"
        assert transcriber.is_running is False
        assert transcriber.filter is None

    @needs_portaudio
    @patch('transcription_filter.audio_capture.AudioCapture')
    @patch('main.TranscriptionFilter')
    def test_start_wires_components(self, mock_filter_class, mock_capture_class):
        """Test the capture feeds the filter and both are started."""
        config = FilterConfig(enabled=True)
        transcriber = LiveTranscriber(config, sample_rate=16000)

        with patch('builtins.print'):
            transcriber.start()

        mock_filter = mock_filter_class.return_value
        mock_capture = mock_capture_class.return_value

        mock_filter_class.assert_called_once_with(config, sample_rate=16000)
        mock_filter.targets.register.assert_called_once_with("Transcription", transcriber.console)
        mock_capture.set_callback.assert_called_once_with(mock_filter.filter_audio)
        mock_filter.start.assert_called_once()
        mock_capture.start.assert_called_once()
        assert transcriber.is_running is True

    @needs_portaudio
    @patch('transcription_filter.audio_capture.AudioCapture')
    @patch('main.TranscriptionFilter')
    def test_start_failure_cleans_up(self, mock_filter_class, mock_capture_class):
        mock_capture_class.return_value.start.side_effect = RuntimeError("no device")
        transcriber = LiveTranscriber(FilterConfig(enabled=True))

        with pytest.raises(RuntimeError):
            transcriber.start()

        mock_filter_class.return_value.stop.assert_called_once()
        assert transcriber.is_running is False

    def test_shutdown_order(self):
        """Test the audio feed stops before the filter."""
        transcriber = LiveTranscriber(FilterConfig())
        transcriber.is_running = True

        manager = MagicMock()
        transcriber.audio_capture = manager.capture
        transcriber.filter = manager.filter
        manager.filter.get_stats.return_value = {}

        transcriber.shutdown()

        names = [c[0] for c in manager.mock_calls if c[0] in ('capture.stop', 'filter.stop')]
        assert names == ['capture.stop', 'filter.stop']
        assert transcriber.is_running is False

    def test_shutdown_error_is_logged(self):
        transcriber = LiveTranscriber(FilterConfig())
        transcriber.is_running = True
        transcriber.filter = MagicMock()
        transcriber.filter.get_stats.return_value = {}
        transcriber.filter.stop.side_effect = ShutdownError("teardown failed")

        transcriber.shutdown()

        assert transcriber.is_running is False

    def test_run_loop(self):
        """Test main run loop."""
        transcriber = LiveTranscriber(FilterConfig())
        transcriber.is_running = True

        # Mock shutdown event to trigger loop exit
        transcriber.shutdown_event.set()

        with patch.object(transcriber, 'shutdown') as mock_shutdown:
            transcriber.run()
            mock_shutdown.assert_called_once()

    def test_signal_handler(self):
        """Test signal handler for graceful shutdown."""
        transcriber = LiveTranscriber(FilterConfig())

        with patch.object(transcriber, 'shutdown') as mock_shutdown:
            transcriber._signal_handler(2, None)  # SIGINT
            mock_shutdown.assert_called_once()


@needs_portaudio
@patch('transcription_filter.audio_capture.AudioCapture.list_audio_devices')
def test_list_audio_devices(mock_list_devices, audio_device_list):
    """Test listing audio devices function."""
    mock_list_devices.return_value = audio_device_list

    with patch('builtins.print') as mock_print:
        list_audio_devices()

        call_args = [call[0][0] for call in mock_print.call_args_list if call[0]]
        combined_output = ' '.join(str(arg) for arg in call_args)

        assert 'Default Microphone' in combined_output
        assert 'USB Audio Interface' in combined_output


class TestBuildConfig:
    """Test cases for build_config."""

    def parse(self, argv):
        with patch('sys.argv', ['main.py'] + argv):
            with patch('main.LiveTranscriber') as mock_transcriber_class:
                mock_transcriber_class.return_value.__enter__.return_value = MagicMock()
                main()
                return mock_transcriber_class.call_args

    def test_defaults(self):
        call = self.parse([])
        config = call[0][0]

        assert config.enabled is True
        assert config.model_reference == "small"
        assert config.language_hint == "auto"
        assert config.real_time_mode is True
        assert config.display_enabled is True
        assert config.persist_enabled is False
        assert config.use_correction is False

    def test_correction_credential_from_environment(self):
        with patch.dict(os.environ, {CREDENTIAL_ENV_VAR: "env-key"}):
            call = self.parse(['--correction-endpoint', 'https://api.example.com/v1'])
        config = call[0][0]

        assert config.use_correction is True
        assert config.correction_endpoint == 'https://api.example.com/v1'
        assert config.credential == "env-key"
        assert config.correction_configured

    def test_output_and_flags(self):
        call = self.parse([
            '--output', 'call.txt', '--no-confidence', '--no-real-time',
            '--lang', 'fr', '--interval-ms', '2500', '--context-prompt', 'Meeting notes',
        ])
        config = call[0][0]

        assert config.persist_enabled is True
        assert config.persist_path == 'call.txt'
        assert config.show_confidence is False
        assert config.real_time_mode is False
        assert config.language_hint == 'fr'
        assert config.interval_ms == 2500
        assert config.context_prompt == 'Meeting notes'


class TestMainFunction:
    """Test cases for main function."""

    @patch('main.list_audio_devices')
    def test_main_list_devices(self, mock_list_devices):
        with patch('sys.argv', ['main.py', '--list-devices']):
            result = main()

        mock_list_devices.assert_called_once()
        assert result == 0

    @patch('main.LiveTranscriber')
    def test_main_normal_operation(self, mock_transcriber_class):
        mock_transcriber = MagicMock()
        mock_transcriber_class.return_value.__enter__.return_value = mock_transcriber

        test_args = [
            'main.py', '--device', '1', '--channels', '1',
            '--sample-rate', '16000', '--encoding', 'int16', '--model', 'tiny',
        ]

        with patch('sys.argv', test_args):
            result = main()

        call_kwargs = mock_transcriber_class.call_args[1]
        assert call_kwargs['device'] == 1
        assert call_kwargs['channels'] == 1
        assert call_kwargs['sample_rate'] == 16000
        assert call_kwargs['encoding'] == 'int16'
        assert mock_transcriber_class.call_args[0][0].model_reference == 'tiny'

        mock_transcriber.run.assert_called_once()
        assert result == 0

    @patch('main.LiveTranscriber')
    def test_main_keyboard_interrupt(self, mock_transcriber_class):
        mock_transcriber = MagicMock()
        mock_transcriber.run.side_effect = KeyboardInterrupt()
        mock_transcriber_class.return_value.__enter__.return_value = mock_transcriber

        with patch('sys.argv', ['main.py']):
            result = main()

        assert result == 0

    @patch('main.LiveTranscriber')
    def test_main_exception(self, mock_transcriber_class):
        mock_transcriber_class.side_effect = RuntimeError("Test error")

        with patch('sys.argv', ['main.py']):
            result = main()

        assert result == 1

    def test_main_invalid_interval(self):
        with patch('sys.argv', ['main.py', '--interval-ms', '100']):
            assert main() == 1
