"""
Tests for audio_capture module.
"""

import pytest
import numpy as np
from unittest.mock import patch, MagicMock

from transcription_filter.audio_ingest import AudioFrameBatch

try:
    from transcription_filter.audio_capture import AudioCapture
except OSError:  # sounddevice loads PortAudio at import time
    pytest.skip("PortAudio library not available", allow_module_level=True)


class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        capture = AudioCapture(sample_rate=48000, channels=2, encoding="int16", chunk_duration=0.02)

        assert capture.chunk_size == 960
        assert capture.encoding.value == "int16"
        assert capture.is_running is False

    def test_invalid_encoding(self):
        with pytest.raises(ValueError):
            AudioCapture(encoding="float64")

    def test_make_batch_splits_channels(self):
        capture = AudioCapture(sample_rate=16000, channels=2)
        block = np.array([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]], dtype=np.float32)

        batch = capture.make_batch(block, 3)

        assert isinstance(batch, AudioFrameBatch)
        assert batch.channel_count == 2
        assert batch.frame_count == 3
        assert batch.sample_encoding == "float32"
        np.testing.assert_array_equal(batch.planes[0], [0.1, 0.3, 0.5])
        np.testing.assert_array_equal(batch.planes[1], [0.2, 0.4, 0.6])

    def test_callback_delivers_batches(self):
        capture = AudioCapture(sample_rate=16000, channels=1)
        received = []
        capture.set_callback(received.append)
        capture.is_running = True

        capture._audio_callback(np.zeros((160, 1), dtype=np.float32), 160, None, None)

        assert len(received) == 1
        assert received[0].frame_count == 160

    def test_callback_errors_stop_stream(self):
        capture = AudioCapture()
        capture.set_callback(MagicMock(side_effect=RuntimeError("boom")))
        capture.is_running = True
        capture.stream = MagicMock()

        for _ in range(capture.max_errors):
            capture._audio_callback(np.zeros((10, 2), dtype=np.float32), 10, None, None)

        capture.stream.stop.assert_called_once()
        assert capture.is_healthy()['stream'] is False

    def test_callback_errors_mark_capture_stopped(self):
        """Test a stream stopped by errors reports not running and is still closed by stop()."""
        capture = AudioCapture()
        capture.set_callback(MagicMock(side_effect=RuntimeError("boom")))
        capture.is_running = True
        stream = MagicMock()
        capture.stream = stream

        for _ in range(capture.max_errors):
            capture._audio_callback(np.zeros((10, 2), dtype=np.float32), 10, None, None)

        assert capture.is_running is False
        assert capture.is_healthy() == {'stream': False, 'running': False}

        capture.stop()

        stream.close.assert_called_once()
        assert capture.stream is None

    @patch('transcription_filter.audio_capture.sd.InputStream')
    def test_start_and_stop(self, mock_stream_class):
        capture = AudioCapture(sample_rate=48000, channels=2, encoding="int32", device=4)

        with capture:
            kwargs = mock_stream_class.call_args[1]
            assert kwargs['device'] == 4
            assert kwargs['channels'] == 2
            assert kwargs['dtype'] == "int32"
            assert capture.is_running is True

        mock_stream_class.return_value.stop.assert_called_once()
        mock_stream_class.return_value.close.assert_called_once()
        assert capture.stream is None

    @patch('transcription_filter.audio_capture.sd.query_devices')
    def test_list_audio_devices(self, mock_query):
        mock_query.return_value = [
            {'name': 'Mic', 'max_input_channels': 1, 'max_output_channels': 0, 'default_samplerate': 44100.0},
            {'name': 'Speakers', 'max_input_channels': 0, 'max_output_channels': 2, 'default_samplerate': 48000.0},
        ]

        devices = AudioCapture.list_audio_devices()

        assert devices == {'input': [{'id': 0, 'name': 'Mic', 'channels': 1, 'sample_rate': 44100.0}]}
