"""Unit tests for the web API."""

import json
import os
import shutil
import tempfile
import unittest
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fakes import FakeDetector, FakeFrameSource, make_detection
from head_count_detection.config_manager import ConfigManager
from head_count_detection.head_count_session import HeadCountSession
from head_count_detection.models.config import CameraSourceKind, ModelReadiness
from head_count_detection.services.errors import SourceUnavailable
from head_count_detection.web.app import HeadCountWebApp, create_app


class TestHeadCountWebApp(unittest.TestCase):
    """Test cases for HeadCountWebApp."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        config_path = os.path.join(self.test_dir, "config.json")
        with open(config_path, "w") as f:
            json.dump({"target_time": "09:00"}, f)

        self.detector = FakeDetector(detections=[make_detection("person"),
                                                 make_detection("dog")])
        self.sources = {
            CameraSourceKind.LOCAL: FakeFrameSource("local_camera"),
            CameraSourceKind.REMOTE: FakeFrameSource("remote_camera",
                                                     error=SourceUnavailable("no url")),
        }
        self.session = HeadCountSession(ConfigManager(config_path), detector=self.detector,
                                        frame_sources=self.sources, background=False)

        self.web_app = HeadCountWebApp(self.session)
        self.web_app.app.config['TESTING'] = True
        self.client = self.web_app.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_create_app(self):
        app = create_app(self.session)
        self.assertIsNotNone(app)

    def test_status(self):
        response = self.client.get('/api/status')
        self.assertEqual(response.status_code, 200)

        data = json.loads(response.data)
        self.assertTrue(data['success'])
        self.assertEqual(data['data']['session']['model_readiness'], 'ready')
        self.assertIsNone(data['data']['session']['latest_outcome'])

    def test_get_config(self):
        response = self.client.get('/api/config')
        data = json.loads(response.data)

        self.assertEqual(data['data'], {
            'target_time': '09:00',
            'auto_capture_enabled': True,
            'camera_source': 'local',
            'remote_url': '',
            'local_facing': 'user'
        })

    def test_update_config(self):
        response = self.client.post('/api/config', json={
            'target_time': '11:15',
            'auto_capture_enabled': False
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(json.loads(response.data)['success'])

        schedule = self.session.session_state.schedule
        self.assertEqual(schedule.target_time, '11:15')
        self.assertFalse(schedule.auto_enabled)

    def test_update_config_invalid(self):
        response = self.client.post('/api/config', json={'target_time': '25:99'})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(json.loads(response.data)['success'])

    def test_update_config_no_data(self):
        response = self.client.post('/api/config', data='', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_capture_and_frame(self):
        response = self.client.post('/api/capture')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(json.loads(response.data)['success'])

        status = json.loads(self.client.get('/api/status').data)['data']
        outcome = status['session']['latest_outcome']
        self.assertEqual(outcome['person_count'], 1)
        self.assertEqual(outcome['summary'], '1 Students Detected')

        frame = self.client.get('/api/frame')
        self.assertEqual(frame.status_code, 200)
        self.assertEqual(frame.mimetype, 'image/jpeg')
        self.assertEqual(frame.data, self.session.latest_frame_jpeg())

    def test_capture_rejected_while_loading(self):
        self.detector._readiness = ModelReadiness.LOADING
        response = self.client.post('/api/capture')
        self.assertEqual(response.status_code, 409)
        self.assertFalse(json.loads(response.data)['success'])

    def test_failed_capture_reports_error(self):
        self.client.post('/api/config', json={'camera_source': 'remote'})
        self.client.post('/api/capture')

        status = json.loads(self.client.get('/api/status').data)['data']
        self.assertIsNone(status['session']['latest_outcome'])
        self.assertEqual(status['session']['last_error']['type'], 'SourceUnavailable')
        self.assertEqual(status['failure_count'], 1)

    def test_placeholder_frame_before_first_capture(self):
        response = self.client.get('/api/frame')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, 'image/jpeg')
        self.assertTrue(response.data.startswith(b'\xff\xd8'))


if __name__ == '__main__':
    unittest.main()
