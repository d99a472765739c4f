import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pidmutex.config as config

class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.patcher = patch('pidmutex.config.CONFIG_FILE',
                             os.path.join(self.tmp, 'conf', 'config.ini'))
        self.patcher.start()

    def tearDown(self):
        self.patcher.stop()
        shutil.rmtree(self.tmp)

    def test_defaults_without_file(self):
        current = config.get_config()
        self.assertEqual(current['Acquire']['retry_delay_ms'], '10')
        self.assertFalse(os.path.exists(config.CONFIG_FILE))

    def test_file_holds_only_changed_settings(self):
        config.update_setting('Acquire', 'retry_delay_ms', 25)
        with open(config.CONFIG_FILE) as f:
            text = f.read()
        self.assertIn('retry_delay_ms = 25', text)
        self.assertNotIn('timeout_seconds', text)
        self.assertEqual(config.get_config()['Acquire']['timeout_seconds'], '0')

    def test_unbounded_timeout_by_default(self):
        self.assertIsNone(config.get_timeout())

    def test_update_setting(self):
        config.update_setting('Acquire', 'timeout_seconds', 2.5)
        config.update_setting('Acquire', 'retry_delay_ms', 50)
        self.assertEqual(config.get_timeout(), 2.5)
        self.assertEqual(config.get_retry_delay(), 0.05)

    def test_resolve_bare_name(self):
        lock_dir = os.path.join(self.tmp, 'locks')
        config.update_setting('General', 'lock_dir', lock_dir)
        self.assertEqual(config.resolve_lock_path('myapp'), os.path.join(lock_dir, 'myapp.pid'))
        self.assertTrue(os.path.isdir(lock_dir))

    def test_resolve_path(self):
        path = os.path.join(self.tmp, 'run', 'app.lock')
        self.assertEqual(config.resolve_lock_path(path), path)
        self.assertEqual(config.resolve_lock_path('app.pid'), os.path.abspath('app.pid'))

if __name__ == '__main__':
    unittest.main()
