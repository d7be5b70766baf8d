"""Unit tests for declarative disk configuration loading."""

import os
import shutil
import tempfile
import unittest

from diskmaker.disk_config import load_disk_config, parse_disk_config
from diskmaker.errors import ConfigError


CONFIG_YAML = """
ownerName: local-disks
ownerNamespace: local-storage
ownerKind: LocalVolume
ownerAPIVersion: local.storage.openshift.io/v1
disks:
  ssd:
    devicePaths:
      - /dev/sdb
      - /dev/disk/by-id/ata-CRUCIAL_1
  hdd:
    deviceNames: [/dev/sdc]
    deviceIDs: [/dev/disk/by-id/wwn-0x5000]
  nfs:
    directoryPaths:
      - shared1
      - /srv/shared2
"""


class TestDiskConfig(unittest.TestCase):
    """Test cases for disk configuration parsing."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'diskMakerConfig')

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, content):
        with open(self.config_path, 'w') as f:
            f.write(content)

    def test_load_disk_config(self):
        """Test loading a complete configuration file."""
        self._write(CONFIG_YAML)

        config = load_disk_config(self.config_path)

        self.assertEqual(config.owner.name, 'local-disks')
        self.assertEqual(config.owner.namespace, 'local-storage')
        self.assertEqual(config.owner.kind, 'LocalVolume')
        self.assertEqual(config.owner.api_version, 'local.storage.openshift.io/v1')
        self.assertEqual(config.owner.key, 'local-storage/local-disks')
        self.assertEqual(list(config.disks.keys()), ['ssd', 'hdd', 'nfs'])

    def test_device_paths_are_split_by_prefix(self):
        """Test that by-id paths become device IDs and the rest device names."""
        self._write(CONFIG_YAML)

        ssd = load_disk_config(self.config_path).disks['ssd']

        self.assertEqual(ssd.device_names, {'/dev/sdb'})
        self.assertEqual(ssd.device_ids, {'/dev/disk/by-id/ata-CRUCIAL_1'})
        self.assertEqual(ssd.directory_paths, [])

    def test_explicit_names_ids_and_directories(self):
        self._write(CONFIG_YAML)
        config = load_disk_config(self.config_path)

        self.assertEqual(config.disks['hdd'].device_names, {'/dev/sdc'})
        self.assertEqual(config.disks['hdd'].device_ids, {'/dev/disk/by-id/wwn-0x5000'})
        self.assertEqual(config.disks['nfs'].directory_paths, ['shared1', '/srv/shared2'])

    def test_empty_file_is_empty_config(self):
        self._write("")

        config = load_disk_config(self.config_path)

        self.assertEqual(config.disks, {})
        self.assertEqual(config.owner.name, '')

    def test_storage_class_without_selectors(self):
        config = parse_disk_config({'disks': {'ssd': None}})

        self.assertTrue(config.disks['ssd'].is_empty)

    def test_missing_file(self):
        """Test that an unreadable file raises ConfigError."""
        with self.assertRaises(ConfigError) as context:
            load_disk_config(os.path.join(self.temp_dir, 'missing'))

        self.assertIn('failed to read file', str(context.exception))

    def test_invalid_yaml(self):
        self._write("disks: [unclosed\n")

        with self.assertRaises(ConfigError) as context:
            load_disk_config(self.config_path)

        self.assertIn('error unmarshalling', str(context.exception))

    def test_invalid_shapes(self):
        """Test that structurally wrong configurations are rejected."""
        invalid_configs = [
            ['not', 'a', 'mapping'],
            {'disks': ['ssd']},
            {'disks': {'ssd': ['/dev/sdb']}},
            {'disks': {'ssd': {'devicePaths': '/dev/sdb'}}},
            {'disks': {'ssd': {'directoryPaths': [1, 2]}}},
            {'disks': {'../escape': {'devicePaths': ['/dev/sdb']}}},
            {'disks': {'a/b': {'devicePaths': ['/dev/sdb']}}},
        ]

        for data in invalid_configs:
            with self.subTest(data=data):
                with self.assertRaises(ConfigError):
                    parse_disk_config(data)


if __name__ == '__main__':
    unittest.main()
