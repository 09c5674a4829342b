"""
Unit tests for the key-value stores.
"""
from unittest.mock import patch

import pytest

from contract_shield.errors import StorageError
from contract_shield.storage import JSONFileStore, MemoryStore


class TestJSONFileStore:
    """Tests for JSONFileStore."""

    def test_missing_key_returns_none(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        assert store.get('absent') is None

    def test_set_then_get(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        store.set('contract-shield-user', {'name': 'Ada', 'totalReviews': 2})

        assert store.get('contract-shield-user') == {'name': 'Ada', 'totalReviews': 2}
        assert (tmp_path / 'contract-shield-user.json').exists()

    def test_directory_created_on_write(self, tmp_path):
        store = JSONFileStore(str(tmp_path / 'nested' / 'data'))
        store.set('key', [1, 2])
        assert store.get('key') == [1, 2]

    def test_no_temp_files_left(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        store.set('key', {'a': 1})
        store.set('key', {'a': 2})
        assert [p.name for p in tmp_path.iterdir()] == ['key.json']

    def test_corrupt_file_treated_as_absent(self, tmp_path):
        (tmp_path / 'broken.json').write_text('{not json', encoding='utf-8')
        store = JSONFileStore(str(tmp_path))
        assert store.get('broken') is None

    def test_delete(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        store.set('key', {'a': 1})
        store.delete('key')
        store.delete('key')
        assert store.get('key') is None

    def test_failed_write_keeps_previous_value(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        store.set('key', {'a': 1})

        with patch('contract_shield.storage.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                store.set('key', {'a': 2})

        assert store.get('key') == {'a': 1}
        assert [p.name for p in tmp_path.iterdir()] == ['key.json']

    def test_rejects_path_like_keys(self, tmp_path):
        store = JSONFileStore(str(tmp_path))
        with pytest.raises(ValueError):
            store.set('../escape', {})


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {'history': []}
        store.set('key', value)
        value['history'].append('mutated')

        assert store.get('key') == {'history': []}

    def test_delete(self):
        store = MemoryStore()
        store.set('key', 1)
        store.delete('key')
        assert store.get('key') is None
