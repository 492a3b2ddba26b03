"""Key-value store backends for cached holidays and custom events."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from processor.exceptions import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String-keyed storage of string values."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        """Write all entries together, or none of them."""
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, mainly for tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, items: Dict[str, str]) -> None:
        self._data.update(items)


class JsonFileKeyValueStore(KeyValueStore):
    """Store backed by a single JSON object on disk."""

    def __init__(self, file_path: Path):
        """
        Initialize the file store.

        Args:
            file_path: Path of the JSON file (created on first write)
        """
        self.file_path = Path(file_path)
        logger.info(f"Initialized JsonFileKeyValueStore at: {self.file_path}")

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_many(self, items: Dict[str, str]) -> None:
        data = self._read_all()
        data.update(items)
        self._write_all(data)

    def _read_all(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            decoded = json.loads(self.file_path.read_text(encoding='utf-8'))
        except OSError as e:
            raise StorageError(f"Failed to read {self.file_path}: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Store file {self.file_path} is corrupt, starting empty: {e}")
            return {}
        if not isinstance(decoded, dict):
            logger.warning(f"Store file {self.file_path} does not hold an object, starting empty")
            return {}
        return {str(k): v for k, v in decoded.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix='.store-', suffix='.json', dir=str(self.file_path.parent)
            )
        except OSError as e:
            raise StorageError(f"Failed to write {self.file_path}: {e}") from e

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
            os.replace(tmp_name, self.file_path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.file_path}: {e}") from e
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)


class DynamoDBKeyValueStore(KeyValueStore):
    """Store backed by a DynamoDB table keyed on ``key``."""

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBKeyValueStore for table: {table_name}")

    def get(self, key: str) -> Optional[str]:
        try:
            response = self.table.get_item(Key={'key': key})
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error reading '{key}' from DynamoDB: {e}")
            raise StorageError(str(e)) from e

        item = response.get('Item')
        if item is None:
            return None
        return item.get('value')

    def set_many(self, items: Dict[str, str]) -> None:
        """
        Write entries with the batch writer.

        Args:
            items: Mapping of key to value
        """
        if not items:
            return

        try:
            with self.table.batch_writer() as writer:
                for key, value in items.items():
                    writer.put_item(Item={'key': key, 'value': value})
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error writing {len(items)} entries to DynamoDB: {e}")
            raise StorageError(str(e)) from e

        logger.debug(f"Wrote {len(items)} entries to DynamoDB")
