"""
Address Registry

Хранилище адресов (пулы, токены, контракты) в виде key-value по секциям.
Передаётся в оркестрацию явно; математика цены его не использует.

Формат файла (JSON):
    {
        "contracts": {"factory": "0x..."},
        "pools": {"pETH_pUSDC_3000": {"address": "0x...", ...}}
    }
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AddressRegistry:
    """
    Key-value хранилище адресов.

    path=None - только в памяти (тесты, dry-run).
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, Any]] = self._load()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self.path is None or not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt address registry {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Address registry {self.path} must contain a JSON object")

        # Скалярные поля верхнего уровня (version и т.п.) не секции
        return {k: v for k, v in data.items() if isinstance(v, dict)}

    def _save(self):
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = dict(self._data)
        payload["lastUpdated"] = datetime.now(timezone.utc).date().isoformat()

        # Atomic write: temp file в той же директории + os.replace
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, section: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any):
        """Записать значение и сразу сохранить файл."""
        with self._lock:
            self._data.setdefault(section, {})[key] = value
            self._save()
        logger.debug(f"Registry: {section}.{key} updated")

    def delete(self, section: str, key: str) -> bool:
        with self._lock:
            removed = self._data.get(section, {}).pop(key, None) is not None
            if removed:
                self._save()
            return removed

    def items(self, section: str) -> Dict[str, Any]:
        """Копия секции."""
        with self._lock:
            return dict(self._data.get(section, {}))

    def sections(self) -> List[str]:
        with self._lock:
            return sorted(self._data.keys())
