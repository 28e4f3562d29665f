"""Persistence backends for the secret store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List

from ..config import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD
from ..errors import DecodeError, StoreError
from ..store.secret_store import Account

log = logging.getLogger(__name__)

FILE_FORMAT_VERSION: int = 1


class MemoryBackend:
    """Keeps accounts in a dict; insertion order doubles as display order."""

    def __init__(self) -> None:
        self._accounts: Dict[str, Account] = {}

    def list(self) -> List[Account]:
        return list(self._accounts.values())

    def put(self, account: Account) -> None:
        self._accounts[account.id] = account

    def delete(self, account_id: str) -> None:
        self._accounts.pop(account_id, None)


class JsonFileBackend:
    """Stores accounts in a single JSON document.

    Writes go to a temporary file in the same directory which is then moved
    over the original, so readers only ever see a complete document. Secrets
    are stored as Base32 text. A record whose secret no longer decodes is left
    on disk untouched and surfaces as an account with an empty key.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read_records(self) -> List[dict]:
        if not self.path.exists():
            return []
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not isinstance(data.get("accounts"), list):
            raise StoreError(f"{self.path} is not a TOTPVault account file.")
        if int(data.get("version", -1)) != FILE_FORMAT_VERSION:
            raise StoreError(f"Unsupported account file version in {self.path}.")
        if not all(isinstance(record, dict) for record in data["accounts"]):
            raise StoreError(f"{self.path} contains an account entry that is not an object.")
        return data["accounts"]

    def _write_records(self, records: List[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"version": FILE_FORMAT_VERSION, "accounts": records}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(json.dumps(document, indent=2) + "\n")
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def list(self) -> List[Account]:
        accounts = []
        for record in self._read_records():
            try:
                account = Account.from_record(record)
            except DecodeError:
                log.warning("Account %s has an undecodable secret", record.get("id"))
                account = Account(
                    id=str(record["id"]),
                    name=str(record["name"]),
                    secret=b"",
                    algorithm=str(record.get("algorithm", DEFAULT_ALGORITHM)),
                    digits=int(record.get("digits", DEFAULT_DIGITS)),
                    period=int(record.get("period", DEFAULT_PERIOD)),
                )
            accounts.append(account)
        return accounts

    def put(self, account: Account) -> None:
        records = [record for record in self._read_records() if record.get("id") != account.id]
        records.append(account.to_record())
        self._write_records(records)

    def delete(self, account_id: str) -> None:
        records = self._read_records()
        remaining = [record for record in records if record.get("id") != account_id]
        if len(remaining) != len(records):
            self._write_records(remaining)
