"""Persistence of newsletter records as JSON files."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Union

from pydantic import ValidationError

from ..exceptions import NewsletterNotFoundError
from ..models.dispatch import Recipient
from ..models.document import Document, NewsletterRecord

logger = logging.getLogger(__name__)

RECORD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class DocumentStore(Protocol):
    """Storage the sender needs: records in, records out."""

    def load(self, newsletter_id: str) -> NewsletterRecord:
        ...

    def save(self, record: NewsletterRecord) -> None:
        ...

    def mark_sent(
        self, newsletter_id: str, recipients_count: int, when: Optional[datetime] = None
    ) -> NewsletterRecord:
        ...


class JsonFileStore:
    """Stores each newsletter as ``<storage_dir>/<id>.json``."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, newsletter_id: str) -> Path:
        if not RECORD_ID_PATTERN.match(newsletter_id or ""):
            raise NewsletterNotFoundError(f"Invalid newsletter id: {newsletter_id!r}")
        return self.directory / f"{newsletter_id}.json"

    def load(self, newsletter_id: str) -> NewsletterRecord:
        path = self._path(newsletter_id)
        if not path.exists():
            raise NewsletterNotFoundError(f"Newsletter {newsletter_id} not found")

        try:
            return NewsletterRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.error(f"Corrupt newsletter record {path}: {e}")
            raise

    def save(self, record: NewsletterRecord) -> None:
        path = self._path(record.id)
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Saved newsletter {record.id} to {path}")

    def load_document(self, newsletter_id: str) -> Document:
        return self.load(newsletter_id).to_document()

    def save_document(self, newsletter_id: str, document: Document) -> NewsletterRecord:
        """Store ``document`` as the content of a record, creating it if needed."""
        try:
            record = self.load(newsletter_id)
        except NewsletterNotFoundError:
            record = NewsletterRecord(id=newsletter_id)

        record = record.with_document(document)
        self.save(record)
        return record

    def mark_sent(
        self, newsletter_id: str, recipients_count: int, when: Optional[datetime] = None
    ) -> NewsletterRecord:
        record = self.load(newsletter_id).mark_sent(recipients_count, when)
        self.save(record)
        return record

    def list_ids(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))


def load_recipients(path: Union[str, Path]) -> List[Recipient]:
    """Read recipients from a JSON array or a plain list of addresses.

    JSON entries may be address strings or objects with ``email`` and an
    optional ``unsubscribeToken`` (or ``unsubscribe_token``). Any other file
    is read as one address per line; blank lines and ``#`` comments are
    skipped.
    """
    text = Path(path).read_text(encoding="utf-8")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None

    if isinstance(payload, list):
        recipients = []
        for entry in payload:
            if isinstance(entry, str):
                recipients.append(Recipient(email=entry))
            elif isinstance(entry, dict) and entry.get("email"):
                token = entry.get("unsubscribeToken") or entry.get("unsubscribe_token")
                recipients.append(Recipient(email=entry["email"], unsubscribe_token=token))
            else:
                logger.warning(f"Ignoring malformed recipient entry: {entry!r}")
        return recipients

    return [
        Recipient(email=line.strip())
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
