"""
Storage collaborator for clients and experiences.

The engine never talks to storage directly; it hands field-level mutations to
a Store. Writes are per-id with no transactions: apply_mutations reports each
id's success or failure and never retries or rolls back siblings.

JsonStore keeps everything in one JSON document:

    {"clients": [{"id": ..., "experiences": [{...}, ...]}, ...]}

Records are parsed with pydantic at the boundary and the whole document is
validated against schemas/store.schema.json before every write.
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Literal, Optional, Protocol

from pydantic import BaseModel, ValidationError as PydanticValidationError

from tracker.lib import validate
from tracker.lib.config import TrackerConfig
from tracker.lib.errors import StoreError
from tracker.lib.types import (
    MONTHLY_KIND,
    Client,
    ClientMutation,
    Experience,
    Mutation,
    RawStatus,
    as_utc,
)

logger = logging.getLogger(__name__)


class Store(Protocol):
    """Read/write-by-id access to clients and their experiences."""

    def get_client(self, client_id: str) -> Optional[Client]: ...

    def list_clients(self) -> list[Client]: ...

    def add_client(self, client: Client) -> None: ...

    def update_experience(self, experience_id: str, fields: dict) -> None: ...

    def update_client(self, client_id: str, fields: dict) -> None: ...


class ExperienceRecord(BaseModel):
    """Stored form of an experience."""
    id: str
    client_id: str
    kind: str
    status: Literal["pending", "yes", "no"] = "pending"
    month_number: Optional[int] = None
    completed_at: Optional[datetime] = None
    custom_due_at: Optional[datetime] = None

    def to_experience(self) -> Experience:
        return Experience(
            id=self.id,
            client_id=self.client_id,
            kind=self.kind,
            status=RawStatus(self.status),
            month_number=self.month_number,
            completed_at=as_utc(self.completed_at),
            custom_due_at=as_utc(self.custom_due_at),
        )

    @classmethod
    def from_experience(cls, exp: Experience) -> "ExperienceRecord":
        return cls(
            id=exp.id,
            client_id=exp.client_id,
            kind=exp.kind,
            status=exp.status.value,
            month_number=exp.month_number,
            completed_at=exp.completed_at,
            custom_due_at=exp.custom_due_at,
        )


class ClientRecord(BaseModel):
    """Stored form of a client with its experiences."""
    id: str
    name: str
    signed_on_date: date
    initial_intake_date: Optional[date] = None
    paused: bool = False
    pause_started_at: Optional[datetime] = None
    paused_total_seconds: int = 0
    is_archived: bool = False
    experiences: list[ExperienceRecord] = []

    def to_client(self) -> Client:
        return Client(
            id=self.id,
            name=self.name,
            signed_on_date=self.signed_on_date,
            initial_intake_date=self.initial_intake_date,
            paused=self.paused,
            pause_started_at=as_utc(self.pause_started_at),
            paused_total_seconds=self.paused_total_seconds,
            is_archived=self.is_archived,
            experiences=[e.to_experience() for e in self.experiences],
        )

    @classmethod
    def from_client(cls, client: Client) -> "ClientRecord":
        return cls(
            id=client.id,
            name=client.name,
            signed_on_date=client.signed_on_date,
            initial_intake_date=client.initial_intake_date,
            paused=client.paused,
            pause_started_at=client.pause_started_at,
            paused_total_seconds=client.paused_total_seconds,
            is_archived=client.is_archived,
            experiences=[ExperienceRecord.from_experience(e) for e in client.experiences],
        )


class JsonStore:
    """Store backed by a single JSON file."""

    def __init__(self, path: Path, config: TrackerConfig):
        self.path = Path(path)
        self.config = config

    def _load(self) -> dict:
        if not self.path.exists():
            return {"clients": []}
        return validate.read_document(self.path, validate.STORE)

    def _save(self, data: dict) -> None:
        validate.check_before_write(data, validate.STORE, self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _parse(self, raw: dict) -> Client:
        try:
            record = ClientRecord.model_validate(raw)
        except PydanticValidationError as e:
            raise validate.ValidationError(validate.STORE, str(e), raw.get("id")) from None
        for exp in record.experiences:
            if not self.config.is_known_kind(exp.kind):
                raise validate.ValidationError(
                    validate.STORE, f"Unknown experience kind '{exp.kind}'", exp.id
                )
            if exp.kind == MONTHLY_KIND and exp.month_number not in self.config.month_numbers:
                raise validate.ValidationError(
                    validate.STORE,
                    f"Monthly month_number {exp.month_number} outside "
                    f"{self.config.monthly_min}..{self.config.monthly_max}",
                    exp.id,
                )
        return record.to_client()

    def get_client(self, client_id: str) -> Optional[Client]:
        for raw in self._load()["clients"]:
            if raw.get("id") == client_id:
                return self._parse(raw)
        return None

    def list_clients(self) -> list[Client]:
        return [self._parse(raw) for raw in self._load()["clients"]]

    def add_client(self, client: Client) -> None:
        data = self._load()
        if any(raw.get("id") == client.id for raw in data["clients"]):
            raise StoreError(client.id, "Client already exists")
        data["clients"].append(ClientRecord.from_client(client).model_dump(mode="json"))
        self._save(data)
        logger.info(f"[STORE] added client {client.id} with {len(client.experiences)} experience(s)")

    def update_experience(self, experience_id: str, fields: dict) -> None:
        data = self._load()
        for raw_client in data["clients"]:
            for raw_exp in raw_client.get("experiences", []):
                if raw_exp.get("id") == experience_id:
                    raw_exp.update(fields)
                    self._write(data, experience_id)
                    return
        raise StoreError(experience_id, "Experience not found")

    def update_client(self, client_id: str, fields: dict) -> None:
        data = self._load()
        for raw_client in data["clients"]:
            if raw_client.get("id") == client_id:
                raw_client.update(fields)
                self._write(data, client_id)
                return
        raise StoreError(client_id, "Client not found")

    def _write(self, data: dict, entity_id: str) -> None:
        try:
            self._save(data)
        except (OSError, validate.ValidationError) as e:
            raise StoreError(entity_id, f"Write failed: {e}") from e


@dataclass
class MutationReport:
    """Per-id outcome of a batch of writes."""
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # id -> error message

    @property
    def ok(self) -> bool:
        return not self.failed


def apply_mutations(store: Store, mutations: list[Mutation]) -> MutationReport:
    """Persist experience mutations one by one, reporting each id.

    A failed write does not stop or undo the others.
    """
    report = MutationReport()
    for mutation in mutations:
        try:
            store.update_experience(mutation.experience_id, mutation.to_fields())
            report.succeeded.append(mutation.experience_id)
        except StoreError as e:
            logger.error(f"[STORE] {mutation.experience_id}: {e}")
            report.failed[mutation.experience_id] = str(e)
    return report


def apply_client_mutations(store: Store, mutations: list[ClientMutation]) -> MutationReport:
    """Persist pause mutations one by one, reporting each client id."""
    report = MutationReport()
    for mutation in mutations:
        try:
            store.update_client(mutation.client_id, mutation.to_fields())
            report.succeeded.append(mutation.client_id)
        except StoreError as e:
            logger.error(f"[STORE] {mutation.client_id}: {e}")
            report.failed[mutation.client_id] = str(e)
    return report


def _new_id() -> str:
    return str(uuid.uuid4())


def build_experiences(
    client_id: str,
    config: TrackerConfig,
    id_factory: Callable[[], str] = _new_id,
) -> list[Experience]:
    """Full onboarding set for a new client: every initial kind plus the monthly series."""
    experiences = [
        Experience(id=id_factory(), client_id=client_id, kind=kind)
        for kind in config.kind_order
    ]
    experiences.extend(
        Experience(id=id_factory(), client_id=client_id, kind=MONTHLY_KIND, month_number=n)
        for n in config.month_numbers
    )
    return experiences


def backfill_monthly(
    client: Client,
    config: TrackerConfig,
    id_factory: Callable[[], str] = _new_id,
) -> list[Experience]:
    """Monthly experiences missing from a client's series (new rows only)."""
    existing = {e.month_number for e in client.experiences if e.is_monthly}
    return [
        Experience(id=id_factory(), client_id=client.id, kind=MONTHLY_KIND, month_number=n)
        for n in config.month_numbers
        if n not in existing
    ]


def new_client(
    name: str,
    signed_on_date: date,
    config: TrackerConfig,
    initial_intake_date: Optional[date] = None,
    id_factory: Callable[[], str] = _new_id,
) -> Client:
    """Create a client with its complete experience set."""
    client_id = id_factory()
    return Client(
        id=client_id,
        name=name,
        signed_on_date=signed_on_date,
        initial_intake_date=initial_intake_date,
        experiences=build_experiences(client_id, config, id_factory),
    )
