import json
import logging
import os
import threading
from datetime import datetime
from typing import Dict, Iterable, Optional, Protocol

from lead_swarm.models import Lead, PsychologyProfile
from lead_swarm.orchestration.state import Effect, PersistPriority, PersistPsychology
from lead_swarm.utils.error_handler import LeadNotFoundError

logger = logging.getLogger(__name__)


class LeadStore(Protocol):
    def get(self, lead_id: str) -> Lead:
        ...

    def update_psychology(self, lead_id: str, disc_type: str, risk_tolerance: str, pain_points: list) -> None:
        ...

    def update_priority(self, lead_id: str, priority: str) -> None:
        ...


def _merge_psychology(lead: Lead, disc_type: str, risk_tolerance: str, pain_points: list) -> Lead:
    current = lead.psychology.model_dump() if lead.psychology else {}
    current.update({"disc_type": disc_type, "risk_tolerance": risk_tolerance, "pain_points": list(pain_points)})
    return lead.model_copy(update={"psychology": PsychologyProfile(**current)})


class InMemoryLeadStore:
    """Dict-backed store; last writer wins."""

    def __init__(self, leads: Optional[Iterable[Lead]] = None):
        self._leads: Dict[str, Lead] = {lead.id: lead for lead in leads or []}

    def add(self, lead: Lead) -> None:
        self._leads[lead.id] = lead

    def get(self, lead_id: str) -> Lead:
        try:
            return self._leads[lead_id]
        except KeyError:
            raise LeadNotFoundError(lead_id) from None

    def update_psychology(self, lead_id, disc_type, risk_tolerance, pain_points):
        self._leads[lead_id] = _merge_psychology(self.get(lead_id), disc_type, risk_tolerance, pain_points)

    def update_priority(self, lead_id, priority):
        self._leads[lead_id] = self.get(lead_id).model_copy(update={"priority": priority})


class JsonLeadStore:
    """Leads kept in a single JSON file (a list of lead records)."""

    def __init__(self, path: str = "data/leads.json"):
        self.path = path
        self._lock = threading.Lock()

    def init_db(self):
        """Ensure the target directory and JSON file exist."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        if not os.path.exists(self.path):
            with open(self.path, "w") as f:
                json.dump([], f)

    def _load(self) -> list:
        self.init_db()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.decoder.JSONDecodeError:
            logger.warning(f"Lead store {self.path} is corrupt; treating it as empty.")
            return []

    def _save(self, records: list) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=4, ensure_ascii=False)

    def _find(self, records: list, lead_id: str) -> int:
        for idx, record in enumerate(records):
            if record.get("id") == lead_id:
                return idx
        raise LeadNotFoundError(lead_id)

    def all(self) -> list[Lead]:
        with self._lock:
            records = self._load()
        return [Lead.model_validate(record) for record in records]

    def add(self, lead: Lead) -> None:
        with self._lock:
            records = [r for r in self._load() if r.get("id") != lead.id]
            records.append(lead.model_dump(mode="json", by_alias=True))
            self._save(records)

    def get(self, lead_id: str) -> Lead:
        with self._lock:
            records = self._load()
        return Lead.model_validate(records[self._find(records, lead_id)])

    def _replace(self, lead_id: str, updater) -> None:
        with self._lock:
            records = self._load()
            idx = self._find(records, lead_id)
            lead = updater(Lead.model_validate(records[idx]))
            record = lead.model_dump(mode="json", by_alias=True)
            record["updatedAt"] = datetime.now().isoformat()
            records[idx] = record
            self._save(records)

    def update_psychology(self, lead_id, disc_type, risk_tolerance, pain_points):
        self._replace(lead_id, lambda lead: _merge_psychology(lead, disc_type, risk_tolerance, pain_points))
        logger.info(f"Hot-saved psychology profile for lead {lead_id}.")

    def update_priority(self, lead_id, priority):
        self._replace(lead_id, lambda lead: lead.model_copy(update={"priority": priority}))
        logger.info(f"Saved priority '{priority}' for lead {lead_id}.")


def apply_effect(store: LeadStore, effect: Effect) -> None:
    """Apply one swarm effect to the store."""
    if isinstance(effect, PersistPsychology):
        store.update_psychology(effect.lead_id, effect.disc_type, effect.risk_tolerance, list(effect.pain_points))
    elif isinstance(effect, PersistPriority):
        store.update_priority(effect.lead_id, effect.priority)
    else:
        raise TypeError(f"Unknown effect: {effect!r}")
