from __future__ import annotations

from enum import Enum, IntEnum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class FormType(IntEnum):
    PRESCOUTING = 0
    MATCH = 1
    PIT = 2


class ProtocolLayout(str, Enum):
    """
    Header layouts seen across tablet exporter revisions.
    A: type|tablet|scout|team|match|records...
    B: type|flag|tablet|scout|team|match|records...
    """
    A = "A"
    B = "B"

    @property
    def header_width(self) -> int:
        return 5 if self is ProtocolLayout.A else 6

    @property
    def marker(self) -> str:
        return "v1" if self is ProtocolLayout.A else "v2"

    @classmethod
    def from_marker(cls, marker: str) -> Optional["ProtocolLayout"]:
        return {"v1": cls.A, "v2": cls.B}.get(marker.strip().lower())


class Record(BaseModel):
    item_id: int
    value: str


class Form(BaseModel):
    form_type: FormType
    tablet_num: int
    scout_name: str
    team_num: int
    match_num: int
    flag: Optional[bool] = None
    form_id: Optional[int] = None
    records: list[Record] = Field(default_factory=list)

    def assign_id(self, form_id: int) -> None:
        """Store-generated id; set exactly once."""
        if self.form_id is not None:
            raise ValueError(f"form already persisted as {self.form_id}")
        self.form_id = form_id


class Item(BaseModel):
    id: int
    name: str
    datatype: Literal["numeric", "boolean", "text"] = "numeric"
    active: bool = True


class PersistOutcome(BaseModel):
    status: Literal["stored", "header_failed", "partial"]
    form_id: Optional[int] = None
    records_written: int = 0
    records_total: int = 0
    failed_item_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "stored"


class IngestReport(BaseModel):
    source_file: str
    backup_file: Optional[str] = None
    forms_decoded: int = 0
    forms_stored: int = 0
    outcomes: list[PersistOutcome] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
