"""
Data model shared by the selection engine, the operator and the dashboard.

Strategy objects are pydantic models so they can be validated straight from
the SidecarSet custom resource (camelCase wire names). Instances are plain
frozen dataclasses: the engine only ever reads a point-in-time snapshot.
"""

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


WILDCARD = "*"

ROLLING_UPDATE = "RollingUpdate"
NOT_UPDATE = "NotUpdate"

_PERCENT_RE = re.compile(r"^(\d+)%$")


class BoundKind(str, enum.Enum):
    ABSOLUTE = "Absolute"
    PERCENT = "Percent"


@dataclass(frozen=True)
class IntOrPercent:
    """A bound given either as an absolute count or as a percentage."""

    kind: BoundKind
    value: int

    @classmethod
    def parse(cls, raw: Any) -> "IntOrPercent":
        """Build a bound from its wire form: an int or a ``"<digits>%"`` string."""
        if isinstance(raw, IntOrPercent):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"invalid int-or-percent value: {raw!r}")
        if isinstance(raw, int):
            return cls(BoundKind.ABSOLUTE, raw)
        if isinstance(raw, str):
            text = raw.strip()
            match = _PERCENT_RE.match(text)
            if match:
                return cls(BoundKind.PERCENT, int(match.group(1)))
            if text.isdigit():
                return cls(BoundKind.ABSOLUTE, int(text))
        raise ValueError(f"invalid int-or-percent value: {raw!r}")

    def __str__(self) -> str:
        if self.kind is BoundKind.PERCENT:
            return f"{self.value}%"
        return str(self.value)


class LabelSelectorRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    operator: str
    values: List[str] = Field(default_factory=list)


class LabelSelector(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_labels: Dict[str, str] = Field(default_factory=dict, alias="matchLabels")
    match_expressions: List[LabelSelectorRequirement] = Field(
        default_factory=list, alias="matchExpressions"
    )


class ScatterTerm(BaseModel):
    """A label key/value used to spread an upgrade batch across groups."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str

    @property
    def is_wildcard(self) -> bool:
        return self.value == WILDCARD

    def matches(self, labels: Dict[str, str]) -> bool:
        return self.key in labels and labels[self.key] == self.value


class UpdateStrategy(BaseModel):
    """The ``spec.updateStrategy`` block of a SidecarSet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = ROLLING_UPDATE
    paused: bool = False
    partition: Optional[IntOrPercent] = None
    max_unavailable: Optional[IntOrPercent] = Field(default=None, alias="maxUnavailable")
    selector: Optional[LabelSelector] = None
    scatter_strategy: List[ScatterTerm] = Field(default_factory=list, alias="scatterStrategy")

    @field_validator("partition", "max_unavailable", mode="before")
    @classmethod
    def parse_bound(cls, v: Any) -> Optional[IntOrPercent]:
        if v is None:
            return None
        return IntOrPercent.parse(v)

    @property
    def halted(self) -> bool:
        """True when the strategy must not select anything this pass."""
        return self.paused or self.type == NOT_UPDATE


@dataclass(frozen=True)
class Instance:
    """Point-in-time view of one pod carrying an injected sidecar."""

    name: str
    creation_timestamp: datetime
    ready: bool = True
    namespace: str = "default"
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    terminating: bool = False
    sidecars_running: bool = True

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"
