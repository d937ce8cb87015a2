from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UseCaseRecord(BaseModel):
    """One catalog row as served by the upstream API.

    Upstream keys are human-readable column titles; attributes are snake_case.
    Unknown upstream keys are kept so relayed data is never silently dropped.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    capability: int = Field(alias="Capability")
    business_function: str = Field(default="", alias="Business Function")
    business_capability: str = Field(default="", alias="Business Capability")
    stakeholder: str = Field(default="", alias="Stakeholder or User")
    use_case: str = Field(default="", alias="AI Use Case")
    algorithms: str = Field(default="", alias="AI Algorithms & Frameworks")
    datasets: str = Field(default="", alias="Datasets")
    implementation: str = Field(default="", alias="Action / Implementation")
    tools: str = Field(default="", alias="AI Tools & Models")
    platforms: str = Field(default="", alias="Digital Platforms and Tools")
    expected_outcomes: str = Field(default="", alias="Expected Outcomes and Results")


class UseCasePage(BaseModel):
    # total may be missing or junk on some upstream responses; the loader copes.
    total: Any = None
    page: int | None = None
    page_size: int | None = None
    data: list[UseCaseRecord] = Field(default_factory=list)

    def valid_total(self) -> int | None:
        total = self.total
        if isinstance(total, bool) or not isinstance(total, int | float):
            return None
        if not math.isfinite(total) or total <= 0:
            return None
        return int(total)

    def effective_page_size(self, requested: int) -> int:
        """The size the server actually paged by, which a clamp may have lowered."""
        if self.page_size is not None and self.page_size > 0:
            return self.page_size
        return requested


class LoginRequest(BaseModel):
    token: str | None = None


class MessageResponse(BaseModel):
    message: str
