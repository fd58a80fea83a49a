from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

from app.models.enums import ReviewStatus, RiskAssessment


# ratio name -> number | string | structured record
# strict so a JSON bool is rejected instead of coerced to 1.0
RatioValue = Union[StrictInt, StrictFloat, StrictStr, Dict[str, Any]]


class WorkingDataIn(BaseModel):
    """
    Working data fields as sent by the portal (camelCase).
    Only the fields a client actually sends are applied on update.
    """
    ratios: Optional[Dict[str, RatioValue]] = None
    commentary: Optional[str] = None
    conclusions: Optional[str] = None
    keyFindings: Optional[List[str]] = None
    riskAssessment: Optional[RiskAssessment] = None

    def working_fields(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class AnalyticalReviewCreateRequest(WorkingDataIn):
    pass


class AnalyticalReviewUpdateRequest(WorkingDataIn):
    changeNote: Optional[str] = Field(default=None, max_length=2000)
    # optional optimistic-concurrency token: the currentVersion the client edited
    expectedVersion: Optional[int] = Field(default=None, ge=1)

    def working_fields(self) -> Dict[str, Any]:
        data = super().working_fields()
        data.pop("changeNote", None)
        data.pop("expectedVersion", None)
        return data


class RestoreVersionRequest(BaseModel):
    changeNote: Optional[str] = Field(default=None, max_length=2000)


class ReviewDecisionRequest(BaseModel):
    comments: Optional[str] = Field(default=None, max_length=4000)


class StatusUpdateRequest(BaseModel):
    # validated in the service so an unknown value is a 400, not a 422
    status: str


class EngagementSummary(BaseModel):
    id: str
    title: str
    clientId: str
    status: str
    yearEndDate: Optional[str] = None


class WorkingDataOut(BaseModel):
    ratios: Dict[str, Any] = Field(default_factory=dict)
    commentary: str = ""
    conclusions: str = ""
    keyFindings: List[str] = Field(default_factory=list)
    riskAssessment: str = ""


class VersionOut(BaseModel):
    id: str
    versionNumber: int
    data: WorkingDataOut
    editedBy: str
    editedAt: Optional[str] = None
    changeNote: Optional[str] = None
    ipAddress: Optional[str] = None


class AnalyticalReviewOut(WorkingDataOut):
    id: str
    engagementId: str
    engagement: Optional[EngagementSummary] = None
    auditorId: str
    clientId: str
    status: ReviewStatus
    currentVersion: int
    versions: List[VersionOut] = Field(default_factory=list)

    lastEditedBy: Optional[str] = None
    lastEditedAt: Optional[str] = None
    submittedAt: Optional[str] = None
    submittedBy: Optional[str] = None
    reviewedAt: Optional[str] = None
    reviewedBy: Optional[str] = None
    reviewComments: Optional[str] = None
    approvedAt: Optional[str] = None
    approvedBy: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class AnalyticalReviewEnvelope(BaseModel):
    message: str
    data: AnalyticalReviewOut


class AnalyticalReviewListEnvelope(BaseModel):
    message: str
    count: int
    data: List[AnalyticalReviewOut]


class VersionListData(BaseModel):
    currentVersion: int
    totalVersions: int
    versions: List[VersionOut]


class VersionListEnvelope(BaseModel):
    message: str
    data: VersionListData


class VersionEnvelope(BaseModel):
    message: str
    data: VersionOut


class MessageResponse(BaseModel):
    message: str
