# Pydantic models for request and response validation
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class StaffMember(BaseModel):
    # Staff record as returned by Phorest
    staffId: str
    firstName: str = ""
    lastName: str = ""
    branchId: Optional[str] = None
    archived: bool = False
    hideFromOnlineBookings: bool = False
    jobTitle: Optional[str] = None
    staffCategoryName: Optional[str] = None
    disqualifiedServices: List[str] = Field(default_factory=list)
    qualifiedServices: Optional[List[str]] = None

    model_config = {
        "extra": "allow"  # Allow extra fields from the Phorest API
    }

    # Phorest sends null for unset names, flags and lists
    @field_validator("firstName", "lastName", mode="before")
    @classmethod
    def null_name_is_blank(cls, value):
        return "" if value is None else value

    @field_validator("archived", "hideFromOnlineBookings", mode="before")
    @classmethod
    def null_flag_is_false(cls, value):
        return False if value is None else value

    @field_validator("disqualifiedServices", mode="before")
    @classmethod
    def null_list_is_empty(cls, value):
        return [] if value is None else value

    @property
    def display_name(self) -> str:
        return f"{self.firstName or ''} {self.lastName or ''}".strip() or "Unknown Staff"

    @property
    def title(self) -> str:
        return self.jobTitle or self.staffCategoryName or "Beauty Therapist"


class TimeSlot(BaseModel):
    # One bookable start time for one staff member on one date
    time: str
    available: bool = True
    startTime: Optional[str] = None
    endTime: Optional[str] = None


class SlotEntry(BaseModel):
    # Flattened slot used by the unified time picker
    time: str
    staffId: str
    staffName: str
    available: bool


class StaffAvailability(BaseModel):
    staffId: str
    staffName: str
    title: str
    slots: List[TimeSlot] = Field(default_factory=list)
    error: Optional[str] = None
    # Raw failure text, only filled outside production
    details: Optional[str] = None


class AvailabilityRequest(BaseModel):
    # Required fields are checked by the service so the caller gets a 400
    date: Optional[str] = None
    serviceId: Optional[str] = None
    branchId: Optional[str] = None
    duration: int = Field(default=60, gt=0, le=600)


class AvailabilityResponse(BaseModel):
    success: bool = True
    date: str
    slots: List[SlotEntry]
    staff: List[StaffAvailability]


class BookingRequest(BaseModel):
    clientId: Optional[str] = None
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    startTime: Optional[str] = None
    notes: Optional[str] = None
    branchId: Optional[str] = None

    # Optional details used for confirmation e-mails
    clientEmail: Optional[EmailStr] = None
    clientName: Optional[str] = None
    serviceName: Optional[str] = None
    staffName: Optional[str] = None
    clinicName: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None


class BookingOutcome(BaseModel):
    success: bool = True
    message: str = "Appointment booked successfully"
    booking: Dict[str, Any]


class ClientAppointment(BaseModel):
    id: Optional[str] = None
    serviceId: Optional[str] = None
    serviceName: Optional[str] = None
    staffId: Optional[str] = None
    staffName: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    cost: Optional[float] = None


class ClientAppointmentsResponse(BaseModel):
    success: bool = True
    appointments: List[ClientAppointment]


class ErrorResponse(BaseModel):
    # Error response model
    success: bool = False
    error: str
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None


# Rewards models

class UserStats(BaseModel):
    totalOrders: int = 0
    totalVisits: int = 0
    totalSpent: float = 0
    daysActive: int = 0


class ActiveSpendingChallenge(BaseModel):
    challengeId: str
    startedAt: str
    currentSpend: float = 0
    products: List[Dict[str, Any]] = Field(default_factory=list)


class CompletedSpendingChallenge(BaseModel):
    challengeId: str
    completedAt: str
    finalSpend: float
    rewardsEarned: Dict[str, Any] = Field(default_factory=dict)


class SpendingChallengeProgress(BaseModel):
    active: List[ActiveSpendingChallenge] = Field(default_factory=list)
    completed: List[CompletedSpendingChallenge] = Field(default_factory=list)


class UserProgress(BaseModel):
    userId: str
    points: int = 0
    streak: int = 0
    lastActivity: str
    achievements: List[str] = Field(default_factory=list)
    # Keyed by ISO date, then task name
    dailyTasks: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
    stats: UserStats = Field(default_factory=UserStats)
    # Keyed by ISO week ("2025-W07") / event id, then challenge id
    weeklyChallenges: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    seasonalChallenges: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    spendingChallenges: SpendingChallengeProgress = Field(default_factory=SpendingChallengeProgress)


class ProgressUpdate(BaseModel):
    userId: Optional[str] = None
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ChallengeRequirement(BaseModel):
    type: str
    target: int


class Challenge(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    type: str
    category: str
    points: int
    requirement: ChallengeRequirement
    isActive: bool = True
    multiplier: Optional[float] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None


class ChallengeUpdate(BaseModel):
    userId: Optional[str] = None
    challengeId: str
    challengeType: str
    progress: Optional[int] = Field(default=None, gt=0)


class SpendingChallengeAction(BaseModel):
    userId: Optional[str] = None
    challengeId: str
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)


# Client account models

class ClientAccountRequest(BaseModel):
    # Required fields are checked by the service so the caller gets a 400
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    dateOfBirth: Optional[str] = None
    homeClinicId: Optional[str] = None
    skinType: Optional[str] = None
    skinConcerns: List[str] = Field(default_factory=list)
    allergies: Optional[str] = None
    marketingConsent: Optional[bool] = None
    smsConsent: Optional[bool] = None
