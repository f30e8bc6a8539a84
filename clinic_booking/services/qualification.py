# Staff qualification filtering
#
# Pure functions: no provider calls, no side effects. Shared by the provider
# client's qualification-aware lookup and the availability fallback path so
# both produce the same staff set.
import logging
from typing import Iterable, List, Sequence

from clinic_booking.models.schemas import StaffMember

logger = logging.getLogger(__name__)

DEFAULT_TEST_ACCOUNT_MARKERS = ("test", "led")


def looks_like_test_account(first_name: str, markers: Sequence[str] = DEFAULT_TEST_ACCOUNT_MARKERS) -> bool:
    """Guess whether a staff record is a placeholder account.

    Heuristic only: a case-insensitive substring match on the first name.
    It can hide a real practitioner whose name contains a marker and miss
    placeholders named otherwise. Phorest exposes no dedicated flag, so
    which accounts count as test accounts is a decision for the clinic
    owner.
    """
    name = (first_name or "").lower()
    return any(marker.lower() in name for marker in markers if marker)


def is_bookable_at_branch(
    staff: StaffMember,
    branch_id: str,
    markers: Sequence[str] = DEFAULT_TEST_ACCOUNT_MARKERS,
) -> bool:
    return (
        staff.branchId == branch_id
        and not staff.archived
        and not staff.hideFromOnlineBookings
        and not looks_like_test_account(staff.firstName, markers)
    )


def is_qualified_for_service(staff: StaffMember, service_id: str) -> bool:
    if service_id in staff.disqualifiedServices:
        return False
    if staff.qualifiedServices is not None:
        return service_id in staff.qualifiedServices
    return True


def filter_qualified_staff(
    staff: Iterable[StaffMember],
    service_id: str,
    branch_id: str,
    markers: Sequence[str] = DEFAULT_TEST_ACCOUNT_MARKERS,
) -> List[StaffMember]:
    """Staff at ``branch_id`` who may perform ``service_id``, in input order."""
    qualified = []

    for member in staff:
        if not is_bookable_at_branch(member, branch_id, markers):
            logger.debug(f"Skipping {member.display_name}: not bookable at branch {branch_id}")
            continue
        if not is_qualified_for_service(member, service_id):
            logger.debug(f"Skipping {member.display_name}: not qualified for service {service_id}")
            continue
        qualified.append(member)

    return qualified
