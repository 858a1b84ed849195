import pytest

from athena.core.enums import EnrollmentStatus
from athena.core.exceptions import InvalidTransitionError, ResourceNotFoundError, ValidationError


@pytest.fixture
def enrolled(platform, make_student, make_course, fall):
    student, course = make_student(), make_course(credits=4, capacity=3)
    enrollment = platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    return student, course, enrollment


def occupancy(platform, course):
    return platform.directory_service.get_course(course.id).current_enrollment


def test_complete_with_grade(platform, enrolled):
    student, course, enrollment = enrolled
    updated = platform.lifecycle_service.set_enrollment_status(enrollment.id, EnrollmentStatus.COMPLETED, "A-")
    assert updated.status == EnrollmentStatus.COMPLETED
    assert updated.grade == "A-"
    # completing keeps the seat
    assert occupancy(platform, course) == 1


def test_complete_requires_grade(platform, enrolled):
    _, _, enrollment = enrolled
    with pytest.raises(ValidationError):
        platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed")


def test_complete_uses_existing_grade(platform, enrolled):
    _, _, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Active", grade="B")
    updated = platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed")
    assert updated.grade == "B"


def test_completing_twice_counts_credits_once(platform, enrolled):
    student, _, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "A")
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "A")
    summary = platform.summary_service.compute_academic_summary(student.id)
    assert summary.completed_credits == 4


@pytest.mark.parametrize("status", [EnrollmentStatus.DROPPED, EnrollmentStatus.WITHDRAWN])
def test_leaving_releases_seat(platform, enrolled, status):
    _, course, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, status)
    assert occupancy(platform, course) == 0


def test_repeating_drop_does_not_release_twice(platform, enrolled, make_student, fall):
    _, course, enrollment = enrolled
    other = platform.enrollment_service.request_enrollment(make_student().id, course.id, fall)
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Dropped")
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Dropped")
    assert occupancy(platform, course) == 1
    assert platform.enrollment_service.get_enrollment(other.id).is_active


@pytest.mark.parametrize("first,then", [
    ("Completed", "Active"),
    ("Completed", "Dropped"),
    ("Dropped", "Active"),
    ("Dropped", "Withdrawn"),
    ("Withdrawn", "Completed"),
])
def test_invalid_transitions(platform, enrolled, first, then):
    _, _, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, first, "B" if first == "Completed" else None)
    with pytest.raises(InvalidTransitionError) as excinfo:
        platform.lifecycle_service.set_enrollment_status(enrollment.id, then)
    assert excinfo.value.details == {'current_status': first, 'requested_status': then}


def test_same_status_still_stores_grade(platform, enrolled):
    _, _, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "B")
    updated = platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "A")
    assert updated.grade == "A"
    assert platform.enrollment_service.get_enrollment(enrollment.id).grade == "A"


def test_grade_only_update_keeps_current_status(platform, enrolled):
    _, course, enrollment = enrolled
    updated = platform.lifecycle_service.set_enrollment_status(enrollment.id, None, grade="B+")
    assert updated.status == EnrollmentStatus.ACTIVE
    assert updated.grade == "B+"

    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Dropped")
    updated = platform.lifecycle_service.set_enrollment_status(enrollment.id, None, grade="C")
    assert updated.status == EnrollmentStatus.DROPPED
    assert platform.enrollment_service.get_enrollment(enrollment.id).grade == "C"
    assert occupancy(platform, course) == 0


def test_unknown_grade_and_status(platform, enrolled):
    _, _, enrollment = enrolled
    with pytest.raises(ValidationError):
        platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "Z")
    with pytest.raises(ValidationError):
        platform.lifecycle_service.set_enrollment_status(enrollment.id, "Graduated")


def test_missing_enrollment(platform):
    with pytest.raises(ResourceNotFoundError):
        platform.lifecycle_service.set_enrollment_status("nope", "Dropped")


def test_delete_active_withdraws_and_releases_seat(platform, enrolled):
    _, course, enrollment = enrolled
    deleted = platform.lifecycle_service.delete_enrollment(enrollment.id)
    assert deleted.status == EnrollmentStatus.WITHDRAWN
    assert deleted.is_deleted
    assert occupancy(platform, course) == 0
    assert platform.enrollment_service.list_enrollments(course_id=course.id) == []


def test_deleted_enrollment_cannot_be_touched(platform, enrolled):
    _, _, enrollment = enrolled
    platform.lifecycle_service.delete_enrollment(enrollment.id)
    with pytest.raises(ResourceNotFoundError):
        platform.lifecycle_service.delete_enrollment(enrollment.id)
    with pytest.raises(ResourceNotFoundError):
        platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "A")


def test_delete_completed_keeps_grade_history(platform, enrolled):
    student, course, enrollment = enrolled
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "B")
    platform.lifecycle_service.delete_enrollment(enrollment.id)
    assert occupancy(platform, course) == 1
    summary = platform.summary_service.compute_academic_summary(student.id)
    assert summary.gpa == 3.0
    assert summary.completed_credits == 4
    assert summary.enrollments == []
