import threading

import pytest

from athena.core.academics import Term
from athena.core.enums import AuditAction, EnrollmentStatus
from athena.core.exceptions import (
    CourseFullError, CreditLimitExceededError, DuplicateEnrollmentError, ResourceNotFoundError,
    ValidationError,
)


def occupancy(platform, course):
    return platform.directory_service.get_course(course.id).current_enrollment


def test_enrollment_creates_active_record_and_takes_seat(platform, make_student, make_course, fall):
    student, course = make_student(), make_course(capacity=5)
    enrollment = platform.enrollment_service.request_enrollment(student.id, course.id, fall)

    stored = platform.enrollment_service.get_enrollment(enrollment.id)
    assert stored.status == EnrollmentStatus.ACTIVE
    assert (stored.semester, stored.year) == ("Fall", 2025)
    assert occupancy(platform, course) == 1
    [entry] = [a for a in platform.activity_service.list_activities() if a.action == AuditAction.ENROLL]
    assert entry.target_id == enrollment.id
    assert entry.id != enrollment.id
    assert entry.to_dict()['target_id'] == enrollment.id


def test_single_seat_scenario(platform, make_student, make_course, fall):
    a, b = make_student("Ann"), make_student("Ben")
    course = make_course(capacity=1)
    service = platform.enrollment_service

    first = service.request_enrollment(a.id, course.id, fall)
    assert occupancy(platform, course) == 1

    with pytest.raises(CourseFullError) as excinfo:
        service.request_enrollment(b.id, course.id, fall)
    assert excinfo.value.error_code == "course_full"
    assert excinfo.value.details == {'capacity': 1, 'current_enrollment': 1}

    platform.lifecycle_service.set_enrollment_status(first.id, EnrollmentStatus.DROPPED)
    assert occupancy(platform, course) == 0

    service.request_enrollment(b.id, course.id, fall)
    assert occupancy(platform, course) == 1


def test_credit_cap_scenario(platform, make_student, make_course, fall):
    student = make_student()
    service = platform.enrollment_service
    for credits in (5, 5, 5):
        service.request_enrollment(student.id, make_course(credits=credits).id, fall)

    with pytest.raises(CreditLimitExceededError) as excinfo:
        service.request_enrollment(student.id, make_course(credits=4).id, fall)
    assert excinfo.value.details['current_credits'] == 15
    assert excinfo.value.details['max_credits'] == 18
    assert excinfo.value.to_dict()['error_kind'] == "credit_limit_exceeded"

    service.request_enrollment(student.id, make_course(credits=3).id, fall)
    assert platform.repositories['enrollment'].active_credits(student.id, fall) == 18


def test_compressed_term_uses_reduced_cap(platform, make_student, make_course):
    summer = Term("Summer", 2025)
    student = make_student()
    service = platform.enrollment_service
    service.request_enrollment(student.id, make_course(credits=4, semester="Summer").id, summer)
    service.request_enrollment(student.id, make_course(credits=4, semester="Summer").id, summer)
    with pytest.raises(CreditLimitExceededError) as excinfo:
        service.request_enrollment(student.id, make_course(credits=3, semester="Summer").id, summer)
    assert excinfo.value.details['max_credits'] == 10


def test_credits_in_other_terms_do_not_count(platform, make_student, make_course, fall):
    student = make_student()
    service = platform.enrollment_service
    spring = Term("Spring", 2026)
    for _ in range(3):
        service.request_enrollment(student.id, make_course(credits=6).id, fall)
    service.request_enrollment(student.id, make_course(credits=6, semester="Spring", year=2026).id, spring)


def test_only_active_enrollments_count_toward_cap(platform, make_student, make_course, fall):
    student = make_student()
    service = platform.enrollment_service
    dropped = service.request_enrollment(student.id, make_course(credits=6).id, fall)
    service.request_enrollment(student.id, make_course(credits=6).id, fall)
    service.request_enrollment(student.id, make_course(credits=6).id, fall)
    platform.lifecycle_service.set_enrollment_status(dropped.id, "Dropped")
    service.request_enrollment(student.id, make_course(credits=6).id, fall)


def test_duplicate_enrollment_rejected(platform, make_student, make_course, fall):
    student, course = make_student(), make_course()
    first = platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    with pytest.raises(DuplicateEnrollmentError) as excinfo:
        platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    assert excinfo.value.details['enrollment_id'] == first.id
    assert occupancy(platform, course) == 1


def test_duplicate_check_precedes_capacity(platform, make_student, make_course, fall):
    student, course = make_student(), make_course(capacity=1)
    platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    with pytest.raises(DuplicateEnrollmentError):
        platform.enrollment_service.request_enrollment(student.id, course.id, fall)


def test_dropped_enrollment_still_blocks_duplicate(platform, make_student, make_course, fall):
    student, course = make_student(), make_course()
    first = platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    platform.lifecycle_service.set_enrollment_status(first.id, EnrollmentStatus.DROPPED)
    with pytest.raises(DuplicateEnrollmentError):
        platform.enrollment_service.request_enrollment(student.id, course.id, fall)


def test_deleted_enrollment_allows_reenrollment(platform, make_student, make_course, fall):
    student, course = make_student(), make_course()
    first = platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    platform.lifecycle_service.delete_enrollment(first.id)
    platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    assert occupancy(platform, course) == 1


def test_semester_spelling_does_not_bypass_duplicate_check(platform, make_student, make_course):
    student, course = make_student(), make_course(capacity=5)
    platform.enrollment_service.request_enrollment(student.id, course.id, Term("Fall", 2025))
    for spelling in ("fall", "FALL ", " Fall"):
        with pytest.raises(DuplicateEnrollmentError):
            platform.enrollment_service.request_enrollment(student.id, course.id, Term(spelling, 2025))
    assert occupancy(platform, course) == 1


def test_semester_spelling_does_not_bypass_credit_cap(platform, make_student, make_course):
    student = make_student()
    service = platform.enrollment_service
    for spelling in ("Fall", "fall", "FALL "):
        service.request_enrollment(student.id, make_course(credits=6).id, Term(spelling, 2025))
    with pytest.raises(CreditLimitExceededError) as excinfo:
        service.request_enrollment(student.id, make_course(credits=6).id, Term("fAll", 2025))
    assert excinfo.value.details['current_credits'] == 18
    assert platform.repositories['enrollment'].active_credits(student.id, Term("Fall", 2025)) == 18


def test_course_created_with_loose_semester_is_canonical(platform, make_student, make_course, fall):
    course = make_course(semester="  fall ")
    assert course.semester == "Fall"
    assert platform.directory_service.get_course(course.id).term == fall
    enrollment = platform.enrollment_service.request_enrollment(make_student().id, course.id, Term("FALL", 2025))
    assert enrollment.semester == "Fall"


@pytest.mark.parametrize("term", [Term("Spring", 2025), Term("Fall", 2026)])
def test_term_must_match_course_offering(platform, make_student, make_course, term):
    student, course = make_student(), make_course(semester="Fall", year=2025)
    with pytest.raises(ValidationError) as excinfo:
        platform.enrollment_service.request_enrollment(student.id, course.id, term)
    assert excinfo.value.details == {'course_term': "Fall 2025", 'requested_term': str(term)}
    assert occupancy(platform, course) == 0


def test_missing_student_and_course(platform, make_student, make_course, fall):
    with pytest.raises(ResourceNotFoundError):
        platform.enrollment_service.request_enrollment("no-such-student", make_course().id, fall)
    with pytest.raises(ResourceNotFoundError):
        platform.enrollment_service.request_enrollment(make_student().id, "no-such-course", fall)


@pytest.mark.parametrize("student_id,course_id,term", [
    ("", "c", Term("Fall", 2025)),
    ("s", "", Term("Fall", 2025)),
    ("s", "c", Term("", 2025)),
    ("s", "c", Term("Fall", 1066)),
])
def test_invalid_input(platform, student_id, course_id, term):
    with pytest.raises(ValidationError):
        platform.enrollment_service.request_enrollment(student_id, course_id, term)


def test_rejection_leaves_no_partial_state(platform, make_student, make_course, fall):
    student, course = make_student(), make_course(credits=3, capacity=5)
    for _ in range(3):
        platform.enrollment_service.request_enrollment(student.id, make_course(credits=6).id, fall)
    with pytest.raises(CreditLimitExceededError):
        platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    assert occupancy(platform, course) == 0
    assert platform.enrollment_service.list_enrollments(course_id=course.id) == []


def test_concurrent_requests_never_overfill(platform, make_student, make_course, fall):
    course = make_course(capacity=2)
    students = [make_student() for _ in range(6)]
    outcomes = []

    def attempt(student_id):
        try:
            platform.enrollment_service.request_enrollment(student_id, course.id, fall)
            outcomes.append("ok")
        except CourseFullError:
            outcomes.append("full")

    threads = [threading.Thread(target=attempt, args=(s.id,)) for s in students]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 2
    assert outcomes.count("full") == 4
    assert occupancy(platform, course) == 2


def test_list_enrollments_and_roster(platform, make_student, make_course, fall):
    ann, ben = make_student("Ann", "Adams"), make_student("Ben", "Brown")
    course = make_course()
    platform.enrollment_service.request_enrollment(ann.id, course.id, fall)
    second = platform.enrollment_service.request_enrollment(ben.id, course.id, fall)
    platform.lifecycle_service.set_enrollment_status(second.id, EnrollmentStatus.WITHDRAWN)

    assert len(platform.enrollment_service.list_enrollments(course_id=course.id)) == 2
    active = platform.enrollment_service.list_enrollments(course_id=course.id, status="Active")
    assert [row['student_id'] for row in active] == [ann.id]
    roster = platform.enrollment_service.get_course_roster(course.id)
    assert [row['last_name'] for row in roster] == ["Adams", "Brown"]
    with pytest.raises(ValidationError):
        platform.enrollment_service.list_enrollments(status="Pending")
