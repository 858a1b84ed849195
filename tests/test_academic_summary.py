import pytest

from athena.core.exceptions import ResourceNotFoundError


def test_gpa_three_fifty(platform, make_student, make_course, fall):
    student = make_student()
    for grade in ("A", "B"):
        enrollment = platform.enrollment_service.request_enrollment(student.id, make_course(credits=3).id, fall)
        platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", grade)

    summary = platform.summary_service.compute_academic_summary(student.id)
    assert summary.gpa == 3.50
    assert summary.completed_credits == 6
    assert summary.total_graded_credits == 6
    assert len(summary.enrollments) == 2


def test_gpa_is_null_without_grades(platform, make_student, make_course, fall):
    student = make_student()
    platform.enrollment_service.request_enrollment(student.id, make_course().id, fall)
    summary = platform.summary_service.compute_academic_summary(student.id)
    assert summary.gpa is None
    assert summary.completed_credits == 0
    assert summary.to_dict()['gpa'] is None


def test_graded_and_completed_sets_differ(platform, make_student, make_course, fall):
    student = make_student()
    service = platform.enrollment_service
    graded_active = service.request_enrollment(student.id, make_course(credits=4).id, fall)
    platform.lifecycle_service.set_enrollment_status(graded_active.id, "Active", "C")
    completed = service.request_enrollment(student.id, make_course(credits=3).id, fall)
    platform.lifecycle_service.set_enrollment_status(completed.id, "Completed", "A")

    summary = platform.summary_service.compute_academic_summary(student.id)
    # (2.0 * 4 + 4.0 * 3) / 7 = 2.857...
    assert summary.gpa == 2.86
    assert summary.total_graded_credits == 7
    assert summary.completed_credits == 3


def test_summary_is_cached_on_student_row(platform, make_student, make_course, fall):
    student = make_student()
    enrollment = platform.enrollment_service.request_enrollment(student.id, make_course(credits=3).id, fall)
    platform.lifecycle_service.set_enrollment_status(enrollment.id, "Completed", "B+")

    cached = platform.directory_service.get_student(student.id)
    assert cached.gpa == 3.3
    assert cached.completed_credits == 3
    assert platform.directory_service.get_statistics()['average_gpa'] == 3.3


def test_summary_view_shape(platform, make_student, make_course, fall):
    student = make_student()
    course = make_course(credits=3, code="HIST101")
    platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    body = platform.summary_service.compute_academic_summary(student.id).to_dict()
    assert set(body) == {'gpa', 'completed_credits', 'total_credits', 'enrollments'}
    row = body['enrollments'][0]
    assert row['course_code'] == "HIST101"
    assert row['credits'] == 3
    assert row['status'] == "Active"


def test_summary_for_missing_student(platform):
    with pytest.raises(ResourceNotFoundError):
        platform.summary_service.compute_academic_summary("ghost")
