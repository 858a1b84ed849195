import pytest

from athena.core.exceptions import ResourceNotFoundError


@pytest.fixture
def instructor(platform):
    return platform.directory_service.create_instructor("inst-9", "Ida", "Ng", "ida@university.edu")


def test_instructor_students_follow_assignments(platform, instructor, make_student, make_course, fall):
    directory = platform.directory_service
    taught, other = make_course(code="T100"), make_course(code="T200")
    directory.assign_instructor(taught.id, instructor.id)
    ann = make_student("Ann", "Lee")
    bo = make_student("Bo", "Kim")
    for student in (ann, bo):
        platform.enrollment_service.request_enrollment(student.id, taught.id, fall)
    platform.enrollment_service.request_enrollment(ann.id, other.id, fall)

    rows = directory.list_instructor_students(instructor.id)
    assert [(row['course_code'], row['last_name']) for row in rows] == [("T100", "Kim"), ("T100", "Lee")]
    assert rows[0]['enrollment_status'] == "Active"
    assert [c.code for c in directory.list_instructor_courses(instructor.id)] == ["T100"]

    assert len(directory.list_instructor_students(instructor.id, course_id=taught.id)) == 2
    with pytest.raises(ResourceNotFoundError):
        directory.list_instructor_students(instructor.id, course_id=other.id)
    with pytest.raises(ResourceNotFoundError):
        directory.list_instructor_students("missing")


def test_instructor_statistics(platform, instructor, make_student, make_course, fall):
    directory = platform.directory_service
    course = make_course()
    directory.assign_instructor(course.id, instructor.id)
    quiz = platform.quiz_service.create_quiz(course.id, "Week 1")
    question = platform.quiz_service.add_question(quiz.id, "2+2?", "4")

    for answer in ("4", "5"):
        student = make_student()
        platform.enrollment_service.request_enrollment(student.id, course.id, fall)
        platform.quiz_service.submit_answers(quiz.id, student.id, [(question.id, answer)])
        platform.quiz_service.auto_grade(quiz.id, student.id)
    pending = make_student()
    platform.enrollment_service.request_enrollment(pending.id, course.id, fall)
    platform.quiz_service.submit_answers(quiz.id, pending.id, [(question.id, "4")])

    assert directory.get_instructor_statistics("inst-9") == {
        'instructor_courses': 1,
        'total_students_in_courses': 3,
        'active_quizzes': 1,
        'passed_students': 1,
        'failed_students': 1,
    }


def test_statistics_without_instructor_record_are_zero(platform):
    stats = platform.directory_service.get_instructor_statistics("nobody")
    assert set(stats.values()) == {0}
    assert len(stats) == 5
