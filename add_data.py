"""
Script to add sample data to the Athena portal via REST API.
Make sure the server is running before executing this script.

Usage:
    python add_data.py
"""

import json
import os
import sys

import requests


def _console_supports_utf8() -> bool:
    enc = getattr(sys.stdout, "encoding", None)
    return enc is not None and "utf" in enc.lower()


_OK_CHAR = "✓" if _console_supports_utf8() else "[OK]"
_FAIL_CHAR = "✗" if _console_supports_utf8() else "[FAIL]"
_WARN_CHAR = "⚠" if _console_supports_utf8() else "[WARN]"


def _detect_base_url() -> str:
    """Determine a reachable BASE_URL.

    Priority: environment variable `ATHENA_BASE_URL`, then common local ports.
    If nothing responds, fall back to http://127.0.0.1:8000.
    """
    env = os.environ.get("ATHENA_BASE_URL")
    if env:
        return env

    candidates = [
        "http://127.0.0.1:8000",
        "http://127.0.0.1:8888",
        "http://localhost:8000",
        "http://localhost:8888",
    ]

    for c in candidates:
        try:
            resp = requests.get(f"{c}/health", timeout=0.5)
            if resp.status_code == 200:
                return c
        except requests.exceptions.RequestException:
            continue

    return candidates[0]


BASE_URL = _detect_base_url()

ADMIN = {"X-User-Id": "seed-admin", "X-User-Role": "Admin"}
INSTRUCTOR = {"X-User-Id": "seed-instructor", "X-User-Role": "Instructor"}
TERM = {"semester": "Fall", "year": 2025}


def check_server():
    """Check if the server is running."""
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=2)
        if response.status_code == 200:
            print(f"{_OK_CHAR} Server is running")
            return True
    except requests.exceptions.RequestException:
        pass
    print(f"{_FAIL_CHAR} Server is not running!")
    print("\nPlease start the server first:")
    print("  athena --port 8000")
    return False


def _send(method, path, data=None, headers=ADMIN, label=""):
    """Send a request and print the outcome; returns the decoded body or None."""
    try:
        response = requests.request(method, f"{BASE_URL}{path}", json=data, headers=headers, timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"{_FAIL_CHAR} Error {label}: {e}")
        return None
    if response.ok:
        print(f"{_OK_CHAR} {label}")
        return response.json()
    body = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
    if response.status_code == 409:
        print(f"{_WARN_CHAR} {label} rejected: {body.get('error_kind')} {body.get('message')}")
    else:
        print(f"{_FAIL_CHAR} Failed {label}: {response.status_code} {response.text}")
    return None


def create_student(user_id, first_name, last_name, email, major):
    """Create a new student."""
    data = {"user_id": user_id, "first_name": first_name, "last_name": last_name,
            "email": email, "major": major}
    return _send("POST", "/students", data, label=f"Created student: {first_name} {last_name}")


def create_course(code, name, credits, capacity, department, description=""):
    """Create a new course for the seeding term."""
    data = {"code": code, "name": name, "credits": credits, "capacity": capacity,
            "department": department, "description": description, **TERM}
    return _send("POST", "/courses", data, label=f"Created course: {code} - {name}")


def enroll_student(student, course):
    """Enroll a student in a course."""
    if not student or not course:
        return None
    data = {"student_id": student["id"], "course_id": course["id"], **TERM}
    return _send("POST", "/enrollments", data,
                 label=f"Enrolled {student['first_name']} in {course['code']}")


def grade_enrollment(enrollment, grade):
    if not enrollment:
        return None
    return _send("PUT", f"/enrollments/{enrollment['enrollment_id']}",
                 {"status": "Completed", "grade": grade}, label=f"Graded enrollment {grade}")


def create_quiz(course, title, questions):
    """Create a quiz and its questions."""
    quiz = _send("POST", "/quizzes", {"course_id": course["id"], "title": title},
                 headers=INSTRUCTOR, label=f"Created quiz: {title}")
    if not quiz:
        return None, []
    created = []
    for text, answer in questions:
        created.append(_send("POST", f"/quizzes/{quiz['id']}/questions",
                             {"question_text": text, "correct_answer": answer},
                             headers=INSTRUCTOR, label=f"  question: {text}"))
    return quiz, [q for q in created if q]


def submit_quiz(quiz, student, answers):
    headers = {"X-User-Id": student["user_id"], "X-User-Role": "Student"}
    data = {"answers": [{"question_id": q["id"], "answer": a} for q, a in answers]}
    return _send("POST", f"/quizzes/{quiz['id']}/submit", data, headers=headers,
                 label=f"{student['first_name']} submitted {quiz['title']}")


def list_students():
    """List all students."""
    students = _send("GET", "/students", label="Listed students") or []
    print(f"\n{'='*60}")
    print(f"Students ({len(students)})")
    print(f"{'='*60}")
    for student in students:
        gpa = student['gpa'] if student['gpa'] is not None else "-"
        print(f"  {student['first_name']} {student['last_name']:15} | {student['major'] or '':18} | GPA {gpa}")
    return students


def list_courses():
    """List all courses."""
    courses = _send("GET", "/courses", label="Listed courses") or []
    print(f"\n{'='*60}")
    print(f"Courses ({len(courses)})")
    print(f"{'='*60}")
    for course in courses:
        print(f"  {course['code']:10} | {course['name']:30} | {course['credits']} credits | "
              f"{course['current_enrollment']}/{course['capacity']} seats")
    return courses


def get_statistics():
    """Get portal statistics."""
    stats = _send("GET", "/admin/stats", label="Fetched statistics")
    if stats:
        print(f"\n{'='*60}")
        print("Portal Statistics")
        print(f"{'='*60}")
        print(json.dumps(stats, indent=2))
    return stats


def main():
    """Main execution."""
    print("="*60)
    print("Athena Portal - Data Addition Script")
    print("="*60)
    print()

    if not check_server():
        sys.exit(1)

    print("\n" + "="*60)
    print("Adding Sample Data...")
    print("="*60 + "\n")

    print("Creating students...")
    alice = create_student("u-alice", "Alice", "Johnson", "alice.johnson@university.edu", "Computer Science")
    bob = create_student("u-bob", "Bob", "Smith", "bob.smith@university.edu", "Mathematics")
    carol = create_student("u-carol", "Carol", "Davis", "carol.davis@university.edu", "English")

    print("\nCreating courses...")
    cs101 = create_course("CS101", "Introduction to Programming", 3, 30, "Computer Science")
    math101 = create_course("MATH101", "Calculus I", 4, 35, "Mathematics")
    eng101 = create_course("ENG101", "English Composition", 3, 25, "English")
    seminar = create_course("CS490", "Capstone Seminar", 3, 1, "Computer Science")

    print("\nEnrolling students...")
    alice_cs = enroll_student(alice, cs101)
    alice_math = enroll_student(alice, math101)
    enroll_student(bob, math101)
    enroll_student(carol, eng101)
    enroll_student(alice, seminar)
    enroll_student(bob, seminar)  # single seat already taken

    print("\nRecording grades...")
    grade_enrollment(alice_cs, "A")
    grade_enrollment(alice_math, "B")

    print("\nCreating a quiz...")
    if cs101:
        quiz, questions = create_quiz(cs101, "Python Basics", [
            ("Keyword that defines a function?", "def"),
            ("Built-in that returns a sequence length?", "len"),
        ])
        if quiz and questions and alice:
            submit_quiz(quiz, alice, [(questions[0], "def"), (questions[1], "size")])

    list_students()
    list_courses()
    get_statistics()

    print("\n" + "="*60)
    print(f"{_OK_CHAR} Sample data added successfully!")
    print("="*60)
    print("\nYou can now:")
    print(f"  - View API docs: {BASE_URL}/docs")
    print(f"  - Academic summary: curl -H 'X-User-Id: admin' -H 'X-User-Role: Admin' "
          f"{BASE_URL}/students/<id>/academic-summary")
    print(f"  - Get statistics: curl -H 'X-User-Id: admin' -H 'X-User-Role: Admin' {BASE_URL}/admin/stats")
    print()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n\n{_FAIL_CHAR} Interrupted by user")
        sys.exit(1)
