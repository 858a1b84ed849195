"""
REST API implementation for the Athena portal using FastAPI.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core.academics import Term
from ..core.exceptions import (
    AthenaException, AuthorizationError, BusinessRejection, ResourceNotFoundError,
    TransientStorageError, ValidationError,
)
from ..services import (
    AcademicSummaryService, ActivityService, DirectoryService, EnrollmentLifecycleService,
    EnrollmentService, QuizGradingService,
)
from .authorization import Identity, ensure_own_record, require_capability

logger = logging.getLogger(__name__)


# Pydantic models for API
class StudentCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r'^[^@]+@[^@]+\.[^@]+$')
    major: Optional[str] = Field(None, max_length=100)


class InstructorCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r'^[^@]+@[^@]+\.[^@]+$')
    department: str = Field("", max_length=100)


class CourseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    credits: int = Field(..., ge=1, le=30)
    capacity: int = Field(..., ge=1, le=1000)
    semester: str = Field(..., min_length=1, max_length=20)
    year: int = Field(..., ge=1900, le=2100)
    department: str = Field("", max_length=100)
    description: str = Field("", max_length=1000)


class InstructorAssignment(BaseModel):
    instructor_id: str = Field(..., min_length=1)


class EnrollmentRequest(BaseModel):
    student_id: Optional[str] = Field(None, min_length=1)
    course_id: str = Field(..., min_length=1)
    semester: str = Field(..., min_length=1, max_length=20)
    year: int = Field(..., ge=1900, le=2100)


class EnrollmentUpdate(BaseModel):
    status: Optional[str] = None
    grade: Optional[str] = None


class QuizCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    due_date: Optional[str] = None
    total_points: int = Field(100, ge=1)
    passing_score: Optional[float] = Field(None, ge=0, le=100)


class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    correct_answer: str = Field(..., min_length=1)
    points: int = Field(10, ge=1)


class AnswerItem(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer: str


class QuizSubmissionRequest(BaseModel):
    student_id: Optional[str] = Field(None, min_length=1)
    answers: List[AnswerItem]


class ManualScore(BaseModel):
    score: float


def status_code_for(error: AthenaException) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, AuthorizationError):
        return status.HTTP_401_UNAUTHORIZED if not error.authenticated else status.HTTP_403_FORBIDDEN
    if isinstance(error, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, ResourceNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, BusinessRejection):
        return status.HTTP_409_CONFLICT
    if isinstance(error, TransientStorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class AthenaRestAPI:
    """REST API implementation for the Athena portal."""

    def __init__(self, directory_service: DirectoryService, enrollment_service: EnrollmentService,
                 lifecycle_service: EnrollmentLifecycleService, summary_service: AcademicSummaryService,
                 quiz_service: QuizGradingService, activity_service: ActivityService):
        self._directory = directory_service
        self._enrollment_service = enrollment_service
        self._lifecycle_service = lifecycle_service
        self._summary_service = summary_service
        self._quiz_service = quiz_service
        self._activity_service = activity_service

        # Create FastAPI app
        self.app = FastAPI(
            title="Athena Academic Portal API",
            description="Enrollment, grading and quiz administration",
            version="1.0.0",
            docs_url="/docs",
            redoc_url="/redoc"
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_exception_handlers()
        self._setup_routes()

    def _setup_exception_handlers(self):
        @self.app.exception_handler(AthenaException)
        async def handle_athena_exception(request: Request, exc: AthenaException):
            code = status_code_for(exc)
            body = exc.to_dict()
            if code == status.HTTP_503_SERVICE_UNAVAILABLE:
                body.setdefault('retryable', True)
            if code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return JSONResponse(status_code=code, content=body)

        @self.app.exception_handler(Exception)
        async def handle_unexpected(request: Request, exc: Exception):
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                content={"error_kind": "internal_error", "message": "Internal server error"})

    def _own_student_id(self, identity: Identity) -> Optional[str]:
        student = self._directory.find_student_by_user_id(identity.user_id)
        return student.id if student else None

    def _resolve_student(self, identity: Identity, student_id: Optional[str]) -> str:
        """Students act as themselves; staff must name the student."""
        if identity.is_student:
            own = self._own_student_id(identity)
            if own is None:
                raise AuthorizationError("No student record is linked to this user")
            ensure_own_record(identity, student_id or own, own)
            return own
        if not student_id:
            raise ValidationError("student_id is required")
        return student_id

    def _guard_student(self, identity: Identity, student_id: str) -> None:
        if identity.is_student:
            ensure_own_record(identity, student_id, self._own_student_id(identity))

    def _guard_instructor(self, identity: Identity, instructor_id: str) -> None:
        if identity.is_instructor:
            own = self._directory.find_instructor_by_user_id(identity.user_id)
            if own is None or own.id != instructor_id:
                raise AuthorizationError("Instructors may only access their own courses",
                                         details={'instructor_id': instructor_id})

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/health", response_model=Dict[str, str])
        def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

        # Student endpoints
        @self.app.post("/students", status_code=status.HTTP_201_CREATED)
        def create_student(student_data: StudentCreate,
                           identity: Identity = Depends(require_capability('manage_students'))):
            """Create a new student."""
            student = self._directory.create_student(actor=identity.as_actor(), **student_data.model_dump())
            return student.to_dict()

        @self.app.get("/students", response_model=List[Dict[str, Any]])
        def list_students(status_filter: Optional[str] = Query(None, alias="status"),
                          identity: Identity = Depends(require_capability('manage_students'))):
            return [s.to_dict() for s in self._directory.list_students(status_filter)]

        @self.app.get("/students/{student_id}")
        def get_student(student_id: str, identity: Identity = Depends(require_capability('view_summary'))):
            self._guard_student(identity, student_id)
            return self._directory.get_student(student_id).to_dict()

        @self.app.get("/students/{student_id}/academic-summary")
        def get_academic_summary(student_id: str,
                                 identity: Identity = Depends(require_capability('view_summary'))):
            """GPA and credit totals, recomputed on every request."""
            self._guard_student(identity, student_id)
            return self._summary_service.compute_academic_summary(student_id).to_dict()

        @self.app.get("/students/{student_id}/quiz-submissions", response_model=List[Dict[str, Any]])
        def get_student_submissions(student_id: str,
                                    identity: Identity = Depends(require_capability('view_summary'))):
            self._guard_student(identity, student_id)
            return self._quiz_service.list_student_submissions(student_id)

        # Instructor endpoints
        @self.app.post("/instructors", status_code=status.HTTP_201_CREATED)
        def create_instructor(instructor_data: InstructorCreate,
                              identity: Identity = Depends(require_capability('manage_courses'))):
            instructor = self._directory.create_instructor(actor=identity.as_actor(),
                                                           **instructor_data.model_dump())
            return instructor.to_dict()

        @self.app.get("/instructors/{instructor_id}/courses", response_model=List[Dict[str, Any]])
        def list_instructor_courses(instructor_id: str,
                                    identity: Identity = Depends(require_capability('view_roster'))):
            self._guard_instructor(identity, instructor_id)
            return [c.to_dict() for c in self._directory.list_instructor_courses(instructor_id)]

        @self.app.get("/instructors/{instructor_id}/students", response_model=List[Dict[str, Any]])
        def list_instructor_students(instructor_id: str, course_id: Optional[str] = None,
                                     identity: Identity = Depends(require_capability('view_roster'))):
            """Students in the instructor's courses; instructors see only their own."""
            self._guard_instructor(identity, instructor_id)
            return self._directory.list_instructor_students(instructor_id, course_id)

        @self.app.get("/instructor/stats")
        def get_instructor_statistics(identity: Identity = Depends(require_capability('instructor_stats'))):
            return self._directory.get_instructor_statistics(identity.user_id)

        # Course endpoints
        @self.app.post("/courses", status_code=status.HTTP_201_CREATED)
        def create_course(course_data: CourseCreate,
                          identity: Identity = Depends(require_capability('manage_courses'))):
            """Create a new course."""
            course = self._directory.create_course(actor=identity.as_actor(), **course_data.model_dump())
            return course.to_dict()

        @self.app.get("/courses", response_model=List[Dict[str, Any]])
        def list_courses(identity: Identity = Depends(require_capability('view_courses'))):
            return [c.to_dict() for c in self._directory.list_courses()]

        @self.app.get("/courses/{course_id}")
        def get_course(course_id: str, identity: Identity = Depends(require_capability('view_courses'))):
            return self._directory.get_course(course_id).to_dict()

        @self.app.get("/courses/{course_id}/roster", response_model=List[Dict[str, Any]])
        def get_course_roster(course_id: str, identity: Identity = Depends(require_capability('view_roster'))):
            return self._enrollment_service.get_course_roster(course_id)

        @self.app.post("/courses/{course_id}/instructors")
        def assign_instructor(course_id: str, assignment: InstructorAssignment,
                              identity: Identity = Depends(require_capability('manage_courses'))):
            self._directory.assign_instructor(course_id, assignment.instructor_id, actor=identity.as_actor())
            return {"message": "Instructor assigned"}

        # Enrollment endpoints
        @self.app.post("/enrollments", status_code=status.HTTP_201_CREATED)
        def enroll_student(enrollment_data: EnrollmentRequest,
                           identity: Identity = Depends(require_capability('enroll'))):
            """Enroll a student in a course for a term."""
            student_id = self._resolve_student(identity, enrollment_data.student_id)
            enrollment = self._enrollment_service.request_enrollment(
                student_id,
                enrollment_data.course_id,
                Term(enrollment_data.semester, enrollment_data.year),
                actor=identity.as_actor(),
            )
            return {"enrollment_id": enrollment.id}

        @self.app.get("/enrollments", response_model=List[Dict[str, Any]])
        def list_enrollments(student_id: Optional[str] = None, course_id: Optional[str] = None,
                             status_filter: Optional[str] = Query(None, alias="status"),
                             identity: Identity = Depends(require_capability('view_enrollments'))):
            if identity.is_student:
                student_id = self._resolve_student(identity, student_id)
            return self._enrollment_service.list_enrollments(student_id, course_id, status_filter)

        @self.app.put("/enrollments/{enrollment_id}")
        def update_enrollment(enrollment_id: str, update: EnrollmentUpdate,
                              identity: Identity = Depends(require_capability('manage_enrollments'))):
            """Change status and/or assign a grade."""
            enrollment = self._lifecycle_service.set_enrollment_status(
                enrollment_id, update.status or None, grade=update.grade, actor=identity.as_actor())
            return enrollment.to_dict()

        @self.app.delete("/enrollments/{enrollment_id}")
        def delete_enrollment(enrollment_id: str,
                              identity: Identity = Depends(require_capability('manage_enrollments'))):
            enrollment = self._lifecycle_service.delete_enrollment(enrollment_id, actor=identity.as_actor())
            return {
                "message": "Enrollment deleted successfully",
                "warning": "The enrollment is hidden from listings; its grade still counts toward GPA "
                           f"(status {enrollment.status.value})",
            }

        # Quiz endpoints
        @self.app.post("/quizzes", status_code=status.HTTP_201_CREATED)
        def create_quiz(quiz_data: QuizCreate,
                        identity: Identity = Depends(require_capability('author_quizzes'))):
            quiz = self._quiz_service.create_quiz(actor=identity.as_actor(), **quiz_data.model_dump())
            return quiz.to_dict()

        @self.app.get("/quizzes", response_model=List[Dict[str, Any]])
        def list_quizzes(course_id: Optional[str] = None,
                         identity: Identity = Depends(require_capability('view_quizzes'))):
            return [q.to_dict() for q in self._quiz_service.list_quizzes(course_id)]

        @self.app.post("/quizzes/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
        def add_question(quiz_id: str, question_data: QuestionCreate,
                         identity: Identity = Depends(require_capability('author_quizzes'))):
            question = self._quiz_service.add_question(quiz_id, actor=identity.as_actor(),
                                                       **question_data.model_dump())
            return question.to_dict()

        @self.app.get("/quizzes/{quiz_id}/questions", response_model=List[Dict[str, Any]])
        def list_questions(quiz_id: str, identity: Identity = Depends(require_capability('view_quizzes'))):
            """Correct answers are only shown to staff."""
            return self._quiz_service.list_questions(quiz_id, include_answers=identity.is_staff)

        @self.app.post("/quizzes/{quiz_id}/submit")
        def submit_quiz(quiz_id: str, submission: QuizSubmissionRequest,
                        identity: Identity = Depends(require_capability('submit_quiz'))):
            student_id = self._resolve_student(identity, submission.student_id)
            result = self._quiz_service.submit_answers(
                quiz_id, student_id,
                [(item.question_id, item.answer) for item in submission.answers],
                actor=identity.as_actor(),
            )
            return result.to_dict()

        @self.app.post("/quizzes/{quiz_id}/grade/{student_id}")
        def auto_grade(quiz_id: str, student_id: str,
                       identity: Identity = Depends(require_capability('grade_quiz'))):
            return self._quiz_service.auto_grade(quiz_id, student_id, actor=identity.as_actor()).to_dict()

        @self.app.get("/quizzes/{quiz_id}/submissions", response_model=List[Dict[str, Any]])
        def list_quiz_submissions(quiz_id: str, identity: Identity = Depends(require_capability('grade_quiz'))):
            return self._quiz_service.list_quiz_submissions(quiz_id)

        @self.app.get("/quizzes/{quiz_id}/answers/{student_id}", response_model=List[Dict[str, Any]])
        def get_student_answers(quiz_id: str, student_id: str,
                                identity: Identity = Depends(require_capability('review_answers'))):
            self._guard_student(identity, student_id)
            return self._quiz_service.get_student_answers(quiz_id, student_id)

        @self.app.put("/quiz-submissions/{submission_id}/score")
        def set_manual_score(submission_id: str, score_data: ManualScore,
                             identity: Identity = Depends(require_capability('grade_quiz'))):
            self._quiz_service.set_manual_score(submission_id, score_data.score, actor=identity.as_actor())
            return {"message": "Quiz graded successfully"}

        # Admin endpoints
        @self.app.get("/admin/stats")
        def get_statistics(identity: Identity = Depends(require_capability('admin'))):
            """Get portal statistics."""
            return self._directory.get_statistics()

        @self.app.get("/admin/activities", response_model=List[Dict[str, Any]])
        def list_activities(limit: int = 50, identity: Identity = Depends(require_capability('admin'))):
            return [entry.to_dict() for entry in self._activity_service.list_activities(limit)]
