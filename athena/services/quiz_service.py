"""
Quiz authoring, submission and grading.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.academics import percentage_score
from ..core.entities import Quiz, QuizAnswer, QuizQuestion, QuizSubmission, utcnow
from ..core.enums import AuditAction, GradingMode, SubmissionStatus
from ..core.exceptions import ResourceNotFoundError, ValidationError
from ..core.interfaces import ActivityRecorder
from ..persistence.database import DatabaseManager
from ..persistence.repositories import (
    CourseRepository, QuizAnswerRepository, QuizQuestionRepository, QuizRepository,
    QuizSubmissionRepository, StudentRepository,
)
from .concurrency_manager import ConcurrencyManager

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of a quiz submission."""
    submission_id: str
    status: SubmissionStatus
    score: Optional[float]
    resubmitted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'submission_id': self.submission_id,
            'status': self.status.value,
            'score': self.score,
            'resubmitted': self.resubmitted,
        }


@dataclass
class GradeResult:
    """Outcome of auto-grading a submission."""
    score: int
    correct_count: int
    total_questions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'correct_count': self.correct_count,
            'total_questions': self.total_questions,
        }


class QuizGradingService:
    """Service for quiz submissions and grading.

    Scores are percentages. In ``deferred`` mode a submission waits for an
    instructor to grade it; in ``immediate`` mode it is auto-graded as part
    of the submit call.
    """

    def __init__(self, database: DatabaseManager, quiz_repository: QuizRepository,
                 question_repository: QuizQuestionRepository, submission_repository: QuizSubmissionRepository,
                 answer_repository: QuizAnswerRepository, student_repository: StudentRepository,
                 course_repository: CourseRepository, concurrency_manager: ConcurrencyManager,
                 activity: ActivityRecorder, grading_mode: GradingMode = GradingMode.DEFERRED,
                 default_passing_score: float = 60):
        self._database = database
        self._quiz_repository = quiz_repository
        self._question_repository = question_repository
        self._submission_repository = submission_repository
        self._answer_repository = answer_repository
        self._student_repository = student_repository
        self._course_repository = course_repository
        self._concurrency_manager = concurrency_manager
        self._activity = activity
        self._grading_mode = grading_mode
        self._default_passing_score = default_passing_score

    @property
    def grading_mode(self) -> GradingMode:
        return self._grading_mode

    # Authoring

    def create_quiz(self, course_id: str, title: str, description: Optional[str] = None,
                    due_date: Optional[str] = None, total_points: int = 100,
                    passing_score: Optional[float] = None, actor: Optional[Dict[str, Any]] = None) -> Quiz:
        """Create a quiz for an existing course."""
        if not title or not title.strip():
            raise ValidationError("Quiz title is required")
        if total_points <= 0:
            raise ValidationError("total_points must be positive", details={'total_points': total_points})
        if passing_score is not None and not 0 <= passing_score <= 100:
            raise ValidationError("passing_score must be a percentage between 0 and 100",
                                  details={'passing_score': passing_score})

        with self._database.transaction():
            course = self._course_repository.find_by_id(course_id)
            if course is None:
                raise ResourceNotFoundError(f"Course {course_id} not found", details={'course_id': course_id})
            quiz = Quiz(course_id=course_id, title=title.strip(), description=description,
                        due_date=due_date, total_points=total_points, passing_score=passing_score)
            self._quiz_repository.insert(quiz)
            self._activity.record(AuditAction.CREATE, "quiz", quiz.id,
                                  f"Created quiz '{quiz.title}' for {course.code}", actor=actor)

        logger.info("Created quiz %s for course %s", quiz.id, course_id)
        return quiz

    def add_question(self, quiz_id: str, question_text: str, correct_answer: str, points: int = 10,
                     actor: Optional[Dict[str, Any]] = None) -> QuizQuestion:
        if not question_text or not question_text.strip():
            raise ValidationError("question_text is required")
        if correct_answer is None or not str(correct_answer).strip():
            raise ValidationError("correct_answer is required")
        if points <= 0:
            raise ValidationError("points must be positive", details={'points': points})

        with self._database.transaction():
            self.get_quiz(quiz_id)
            question = QuizQuestion(quiz_id=quiz_id, question_text=question_text.strip(),
                                    correct_answer=correct_answer, points=points)
            self._question_repository.insert(question)
            self._activity.record(AuditAction.CREATE, "quiz_question", question.id,
                                  f"Added question to quiz {quiz_id}", actor=actor)
        return question

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._quiz_repository.find_by_id(quiz_id)
        if quiz is None:
            raise ResourceNotFoundError(f"Quiz {quiz_id} not found", details={'quiz_id': quiz_id})
        return quiz

    def list_quizzes(self, course_id: Optional[str] = None) -> List[Quiz]:
        if course_id:
            return self._quiz_repository.find_where(course_id=course_id)
        return self._quiz_repository.find_where()

    def list_questions(self, quiz_id: str, include_answers: bool = False) -> List[Dict[str, Any]]:
        """Questions in authoring order; correct answers only when requested."""
        self.get_quiz(quiz_id)
        return [q.to_dict(include_answer=include_answers)
                for q in self._question_repository.find_where(quiz_id=quiz_id)]

    # Submission and grading

    def submission_status(self, quiz: Quiz, score: Optional[float]) -> SubmissionStatus:
        if score is None:
            return SubmissionStatus.PENDING
        if score >= quiz.passing_threshold(self._default_passing_score):
            return SubmissionStatus.PASS
        return SubmissionStatus.FAIL

    def submit_answers(self, quiz_id: str, student_id: str, answers: Iterable[Tuple[str, str]],
                       actor: Optional[Dict[str, Any]] = None) -> SubmissionResult:
        """Replace the student's answers for the quiz and reset the submission to pending.

        ``answers`` is a sequence of (question_id, answer) pairs.
        """
        answers = list(answers)
        if not answers:
            raise ValidationError("At least one answer is required")

        with self._concurrency_manager.lock(ConcurrencyManager.submission_key(quiz_id, student_id)):
            with self._database.transaction():
                quiz = self.get_quiz(quiz_id)
                if self._student_repository.find_by_id(student_id) is None:
                    raise ResourceNotFoundError(f"Student {student_id} not found",
                                                details={'student_id': student_id})

                questions = {q.id: q for q in self._question_repository.find_where(quiz_id=quiz_id)}
                self._validate_answers(quiz_id, answers, questions)

                self._answer_repository.delete_for(quiz_id, student_id)
                for question_id, answer in answers:
                    self._answer_repository.insert(QuizAnswer(quiz_id=quiz_id, student_id=student_id,
                                                              question_id=question_id, answer=answer))

                submitted_at = utcnow()
                existing = self._submission_repository.find_for(quiz_id, student_id)
                if existing is not None:
                    self._submission_repository.update_fields(existing.id, score=None,
                                                              submitted_at=submitted_at, graded_at=None)
                    submission_id = existing.id
                else:
                    submission = QuizSubmission(quiz_id=quiz_id, student_id=student_id,
                                                submitted_at=submitted_at)
                    self._submission_repository.insert(submission)
                    submission_id = submission.id

                self._activity.record(AuditAction.SUBMIT, "quiz_submission", submission_id,
                                      f"Submitted {len(answers)} answer(s) for quiz '{quiz.title}'",
                                      actor=actor)

                score = None
                if self._grading_mode == GradingMode.IMMEDIATE:
                    score = self._grade(quiz, student_id, submission_id, list(questions.values()), actor).score

        logger.info("Student %s %s quiz %s", student_id,
                    "resubmitted" if existing is not None else "submitted", quiz_id)
        return SubmissionResult(
            submission_id=submission_id,
            status=self.submission_status(quiz, score),
            score=score,
            resubmitted=existing is not None,
        )

    @staticmethod
    def _validate_answers(quiz_id: str, answers: List[Tuple[str, str]],
                          questions: Dict[str, QuizQuestion]) -> None:
        seen = set()
        for question_id, answer in answers:
            if question_id in seen:
                raise ValidationError("Duplicate answer for question", details={'question_id': question_id})
            if question_id not in questions:
                raise ValidationError(f"Question does not belong to quiz {quiz_id}",
                                      details={'question_id': question_id})
            if answer is None:
                raise ValidationError("Answer text is required", details={'question_id': question_id})
            seen.add(question_id)

    def auto_grade(self, quiz_id: str, student_id: str, actor: Optional[Dict[str, Any]] = None) -> GradeResult:
        """Score a submission by exact-match comparison; safe to repeat."""
        with self._concurrency_manager.lock(ConcurrencyManager.submission_key(quiz_id, student_id)):
            with self._database.transaction():
                quiz = self.get_quiz(quiz_id)
                submission = self._submission_repository.find_for(quiz_id, student_id)
                if submission is None:
                    raise ResourceNotFoundError("No submission found for this student",
                                                details={'quiz_id': quiz_id, 'student_id': student_id})
                questions = self._question_repository.find_where(quiz_id=quiz_id)
                if not questions:
                    raise ValidationError("Cannot grade a quiz with no questions", details={'quiz_id': quiz_id})
                return self._grade(quiz, student_id, submission.id, questions, actor)

    def _grade(self, quiz: Quiz, student_id: str, submission_id: str, questions: List[QuizQuestion],
               actor: Optional[Dict[str, Any]]) -> GradeResult:
        by_id = {q.id: q for q in questions}
        correct_count = 0
        for answer in self._answer_repository.find_where(quiz_id=quiz.id, student_id=student_id):
            question = by_id.get(answer.question_id)
            is_correct = question is not None and question.is_correct(answer.answer)
            if answer.is_correct != is_correct:
                self._answer_repository.update_fields(answer.id, is_correct=is_correct)
            correct_count += int(is_correct)

        score = percentage_score(correct_count, len(questions))
        self._submission_repository.update_fields(submission_id, score=score, graded_at=utcnow())
        self._activity.record(AuditAction.GRADE, "quiz_submission", submission_id,
                              f"Auto-graded: {correct_count}/{len(questions)} correct, score {score}",
                              actor=actor)
        logger.info("Graded submission %s: %d/%d correct, score %d",
                    submission_id, correct_count, len(questions), score)
        return GradeResult(score=score, correct_count=correct_count, total_questions=len(questions))

    def set_manual_score(self, submission_id: str, score: float,
                         actor: Optional[Dict[str, Any]] = None) -> QuizSubmission:
        """Override a submission's score; values above 100 are allowed."""
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score) or score < 0:
            raise ValidationError("Valid score is required", details={'score': score})

        with self._database.transaction():
            submission = self._submission_repository.find_by_id(submission_id)
            if submission is None:
                raise ResourceNotFoundError(f"Submission {submission_id} not found",
                                            details={'submission_id': submission_id})
            submission.score = score
            submission.graded_at = utcnow()
            self._submission_repository.update_fields(submission_id, score=score, graded_at=submission.graded_at)
            submission.touch()
            self._activity.record(AuditAction.GRADE, "quiz_submission", submission_id,
                                  f"Manual score set to {score}", actor=actor)

        logger.info("Manual score %s recorded for submission %s", score, submission_id)
        return submission

    # Read models

    def _with_status(self, row: Dict[str, Any]) -> Dict[str, Any]:
        threshold = row["passing_score"] if row.get("passing_score") is not None else self._default_passing_score
        if row["score"] is None:
            row["status"] = SubmissionStatus.PENDING.value
        else:
            row["status"] = (SubmissionStatus.PASS if row["score"] >= threshold else SubmissionStatus.FAIL).value
        return row

    def list_quiz_submissions(self, quiz_id: str) -> List[Dict[str, Any]]:
        self.get_quiz(quiz_id)
        return [self._with_status(row) for row in self._submission_repository.list_for_quiz(quiz_id)]

    def list_student_submissions(self, student_id: str) -> List[Dict[str, Any]]:
        if self._student_repository.find_by_id(student_id) is None:
            raise ResourceNotFoundError(f"Student {student_id} not found", details={'student_id': student_id})
        return [self._with_status(row) for row in self._submission_repository.list_for_student(student_id)]

    def get_student_answers(self, quiz_id: str, student_id: str) -> List[Dict[str, Any]]:
        self.get_quiz(quiz_id)
        rows = self._answer_repository.review(quiz_id, student_id)
        for row in rows:
            if row["is_correct"] is not None:
                row["is_correct"] = bool(row["is_correct"])
        return rows
