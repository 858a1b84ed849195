"""
Main entry point for the Athena platform.
"""

import argparse
import logging
import uuid
from typing import Any, Dict, Optional

import uvicorn

from .config import load_config, term_rules_from_config
from .core.academics import Term
from .core.enums import EnrollmentStatus, GradingMode
from .core.exceptions import BusinessRejection
from .persistence import DatabaseFactory, MigrationManager
from .persistence.repositories import (
    ActivityLogRepository, CourseRepository, EnrollmentRepository, InstructorRepository,
    QuizAnswerRepository, QuizQuestionRepository, QuizRepository, QuizSubmissionRepository,
    StudentRepository,
)
from .services import (
    AcademicSummaryService, ActivityService, ConcurrencyManager, DirectoryService,
    EnrollmentLifecycleService, EnrollmentService, QuizGradingService,
)
from .api.rest_api import AthenaRestAPI

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s  %(levelname)s  %(name)s  %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


class AthenaPlatform:
    """Main platform class that wires storage, services and the REST API."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config if config is not None else load_config()
        self._server: Optional[uvicorn.Server] = None
        self._running = False

        # Initialize platform
        self._initialize_platform()

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    @property
    def app(self):
        return self._rest_api.app

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        logger.info("Initializing Athena platform")

        self.database = DatabaseFactory.create_database(
            self._config.get('database_type', 'sqlite'),
            database_path=self._config['database_path'],
            timeout=self._config['database_timeout'],
        )
        logger.info("Database initialized: %s", self._config['database_path'])

        self.migration_manager = MigrationManager(self.database)
        applied = self.migration_manager.migrate_up()
        logger.info("Schema at version %d (%d migration(s) applied)",
                    self.migration_manager.get_migration_status()['applied_version'], len(applied))

        self.concurrency_manager = ConcurrencyManager(lock_timeout=self._config['lock_timeout'])

        # Initialize repositories
        self.repositories = {
            'student': StudentRepository(self.database),
            'instructor': InstructorRepository(self.database),
            'course': CourseRepository(self.database),
            'enrollment': EnrollmentRepository(self.database),
            'quiz': QuizRepository(self.database),
            'question': QuizQuestionRepository(self.database),
            'submission': QuizSubmissionRepository(self.database),
            'answer': QuizAnswerRepository(self.database),
            'activity': ActivityLogRepository(self.database),
        }
        repos = self.repositories

        # Initialize services
        self.activity_service = ActivityService(repos['activity'])
        self.directory_service = DirectoryService(
            self.database, repos['student'], repos['course'], repos['instructor'],
            repos['enrollment'], self.activity_service,
            default_passing_score=self._config['default_passing_score'],
        )
        self.enrollment_service = EnrollmentService(
            self.database, repos['student'], repos['course'], repos['enrollment'],
            self.concurrency_manager, self.activity_service,
            term_rules=term_rules_from_config(self._config),
        )
        self.summary_service = AcademicSummaryService(self.database, repos['student'], repos['enrollment'])
        self.lifecycle_service = EnrollmentLifecycleService(
            self.database, repos['enrollment'], repos['course'], self.concurrency_manager,
            self.activity_service, summary_service=self.summary_service,
        )
        self.quiz_service = QuizGradingService(
            self.database, repos['quiz'], repos['question'], repos['submission'], repos['answer'],
            repos['student'], repos['course'], self.concurrency_manager, self.activity_service,
            grading_mode=GradingMode(self._config['quiz_grading_mode']),
            default_passing_score=self._config['default_passing_score'],
        )
        logger.info("Services initialized (quiz grading mode: %s)", self._config['quiz_grading_mode'])

        self._rest_api = AthenaRestAPI(
            self.directory_service,
            self.enrollment_service,
            self.lifecycle_service,
            self.summary_service,
            self.quiz_service,
            self.activity_service,
        )
        logger.info("Athena platform initialized")

    def start_platform(self, host: Optional[str] = None, port: Optional[int] = None):
        """Serve the REST API in the foreground until stopped."""
        if self._running:
            logger.warning("Platform already running")
            return

        host = host or self._config['host']
        port = port or self._config['port']
        self._server = uvicorn.Server(uvicorn.Config(
            self.app, host=host, port=port, log_level=str(self._config['log_level']).lower(),
        ))
        self._running = True
        logger.info("REST API on http://%s:%d (docs at /docs)", host, port)
        try:
            self._server.run()
        finally:
            self._running = False
            self._server = None

    def stop_platform(self):
        """Ask a running server to shut down."""
        if self._server is None:
            logger.info("Platform not running")
            return
        logger.info("Stopping Athena platform")
        self._server.should_exit = True

    def run_demo(self):
        """Walk through the seat and credit-cap rules against the configured database."""
        print("Running Athena platform demonstration...")
        directory = self.directory_service
        enrollment = self.enrollment_service
        term = Term("Fall", 2025)
        run = uuid.uuid4().hex[:8]

        alice = directory.create_student(f"demo-alice-{run}", "Alice", "Johnson", "alice@university.edu")
        bob = directory.create_student(f"demo-bob-{run}", "Bob", "Smith", "bob@university.edu")
        seminar = directory.create_course("SEM490", "Capstone Seminar", 3, 1, term.semester, term.year)

        print("\n=== Single-seat course ===")
        first = enrollment.request_enrollment(alice.id, seminar.id, term)
        print(f"Alice enrolled: {first.id}")
        try:
            enrollment.request_enrollment(bob.id, seminar.id, term)
        except BusinessRejection as e:
            print(f"Bob rejected: {e.error_code} {e.details}")
        self.lifecycle_service.set_enrollment_status(first.id, EnrollmentStatus.DROPPED)
        print(f"Alice dropped; occupancy now {directory.get_course(seminar.id).current_enrollment}")
        print(f"Bob enrolled: {enrollment.request_enrollment(bob.id, seminar.id, term).id}")

        print("\n=== Term credit cap ===")
        for code, credits in (("MATH301", 5), ("PHYS301", 5), ("CHEM301", 5)):
            course = directory.create_course(code, f"{code} Lecture", credits, 30, term.semester, term.year)
            enrollment.request_enrollment(alice.id, course.id, term)
        heavy = directory.create_course("BIO310", "Lab Biology", 4, 30, term.semester, term.year)
        light = directory.create_course("ART110", "Drawing", 3, 30, term.semester, term.year)
        try:
            enrollment.request_enrollment(alice.id, heavy.id, term)
        except BusinessRejection as e:
            print(f"4-credit course rejected: {e.message} {e.details}")
        enrollment.request_enrollment(alice.id, light.id, term)
        print("3-credit course accepted; Alice is at the 18-credit cap")

        print("\n=== Statistics ===")
        print(directory.get_statistics())
        print("\nDemo completed")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Athena Academic Administration Portal")
    parser.add_argument("--config", type=str, help="Configuration file path (JSON)")
    parser.add_argument("--host", type=str, help="REST server host")
    parser.add_argument("--port", type=int, help="REST server port")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")

    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config['log_level'])

    platform = AthenaPlatform(config)

    try:
        if args.demo:
            platform.run_demo()
        else:
            platform.start_platform(args.host, args.port)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        platform.stop_platform()


if __name__ == "__main__":
    main()
