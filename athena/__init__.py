"""
Athena: academic administration portal backend.

Students enroll in courses and take quizzes, instructors grade quizzes and
review rosters, and administrators manage records and read the activity log.
"""

__version__ = "1.0.0"
__author__ = "Athena Development Team"
__description__ = "Academic administration portal backend"
