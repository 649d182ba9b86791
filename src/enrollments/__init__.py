"""Enrollment ledger: which students are enrolled in which courses."""

from src.enrollments.models import ENROLLMENTS_TABLES_CQL, Enrollment, EnrollmentStatus


__all__ = ["ENROLLMENTS_TABLES_CQL", "Enrollment", "EnrollmentStatus"]
