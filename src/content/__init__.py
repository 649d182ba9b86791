"""Reviewable course content: lessons, modules, materials and exams."""

from src.content.models import CONTENT_TABLES_CQL, ENTITY_CLASSES, Exam, Lesson, Material, Module


__all__ = [
    "CONTENT_TABLES_CQL",
    "ENTITY_CLASSES",
    "Exam",
    "Lesson",
    "Material",
    "Module",
]
