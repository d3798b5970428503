"""
tutorgen - AI generation pipeline for learning plans, lessons, quizzes and flashcards
"""

__version__ = "1.0.0"
