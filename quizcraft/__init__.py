"""
QuizCraft quiz session engine.
"""
