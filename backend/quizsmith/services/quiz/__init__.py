"""Quiz generation: sources, coercion, sizing, the pass pipeline and trouble quizzes."""
