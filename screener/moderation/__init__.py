"""Content moderation: heuristics, collaborators, the decision pipeline and its results."""
