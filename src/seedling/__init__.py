"""seedling: learner-progress engine for chunk-based language learning."""
