"""Transaction risk analysis: models, poisoning detection, report assembly and review orchestration."""
