from .policy_linter import PolicyLinter, count_links, evaluate_post, redact_preview

__all__ = ["PolicyLinter", "count_links", "evaluate_post", "redact_preview"]
