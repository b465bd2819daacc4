"""sherpa: turn GitHub, GitLab and local repositories into LLM context files."""

__version__ = "0.1.0"
