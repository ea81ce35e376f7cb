"""Enumerations shared by the entity store, the change bus and the API."""

from enum import Enum


class EntityKind(str, Enum):
    """Entity collections. Doubles as the change-bus topic and the table name."""
    COURSES = "courses"
    NOTES = "notes"
    DAILY_ENTRIES = "daily_entries"


class CodeLanguage(str, Enum):
    """Languages a note's code snippet can be highlighted as."""
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    JSX = "jsx"
    PYTHON = "python"
    JAVA = "java"
    C = "c"
    CPP = "cpp"
    CSHARP = "csharp"
    GO = "go"
    RUST = "rust"
    SQL = "sql"
    HTML = "html"
    CSS = "css"
    BASH = "bash"
    JSON = "json"
    MARKDOWN = "markdown"
    PLAINTEXT = "plaintext"

    @classmethod
    def coerce(cls, value) -> "CodeLanguage":
        """Map stored values onto the enum; unknown values become PLAINTEXT."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PLAINTEXT
