from pathlib import Path

from app.generation.exceptions import GenerationConfigurationError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def _read_prompt(path: Path, placeholder: str | None = None) -> str:
    try:
        template = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GenerationConfigurationError(f"Failed to load prompt template: {exc}") from exc
    if placeholder is not None and f"{{{placeholder}}}" not in template:
        raise GenerationConfigurationError(
            f"Prompt template {path.name} must contain a {{{placeholder}}} placeholder"
        )
    return template


def load_user_prompt_template(path: Path | None = None) -> str:
    """Load the template wrapping the anonymized source text.

    Args:
        path: Path to the template file.
              Defaults to the bundled user_prompt.txt.

    Returns:
        The raw template string with a ``{transcript}`` placeholder.

    Raises:
        GenerationConfigurationError: if the file cannot be read or lacks the placeholder.
    """
    return _read_prompt(path or _DEFAULT_PROMPT_DIR / "user_prompt.txt", "transcript")


def load_case_summary_prompts(
    system_path: Path | None = None, user_path: Path | None = None
) -> tuple[str, str]:
    """Load the case summary system prompt and its ``{notes}`` user template."""
    system_prompt = _read_prompt(system_path or _DEFAULT_PROMPT_DIR / "case_summary_system.txt")
    user_template = _read_prompt(
        user_path or _DEFAULT_PROMPT_DIR / "case_summary_user.txt", "notes"
    )
    return system_prompt.strip(), user_template
