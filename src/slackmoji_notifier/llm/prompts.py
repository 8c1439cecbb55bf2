import yaml
from pathlib import Path
from ..config import Settings

DEFAULT_SYSTEM_PROMPT = (
    "Generate an edgy, short sentence in modern Gen-Z tone about the given emoji name, "
    "and attempt to use a modern and humorous pop culture reference. Do not use proper "
    "punctuation, especially periods. Make sure to wrap the exact emoji name as-provided "
    "in colons so it can be properly formatted into a Slack emoji. For example, if the "
    'emoji name is "smile", the included string should be ":smile:". Don\'t use other emojis.'
)


def emoji_prompt(name: str) -> str:
    return f"emoji name: {name}"


def load_prompt_file(path: str) -> str:
    prompt_path = Path(path)
    # Prioritize .yaml for structured prompts
    if prompt_path.suffix in (".yaml", ".yml"):
        with open(prompt_path, "r") as f:
            data = yaml.safe_load(f) or {}
            return data.get("content", "")

    with open(prompt_path, "r") as f:
        return f.read()


def resolve_system_prompt(settings: Settings) -> str:
    """Inline override wins over a prompt file, which wins over the built-in prompt."""
    if settings.LLM_SYSTEM_PROMPT:
        return settings.LLM_SYSTEM_PROMPT
    if settings.LLM_SYSTEM_PROMPT_FILE:
        content = load_prompt_file(settings.LLM_SYSTEM_PROMPT_FILE).strip()
        if content:
            return content
    return DEFAULT_SYSTEM_PROMPT
