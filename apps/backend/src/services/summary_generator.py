"""
Summary Generator: picks a prompt strategy by input size, asks the
generation service for a {summary, keywords} JSON reply and parses it.

Short bodies get a prompt tuned to infer from scant signal and a compact
completion; long bodies are truncated to bound token cost.
"""
import json
import logging
import re
from enum import Enum
from typing import Any, Protocol

from src.core.config import Settings
from models.ingestion import Issue, Project


logger = logging.getLogger(__name__)


class PromptStrategy(str, Enum):
    SHORT_INPUT = "short_input"
    LONG_INPUT = "long_input"


class CompletionService(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        ...


ISSUE_SYSTEM_PROMPT_LONG = """
Summarize the GitHub issue in one paragraph without mentioning the issue number. Highlight the key problem and any signature information provided. The summary should be concise, informative, and easy to understand, prioritizing clarity and brevity. Additionally, extract high-level keywords that represent broader categories or themes relevant to the issue's purpose, features, and tools used. These keywords should help categorize the issue in a wider context and should not be too literal or specific, avoiding overly long phrases unless absolutely necessary. Expected Output:
{ "summary": "the_summary_generated, a short paragraph summarizing the issue, including its purpose and features, without referencing the issue number.",
  "keywords": ["a list of high-level keywords that encapsulate the broader context, categories, or themes of the issue, excluding specific details and issue numbers."] }
Ensure you reply in RFC8259-compliant JSON format."""

ISSUE_SYSTEM_PROMPT_SHORT = """
Given the limited information available, summarize the GitHub issue in one paragraph without mentioning the issue number. Highlight the key problem and any signature information that can be inferred. The summary should be concise, informative, and easy to understand, prioritizing clarity and brevity even with scant details. Additionally, extract high-level keywords that represent broader categories or themes relevant to the issue's inferred purpose, features, and tools used. These keywords should help categorize the issue in a wider context and should not be too literal or specific, avoiding overly long phrases unless absolutely necessary. Expected Output:
{ "summary": "The summary generated should be a concise paragraph that highlights any discernible purpose, technologies, or features from the limited information.",
  "keywords": ["A list of inferred high-level keywords that broadly categorize the issue based on the scant details available."] }
Ensure you reply in RFC8259-compliant JSON format."""

PROJECT_SYSTEM_PROMPT_LONG = """
Summarize the GitHub repository's README or description in one detailed paragraph, focusing solely on the essential aspects such as the project's purpose, technologies used, and notable features. Do not include non-essential elements like personal appeals or donation links. Extract high-level keywords that represent broader categories or themes relevant to the project. These keywords should categorize the project in a wider context and not be overly specific or literal. Expected Output:
{ "summary": "A comprehensive paragraph that succinctly summarizes the repository, highlighting its purpose, technologies, and key features, without including extraneous details.",
  "keywords": ["A list of high-level keywords that encapsulate the broader context, categories, or themes of the repository, focusing on essential aspects only."] }
Ensure your reply is in RFC8259-compliant JSON format."""

PROJECT_SYSTEM_PROMPT_SHORT = """
When summarizing a GitHub repository's README or description, concentrate on the core content. Provide a concise paragraph that captures the primary purpose, technologies used, and notable features. Avoid mentioning non-essential elements such as donation links or personal appeals. Deduce and include high-level keywords that broadly categorize the repository, focusing on the technologies, functionality, and scope based on the available information. These keywords should reflect the main themes or categories relevant to the project. Expected Output:
{ "summary": "The summary generated should be a concise paragraph that highlights any discernible purpose, technologies, or features from the limited information.",
  "keywords": ["A list of inferred high-level keywords that broadly categorize the repository based on the scant details available."] }
Ensure you reply in RFC8259-compliant JSON format."""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def choose_strategy(body: str, settings: Settings) -> PromptStrategy:
    """Bodies shorter than the threshold use the short-input prompt."""
    if len(body) < settings.short_input_threshold:
        return PromptStrategy.SHORT_INPUT
    return PromptStrategy.LONG_INPUT


def owner_and_repo(url: str) -> tuple[str, str]:
    """https://github.com/<owner>/<repo>/... -> (owner, repo); blanks when the URL is short."""
    parts = url.split("/")
    owner = parts[3] if len(parts) > 3 else ""
    repo = parts[4] if len(parts) > 4 else ""
    return owner, repo


def build_issue_prompt(issue: Issue, settings: Settings) -> tuple[str, str, int]:
    """Returns (system_prompt, user_prompt, max_tokens)."""
    owner, repo = owner_and_repo(issue.issue_id)
    body = issue.issue_description or ""

    if choose_strategy(body, settings) is PromptStrategy.SHORT_INPUT:
        user_prompt = (
            f"Here is the input: `{issue.issue_title}` at repository `{repo}` "
            f"by owner `{owner}`, states: {body}"
        )
        return ISSUE_SYSTEM_PROMPT_SHORT, user_prompt, settings.short_input_max_tokens

    body = body[:settings.long_input_max_chars]
    user_prompt = (
        f"Here is the input: The issue titled `{issue.issue_title}` at repository `{repo}` "
        f"by owner `{owner}`, states in the body text: {body}"
    )
    return ISSUE_SYSTEM_PROMPT_LONG, user_prompt, settings.long_input_max_tokens


def build_project_prompt(project: Project, settings: Settings) -> tuple[str, str, int]:
    """README is the primary body; the short description always rides along."""
    owner, repo = owner_and_repo(project.project_id)
    readme = project.readme or ""
    description = project.project_description or ""
    language = project.main_language or ""

    use_lang = f" mainly uses `{language}` in the project" if language else ""

    if choose_strategy(readme, settings) is PromptStrategy.SHORT_INPUT:
        readme_part = f", states in readme: {readme}" if readme else ""
        user_prompt = (
            f"Here is the input: The repository `{repo}` by owner `{owner}`{use_lang}, "
            f"`{description}`{readme_part}"
        )
        return PROJECT_SYSTEM_PROMPT_SHORT, user_prompt, settings.short_input_max_tokens

    readme = readme[:settings.long_input_max_chars]
    user_prompt = (
        f"Here is the input: The repository `{repo}` by owner `{owner}`{use_lang}, "
        f"has a short text description: `{description}`, "
        f"mentioned more details in readme: `{readme}`"
    )
    return PROJECT_SYSTEM_PROMPT_LONG, user_prompt, settings.long_input_max_tokens


def _load_json_object(text: str) -> dict[str, Any] | None:
    candidates = [text.strip()]
    # Models often wrap the object in a code fence or a sentence
    match = _JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_summary_and_keywords(text: str) -> tuple[str, list[str]]:
    """
    Fails soft: malformed JSON or missing fields yield ("", []) so the
    caller can still persist a present-but-empty record.
    """
    data = _load_json_object(text or "")
    if data is None:
        logger.warning("Summary reply is not a JSON object: %.80r", text)
        return "", []

    summary = data.get("summary")
    if not isinstance(summary, str):
        summary = ""

    keywords = data.get("keywords")
    if isinstance(keywords, list):
        keywords = [k for k in keywords if isinstance(k, str)]
    else:
        keywords = []

    return summary.strip(), keywords


async def summarize_issue(
    llm: CompletionService,
    issue: Issue,
    settings: Settings,
) -> tuple[str, list[str]]:
    """GenerationError from the service propagates; parse problems do not."""
    system_prompt, user_prompt, max_tokens = build_issue_prompt(issue, settings)
    logger.info("Summarizing issue: %s", issue.issue_id)
    reply = await llm.complete(system_prompt, user_prompt, max_tokens)
    return parse_summary_and_keywords(reply)


async def summarize_project(
    llm: CompletionService,
    project: Project,
    settings: Settings,
) -> tuple[str, list[str]]:
    system_prompt, user_prompt, max_tokens = build_project_prompt(project, settings)
    logger.info("Summarizing repo: %s", project.project_id)
    reply = await llm.complete(system_prompt, user_prompt, max_tokens)
    return parse_summary_and_keywords(reply)
