"""Canned prompts for common developer questions.

Each template wraps the user's text in a fixed instruction and carries its
own answer length, so `ask --template explain` needs no further tuning.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from foliorelay.domain.models.ai import CompletionRequest

DEFAULT_LANGUAGE = "javascript"


class PromptTemplate(str, Enum):
    EXPLAIN = "explain"
    DOCS = "docs"
    QUESTION = "question"
    IDEA = "idea"


@dataclass(frozen=True)
class TemplateSpec:
    text: str
    max_tokens: int


TEMPLATES: Dict[PromptTemplate, TemplateSpec] = {
    PromptTemplate.EXPLAIN: TemplateSpec(
        "Explain this {language} code in simple terms:\n\n{subject}\n\n"
        "Provide a clear, concise explanation of what this code does.",
        max_tokens=300,
    ),
    PromptTemplate.DOCS: TemplateSpec(
        "Generate comprehensive documentation for this {language} function:\n\n{subject}\n\n"
        "Include: purpose, parameters, return value, and usage example.",
        max_tokens=400,
    ),
    PromptTemplate.QUESTION: TemplateSpec(
        "Answer this question clearly and concisely: {subject}",
        max_tokens=200,
    ),
    PromptTemplate.IDEA: TemplateSpec(
        "Generate a creative and practical idea about: {subject}{context}\n\n"
        "Make it innovative and actionable.",
        max_tokens=300,
    ),
}


def render_template(
    template: PromptTemplate,
    subject: str,
    language: Optional[str] = None,
    context: Optional[str] = None,
    system_prompt: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: float = 0.7,
) -> CompletionRequest:
    """Builds the request for `template` applied to `subject`.

    Args:
        template: Which canned prompt to use.
        subject: Code, question or topic supplied by the user.
        language: Programming language named in the code templates.
        context: Extra background, only used by the idea template.
        system_prompt: Passed through unchanged.
        max_tokens: Overrides the template's own answer length.
        temperature: Sampling temperature.
    """
    preset = TEMPLATES[PromptTemplate(template)]
    prompt = preset.text.format(
        subject=subject,
        language=language or DEFAULT_LANGUAGE,
        context=f"\n\nContext: {context}" if context else "",
    )
    return CompletionRequest(
        prompt=prompt,
        system_prompt=system_prompt,
        max_tokens=max_tokens if max_tokens is not None else preset.max_tokens,
        temperature=temperature,
    )
