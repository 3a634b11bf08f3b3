"""Deterministic, network-free enrichment derived from a record's own fields.

Used whenever an AI-backed enrichment task fails or returns nothing usable.
"""

from __future__ import annotations

import re

from paper_scout.records import (
    CodeSnippet,
    Concept,
    DifficultyAssessment,
    DifficultyLevel,
    ResearchResult,
    TechnicalSkill,
)

DOMAIN_KEYWORDS: dict[str, list[str]] = {
    "Machine Learning": [
        "machine learning",
        "deep learning",
        "neural network",
        "ai",
        "artificial intelligence",
    ],
    "Computer Vision": [
        "computer vision",
        "image processing",
        "object detection",
        "segmentation",
        "recognition",
    ],
    "Natural Language Processing": [
        "nlp",
        "language model",
        "text processing",
        "sentiment analysis",
        "translation",
    ],
    "Robotics": ["robot", "automation", "control system", "manipulation", "navigation"],
    "Security": ["security", "privacy", "encryption", "authentication", "vulnerability"],
    "Data Science": ["data mining", "analytics", "big data", "statistics", "visualization"],
    "Software Engineering": [
        "software",
        "development",
        "testing",
        "architecture",
        "design pattern",
    ],
}

ADVANCED_KEYWORDS = [
    "deep learning",
    "neural network",
    "transformer",
    "reinforcement learning",
    "quantum",
    "distributed",
    "parallel",
    "optimization",
    "bayesian",
]

INTERMEDIATE_KEYWORDS = [
    "machine learning",
    "classification",
    "regression",
    "clustering",
    "api",
    "database",
    "cloud",
    "web",
    "mobile",
]

IMPLEMENTATION_TIMES: dict[str, str] = {
    "Beginner": "1-2 weeks",
    "Intermediate": "2-4 weeks",
    "Advanced": "1-3 months",
}

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_TECHNICAL_TERM_RE = re.compile(
    r"[A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*|\b(?:CNN|RNN|LSTM|API|GPU|CPU|ML|AI|IoT|AR|VR)\b"
)


def _content(paper: ResearchResult) -> str:
    return f"{paper.title} {paper.abstract or ''}".lower()


def _sentences(text: str | None) -> list[str]:
    if not text:
        return []
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(text) if part.strip()]


def fallback_insights(paper: ResearchResult) -> list[str]:
    meta = paper.metadata
    insights: list[str] = []

    if paper.title:
        insights.append(
            f"[Main Contribution] {paper.title}\n→ Primary research focus of the paper"
        )

    if meta.year or meta.venue:
        details = ", ".join(
            part
            for part in (
                f"Published in {meta.year}" if meta.year else "",
                f"Venue: {meta.venue}" if meta.venue else "",
                f"Cited {meta.citations} times" if meta.citations else "",
            )
            if part
        )
        insights.append(
            f"[Publication] {details}\n→ Indicates the paper's academic impact and relevance"
        )

    if meta.authors:
        names = ", ".join(author.name for author in meta.authors)
        insights.append(
            f"[Authors] Research by {names}\n"
            "→ Represents collaboration across research institutions"
        )

    if paper.code_url:
        repo = meta.code_repository
        implementation = ", ".join(
            part
            for part in (
                "Implementation code is available",
                f"Primary language: {repo.language}" if repo and repo.language else "",
                f"GitHub stars: {repo.stars}" if repo and repo.stars else "",
            )
            if part
        )
        insights.append(
            f"[Implementation] {implementation}\n"
            "→ Enables practical application and reproduction of results"
        )

    for index, point in enumerate(_sentences(paper.abstract)[:2], start=1):
        insights.append(
            f"[Key Finding {index}] {point}\n→ Critical research outcome from the abstract"
        )

    return insights


def static_concepts(paper: ResearchResult) -> list[Concept]:
    """Build concepts from the title, domain keywords, abstract terms and repository.

    Always returns at least one concept.
    """
    concepts: list[Concept] = []

    first_sentence = (paper.abstract or "").split(".")[0].strip()
    concepts.append(
        Concept(
            concept="Main Contribution",
            explanation=first_sentence or "No explanation available",
            importance="High",
        )
    )

    content = _content(paper)
    for domain, keywords in DOMAIN_KEYWORDS.items():
        matched = [keyword for keyword in keywords if keyword in content]
        if matched:
            concepts.append(
                Concept(
                    concept=f"Domain: {domain}",
                    explanation=(
                        f"This research falls under the {domain} domain, "
                        f"focusing on {', '.join(matched)}"
                    ),
                    importance="High",
                )
            )
            break

    if paper.abstract:
        terms = list(dict.fromkeys(_TECHNICAL_TERM_RE.findall(paper.abstract)))
        sentences = _sentences(paper.abstract)
        for term in terms[:2]:
            sentence = next((s for s in sentences if term in s), "")
            if term and sentence:
                concepts.append(
                    Concept(
                        concept=f"Technical Component: {term}",
                        explanation=sentence,
                        importance="Medium",
                    )
                )

    repo = paper.metadata.code_repository
    if repo is not None:
        details = ", ".join(
            part
            for part in (
                f"Language: {repo.language}" if repo.language else "",
                f"Framework: {repo.framework}" if repo.framework else "",
                f"GitHub Stars: {repo.stars}" if repo.stars else "",
            )
            if part
        )
        concepts.append(
            Concept(
                concept="Implementation Details",
                explanation=(
                    f"Available implementation details: {details or 'not specified'}. "
                    "Code repository is available for reference."
                ),
                importance="Medium",
            )
        )

    return concepts


def static_difficulty(paper: ResearchResult) -> DifficultyAssessment:
    """Keyword-based difficulty estimate; always lists at least one skill."""
    content = _content(paper)
    prerequisites: list[str] = []
    skills: list[TechnicalSkill] = []

    level: DifficultyLevel = "Intermediate"
    if any(keyword in content for keyword in ADVANCED_KEYWORDS):
        level = "Advanced"
    elif not any(keyword in content for keyword in INTERMEDIATE_KEYWORDS):
        level = "Beginner"

    if "machine learning" in content or "deep learning" in content:
        prerequisites += [
            "Strong mathematics background",
            "Experience with ML frameworks",
            "Understanding of ML concepts",
        ]
        skills += [
            TechnicalSkill(skill="Mathematics", level="Advanced"),
            TechnicalSkill(skill="Machine Learning", level="Intermediate"),
            TechnicalSkill(skill="Python Programming", level="Intermediate"),
        ]

    if "computer vision" in content:
        prerequisites += ["Image processing knowledge", "Experience with CV libraries"]
        skills += [
            TechnicalSkill(skill="Computer Vision", level="Intermediate"),
            TechnicalSkill(skill="OpenCV", level="Basic"),
        ]

    repo = paper.metadata.code_repository
    if repo is not None:
        if repo.language:
            prerequisites.append(f"{repo.language} programming experience")
            skills.append(TechnicalSkill(skill=repo.language, level="Intermediate"))
        if repo.framework:
            prerequisites.append(f"Experience with {repo.framework}")
            skills.append(TechnicalSkill(skill=repo.framework, level="Basic"))

    if not skills:
        skills.append(TechnicalSkill(skill="Programming", level="Intermediate"))

    reference = (
        "Reference implementation is available to guide the development."
        if paper.code_url
        else "No reference implementation is available."
    )
    unique_skills = {skill.skill: skill for skill in skills}

    return DifficultyAssessment(
        level=level,
        explanation=(
            f"This {level.lower()}-level implementation requires specific technical "
            f"expertise and domain knowledge. {reference}"
        ),
        prerequisites=list(dict.fromkeys(prerequisites)),
        estimated_time_to_implement=IMPLEMENTATION_TIMES[level],
        technical_skills=list(unique_skills.values()),
    )


def fallback_code_snippets(paper: ResearchResult) -> list[CodeSnippet]:
    if not paper.code_url:
        return []
    repo = paper.metadata.code_repository
    return [
        CodeSnippet(
            title="Reference Implementation",
            description="Official implementation is available in the code repository.",
            code=f"// Please visit the code repository at:\n// {paper.code_url}",
            language=(repo.language if repo and repo.language else "plaintext"),
        )
    ]


def fallback_implementation_steps(paper: ResearchResult) -> list[str]:
    return [
        "Review the paper thoroughly",
        "Understand the key concepts and methodology",
        "Set up the development environment",
        "Implement core components",
        "Test and validate the implementation",
        (
            f"Reference implementation available at: {paper.code_url}"
            if paper.code_url
            else "No reference implementation available"
        ),
    ]


def fallback_answer(paper: ResearchResult, question: str) -> str:
    """Answer an implementation question from the paper and generic steps."""
    steps = "\n".join(
        f"{index}. {step}" for index, step in enumerate(fallback_implementation_steps(paper), 1)
    )
    return (
        f"Answer to your question about {paper.title}:\n\n"
        f"Question: {question}\n\n"
        f"Suggested approach:\n{steps}"
    )
