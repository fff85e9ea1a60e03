"""Knowledge-domain registry.

Each domain maps to a frozen keyword set. The content validator scores
domain relevance as the share of a domain's keywords found in a page.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from groundsource.core.errors import DomainError


class Domain(str, Enum):
    """Supported knowledge domains."""

    EXCEL = "excel"
    SQL = "sql"
    PYTHON = "python"
    TABLEAU = "tableau"
    POWER_BI = "power-bi"
    MACHINE_LEARNING = "machine-learning"
    DEEP_LEARNING = "deep-learning"
    NLP = "nlp"
    GENERATIVE_AI = "generative-ai"
    LINKEDIN_OPTIMIZATION = "linkedin-optimization"
    RESUME_CREATION = "resume-creation"
    ONLINE_CREDIBILITY = "online-credibility"


@dataclass(frozen=True)
class DomainConfig:
    """Static description of a domain."""

    name: str
    keywords: Tuple[str, ...]


DOMAIN_CONFIGS: Dict[Domain, DomainConfig] = {
    Domain.EXCEL: DomainConfig(
        name="Excel",
        keywords=(
            "excel",
            "spreadsheet",
            "workbook",
            "vba",
            "macro",
            "formula",
            "pivot",
            "worksheet",
        ),
    ),
    Domain.SQL: DomainConfig(
        name="SQL",
        keywords=(
            "sql",
            "database",
            "query",
            "table",
            "join",
            "index",
            "stored procedure",
            "view",
        ),
    ),
    Domain.PYTHON: DomainConfig(
        name="Python",
        keywords=(
            "python",
            "pandas",
            "numpy",
            "matplotlib",
            "jupyter",
            "scikit-learn",
            "data science",
        ),
    ),
    Domain.TABLEAU: DomainConfig(
        name="Tableau",
        keywords=(
            "tableau",
            "dashboard",
            "visualization",
            "chart",
            "calculated field",
            "parameter",
        ),
    ),
    Domain.POWER_BI: DomainConfig(
        name="Power BI",
        keywords=("power bi", "dax", "power query", "measure", "report", "visual"),
    ),
    Domain.MACHINE_LEARNING: DomainConfig(
        name="Machine Learning",
        keywords=(
            "machine learning",
            "model",
            "algorithm",
            "training",
            "prediction",
            "classification",
            "regression",
        ),
    ),
    Domain.DEEP_LEARNING: DomainConfig(
        name="Deep Learning",
        keywords=(
            "deep learning",
            "neural network",
            "tensorflow",
            "pytorch",
            "cnn",
            "rnn",
            "transformer",
        ),
    ),
    Domain.NLP: DomainConfig(
        name="Natural Language Processing",
        keywords=(
            "nlp",
            "natural language processing",
            "text",
            "tokenization",
            "sentiment",
            "language model",
        ),
    ),
    Domain.GENERATIVE_AI: DomainConfig(
        name="Generative AI",
        keywords=(
            "generative ai",
            "llm",
            "text generation",
            "image generation",
            "prompt engineering",
        ),
    ),
    Domain.LINKEDIN_OPTIMIZATION: DomainConfig(
        name="LinkedIn Optimization",
        keywords=(
            "linkedin",
            "profile",
            "networking",
            "content",
            "job search",
            "professional",
        ),
    ),
    Domain.RESUME_CREATION: DomainConfig(
        name="Resume Creation",
        keywords=("resume", "cv", "cover letter", "job application", "ats", "career"),
    ),
    Domain.ONLINE_CREDIBILITY: DomainConfig(
        name="Online Credibility",
        keywords=(
            "online presence",
            "personal brand",
            "reputation",
            "digital footprint",
            "social media",
        ),
    ),
}


def _check_registry() -> None:
    missing = [d.value for d in Domain if d not in DOMAIN_CONFIGS]
    if missing:
        raise RuntimeError(f"Domains without configuration: {missing}")
    for domain, config in DOMAIN_CONFIGS.items():
        if not config.keywords:
            raise RuntimeError(f"Domain {domain.value} has no keywords")


_check_registry()


def resolve_domain(domain: Union[Domain, str, None]) -> Optional[Domain]:
    """Turn a domain id into a Domain member.

    Args:
        domain: Domain member, domain id string, or None

    Returns:
        The matching Domain, or None when no domain was given

    Raises:
        DomainError: If the id does not name a known domain
    """
    if domain is None or isinstance(domain, Domain):
        return domain
    try:
        return Domain(domain)
    except ValueError:
        raise DomainError(str(domain)) from None


def get_domain_config(domain: Union[Domain, str]) -> DomainConfig:
    """Get the configuration for a domain, raising DomainError if unknown."""
    resolved = resolve_domain(domain)
    if resolved is None:
        raise DomainError("", "No domain given")
    return DOMAIN_CONFIGS[resolved]
